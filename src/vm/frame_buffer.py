"""CHIP-8 Frame Buffer

64x32 monochrome display, one byte (0 or 1) per pixel. Sprites are XORed
in row by row with the most significant bit as the leftmost pixel.
"""

from typing import Iterable, List, Tuple

WIDTH = 64
HEIGHT = 32


class FrameBuffer:
    """Monochrome pixel grid addressed as (x, y)."""

    def __init__(self, width: int = WIDTH, height: int = HEIGHT):
        self.width = width
        self.height = height
        self.rows: List[bytearray] = [bytearray(width) for _ in range(height)]

    def clear(self) -> None:
        for row in self.rows:
            row[:] = bytes(self.width)

    def get(self, x: int, y: int) -> int:
        return self.rows[y][x]

    def set(self, x: int, y: int, value: int) -> None:
        self.rows[y][x] = 1 if value else 0

    def draw_sprite(self, x: int, y: int, sprite: Iterable[int]) -> bool:
        """XOR a sprite into the buffer.

        Args:
            x: Column of the sprite's left edge
            y: Row of the sprite's top edge
            sprite: One byte per row, MSB leftmost

        Returns:
            True if any lit pixel was turned off. Pixels that fall
            outside the display are skipped, not wrapped.
        """
        collision = False
        for row_offset, row_bits in enumerate(sprite):
            py = y + row_offset
            if py >= self.height:
                break
            row = self.rows[py]
            for bit in range(8):
                px = x + bit
                if px >= self.width:
                    break
                if not (row_bits >> (7 - bit)) & 1:
                    continue
                if row[px]:
                    collision = True
                row[px] ^= 1
        return collision

    def snapshot(self) -> Tuple[bytes, ...]:
        """Immutable copy of every row."""
        return tuple(bytes(row) for row in self.rows)

    def lit_pixels(self) -> int:
        return sum(sum(row) for row in self.rows)

    def render_text(self, on: str = "#", off: str = ".") -> str:
        return render_rows(self.snapshot(), on, off)


def render_rows(rows: Iterable[bytes], on: str = "#", off: str = ".") -> str:
    """Render snapshot rows as text, one line per pixel row."""
    return "\n".join("".join(on if pixel else off for pixel in row) for row in rows)
