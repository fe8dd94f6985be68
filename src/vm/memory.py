"""CHIP-8 Virtual Machine Memory

4 KiB byte-addressed memory with the fixed CHIP-8 layout: interpreter
area (holding the built-in font), program ROM, call stack and display
refresh area.
"""

from dataclasses import dataclass
from typing import Dict, Any

from .errors import EmulatorError, RomTooLargeError

MEMORY_SIZE = 0x1000

PROGRAM_START = 0x200
MIN_STACK = 0xEA0
MAX_STACK = 0xEFF
DISPLAY_START = 0xF00

MAX_ROM_SIZE = MIN_STACK - PROGRAM_START  # 3232 bytes

FONT_ADDRESS = 0x050
FONT_GLYPH_SIZE = 5
FONT = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])


class MemoryException(EmulatorError):
    """Base exception for memory-related errors."""
    pass


@dataclass
class MemoryRegion:
    """Represents a region of memory."""
    start_address: int
    size: int
    name: str = ""

    @property
    def end_address(self) -> int:
        return self.start_address + self.size - 1

    def contains(self, address: int) -> bool:
        return self.start_address <= address <= self.end_address


class Memory:
    """CHIP-8 memory unit."""

    def __init__(self):
        self.regions = {
            'interpreter': MemoryRegion(0x000, PROGRAM_START, "Interpreter"),
            'program': MemoryRegion(PROGRAM_START, MAX_ROM_SIZE, "Program"),
            'stack': MemoryRegion(MIN_STACK, MAX_STACK - MIN_STACK + 1, "Stack"),
            'display': MemoryRegion(DISPLAY_START, MEMORY_SIZE - DISPLAY_START, "Display"),
        }
        self.data = bytearray(MEMORY_SIZE)
        self.install_font()

    def clear(self) -> None:
        """Zero all memory and reinstall the font."""
        self.data = bytearray(MEMORY_SIZE)
        self.install_font()

    def install_font(self) -> None:
        self.data[FONT_ADDRESS:FONT_ADDRESS + len(FONT)] = FONT

    def load_rom(self, rom: bytes) -> None:
        """Copy a ROM image into the program area.

        Args:
            rom: Program bytes

        Raises:
            RomTooLargeError: If the image exceeds the program area
        """
        if len(rom) > MAX_ROM_SIZE:
            raise RomTooLargeError(len(rom), MAX_ROM_SIZE)
        self.data[PROGRAM_START:PROGRAM_START + len(rom)] = rom

    def read_byte(self, address: int) -> int:
        return self.data[address & 0xFFF]

    def write_byte(self, address: int, value: int) -> None:
        self.data[address & 0xFFF] = value & 0xFF

    def read_word(self, address: int) -> int:
        """Read a big-endian 16-bit word."""
        return (self.read_byte(address) << 8) | self.read_byte(address + 1)

    def write_word(self, address: int, value: int) -> None:
        self.write_byte(address, value >> 8)
        self.write_byte(address + 1, value)

    def read_block(self, address: int, count: int) -> bytes:
        return bytes(self.read_byte(address + i) for i in range(count))

    def region_of(self, address: int) -> MemoryRegion:
        for region in self.regions.values():
            if region.contains(address & 0xFFF):
                return region
        raise MemoryException(f"Address not in any memory region: 0x{address:04X}")

    def get_memory_map(self) -> Dict[str, Any]:
        """Get memory map information for debugging."""
        return {
            name: {
                'start': f"0x{region.start_address:03X}",
                'end': f"0x{region.end_address:03X}",
                'size': region.size,
            }
            for name, region in self.regions.items()
        }

    def dump(self, start: int = PROGRAM_START, count: int = 16) -> Dict[int, int]:
        """Dump memory contents for debugging.

        Args:
            start: First address
            count: Number of bytes

        Returns:
            Dictionary mapping addresses to byte values
        """
        return {start + i: self.read_byte(start + i) for i in range(count)
                if start + i < MEMORY_SIZE}

    def snapshot(self) -> bytes:
        return bytes(self.data)

    def font_address(self, digit: int) -> int:
        return FONT_ADDRESS + (digit & 0xF) * FONT_GLYPH_SIZE
