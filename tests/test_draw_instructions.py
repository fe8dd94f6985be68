"""
Tests for DRAW, CLR and the frame buffer.
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from test_assembly_framework import BaseProgramTestCase
from assembler.assembler import assemble_source
from vm.emulator import Emulator
from vm.frame_buffer import FrameBuffer, HEIGHT, WIDTH, render_rows

SPRITE = """
SPRITE:
    DB $11....11
    DB $..1111..
"""


def lit(frame):
    return {(x, y) for y, row in enumerate(frame) for x, pixel in enumerate(row) if pixel}


class TestDrawInstruction(BaseProgramTestCase):
    """Test DRAW through whole programs."""

    def test_draw_sprite(self):
        state = self.run_source("""
            LOADI SPRITE
            LOAD V0, 10
            LOAD V1, 4
            DRAW V0, V1, 2
            RTS
        """ + SPRITE)

        self.assertEqual(lit(state.frame_buffer), {
            (10, 4), (11, 4), (16, 4), (17, 4),
            (12, 5), (13, 5), (14, 5), (15, 5),
        })
        self.assertEqual(state.registers[0xF], 0)
        self.assertEqual(state.index_register, 0x20A)

    def test_draw_twice_erases_with_collision(self):
        state = self.run_source("""
            LOADI SPRITE
            DRAW V0, V1, 2
            DRAW V0, V1, 2
            RTS
        """ + SPRITE)

        self.assertEqual(lit(state.frame_buffer), set())
        self.assertEqual(state.registers[0xF], 1)

    def test_partial_overlap_sets_collision(self):
        state = self.run_source("""
            LOADI SPRITE
            DRAW V0, V1, 2
            LOAD V0, 1
            DRAW V0, V1, 1
            RTS
        """ + SPRITE)

        # Row 0 was lit at 0, 1, 6, 7; the second sprite toggles 1, 2, 7, 8
        self.assertEqual(lit(state.frame_buffer) & {(x, 0) for x in range(10)},
                         {(0, 0), (2, 0), (6, 0), (8, 0)})
        self.assertEqual(state.registers[0xF], 1)

    def test_draw_clips_at_edges(self):
        state = self.run_source("""
            LOADI FULL
            LOAD V0, 60
            LOAD V1, 31
            DRAW V0, V1, 2
            RTS
        FULL:
            DB $11111111
            DB $11111111
        """)

        self.assertEqual(lit(state.frame_buffer), {(60, 31), (61, 31), (62, 31), (63, 31)})
        self.assertEqual(state.registers[0xF], 0)

    def test_zero_height_draws_nothing(self):
        state = self.run_source("LOADI $050\nDRAW V0, V0, 0\nRTS")
        self.assertEqual(lit(state.frame_buffer), set())
        self.assertEqual(state.registers[0xF], 0)

    def test_draw_font_glyph(self):
        state = self.run_source("LOAD V0, 0\nLDSPR V0\nDRAW V1, V1, 5\nRTS")
        self.assertEqual(render_rows(row[:4] for row in state.frame_buffer[:5]),
                         "####\n#..#\n#..#\n#..#\n####")

    def test_clr(self):
        state = self.run_source("LOADI SPRITE\nDRAW V0, V1, 2\nCLR\nRTS\n" + SPRITE)
        self.assertEqual(lit(state.frame_buffer), set())

    def test_frame_buffer_updated_flag(self):
        emulator = Emulator(seed=0)
        emulator.load_rom(assemble_source("LOAD V0, 1\nDRAW V0, V0, 1\nCLR\nRTS"))
        emulator.reset()
        self.assertTrue(emulator.frame_buffer_updated)

        emulator.step(0)
        self.assertFalse(emulator.frame_buffer_updated)
        emulator.step(0)
        self.assertTrue(emulator.frame_buffer_updated)
        emulator.step(0)
        self.assertTrue(emulator.frame_buffer_updated)
        emulator.step(0)
        self.assertFalse(emulator.frame_buffer_updated)


class TestFrameBuffer(unittest.TestCase):
    """FrameBuffer unit behaviour."""

    def test_dimensions(self):
        frame_buffer = FrameBuffer()
        snapshot = frame_buffer.snapshot()
        self.assertEqual(len(snapshot), HEIGHT)
        self.assertTrue(all(len(row) == WIDTH for row in snapshot))

    def test_snapshot_is_a_copy(self):
        frame_buffer = FrameBuffer()
        snapshot = frame_buffer.snapshot()
        frame_buffer.set(0, 0, 1)
        self.assertEqual(snapshot[0][0], 0)
        self.assertEqual(frame_buffer.get(0, 0), 1)

    def test_collision_only_when_pixel_turns_off(self):
        frame_buffer = FrameBuffer()
        self.assertFalse(frame_buffer.draw_sprite(0, 0, [0b10000000]))
        self.assertFalse(frame_buffer.draw_sprite(1, 0, [0b10000000]))
        self.assertTrue(frame_buffer.draw_sprite(0, 0, [0b11000000]))
        self.assertEqual(frame_buffer.lit_pixels(), 0)

    def test_render_text(self):
        frame_buffer = FrameBuffer(width=4, height=2)
        frame_buffer.draw_sprite(1, 1, [0b11000000])
        self.assertEqual(frame_buffer.render_text(), "....\n.##.")
        self.assertEqual(frame_buffer.render_text(on="X", off=" "), "    \n XX ")


if __name__ == '__main__':
    unittest.main()
