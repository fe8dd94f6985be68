"""
Tests for the index register, memory transfers, the font and ROM loading.
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from test_assembly_framework import BaseProgramTestCase, ProgramTestCase
from assembler.assembler import assemble_source
from vm.emulator import Emulator, RomTooLargeError
from vm.memory import (
    FONT,
    FONT_ADDRESS,
    MAX_ROM_SIZE,
    MemoryException,
    Memory,
)


class TestIndexInstructions(BaseProgramTestCase):
    """Test LOADI, ADDI and LDSPR."""

    def test_index(self):
        test_cases = [
            ProgramTestCase("loadi", "LOADI $345\nRTS", {}, expected_index=0x345),
            ProgramTestCase(
                "loadi_label",
                "LOADI DATA\nRTS\nDATA:\nDW #1234",
                {},
                expected_index=0x204,
            ),
            ProgramTestCase(
                "addi",
                "LOADI $300\nLOAD V1, #20\nADDI V1\nRTS",
                {},
                expected_index=0x320,
            ),
            ProgramTestCase(
                "ldspr_digit_a",
                "LOAD V0, #0A\nLDSPR V0\nRTS",
                {},
                expected_index=FONT_ADDRESS + 10 * 5,
            ),
            ProgramTestCase(
                "ldspr_uses_low_nibble",
                "LOAD V0, #13\nLDSPR V0\nRTS",
                {},
                expected_index=FONT_ADDRESS + 3 * 5,
            ),
        ]
        self.run_test_cases(test_cases)

    def test_font_glyph_for_a(self):
        state = self.run_source("LOAD V0, #0A\nLDSPR V0\nRTS")
        start = state.index_register
        self.assertEqual(state.memory[start:start + 5], bytes([0xF0, 0x90, 0xF0, 0x90, 0x90]))


class TestTransferInstructions(BaseProgramTestCase):
    """Test BCD, STOR and READ."""

    def test_bcd(self):
        test_cases = [
            ProgramTestCase(
                "bcd_254",
                "LOAD V0, 254\nLOADI $300\nBCD V0\nRTS",
                {},
                expected_memory={0x300: 2, 0x301: 5, 0x302: 4},
                expected_index=0x300,
            ),
            ProgramTestCase(
                "bcd_7",
                "LOAD V5, 7\nLOADI $300\nBCD V5\nRTS",
                {},
                expected_memory={0x300: 0, 0x301: 0, 0x302: 7},
            ),
        ]
        self.run_test_cases(test_cases)

    def test_stor(self):
        test_cases = [
            ProgramTestCase(
                "stor_v0_to_v3",
                """
                    LOAD V0, 1
                    LOAD V1, 2
                    LOAD V2, 3
                    LOAD V3, 4
                    LOAD V4, 9
                    LOADI $300
                    STOR V3
                    RTS
                """,
                {},
                expected_memory={0x300: 1, 0x301: 2, 0x302: 3, 0x303: 4, 0x304: 0},
                expected_index=0x304,
            ),
            ProgramTestCase(
                "stor_v0_only",
                "LOAD V0, 42\nLOADI $300\nSTOR V0\nRTS",
                {},
                expected_memory={0x300: 42},
                expected_index=0x301,
            ),
        ]
        self.run_test_cases(test_cases)

    def test_read(self):
        test_cases = [
            ProgramTestCase(
                "read_v0_to_v2",
                """
                    LOADI DATA
                    READ V2
                    RTS
                DATA:
                    DB $00000001
                    DB $00000010
                    DB $00000011
                    DB $11111111
                """,
                {0: 1, 1: 2, 2: 3, 3: 0},
                expected_index=0x209,
            ),
        ]
        self.run_test_cases(test_cases)

    def test_index_left_alone_when_configured(self):
        emulator = Emulator(seed=0, store_load_increments_index=False)
        emulator.load_rom(assemble_source("LOAD V0, 5\nLOADI $300\nSTOR V0\nREAD V0\nRTS"))
        emulator.reset()
        while not emulator.finished:
            emulator.step(0)
        self.assertEqual(emulator.index_register, 0x300)
        self.assertEqual(emulator.memory.read_byte(0x300), 5)


class TestTimerInstructions(BaseProgramTestCase):
    """Test LOADD and MOVED."""

    def test_delay_timer(self):
        test_cases = [
            ProgramTestCase(
                "timer_frozen_without_time",
                "LOAD V0, 10\nLOADD V0\nMOVED V1\nRTS",
                {1: 10},
                elapsed_ms=0.0,
            ),
            ProgramTestCase(
                "timer_counts_down",
                "LOAD V0, 10\nLOADD V0\nMOVED V1\nRTS",
                {1: 9},
                elapsed_ms=20.0,
            ),
            ProgramTestCase(
                "timer_reaches_zero",
                "LOAD V0, 1\nLOADD V0\nLOAD V2, 0\nMOVED V1\nRTS",
                {1: 0},
                elapsed_ms=20.0,
            ),
        ]
        self.run_test_cases(test_cases)

    def test_sound_timer_is_ignored(self):
        state = self.run_source("LOAD V0, 30\nLOADS V0\nRTS")
        self.assertEqual(state.delay_timer, 0)


class TestRomLoading(unittest.TestCase):
    """ROM size limits, the font and reset behaviour."""

    def test_largest_rom_fits(self):
        emulator = Emulator(seed=0)
        emulator.load_rom(bytes([0xAB]) * MAX_ROM_SIZE)
        self.assertEqual(MAX_ROM_SIZE, 3232)
        self.assertEqual(emulator.memory.read_byte(0x200 + MAX_ROM_SIZE - 1), 0xAB)
        self.assertEqual(emulator.memory.read_byte(0xEA0), 0)

    def test_oversized_rom_rejected(self):
        emulator = Emulator(seed=0)
        with self.assertRaises(RomTooLargeError) as ctx:
            emulator.load_rom(bytes(MAX_ROM_SIZE + 1))
        self.assertEqual(ctx.exception.size, 3233)
        self.assertEqual(ctx.exception.limit, 3232)

    def test_font_installed(self):
        emulator = Emulator(seed=0)
        state = emulator.dump_state()
        self.assertEqual(state.memory[FONT_ADDRESS:FONT_ADDRESS + 80], FONT)

    def test_reset_restores_rom_and_font(self):
        emulator = Emulator(seed=0)
        emulator.load_rom(assemble_source("LOAD V1, 1\nRTS"))
        emulator.memory.write_byte(0x200, 0)
        emulator.memory.write_byte(FONT_ADDRESS, 0)
        emulator.memory.write_byte(0x500, 0x77)

        emulator.reset()

        self.assertEqual(emulator.memory.read_word(0x200), 0x6101)
        self.assertEqual(emulator.memory.read_byte(FONT_ADDRESS), FONT[0])
        self.assertEqual(emulator.memory.read_byte(0x500), 0)
        self.assertEqual(emulator.pc, 0x200)


class TestMemory(unittest.TestCase):
    """Memory unit helpers."""

    def test_words_are_big_endian(self):
        memory = Memory()
        memory.write_word(0x300, 0x12AB)
        self.assertEqual(memory.read_byte(0x300), 0x12)
        self.assertEqual(memory.read_byte(0x301), 0xAB)
        self.assertEqual(memory.read_word(0x300), 0x12AB)

    def test_addresses_wrap_to_12_bits(self):
        memory = Memory()
        memory.write_byte(0x1300, 0x55)
        self.assertEqual(memory.read_byte(0x300), 0x55)

    def test_regions(self):
        memory = Memory()
        self.assertEqual(memory.region_of(0x050).name, "Interpreter")
        self.assertEqual(memory.region_of(0x200).name, "Program")
        self.assertEqual(memory.region_of(0xE9F).name, "Program")
        self.assertEqual(memory.region_of(0xEA0).name, "Stack")
        self.assertEqual(memory.region_of(0xF00).name, "Display")

    def test_region_map_covers_memory(self):
        memory = Memory()
        sizes = sum(info['size'] for info in memory.get_memory_map().values())
        self.assertEqual(sizes, 0x1000)

    def test_dump(self):
        memory = Memory()
        memory.write_byte(0xFFF, 9)
        self.assertEqual(memory.dump(0xFFE, 4), {0xFFE: 0, 0xFFF: 9})

    def test_memory_exception_is_emulator_error(self):
        from vm.errors import EmulatorError
        self.assertTrue(issubclass(MemoryException, EmulatorError))


if __name__ == '__main__':
    unittest.main()
