"""
Program execution test framework for CHIP-8 instructions.

Assembles a source program, runs it on the emulator until it returns from
the top level, and checks registers, memory, the program counter and the
trace of executed addresses.
"""

import unittest
import sys
import os
from typing import Dict, List, Any, Optional

# Add src to path to import toolchain components
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from assembler.assembler import assemble_source
from vm.emulator import Emulator, EmulatorState


class ProgramTestCase:
    """Represents a single program test case."""

    def __init__(self, name: str, source: str, expected_registers: Dict[int, int],
                 expected_memory: Dict[int, int] = None, expected_pc: Optional[int] = None,
                 expected_trace: Optional[List[int]] = None, expected_index: Optional[int] = None,
                 seed: Optional[int] = 0, max_steps: int = 1000, elapsed_ms: float = 0.0):
        self.name = name
        self.source = source
        self.expected_registers = expected_registers
        self.expected_memory = expected_memory or {}
        self.expected_pc = expected_pc
        self.expected_trace = expected_trace
        self.expected_index = expected_index
        self.seed = seed
        self.max_steps = max_steps
        self.elapsed_ms = elapsed_ms


def execute(source: str, seed: Optional[int] = 0, max_steps: int = 1000,
            elapsed_ms: float = 0.0):
    """Assemble and run a program.

    Returns:
        (final state, list of PC values before each step)
    """
    emulator = Emulator(seed)
    emulator.load_rom(assemble_source(source))
    emulator.reset(seed)

    trace = []
    while not emulator.finished and len(trace) < max_steps:
        trace.append(emulator.pc)
        emulator.step(elapsed_ms)

    return emulator.dump_state(), trace


def run_program_test(test_case: ProgramTestCase) -> Dict[str, Any]:
    """Run a program test case and return results."""
    try:
        state, trace = execute(test_case.source, test_case.seed,
                               test_case.max_steps, test_case.elapsed_ms)

        results = {
            'success': True,
            'steps': len(trace),
            'state': state,
            'trace': trace,
            'errors': []
        }

        if not state.finished:
            results['errors'].append(f"Program did not finish within {test_case.max_steps} steps")

        for reg_id, expected_value in test_case.expected_registers.items():
            actual_value = state.registers[reg_id]
            if actual_value != expected_value:
                results['errors'].append(
                    f"Register V{reg_id:X}: expected {expected_value}, got {actual_value}"
                )

        for addr, expected_value in test_case.expected_memory.items():
            actual_value = state.memory[addr]
            if actual_value != expected_value:
                results['errors'].append(
                    f"Memory[0x{addr:03X}]: expected {expected_value}, got {actual_value}"
                )

        if test_case.expected_pc is not None and state.program_counter != test_case.expected_pc:
            results['errors'].append(
                f"PC: expected 0x{test_case.expected_pc:03X}, got 0x{state.program_counter:03X}"
            )

        if test_case.expected_index is not None and state.index_register != test_case.expected_index:
            results['errors'].append(
                f"I: expected 0x{test_case.expected_index:03X}, got 0x{state.index_register:03X}"
            )

        if test_case.expected_trace is not None and trace != test_case.expected_trace:
            results['errors'].append(
                f"Trace: expected {[hex(a) for a in test_case.expected_trace]}, "
                f"got {[hex(a) for a in trace]}"
            )

        if results['errors']:
            results['success'] = False

    except Exception as e:
        results = {
            'success': False,
            'error': f"{type(e).__name__}: {e}",
            'errors': [str(e)]
        }

    return results


class BaseProgramTestCase(unittest.TestCase):
    """Base class for instruction tests driven by small programs."""

    def run_test_cases(self, test_cases: List[ProgramTestCase]):
        """Run a list of test cases."""
        for test_case in test_cases:
            with self.subTest(test_case.name):
                results = run_program_test(test_case)

                if not results['success']:
                    error_msg = f"Test '{test_case.name}' failed:\n"
                    for error in results.get('errors', []):
                        error_msg += f"  - {error}\n"
                    if 'error' in results:
                        error_msg += f"  Exception: {results['error']}\n"
                    self.fail(error_msg)

    def run_source(self, source: str, **kwargs) -> EmulatorState:
        state, _ = execute(source, **kwargs)
        self.assertTrue(state.finished, "program did not finish")
        return state


if __name__ == '__main__':
    # Test the framework with a simple case
    test = ProgramTestCase(
        "simple_load",
        "LOAD V1, 42\nRTS",
        {1: 42}
    )

    results = run_program_test(test)
    print(f"Test results: {results}")
