"""CHIP-8 Execution Engine

Owns the complete CPU state and runs one fetch/decode/execute cycle per
call to ``step``. Decoding goes through the shared instruction set table;
each mnemonic is dispatched to an ``_exec_*`` handler.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from isa.instruction_set import decode, format_instruction

from .errors import (
    EmulatorError,
    EmulatorHaltedError,
    RomTooLargeError,
    StackOverflowError,
    UnknownOpcodeError,
    UnsupportedOpcodeError,
)
from .frame_buffer import FrameBuffer
from .memory import MAX_STACK, MIN_STACK, PROGRAM_START, Memory
from .random_source import SubtractiveRandom
from .timers import DelayTimer

__all__ = [
    "Emulator",
    "EmulatorState",
    "EmulatorError",
    "EmulatorHaltedError",
    "RomTooLargeError",
    "StackOverflowError",
    "UnknownOpcodeError",
    "UnsupportedOpcodeError",
]

logger = logging.getLogger(__name__)

NUM_REGISTERS = 16
FLAG_REGISTER = 0xF


@dataclass(frozen=True)
class EmulatorState:
    """Read-only snapshot of the CPU state."""
    memory: bytes
    registers: Tuple[int, ...]
    index_register: int
    program_counter: int
    stack_pointer: int
    call_depth: int
    delay_timer: int
    frame_buffer: Tuple[bytes, ...]
    finished: bool

    @property
    def stack(self) -> Tuple[int, ...]:
        """Return addresses currently on the stack, oldest first."""
        return tuple(
            (self.memory[MIN_STACK + 2 * i] << 8) | self.memory[MIN_STACK + 2 * i + 1]
            for i in range(self.call_depth)
        )


class Emulator:
    """CHIP-8 interpreter core.

    Args:
        seed: Seed for the RAND instruction. None picks a random seed.
        store_load_increments_index: Whether STOR/READ leave I pointing
            past the last register transferred.
    """

    def __init__(self, seed: Optional[int] = None,
                 store_load_increments_index: bool = True):
        self.store_load_increments_index = store_load_increments_index
        self.memory = Memory()
        self.frame_buffer = FrameBuffer()
        self.delay_timer = DelayTimer()
        self.rom: bytes = b""
        self.seed = seed

        self.instruction_handlers: Dict[str, Callable[[Tuple[int, ...]], None]] = {
            'SYS': self._exec_sys,
            'CLR': self._exec_clr,
            'RTS': self._exec_rts,
            'JUMP': self._exec_jump,
            'CALL': self._exec_call,
            'SKE': self._exec_ske,
            'SKNE': self._exec_skne,
            'SKRE': self._exec_skre,
            'LOAD': self._exec_load,
            'ADD': self._exec_add,
            'COPY': self._exec_copy,
            'OR': self._exec_or,
            'AND': self._exec_and,
            'XOR': self._exec_xor,
            'ADDR': self._exec_addr,
            'SUB': self._exec_sub,
            'SHR': self._exec_shr,
            'SUBN': self._exec_subn,
            'SHL': self._exec_shl,
            'SKRNE': self._exec_skrne,
            'LOADI': self._exec_loadi,
            'JUMPI': self._exec_jumpi,
            'RAND': self._exec_rand,
            'DRAW': self._exec_draw,
            'SKPR': self._exec_input_stub,
            'SKUP': self._exec_input_stub,
            'KEYD': self._exec_input_stub,
            'MOVED': self._exec_moved,
            'LOADD': self._exec_loadd,
            'LOADS': self._exec_loads,
            'ADDI': self._exec_addi,
            'LDSPR': self._exec_ldspr,
            'BCD': self._exec_bcd,
            'STOR': self._exec_stor,
            'READ': self._exec_read,
            'DEBUG': self._exec_debug,
        }

        self.reset(seed)

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def frame_buffer_updated(self) -> bool:
        return self._frame_buffer_updated

    @property
    def play_sound(self) -> bool:
        # The sound timer is not emulated
        return False

    def reset(self, seed: Optional[int] = None) -> None:
        """Reinitialize all CPU state.

        Memory is cleared, the font and the most recently loaded ROM are
        copied back in, and the random source is reseeded with
        ``seed``, or with the constructor seed when none is given.
        """
        self.memory.clear()
        if self.rom:
            self.memory.load_rom(self.rom)

        self.registers = [0] * NUM_REGISTERS
        self.index_register = 0
        self.pc = PROGRAM_START
        self.sp = MIN_STACK
        self.call_depth = 0
        self.delay_timer.reset()
        self.frame_buffer.clear()
        self.random = SubtractiveRandom(self.seed if seed is None else seed)
        self.instruction_count = 0

        self._finished = False
        self._frame_buffer_updated = True
        self._pc_redirected = False

        logger.debug("Emulator reset (seed=%d)", self.random.seed)

    def load_rom(self, rom: bytes) -> None:
        """Load a ROM image at 0x200.

        Raises:
            RomTooLargeError: If the image is larger than 3232 bytes
        """
        rom = bytes(rom)
        self.memory.load_rom(rom)
        self.rom = rom
        logger.info("Loaded ROM (%d bytes)", len(rom))

    def fetch(self) -> int:
        return self.memory.read_word(self.pc)

    def current_instruction(self) -> str:
        """Disassembly of the instruction at PC."""
        opcode = self.fetch()
        decoded = decode(opcode)
        if decoded is None:
            return f"DW #{opcode:04X}"
        return format_instruction(*decoded)

    def step(self, elapsed_ms: float) -> None:
        """Execute one instruction.

        Args:
            elapsed_ms: Wall time since the previous step, used by the delay timer

        Raises:
            EmulatorHaltedError: If the program already finished
            UnknownOpcodeError: If the fetched word is not an instruction
        """
        if self._finished:
            raise EmulatorHaltedError("Program has finished; call reset() before stepping")

        self._frame_buffer_updated = False
        self.delay_timer.update(elapsed_ms)

        opcode = self.fetch()
        decoded = decode(opcode)
        if decoded is None:
            raise UnknownOpcodeError(opcode, self.pc)

        spec, operands = decoded
        self._opcode = opcode
        self._pc_redirected = False

        self.instruction_handlers[spec.mnemonic](operands)
        self.instruction_count += 1

        if not self._pc_redirected and not self._finished:
            self.pc = (self.pc + 2) & 0xFFFF

    def dump_state(self) -> EmulatorState:
        return EmulatorState(
            memory=self.memory.snapshot(),
            registers=tuple(self.registers),
            index_register=self.index_register,
            program_counter=self.pc,
            stack_pointer=self.sp,
            call_depth=self.call_depth,
            delay_timer=self.delay_timer.value,
            frame_buffer=self.frame_buffer.snapshot(),
            finished=self._finished,
        )

    # Helpers

    def _jump_to(self, address: int) -> None:
        self.pc = address & 0xFFFF
        self._pc_redirected = True

    def _skip_if(self, condition: bool) -> None:
        if condition:
            self.pc = (self.pc + 2) & 0xFFFF

    def _set_flag(self, value: int) -> None:
        self.registers[FLAG_REGISTER] = value

    # Flow control

    def _exec_sys(self, operands: Tuple[int, ...]) -> None:
        raise UnsupportedOpcodeError(self._opcode, self.pc)

    def _exec_clr(self, operands: Tuple[int, ...]) -> None:
        self.frame_buffer.clear()
        self._frame_buffer_updated = True

    def _exec_rts(self, operands: Tuple[int, ...]) -> None:
        if self.call_depth == 0:
            # Returning from the top level ends the program
            self._finished = True
            return

        return_address = self.memory.read_word(self.sp)
        self.memory.write_word(self.sp, 0)
        self.call_depth -= 1
        if self.call_depth > 0:
            self.sp -= 2
        self.pc = return_address

    def _exec_jump(self, operands: Tuple[int, ...]) -> None:
        self._jump_to(operands[0])

    def _exec_call(self, operands: Tuple[int, ...]) -> None:
        slot = self.sp + 2 if self.call_depth > 0 else self.sp
        if slot + 1 > MAX_STACK:
            raise StackOverflowError(self.pc)

        self.sp = slot
        self.memory.write_word(self.sp, self.pc)
        self.call_depth += 1
        self._jump_to(operands[0])

    def _exec_jumpi(self, operands: Tuple[int, ...]) -> None:
        self._jump_to(operands[0] + self.registers[0])

    def _exec_ske(self, operands: Tuple[int, ...]) -> None:
        x, value = operands
        self._skip_if(self.registers[x] == value)

    def _exec_skne(self, operands: Tuple[int, ...]) -> None:
        x, value = operands
        self._skip_if(self.registers[x] != value)

    def _exec_skre(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        self._skip_if(self.registers[x] == self.registers[y])

    def _exec_skrne(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        self._skip_if(self.registers[x] != self.registers[y])

    # Register arithmetic

    def _exec_load(self, operands: Tuple[int, ...]) -> None:
        x, value = operands
        self.registers[x] = value

    def _exec_add(self, operands: Tuple[int, ...]) -> None:
        x, value = operands
        self.registers[x] = (self.registers[x] + value) & 0xFF

    def _exec_copy(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        self.registers[x] = self.registers[y]

    def _exec_or(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        self.registers[x] |= self.registers[y]

    def _exec_and(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        self.registers[x] &= self.registers[y]

    def _exec_xor(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        self.registers[x] ^= self.registers[y]

    def _exec_addr(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        total = self.registers[x] + self.registers[y]
        self.registers[x] = total & 0xFF
        self._set_flag(1 if total > 0xFF else 0)

    def _exec_sub(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        vx, vy = self.registers[x], self.registers[y]
        self.registers[x] = (vx - vy) & 0xFF
        self._set_flag(1 if vy <= vx else 0)

    def _exec_subn(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        vx, vy = self.registers[x], self.registers[y]
        self.registers[x] = (vy - vx) & 0xFF
        self._set_flag(1 if vx <= vy else 0)

    def _exec_shr(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        vy = self.registers[y]
        self.registers[x] = vy >> 1
        self._set_flag(vy & 0x1)

    def _exec_shl(self, operands: Tuple[int, ...]) -> None:
        x, y = operands
        vy = self.registers[y]
        self.registers[x] = (vy << 1) & 0xFF
        self._set_flag((vy >> 7) & 0x1)

    def _exec_rand(self, operands: Tuple[int, ...]) -> None:
        x, mask = operands
        self.registers[x] = self.random.next_byte() & mask

    # Index register and memory

    def _exec_loadi(self, operands: Tuple[int, ...]) -> None:
        self.index_register = operands[0]

    def _exec_addi(self, operands: Tuple[int, ...]) -> None:
        self.index_register = (self.index_register + self.registers[operands[0]]) & 0xFFFF

    def _exec_ldspr(self, operands: Tuple[int, ...]) -> None:
        self.index_register = self.memory.font_address(self.registers[operands[0]])

    def _exec_bcd(self, operands: Tuple[int, ...]) -> None:
        value = self.registers[operands[0]]
        self.memory.write_byte(self.index_register, value // 100)
        self.memory.write_byte(self.index_register + 1, (value // 10) % 10)
        self.memory.write_byte(self.index_register + 2, value % 10)

    def _exec_stor(self, operands: Tuple[int, ...]) -> None:
        last = operands[0]
        for i in range(last + 1):
            self.memory.write_byte(self.index_register + i, self.registers[i])
        if self.store_load_increments_index:
            self.index_register = (self.index_register + last + 1) & 0xFFFF

    def _exec_read(self, operands: Tuple[int, ...]) -> None:
        last = operands[0]
        for i in range(last + 1):
            self.registers[i] = self.memory.read_byte(self.index_register + i)
        if self.store_load_increments_index:
            self.index_register = (self.index_register + last + 1) & 0xFFFF

    # Display

    def _exec_draw(self, operands: Tuple[int, ...]) -> None:
        x, y, height = operands
        sprite = self.memory.read_block(self.index_register, height)
        collision = self.frame_buffer.draw_sprite(self.registers[x], self.registers[y], sprite)
        self._set_flag(1 if collision else 0)
        self._frame_buffer_updated = True

    # Timers

    def _exec_moved(self, operands: Tuple[int, ...]) -> None:
        self.registers[operands[0]] = self.delay_timer.value

    def _exec_loadd(self, operands: Tuple[int, ...]) -> None:
        self.delay_timer.set(self.registers[operands[0]])

    def _exec_loads(self, operands: Tuple[int, ...]) -> None:
        logger.debug("Sound timer not emulated; LOADS ignored at 0x%03X", self.pc)

    # Input and diagnostics

    def _exec_input_stub(self, operands: Tuple[int, ...]) -> None:
        logger.debug("Keypad not emulated; 0x%04X ignored at 0x%03X", self._opcode, self.pc)

    def _exec_debug(self, operands: Tuple[int, ...]) -> None:
        logger.debug("DEBUG opcode hit at 0x%03X (I=0x%03X, V=%s)", self.pc,
                     self.index_register, " ".join(f"{v:02X}" for v in self.registers))
