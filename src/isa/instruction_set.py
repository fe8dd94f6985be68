"""CHIP-8 Instruction Set

Single declarative table of every supported instruction. The assembler
encodes through it, the emulator decodes through it and the debugger
disassembles through it, so all three agree on every bit field.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple


class OperandKind(Enum):
    """Kinds of operand fields inside a 16-bit opcode."""
    ADDRESS = "address"
    REGISTER = "register"
    BYTE = "byte"
    NIBBLE = "nibble"


OPERAND_WIDTHS = {
    OperandKind.ADDRESS: 12,
    OperandKind.REGISTER: 4,
    OperandKind.BYTE: 8,
    OperandKind.NIBBLE: 4,
}


class EncodingError(ValueError):
    """Raised when an operand value does not fit its opcode field."""
    pass


@dataclass(frozen=True)
class OperandSpec:
    """A single operand field: its kind and where it sits in the opcode."""
    kind: OperandKind
    shift: int = 0

    @property
    def width(self) -> int:
        return OPERAND_WIDTHS[self.kind]

    @property
    def field_mask(self) -> int:
        return ((1 << self.width) - 1) << self.shift

    def extract(self, opcode: int) -> int:
        return (opcode >> self.shift) & ((1 << self.width) - 1)


@dataclass(frozen=True)
class InstructionSpec:
    """Describes one mnemonic.

    ``base`` holds the fixed bits of the opcode and ``mask`` selects them,
    so an opcode belongs to this instruction when ``opcode & mask == base``.
    """
    mnemonic: str
    base: int
    mask: int
    operands: Tuple[OperandSpec, ...]
    description: str = ""

    @property
    def specificity(self) -> int:
        return bin(self.mask).count("1")

    @property
    def syntax(self) -> str:
        """Operand syntax as shown in completions and listings."""
        names = {
            OperandKind.ADDRESS: "addr",
            OperandKind.BYTE: "byte",
            OperandKind.NIBBLE: "nibble",
        }
        parts = []
        for operand in self.operands:
            if operand.kind == OperandKind.REGISTER:
                parts.append("Vx" if operand.shift == 8 else "Vy")
            else:
                parts.append(names[operand.kind])
        if not parts:
            return self.mnemonic
        return f"{self.mnemonic} {', '.join(parts)}"

    @property
    def template(self) -> str:
        """Opcode template such as ``8xy4`` or ``Dxyn``."""
        letters = {
            OperandKind.ADDRESS: "n",
            OperandKind.BYTE: "n",
            OperandKind.NIBBLE: "n",
        }
        chars = list(f"{self.base:04X}")
        for operand in self.operands:
            if operand.kind == OperandKind.REGISTER:
                letter = "x" if operand.shift == 8 else "y"
            else:
                letter = letters[operand.kind]
            for bit in range(operand.shift, operand.shift + operand.width, 4):
                chars[3 - bit // 4] = letter
        return "".join(chars)


_ADDR = OperandSpec(OperandKind.ADDRESS)
_VX = OperandSpec(OperandKind.REGISTER, 8)
_VY = OperandSpec(OperandKind.REGISTER, 4)
_BYTE = OperandSpec(OperandKind.BYTE)
_NIBBLE = OperandSpec(OperandKind.NIBBLE)


def _spec(mnemonic: str, base: int, operands: Sequence[OperandSpec],
          description: str) -> InstructionSpec:
    mask = 0xFFFF
    for operand in operands:
        mask &= ~operand.field_mask
    return InstructionSpec(mnemonic, base, mask & 0xFFFF, tuple(operands), description)


INSTRUCTION_SET: List[InstructionSpec] = [
    _spec("SYS", 0x0000, [_ADDR], "Call RCA 1802 program at addr (unsupported)"),
    _spec("CLR", 0x00E0, [], "Clear the display"),
    _spec("RTS", 0x00EE, [], "Return from subroutine"),
    _spec("JUMP", 0x1000, [_ADDR], "Jump to addr"),
    _spec("CALL", 0x2000, [_ADDR], "Call subroutine at addr"),
    _spec("SKE", 0x3000, [_VX, _BYTE], "Skip next instruction if Vx == byte"),
    _spec("SKNE", 0x4000, [_VX, _BYTE], "Skip next instruction if Vx != byte"),
    _spec("SKRE", 0x5000, [_VX, _VY], "Skip next instruction if Vx == Vy"),
    _spec("LOAD", 0x6000, [_VX, _BYTE], "Vx = byte"),
    _spec("ADD", 0x7000, [_VX, _BYTE], "Vx = Vx + byte, VF unchanged"),
    _spec("COPY", 0x8000, [_VX, _VY], "Vx = Vy"),
    _spec("OR", 0x8001, [_VX, _VY], "Vx = Vx | Vy"),
    _spec("AND", 0x8002, [_VX, _VY], "Vx = Vx & Vy"),
    _spec("XOR", 0x8003, [_VX, _VY], "Vx = Vx ^ Vy"),
    _spec("ADDR", 0x8004, [_VX, _VY], "Vx = Vx + Vy, VF = carry"),
    _spec("SUB", 0x8005, [_VX, _VY], "Vx = Vx - Vy, VF = not borrow"),
    _spec("SHR", 0x8006, [_VX, _VY], "Vx = Vy >> 1, VF = shifted out bit"),
    _spec("SUBN", 0x8007, [_VX, _VY], "Vx = Vy - Vx, VF = not borrow"),
    _spec("SHL", 0x800E, [_VX, _VY], "Vx = Vy << 1, VF = shifted out bit"),
    _spec("SKRNE", 0x9000, [_VX, _VY], "Skip next instruction if Vx != Vy"),
    _spec("LOADI", 0xA000, [_ADDR], "I = addr"),
    _spec("JUMPI", 0xB000, [_ADDR], "Jump to addr + V0"),
    _spec("RAND", 0xC000, [_VX, _BYTE], "Vx = random byte & byte"),
    _spec("DRAW", 0xD000, [_VX, _VY, _NIBBLE], "Draw nibble rows of sprite at I to (Vx, Vy)"),
    _spec("SKPR", 0xE09E, [_VX], "Skip if key Vx pressed (not emulated)"),
    _spec("SKUP", 0xE0A1, [_VX], "Skip if key Vx not pressed (not emulated)"),
    _spec("MOVED", 0xF007, [_VX], "Vx = delay timer"),
    _spec("KEYD", 0xF00A, [_VX], "Wait for key press into Vx (not emulated)"),
    _spec("LOADD", 0xF015, [_VX], "Delay timer = Vx"),
    _spec("LOADS", 0xF018, [_VX], "Sound timer = Vx (not emulated)"),
    _spec("ADDI", 0xF01E, [_VX], "I = I + Vx"),
    _spec("LDSPR", 0xF029, [_VX], "I = address of font sprite for digit Vx"),
    _spec("BCD", 0xF033, [_VX], "Store BCD of Vx at I, I+1, I+2"),
    _spec("STOR", 0xF055, [_VX], "Store V0..Vx at I"),
    _spec("READ", 0xF065, [_VX], "Load V0..Vx from I"),
    _spec("DEBUG", 0xFFFF, [], "Emit a debug trace message"),
]

_BY_MNEMONIC: Dict[str, InstructionSpec] = {
    spec.mnemonic: spec for spec in INSTRUCTION_SET
}

# Most specific masks first so 00E0/00EE are found before 0nnn
_DECODE_ORDER: List[InstructionSpec] = sorted(
    INSTRUCTION_SET, key=lambda spec: spec.specificity, reverse=True
)


def lookup(mnemonic: str) -> Optional[InstructionSpec]:
    """Find an instruction by mnemonic, ignoring case."""
    return _BY_MNEMONIC.get(mnemonic.upper())


def encode(spec: InstructionSpec, values: Sequence[int]) -> int:
    """Encode operand values into a 16-bit opcode.

    Args:
        spec: Instruction to encode
        values: One integer per operand, in source order

    Returns:
        The opcode as an integer

    Raises:
        EncodingError: If the operand count is wrong or a value overflows its field
    """
    if len(values) != len(spec.operands):
        raise EncodingError(
            f"{spec.mnemonic} takes {len(spec.operands)} operand(s), got {len(values)}"
        )

    opcode = spec.base
    for operand, value in zip(spec.operands, values):
        limit = 1 << operand.width
        if not 0 <= value < limit:
            raise EncodingError(
                f"{operand.kind.value} operand {value} does not fit in {operand.width} bits"
            )
        opcode |= value << operand.shift
    return opcode


def decode(opcode: int) -> Optional[Tuple[InstructionSpec, Tuple[int, ...]]]:
    """Decode an opcode into its instruction and operand values.

    Returns None when no instruction matches.
    """
    opcode &= 0xFFFF
    for spec in _DECODE_ORDER:
        if opcode & spec.mask == spec.base:
            return spec, tuple(operand.extract(opcode) for operand in spec.operands)
    return None


def format_operand(operand: OperandSpec, value: int) -> str:
    if operand.kind == OperandKind.ADDRESS:
        return f"${value:03X}"
    if operand.kind == OperandKind.REGISTER:
        return f"V{value:X}"
    if operand.kind == OperandKind.BYTE:
        return f"#{value:02X}"
    return f"#{value:X}"


def format_instruction(spec: InstructionSpec, values: Sequence[int]) -> str:
    """Render an instruction in assembler syntax, e.g. ``DRAW VA, V6, #E``."""
    if not spec.operands:
        return spec.mnemonic
    rendered = ", ".join(format_operand(op, v) for op, v in zip(spec.operands, values))
    return f"{spec.mnemonic} {rendered}"


def disassemble_opcode(opcode: int) -> str:
    decoded = decode(opcode)
    if decoded is None:
        return f"DW #{opcode & 0xFFFF:04X}"
    spec, values = decoded
    return format_instruction(spec, values)


def disassemble(rom: bytes, origin: int = 0x200) -> List[Tuple[int, int, str]]:
    """Disassemble a ROM image word by word.

    Args:
        rom: Raw program bytes
        origin: Address of the first byte

    Returns:
        List of (address, opcode, text) tuples. A trailing odd byte is
        shown as a ``DB`` item.
    """
    listing = []
    for offset in range(0, len(rom) - 1, 2):
        opcode = (rom[offset] << 8) | rom[offset + 1]
        listing.append((origin + offset, opcode, disassemble_opcode(opcode)))
    if len(rom) % 2:
        value = rom[-1]
        listing.append((origin + len(rom) - 1, value, f"DB ${value:08b}"))
    return listing
