"""CHIP-8 Assembler

Two-pass assembler turning mnemonic source into a ROM image loaded at 0x200.
The first pass assigns addresses to labels, the second encodes every
instruction and data item through the shared instruction set table.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from isa.instruction_set import (
    EncodingError,
    OperandKind,
    OperandSpec,
    encode,
    lookup,
)

from .errors import (
    AssemblerError,
    AssemblySyntaxError,
    DuplicateLabelError,
    LiteralOverflowError,
    OperandCountError,
    OperandFormatError,
    UnknownInstructionError,
    UnresolvedLabelError,
)
from .operands import (
    LABEL_NAME,
    parse_address,
    parse_byte,
    parse_byte_data,
    parse_nibble,
    parse_register,
    parse_word_data,
)

__all__ = [
    "Assembler",
    "AssemblerError",
    "AssemblySyntaxError",
    "DuplicateLabelError",
    "LiteralOverflowError",
    "OperandCountError",
    "OperandFormatError",
    "UnknownInstructionError",
    "UnresolvedLabelError",
    "PROGRAM_START",
    "assemble_file",
    "assemble_source",
]

logger = logging.getLogger(__name__)

PROGRAM_START = 0x200

DATA_WIDTHS = {"DW": 2, "DB": 1}

_LABEL_LINE = re.compile(rf"^({LABEL_NAME}):(.*)$")
_STATEMENT = re.compile(r"^([A-Za-z]+)(?:\s+(.*))?$")


@dataclass
class SourceLine:
    """A classified source line that occupies space in the ROM."""
    number: int
    raw: str
    mnemonic: str
    operand_text: str
    address: int = 0

    @property
    def is_data(self) -> bool:
        return self.mnemonic in DATA_WIDTHS

    @property
    def width(self) -> int:
        return DATA_WIDTHS.get(self.mnemonic, 2)


def strip_comment(line: str) -> str:
    """Remove a ``;`` comment and surrounding whitespace."""
    comment_pos = line.find(';')
    if comment_pos >= 0:
        line = line[:comment_pos]
    return line.strip()


def is_directive(line: str) -> bool:
    return line.split(None, 1)[0].lower() == "option"


class Assembler:
    """Assembles CHIP-8 source text into ROM bytes."""

    def __init__(self, origin: int = PROGRAM_START):
        self.origin = origin
        self.labels: Dict[str, int] = {}
        self.statements: List[SourceLine] = []

    def assemble(self, source: str) -> bytes:
        """Assemble source text.

        Args:
            source: Complete program text

        Returns:
            The ROM image

        Raises:
            AssemblerError: A subclass naming the failing line
        """
        self.labels = {}
        self.statements = []

        self._first_pass(source.splitlines())
        rom = self._second_pass()

        logger.debug("Assembled %d bytes, %d labels", len(rom), len(self.labels))
        return rom

    def _first_pass(self, lines: List[str]) -> None:
        address = self.origin
        for line_number, raw in enumerate(lines, 1):
            try:
                statement = self._classify(line_number, raw, address)
            except AssemblerError as e:
                if e.line_number is not None:
                    raise
                raise e.with_line(line_number, raw) from e

            if statement is not None:
                statement.address = address
                self.statements.append(statement)
                address += statement.width

    def _classify(self, line_number: int, raw: str, address: int) -> Optional[SourceLine]:
        """Record any label on the line and return the statement it holds, if any."""
        line = strip_comment(raw)
        if not line or is_directive(line):
            return None

        label_match = _LABEL_LINE.match(line)
        if label_match:
            self._define_label(label_match.group(1), address)
            line = label_match.group(2).strip()
            if not line:
                return None

        statement_match = _STATEMENT.match(line)
        if not statement_match:
            raise AssemblySyntaxError(f"Cannot parse line: {line!r}")

        mnemonic = statement_match.group(1).upper()
        if mnemonic not in DATA_WIDTHS and lookup(mnemonic) is None:
            raise UnknownInstructionError(f"Unknown instruction: {statement_match.group(1)}")

        return SourceLine(line_number, raw, mnemonic, (statement_match.group(2) or "").strip())

    def _define_label(self, name: str, address: int) -> None:
        if name in self.labels:
            raise DuplicateLabelError(
                f"Label '{name}' already defined at 0x{self.labels[name]:03X}"
            )
        self.labels[name] = address

    def _second_pass(self) -> bytes:
        rom = bytearray()
        for statement in self.statements:
            try:
                rom += self._emit(statement)
            except AssemblerError as e:
                if e.line_number is not None:
                    raise
                raise e.with_line(statement.number, statement.raw) from e
            except EncodingError as e:
                raise OperandFormatError(str(e), statement.number, statement.raw) from e
        return bytes(rom)

    def _emit(self, statement: SourceLine) -> bytes:
        operands = split_operands(statement.operand_text)

        if statement.is_data:
            if len(operands) != 1:
                raise OperandCountError(
                    f"{statement.mnemonic} takes 1 operand, got {len(operands)}"
                )
            if statement.mnemonic == "DW":
                return parse_word_data(operands[0])
            return parse_byte_data(operands[0])

        spec = lookup(statement.mnemonic)
        if len(operands) != len(spec.operands):
            raise OperandCountError(
                f"{spec.mnemonic} takes {len(spec.operands)} operand(s), got {len(operands)}"
            )

        if statement.address % 2:
            logger.warning("Line %d: %s assembled at odd address 0x%03X",
                           statement.number, spec.mnemonic, statement.address)

        values = [self._parse_operand(operand, text)
                  for operand, text in zip(spec.operands, operands)]
        return encode(spec, values).to_bytes(2, "big")

    def _parse_operand(self, operand: OperandSpec, text: str) -> int:
        if operand.kind == OperandKind.ADDRESS:
            return parse_address(text, self.labels)
        if operand.kind == OperandKind.REGISTER:
            return parse_register(text)
        if operand.kind == OperandKind.BYTE:
            return parse_byte(text)
        return parse_nibble(text)


def split_operands(operand_text: str) -> List[str]:
    """Split the operand field on commas."""
    if not operand_text:
        return []
    operands = [part.strip() for part in operand_text.split(',')]
    if any(not part for part in operands):
        raise AssemblySyntaxError(f"Empty operand in {operand_text!r}")
    return operands


def assemble_source(source: str) -> bytes:
    """Convenience function to assemble source text into a ROM image."""
    return Assembler().assemble(source)


def assemble_file(filename: Union[str, Path]) -> bytes:
    """Convenience function to assemble a source file.

    Args:
        filename: Path to the assembly source

    Returns:
        The ROM image
    """
    with open(filename, 'r', encoding='utf-8') as f:
        content = f.read()
    return assemble_source(content)