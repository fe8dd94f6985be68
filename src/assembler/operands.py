"""Operand grammars for CHIP-8 assembly source.

Parsers here raise assembler errors without line context; the
assembler attaches the line number when it re-raises them.
"""

import re
from typing import Dict

from .errors import (
    LiteralOverflowError,
    OperandFormatError,
    UnresolvedLabelError,
)

LABEL_NAME = r"[A-Za-z_][A-Za-z0-9_]*"

_ADDRESS_LITERAL = re.compile(r"^\$([0-9A-Fa-f]{3})$")
_LABEL = re.compile(rf"^{LABEL_NAME}$")
_REGISTER = re.compile(r"^[Vv]([0-9A-Fa-f])$")
_BYTE_HEX = re.compile(r"^#([0-9A-Fa-f]{2})$")
_NIBBLE_HEX = re.compile(r"^#([0-9A-Fa-f])$")
_DECIMAL = re.compile(r"^[0-9]+$")
_WORD_HEX = re.compile(r"^#([0-9A-Fa-f]{4})$")
_BIT_PATTERN = re.compile(r"^\$([01.]{8})$")


def parse_address(text: str, labels: Dict[str, int]) -> int:
    """Parse ``$XXX`` or a label name into a 12-bit address."""
    match = _ADDRESS_LITERAL.match(text)
    if match:
        return int(match.group(1), 16)

    if _LABEL.match(text):
        if text not in labels:
            raise UnresolvedLabelError(f"Undefined label: {text}")
        address = labels[text]
        if address > 0xFFF:
            raise OperandFormatError(f"Label {text} resolves to 0x{address:X}, outside 12-bit range")
        return address

    raise OperandFormatError(f"Invalid address operand: {text!r}")


def parse_register(text: str) -> int:
    match = _REGISTER.match(text)
    if not match:
        raise OperandFormatError(f"Invalid register: {text!r}")
    return int(match.group(1), 16)


def _parse_literal(text: str, hex_pattern, maximum: int, kind: str) -> int:
    match = hex_pattern.match(text)
    if match:
        return int(match.group(1), 16)

    if _DECIMAL.match(text):
        value = int(text, 10)
        if value > maximum:
            raise LiteralOverflowError(f"{kind} literal {value} exceeds {maximum}")
        return value

    raise OperandFormatError(f"Invalid {kind} literal: {text!r}")


def parse_byte(text: str) -> int:
    """Parse ``#XX`` (exactly two hex digits) or a decimal 0-255."""
    return _parse_literal(text, _BYTE_HEX, 0xFF, "byte")


def parse_nibble(text: str) -> int:
    """Parse ``#X`` (one hex digit) or a decimal 0-15."""
    return _parse_literal(text, _NIBBLE_HEX, 0xF, "nibble")


def parse_word_data(text: str) -> bytes:
    """Parse the operand of a ``DW`` item into two big-endian bytes."""
    match = _WORD_HEX.match(text)
    if not match:
        raise OperandFormatError(f"DW expects #HHHH, got {text!r}")
    return int(match.group(1), 16).to_bytes(2, "big")


def parse_byte_data(text: str) -> bytes:
    """Parse the operand of a ``DB`` item.

    Eight characters of ``0``, ``1`` or ``.`` (read as 0), most
    significant bit first, so sprites can be drawn in the source.
    """
    match = _BIT_PATTERN.match(text)
    if not match:
        raise OperandFormatError(f"DB expects $ followed by 8 of 0/1/., got {text!r}")
    bits = match.group(1).replace(".", "0")
    return bytes([int(bits, 2)])
