import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from isa.instruction_set import (
    INSTRUCTION_SET,
    EncodingError,
    OperandKind,
    decode,
    disassemble,
    disassemble_opcode,
    encode,
    lookup,
)


def sample_values(spec):
    """Distinct in-range values for every operand of an instruction."""
    samples = {
        OperandKind.ADDRESS: 0xABC,
        OperandKind.BYTE: 0x5E,
        OperandKind.NIBBLE: 0x9,
    }
    values = []
    for operand in spec.operands:
        if operand.kind == OperandKind.REGISTER:
            values.append(0xA if operand.shift == 8 else 0x6)
        else:
            values.append(samples[operand.kind])
    return values


@pytest.mark.parametrize("spec", INSTRUCTION_SET, ids=lambda spec: spec.mnemonic)
def test_decode_inverts_encode(spec):
    values = sample_values(spec)
    opcode = encode(spec, values)
    assert decode(opcode) == (spec, tuple(values))


@pytest.mark.parametrize("mnemonic, values, expected", [
    ("RTS", [], 0x00EE),
    ("CLR", [], 0x00E0),
    ("SYS", [0xA23], 0x0A23),
    ("JUMP", [0xA23], 0x1A23),
    ("CALL", [0xE6F], 0x2E6F),
    ("SKE", [0xA, 0x6E], 0x3A6E),
    ("LOAD", [0xA, 0x6E], 0x6A6E),
    ("ADDR", [0x2, 0x1], 0x8214),
    ("SHL", [0x3, 0x4], 0x834E),
    ("DRAW", [0xA, 0x6, 0xE], 0xDA6E),
    ("SKUP", [0x7], 0xE7A1),
    ("LDSPR", [0xB], 0xFB29),
    ("READ", [0xF], 0xFF65),
    ("DEBUG", [], 0xFFFF),
])
def test_encode_places_fields(mnemonic, values, expected):
    assert encode(lookup(mnemonic), values) == expected


def test_fixed_opcodes_take_precedence_over_sys():
    assert decode(0x00E0)[0].mnemonic == "CLR"
    assert decode(0x00EE)[0].mnemonic == "RTS"
    assert decode(0x00E1)[0].mnemonic == "SYS"
    assert decode(0x0123) == (lookup("SYS"), (0x123,))


@pytest.mark.parametrize("opcode", [0x5001, 0x800F, 0x9003, 0xE000, 0xF000, 0xF0FE])
def test_unassigned_opcodes_do_not_decode(opcode):
    assert decode(opcode) is None


def test_lookup_ignores_case():
    assert lookup("draw") is lookup("DRAW")
    assert lookup("Skrne").mnemonic == "SKRNE"
    assert lookup("NOPE") is None


def test_encode_rejects_values_wider_than_field():
    with pytest.raises(EncodingError):
        encode(lookup("LOAD"), [0x10, 0x00])
    with pytest.raises(EncodingError):
        encode(lookup("JUMP"), [0x1000])
    with pytest.raises(EncodingError):
        encode(lookup("RTS"), [1])


def test_templates_and_syntax():
    assert lookup("ADDR").template == "8xy4"
    assert lookup("DRAW").template == "Dxyn"
    assert lookup("LOADI").template == "Annn"
    assert lookup("SKPR").template == "Ex9E"
    assert lookup("RAND").template == "Cxnn"
    assert lookup("DRAW").syntax == "DRAW Vx, Vy, nibble"
    assert lookup("CLR").syntax == "CLR"


def test_disassemble_listing():
    rom = bytes([0x61, 0x01, 0xDA, 0x6E, 0x00, 0xEE, 0x5A])
    listing = disassemble(rom)
    assert listing == [
        (0x200, 0x6101, "LOAD V1, #01"),
        (0x202, 0xDA6E, "DRAW VA, V6, #E"),
        (0x204, 0x00EE, "RTS"),
        (0x206, 0x5A, "DB $01011010"),
    ]


def test_disassemble_unknown_word_as_data():
    assert disassemble_opcode(0x5001) == "DW #5001"
