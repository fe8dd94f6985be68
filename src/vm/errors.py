"""Emulation-time error taxonomy."""


class EmulatorError(Exception):
    """Base exception for emulator errors."""
    pass


class UnknownOpcodeError(EmulatorError):
    """Fetched word matches no instruction."""

    def __init__(self, opcode: int, pc: int):
        self.opcode = opcode
        self.pc = pc
        super().__init__(f"Unknown opcode 0x{opcode:04X} at PC=0x{pc:03X}")


class UnsupportedOpcodeError(EmulatorError):
    """Instruction decodes but cannot be executed (RCA 1802 calls)."""

    def __init__(self, opcode: int, pc: int):
        self.opcode = opcode
        self.pc = pc
        super().__init__(f"Unsupported opcode 0x{opcode:04X} at PC=0x{pc:03X}")


class RomTooLargeError(EmulatorError):
    """ROM image does not fit in the program area."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"ROM is {size} bytes; at most {limit} bytes fit")


class StackOverflowError(EmulatorError):
    """CALL would push past the top of the stack area."""

    def __init__(self, pc: int):
        self.pc = pc
        super().__init__(f"Stack overflow on CALL at PC=0x{pc:03X}")


class EmulatorHaltedError(EmulatorError):
    """step() called after the program finished; reset() first."""
    pass
