"""Assembler error taxonomy."""

from typing import Optional


class AssemblerError(Exception):
    """Base exception for assembly failures.

    Attributes:
        message: Description of the problem
        line_number: 1-based source line, or None if not yet known
        line: Raw text of the failing line
    """

    def __init__(self, message: str, line_number: Optional[int] = None,
                 line: Optional[str] = None):
        self.message = message
        self.line_number = line_number
        self.line = line
        super().__init__(self._render())

    def _render(self) -> str:
        if self.line_number is None:
            return self.message
        if self.line is None:
            return f"Line {self.line_number}: {self.message}"
        return f"Line {self.line_number}: {self.message} [{self.line.strip()}]"

    def with_line(self, line_number: int, line: str) -> "AssemblerError":
        """Return a copy of this error of the same kind, with line context."""
        return type(self)(self.message, line_number, line)


class AssemblySyntaxError(AssemblerError):
    """Line does not have the shape of a label, directive, data item or instruction."""
    pass


class UnknownInstructionError(AssemblerError):
    """Mnemonic is not in the instruction set."""
    pass


class OperandCountError(AssemblerError):
    """Instruction received the wrong number of operands."""
    pass


class OperandFormatError(AssemblerError):
    """Operand text does not match the expected grammar."""
    pass


class LiteralOverflowError(AssemblerError):
    """Decimal literal is too large for its field."""
    pass


class DuplicateLabelError(AssemblerError):
    pass


class UnresolvedLabelError(AssemblerError):
    pass
