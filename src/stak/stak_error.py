"""Exception classes for Stak with detailed context."""

from typing import Any, List


# Lines of source shown before and after the offending line
EXCERPT_BEFORE = 2
EXCERPT_AFTER = 1

# Optional detail fields, in the order they are rendered
DETAIL_LABELS = (
    ("received", "Received"),
    ("expected", "Expected"),
    ("context", "Context"),
    ("suggestion", "Suggestion"),
    ("example", "Example"),
)


class StakError(Exception):
    """
    Base exception for Stak errors.

    The rendered message starts with 'Error: <message>'.  When a line and
    column are known it adds the location and, given the source, an excerpt
    with a caret under the offending column.  Any detail fields follow.
    """

    def __init__(
        self,
        message: str,
        context: str | None = None,
        expected: str | None = None,
        received: str | None = None,
        suggestion: str | None = None,
        example: str | None = None,
        line: int | None = None,
        column: int | None = None,
        source: str | None = None
    ):
        self.message = message
        self.context = context
        self.expected = expected
        self.received = received
        self.suggestion = suggestion
        self.example = example
        self.line = line
        self.column = column
        self.source = source

        super().__init__(self._render())

    def _source_excerpt(self, line: int, column: int) -> List[str]:
        """Numbered source lines around line, marking it with '>' and a caret."""
        assert self.source is not None
        source_lines = self.source.split('\n')
        first = max(1, line - EXCERPT_BEFORE)
        last = min(len(source_lines), line + EXCERPT_AFTER)
        width = len(str(last))

        excerpt = []
        for number in range(first, last + 1):
            marker = ">" if number == line else " "
            prefix = f"  {marker} {number:>{width}}: "
            excerpt.append(prefix + source_lines[number - 1])
            if number == line:
                excerpt.append(" " * (len(prefix) + column - 1) + "^")

        return excerpt

    def _render(self) -> str:
        parts = [f"Error: {self.message}"]

        if self.line is not None and self.column is not None:
            parts.append(f"Location: Line {self.line}, Column {self.column}")
            if self.source is not None:
                parts.append("\nSource Context:")
                parts.extend(self._source_excerpt(self.line, self.column))

        for attr, label in DETAIL_LABELS:
            value = getattr(self, attr)
            if value:
                parts.append(f"{label}: {value}")

        return "\n".join(parts)


class StakTokenError(StakError):
    """Tokenization errors with detailed context."""


class StakParseError(StakError):
    """Parsing errors with detailed context."""


class StakCodegenFault(StakError):
    """
    Compile-time fault raised while lowering the AST to IR.

    Raised for unresolved identifiers or functions and for constructs the
    code generator does not support.  Compilation stops before anything runs.
    """


class StakValidationError(StakError):
    """Malformed IR program rejected before execution."""

    def __init__(self, message: str, instruction_index: int | None = None, **kwargs: Any) -> None:
        """
        Initialize validation error.

        Args:
            message: Core error description
            instruction_index: Index of the offending instruction, if any
            **kwargs: Additional error context
        """
        self.instruction_index = instruction_index
        if instruction_index is not None:
            message = f"{message} (at instruction {instruction_index})"

        super().__init__(message, **kwargs)


class StakRuntimeFault(StakError):
    """
    Fault raised by the virtual machine while executing a program.

    Always carries the index and opcode name of the faulting instruction.
    """

    def __init__(self, message: str, instruction_index: int, opcode: str, **kwargs: Any) -> None:
        """
        Initialize runtime fault.

        Args:
            message: Core error description
            instruction_index: Index of the faulting instruction
            opcode: Name of the faulting instruction's opcode
            **kwargs: Additional error context
        """
        self.instruction_index = instruction_index
        self.opcode = opcode
        super().__init__(
            f"{message} (at instruction {instruction_index}: {opcode})",
            **kwargs
        )


class StakConfigError(StakError):
    """Invalid configuration file or setting."""
