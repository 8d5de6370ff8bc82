"""Instruction set and program representation for the Stak virtual machine."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Tuple


def _op(n: int, arg_count: int = 0) -> Tuple[int, int]:
    """Helper to construct an Opcode value: (integer_value, operand_count).

    operand_count is the number of operands encoded in the instruction itself
    (not values popped from the operand stack):
      0 - all inputs come from the operand stack
      1 - one operand (literal, name or jump target)
      2 - two operands (callee name and argument count)
    """
    return (n, arg_count)


class Opcode(IntEnum):
    """Stak IR operation codes.

    Each member's value is a (integer_value, operand_count) tuple.  The
    integer value is used for VM dispatch; arg_count is the number of
    operands the instruction carries.
    """

    _arg_count: int  # Set in __new__; declared here so mypy knows the attribute exists

    def __new__(cls, int_value: int, arg_count: int = 0) -> 'Opcode':
        obj = int.__new__(cls, int_value)
        obj._value_ = int_value
        obj._arg_count = arg_count
        return obj

    @property
    def arg_count(self) -> int:
        """Number of operands (0, 1, or 2)."""
        return self._arg_count

    # Constants and variables
    PUSH = _op(1, 1)                    # PUSH literal
    LOAD = _op(2, 1)                    # LOAD name
    STORE = _op(3, 1)                   # STORE name

    # Arithmetic
    ADD = _op(10, 0)
    SUB = _op(11, 0)
    MUL = _op(12, 0)
    DIV = _op(13, 0)                    # Truncating division

    # Comparison (push 1 or 0)
    EQ = _op(20, 0)
    NE = _op(21, 0)

    # Functions
    DECLARE = _op(30, 1)                # DECLARE name
    ENTER = _op(31, 0)                  # Function prologue marker
    EXIT = _op(32, 0)                   # Function epilogue (fell off the end of the body)
    CALL = _op(33, 2)                   # CALL name argc
    TAILCALL = _op(34, 2)               # TAILCALL name argc
    RET = _op(35, 0)                    # Return top of stack to the caller

    # Output
    PRINT = _op(40, 0)

    # Control flow
    JUMP = _op(50, 1)                   # JUMP target
    JUMP_IF_FALSE = _op(51, 1)          # JUMP_IF_FALSE target


NAME_OPCODES = frozenset({Opcode.LOAD, Opcode.STORE, Opcode.DECLARE, Opcode.CALL, Opcode.TAILCALL})
JUMP_OPCODES = frozenset({Opcode.JUMP, Opcode.JUMP_IF_FALSE})
CALL_OPCODES = frozenset({Opcode.CALL, Opcode.TAILCALL})


def truncating_divide(a: int, b: int) -> int:
    """
    Integer division rounding toward zero.

    Python's // rounds toward negative infinity, so the quotient is computed on
    magnitudes and the sign applied afterwards.

    Raises:
        ZeroDivisionError: If b is zero
    """
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


# Single source of truth for arithmetic semantics.  Both the constant folder and
# the VM evaluate through this table so folded and unfolded programs agree.
ARITHMETIC_OPERATIONS: Dict[Opcode, Callable[[int, int], int]] = {
    Opcode.ADD: lambda a, b: a + b,
    Opcode.SUB: lambda a, b: a - b,
    Opcode.MUL: lambda a, b: a * b,
    Opcode.DIV: truncating_divide,
}

COMPARISON_OPERATIONS: Dict[Opcode, Callable[[int, int], bool]] = {
    Opcode.EQ: lambda a, b: a == b,
    Opcode.NE: lambda a, b: a != b,
}


@dataclass(frozen=True)
class Instruction:
    """Single IR instruction.

    arg1 holds the literal, name or jump target; arg2 holds the argument count
    of CALL and TAILCALL.
    """
    opcode: Opcode
    arg1: int | str = 0
    arg2: int = 0

    def arg_count(self) -> int:
        """Return the number of operands this instruction carries (0, 1, or 2)."""
        return self.opcode.arg_count

    def __repr__(self) -> str:
        """Human-readable representation, as used by the IR dump."""
        n = self.arg_count()
        if n == 0:
            return f"{self.opcode.name}"

        if n == 2:
            return f"{self.opcode.name} {self.arg1} {self.arg2}"

        return f"{self.opcode.name} {self.arg1}"


@dataclass(frozen=True)
class StakFunctionInfo:
    """Function table entry."""
    name: str
    declare_index: int
    exit_index: int
    parameters: Tuple[str, ...] = ()

    @property
    def entry(self) -> int:
        """Index of the first body instruction, immediately after DECLARE and ENTER."""
        return self.declare_index + 2

    @property
    def arity(self) -> int:
        """Number of declared parameters."""
        return len(self.parameters)


class StakFunctionTable(Mapping[str, StakFunctionInfo]):
    """Read-only mapping from function name to its table entry."""

    def __init__(self, entries: Dict[str, StakFunctionInfo] | None = None) -> None:
        self._entries = MappingProxyType(dict(entries or {}))

    def __getitem__(self, name: str) -> StakFunctionInfo:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"StakFunctionTable({sorted(self._entries)})"


class StakFunctionTableBuilder:
    """
    Mutable function table used while generating code.

    Call freeze() once code generation is complete to obtain the immutable
    StakFunctionTable consumed by the VM.
    """

    def __init__(self) -> None:
        self._declare_indices: Dict[str, int] = {}
        self._exit_indices: Dict[str, int] = {}
        self._parameters: Dict[str, Tuple[str, ...]] = {}

    def declare(self, name: str, declare_index: int, parameters: Tuple[str, ...]) -> None:
        """Record a function's DECLARE position and parameter list."""
        self._declare_indices[name] = declare_index
        self._parameters[name] = parameters

    def set_exit(self, name: str, exit_index: int) -> None:
        """Record the position of a function's EXIT instruction."""
        self._exit_indices[name] = exit_index

    def freeze(self) -> StakFunctionTable:
        """Return an immutable snapshot of the table."""
        entries = {
            name: StakFunctionInfo(
                name=name,
                declare_index=declare_index,
                exit_index=self._exit_indices[name],
                parameters=self._parameters[name]
            )
            for name, declare_index in self._declare_indices.items()
        }
        return StakFunctionTable(entries)


@dataclass(frozen=True)
class StakProgram:
    """Compiled program: a flat instruction sequence plus its function table."""
    instructions: Tuple[Instruction, ...]
    functions: StakFunctionTable = field(default_factory=StakFunctionTable)
    name: str = "<program>"

    def __len__(self) -> int:
        return len(self.instructions)

    def dump(self) -> str:
        """
        Render the program as deterministic text, one instruction per line.

        Suitable for golden-file comparison.
        """
        return "\n".join(repr(instr) for instr in self.instructions)

    def disassemble(self) -> str:
        """Return an indexed listing with the function table, for debugging."""
        lines: List[str] = [f"Program: {self.name}"]
        lines.append(f"  Instructions: {len(self.instructions)}")
        lines.append("  Functions:")
        if not self.functions:
            lines.append("    (none)")

        for name in sorted(self.functions):
            info = self.functions[name]
            params = ", ".join(info.parameters)
            lines.append(f"    {name}({params}) entry={info.entry} exit={info.exit_index}")

        lines.append("  Instructions:")
        for i, instr in enumerate(self.instructions):
            lines.append(f"    {i:4d}: {instr!r}")

        return "\n".join(lines)
