"""
Program validator for the Stak virtual machine.

This validator performs static checks on a compiled program to ensure it's
well-formed before execution.  Programs produced by the code generator always
pass; the checks exist for hand-built or transformed programs.

The validator checks:
- Every instruction carries a real Opcode
- Jump targets lie within the program (the end index is allowed, it halts)
- PUSH carries an integer literal and name operands are non-empty strings
- CALL/TAILCALL argument counts are non-negative
- DECLARE/ENTER/EXIT bracket each function body exactly once and agree with
  the function table

Callee names are deliberately not resolved here.  An unknown callee is a
runtime fault so that output produced before the call is still observed.
"""

from typing import Tuple

from stak.stak_error import StakValidationError
from stak.stak_ir import CALL_OPCODES, JUMP_OPCODES, NAME_OPCODES, Instruction, Opcode, StakProgram


class StakProgramValidator:
    """Validates Stak programs for structural correctness."""

    def validate(self, program: StakProgram) -> None:
        """
        Validate a program.

        Args:
            program: Program to validate

        Raises:
            StakValidationError: If the program is malformed
        """
        for i, instr in enumerate(program.instructions):
            self._validate_operands(i, instr, len(program.instructions))

        self._validate_functions(program)

    def _validate_operands(self, index: int, instr: Instruction, length: int) -> None:
        """Validate the operands carried by a single instruction."""
        if not isinstance(instr.opcode, Opcode):
            raise StakValidationError(f"Invalid opcode type: {type(instr.opcode).__name__}", index)

        opcode = instr.opcode
        if opcode == Opcode.PUSH:
            if isinstance(instr.arg1, bool) or not isinstance(instr.arg1, int):
                raise StakValidationError(
                    f"PUSH operand must be an integer, got {instr.arg1!r}",
                    index,
                    expected="Integer literal"
                )

        if opcode in NAME_OPCODES:
            if not isinstance(instr.arg1, str) or not instr.arg1:
                raise StakValidationError(
                    f"{opcode.name} operand must be a non-empty name, got {instr.arg1!r}",
                    index,
                    expected="Identifier"
                )

        if opcode in CALL_OPCODES:
            if isinstance(instr.arg2, bool) or not isinstance(instr.arg2, int) or instr.arg2 < 0:
                raise StakValidationError(
                    f"{opcode.name} argument count must be a non-negative integer, got {instr.arg2!r}",
                    index
                )

        if opcode in JUMP_OPCODES:
            target = instr.arg1
            if isinstance(target, bool) or not isinstance(target, int) or target < 0 or target > length:
                raise StakValidationError(
                    f"Jump target {target!r} out of bounds (instruction count: {length})",
                    index,
                    expected=f"Target between 0 and {length}"
                )

    def _validate_functions(self, program: StakProgram) -> None:
        """Check DECLARE/ENTER/EXIT bracketing against the function table."""
        instructions = program.instructions
        seen = set()
        open_function: Tuple[str, int] | None = None

        for i, instr in enumerate(instructions):
            if instr.opcode == Opcode.DECLARE:
                name = str(instr.arg1)
                if open_function is not None:
                    raise StakValidationError(
                        f"Function '{name}' declared inside function '{open_function[0]}'", i
                    )

                info = program.functions.get(name)
                if info is None or info.declare_index != i:
                    raise StakValidationError(f"DECLARE '{name}' has no matching function table entry", i)

                if name in seen:
                    raise StakValidationError(f"Function '{name}' declared more than once", i)

                if i + 1 >= len(instructions) or instructions[i + 1].opcode != Opcode.ENTER:
                    raise StakValidationError(f"DECLARE '{name}' is not followed by ENTER", i)

                seen.add(name)
                open_function = (name, info.exit_index)
                continue

            if instr.opcode == Opcode.ENTER:
                if i == 0 or instructions[i - 1].opcode != Opcode.DECLARE:
                    raise StakValidationError("ENTER without a preceding DECLARE", i)

                continue

            if instr.opcode == Opcode.EXIT:
                if open_function is None:
                    raise StakValidationError("EXIT outside of a function body", i)

                name, exit_index = open_function
                if exit_index != i:
                    raise StakValidationError(
                        f"EXIT for function '{name}' does not match its table entry (expected at {exit_index})", i
                    )

                open_function = None

        if open_function is not None:
            raise StakValidationError(f"Function '{open_function[0]}' has no EXIT")

        for name, info in program.functions.items():
            if name not in seen:
                raise StakValidationError(
                    f"Function table entry '{name}' has no DECLARE",
                    context=f"Table says DECLARE at {info.declare_index}"
                )


def validate_program(program: StakProgram) -> None:
    """
    Convenience function to validate a program.

    Args:
        program: Program to validate

    Raises:
        StakValidationError: If the program is malformed
    """
    validator = StakProgramValidator()
    validator.validate(program)
