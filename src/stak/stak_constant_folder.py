"""
Stak Constant Folder - evaluates constant-only arithmetic at compile time.

The pass walks the instruction sequence once, left to right, keeping an output
buffer.  Whenever an arithmetic instruction follows two PUSH instructions in the
buffer, the three are replaced by a single PUSH of the result.  Because folded
results land back in the buffer, nested constant subexpressions collapse
bottom-up in the same walk:

    PUSH 2            PUSH 2
    PUSH 3     ->     PUSH 12    ->    PUSH 14
    PUSH 4            ADD
    MUL
    ADD

so a single pass reaches the fixed point and re-running it changes nothing.

Rules:
- Division folds only when the divisor is non-zero; a literal zero divisor is
  left for the VM to fault on at run time.
- Calls are never folded.  A CALL is not a PUSH, so no window can span one and
  evaluation order is preserved.
- A window is never folded if a jump target or function boundary lands inside
  it; control arriving mid-window would see a different stack.
- Arithmetic is evaluated through ARITHMETIC_OPERATIONS, the same table the VM
  uses, so folded and unfolded programs are observably identical.
"""

import bisect
import logging
from typing import Dict, List

from stak.stak_ir import (
    ARITHMETIC_OPERATIONS, JUMP_OPCODES, Instruction, Opcode, StakFunctionInfo, StakFunctionTable, StakProgram
)
from stak.stak_ir_optimization_pass import StakIROptimizationPass


class StakConstantFolder(StakIROptimizationPass):
    """
    Fold constant arithmetic in an IR program.

    Usage::

        new_program, changed = StakConstantFolder().optimize(program)
    """

    def __init__(self) -> None:
        self._logger = logging.getLogger("StakConstantFolder")
        self._folds = 0

    @property
    def folds(self) -> int:
        """Number of arithmetic instructions folded during the last optimize() call."""
        return self._folds

    def optimize(self, program: StakProgram) -> tuple[StakProgram, bool]:
        """
        Return a folded copy of program and a flag indicating whether anything changed.

        Args:
            program: Program to fold

        Returns:
            Tuple of (new_program, changed)
        """
        self._folds = 0
        instructions = program.instructions
        targets = self._collect_targets(program)

        out: List[Instruction] = []
        starts: List[int] = []  # Original index at which each output instruction's span begins

        for index, instr in enumerate(instructions):
            folded = self._try_fold(instr, index, out, starts, targets)
            if folded is not None:
                span_start = starts[-2]
                del out[-2:]
                del starts[-2:]
                out.append(folded)
                starts.append(span_start)
                self._folds += 1
                continue

            out.append(instr)
            starts.append(index)

        if self._folds == 0:
            return program, False

        new_index: Dict[int, int] = {start: i for i, start in enumerate(starts)}
        new_index[len(instructions)] = len(out)

        remapped = [
            Instruction(instr.opcode, new_index[int(instr.arg1)]) if instr.opcode in JUMP_OPCODES else instr
            for instr in out
        ]

        functions = StakFunctionTable({
            name: StakFunctionInfo(
                name=info.name,
                declare_index=new_index[info.declare_index],
                exit_index=new_index[info.exit_index],
                parameters=info.parameters
            )
            for name, info in program.functions.items()
        })

        self._logger.debug(
            "Folded %d constant expressions in %s (%d -> %d instructions)",
            self._folds, program.name, len(instructions), len(remapped)
        )
        return StakProgram(tuple(remapped), functions, program.name), True

    def _collect_targets(self, program: StakProgram) -> List[int]:
        """Return the sorted indices that control can transfer to or that the function table names."""
        targets = set()
        for instr in program.instructions:
            if instr.opcode in JUMP_OPCODES:
                targets.add(int(instr.arg1))

        for info in program.functions.values():
            targets.update((info.declare_index, info.entry, info.exit_index))

        return sorted(targets)

    def _try_fold(
        self,
        instr: Instruction,
        index: int,
        out: List[Instruction],
        starts: List[int],
        targets: List[int]
    ) -> Instruction | None:
        """Return the folded PUSH for instr, or None if the window cannot be folded."""
        operation = ARITHMETIC_OPERATIONS.get(instr.opcode)
        if operation is None or len(out) < 2:
            return None

        left, right = out[-2], out[-1]
        if left.opcode != Opcode.PUSH or right.opcode != Opcode.PUSH:
            return None

        if not isinstance(left.arg1, int) or not isinstance(right.arg1, int):
            return None

        if instr.opcode == Opcode.DIV and right.arg1 == 0:
            return None

        # Any target in (span_start, index] means control can enter the window part way
        span_start = starts[-2]
        first_inside = bisect.bisect_right(targets, span_start)
        if first_inside < len(targets) and targets[first_inside] <= index:
            return None

        return Instruction(Opcode.PUSH, operation(left.arg1, right.arg1))
