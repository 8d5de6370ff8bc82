"""
Stak IR optimization pass base class.

Each pass is self-contained: it performs whatever analysis it needs internally
and returns a new program plus a flag indicating whether any changes were made.
The compiler uses that flag to drive fixed-point iteration.
"""

from stak.stak_ir import StakProgram


class StakIROptimizationPass:
    """Base class for IR optimization passes."""

    def optimize(self, program: StakProgram) -> tuple[StakProgram, bool]:
        """
        Transform the program, returning an optimized version.

        The pass must not mutate the input program.

        Args:
            program: Program to optimize.

        Returns:
            A tuple of (new_program, changed) where changed is True if the pass
            made at least one transformation.
        """
        raise NotImplementedError
