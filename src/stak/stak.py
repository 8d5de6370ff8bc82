"""Main Stak class: compile and run Stak programs."""

from typing import List

from stak.stak_compiler import StakCompiler
from stak.stak_ir import StakProgram
from stak.stak_trace import StakBufferingTraceWatcher
from stak.stak_vm import DEFAULT_MAX_CALL_DEPTH, StakVM


class Stak:
    """
    Stak compiler and virtual machine behind one entry point.

    Errors carry detailed context:
    - Clear explanations of what went wrong
    - Source location and an excerpt of the offending line
    - Suggestions for how to fix the problem
    - Examples of correct usage
    """

    def __init__(
        self,
        optimize: bool = True,
        max_call_depth: int = DEFAULT_MAX_CALL_DEPTH,
        trace_frames: bool = True,
        validate: bool = True
    ):
        """
        Initialize Stak.

        Args:
            optimize: Whether to fold constants in the generated IR
            max_call_depth: Maximum number of nested function frames
            trace_frames: Whether frame allocation and tail call lines are emitted
            validate: Whether programs are validated before they run
        """
        self.optimize = optimize
        self.max_call_depth = max_call_depth
        self.trace_frames = trace_frames
        self.validate = validate
        self.compiler = StakCompiler(optimize=optimize)

    def compile(self, source: str, name: str = "<program>") -> StakProgram:
        """
        Compile Stak source code.

        Raises:
            StakTokenError: If tokenization fails
            StakParseError: If parsing fails
            StakCodegenFault: If the program cannot be lowered to IR
        """
        return self.compiler.compile(source, name)

    def execute(self, program: StakProgram) -> List[str]:
        """
        Run a compiled program and collect its output.

        Args:
            program: Compiled program

        Returns:
            Printed values and frame trace lines, in emission order

        Raises:
            StakValidationError: If the program is malformed
            StakRuntimeFault: If execution faults
        """
        vm = self.create_vm()
        watcher = StakBufferingTraceWatcher()
        vm.set_trace_watcher(watcher)
        vm.execute(program)
        return watcher.get_traces()

    def run(self, source: str, name: str = "<program>") -> List[str]:
        """
        Compile and run Stak source code.

        Returns:
            Printed values and frame trace lines, in emission order
        """
        return self.execute(self.compile(source, name))

    def create_vm(self) -> StakVM:
        """Create a VM configured with this instance's settings."""
        return StakVM(
            max_call_depth=self.max_call_depth,
            validate=self.validate,
            trace_frames=self.trace_frames
        )
