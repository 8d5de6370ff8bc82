"""Stak Virtual Machine - executes compiled IR programs."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol

from stak.stak_error import StakRuntimeFault
from stak.stak_ir import ARITHMETIC_OPERATIONS, COMPARISON_OPERATIONS, Instruction, Opcode, StakFunctionInfo, StakProgram
from stak.stak_validator import validate_program
from stak.stak_value import STAK_FALSE, STAK_TRUE, StakInteger


DEFAULT_MAX_CALL_DEPTH = 10000
MAIN_FRAME_NAME = "<main>"


class StakTraceKind(Enum):
    """Kinds of line in the execution output stream."""
    OUTPUT = "output"  # A value written by PRINT
    FRAME = "frame"  # A frame allocation or tail call line


class StakTraceWatcher(Protocol):
    """Protocol for Stak trace watchers."""
    def on_trace(self, kind: StakTraceKind, message: str) -> None:
        """
        Called when a line of execution output is emitted.

        Args:
            kind: Whether the line is program output or a frame trace
            message: The line itself, without a newline
        """


class StakVMState(Enum):
    """Lifecycle of a VM run.  FAULTED is terminal until the next execute()."""
    READY = "ready"
    RUNNING = "running"
    HALTED = "halted"
    FAULTED = "faulted"


@dataclass
class StakCallFrame:
    """
    Activation record for a function call.

    stack_base is the operand stack height when the frame was entered; values
    below it belong to the caller.
    """
    function: str
    bindings: Dict[str, StakInteger] = field(default_factory=dict)
    return_address: int = 0
    depth: int = 0
    stack_base: int = 0


class StakVM:
    """
    Virtual machine for executing Stak IR.

    Uses an operand stack plus a call stack of frames.  Module-level code runs
    in a root frame named '<main>'.  TAILCALL rebinds the current frame in
    place, so tail recursion runs in constant call-stack depth.
    """

    def __init__(
        self,
        max_call_depth: int = DEFAULT_MAX_CALL_DEPTH,
        validate: bool = True,
        trace_frames: bool = True
    ) -> None:
        """
        Initialize the VM.

        Args:
            max_call_depth: Maximum number of nested function frames
            validate: Whether to validate programs before running them
            trace_frames: Whether to emit frame allocation and tail call lines
        """
        self._logger = logging.getLogger("StakVM")
        self.max_call_depth = max_call_depth
        self.validate = validate
        self.trace_frames = trace_frames

        self.state = StakVMState.READY
        self.stack: List[StakInteger] = []
        self.frames: List[StakCallFrame] = []
        self.ip = 0

        self.frames_allocated = 0
        self.tail_calls = 0
        self.max_depth_reached = 0

        self._program = StakProgram(())
        self._instr_index = 0

        # Trace watcher for print output and frame traces
        self.trace_watcher: Optional[StakTraceWatcher] = None

        self._dispatch_table = self._build_dispatch_table()

    @property
    def call_depth(self) -> int:
        """Number of active function frames, not counting the root frame."""
        return self.frames[-1].depth if self.frames else 0

    def set_trace_watcher(self, watcher: Optional[StakTraceWatcher]) -> None:
        """
        Set the trace watcher (replaces any existing watcher).

        Args:
            watcher: StakTraceWatcher instance or None to discard output
        """
        self.trace_watcher = watcher

    def _emit_trace(self, kind: StakTraceKind, message: str) -> None:
        if self.trace_watcher is None:
            return

        self.trace_watcher.on_trace(kind, message)

    def _build_dispatch_table(self) -> List[Callable[[Instruction], None] | None]:
        """
        Build jump table for opcode dispatch.

        Every Opcode must have a handler; a missing one is a programming error
        caught at construction rather than mid-run.
        """
        handlers: Dict[Opcode, Callable[[Instruction], None]] = {
            Opcode.PUSH: self._op_push,
            Opcode.LOAD: self._op_load,
            Opcode.STORE: self._op_store,
            Opcode.ADD: self._op_arithmetic,
            Opcode.SUB: self._op_arithmetic,
            Opcode.MUL: self._op_arithmetic,
            Opcode.DIV: self._op_arithmetic,
            Opcode.EQ: self._op_compare,
            Opcode.NE: self._op_compare,
            Opcode.DECLARE: self._op_declare,
            Opcode.ENTER: self._op_enter,
            Opcode.EXIT: self._op_exit,
            Opcode.CALL: self._op_call,
            Opcode.TAILCALL: self._op_tailcall,
            Opcode.RET: self._op_ret,
            Opcode.PRINT: self._op_print,
            Opcode.JUMP: self._op_jump,
            Opcode.JUMP_IF_FALSE: self._op_jump_if_false,
        }

        missing = [op.name for op in Opcode if op not in handlers]
        assert not missing, f"No VM handler for opcodes: {', '.join(missing)}"

        table: List[Callable[[Instruction], None] | None] = [None] * (max(Opcode) + 1)
        for opcode, handler in handlers.items():
            table[opcode] = handler

        return table

    def execute(self, program: StakProgram) -> None:
        """
        Execute a program until it halts or faults.

        Output is delivered to the trace watcher as it is produced, so lines
        emitted before a fault are kept.

        Args:
            program: Compiled program to execute

        Raises:
            StakValidationError: If validation is enabled and the program is malformed
            StakRuntimeFault: If execution faults
        """
        if self.validate:
            validate_program(program)

        self._program = program
        self.stack = []
        self.frames = [StakCallFrame(MAIN_FRAME_NAME, return_address=len(program))]
        self.ip = 0
        self.frames_allocated = 0
        self.tail_calls = 0
        self.max_depth_reached = 0
        self.state = StakVMState.RUNNING
        self._logger.debug("Executing %s (%d instructions)", program.name, len(program))

        dispatch = self._dispatch_table
        instructions = program.instructions
        end = len(instructions)

        try:
            while self.state == StakVMState.RUNNING:
                if self.ip >= end:
                    self.state = StakVMState.HALTED
                    break

                instr = instructions[self.ip]
                self._instr_index = self.ip

                # Increment IP before executing (so jumps can override)
                self.ip += 1
                handler = dispatch[instr.opcode]
                assert handler is not None
                handler(instr)

        except StakRuntimeFault as e:
            self.state = StakVMState.FAULTED
            self._logger.debug("Faulted at instruction %d: %s", e.instruction_index, e.message)
            raise

        self._logger.debug(
            "Halted %s: %d frames allocated, %d tail calls, max depth %d",
            program.name, self.frames_allocated, self.tail_calls, self.max_depth_reached
        )

    def _fault(self, message: str, **kwargs: str) -> StakRuntimeFault:
        opcode = self._program.instructions[self._instr_index].opcode.name
        return StakRuntimeFault(message, self._instr_index, opcode, **kwargs)

    def _pop(self) -> StakInteger:
        """Pop from the operand stack, refusing to reach into the caller's segment."""
        if len(self.stack) <= self.frames[-1].stack_base:
            raise self._fault(
                "Operand stack underflow",
                context=f"Frame '{self.frames[-1].function}' has no operand values left"
            )

        return self.stack.pop()

    def _pop_arguments(self, argc: int) -> List[StakInteger]:
        args = [self._pop() for _ in range(argc)]
        args.reverse()
        return args

    def _resolve_callee(self, instr: Instruction) -> StakFunctionInfo:
        """Look up a CALL/TAILCALL target and check the call site's argument count."""
        name = str(instr.arg1)
        info = self._program.functions.get(name)
        if info is None:
            defined = ", ".join(sorted(self._program.functions)) or "(none)"
            raise self._fault(f"Unknown function '{name}'", context=f"Defined functions: {defined}")

        if instr.arg2 != info.arity:
            raise self._fault(
                f"Function '{name}' expects {info.arity} argument(s), got {instr.arg2}",
                expected=f"{info.arity} argument(s)",
                received=f"{instr.arg2} argument(s)"
            )

        return info

    def _op_push(self, instr: Instruction) -> None:
        """PUSH: Push an integer literal."""
        self.stack.append(StakInteger(int(instr.arg1)))

    def _op_load(self, instr: Instruction) -> None:
        """LOAD: Push the value bound to a name in the current frame."""
        frame = self.frames[-1]
        value = frame.bindings.get(str(instr.arg1))
        if value is None:
            raise self._fault(
                f"Unbound variable '{instr.arg1}'",
                context=f"In frame '{frame.function}'"
            )

        self.stack.append(value)

    def _op_store(self, instr: Instruction) -> None:
        """STORE: Pop a value and bind it to a name in the current frame."""
        self.frames[-1].bindings[str(instr.arg1)] = self._pop()

    def _op_arithmetic(self, instr: Instruction) -> None:
        """ADD, SUB, MUL, DIV: Pop right then left, push the result."""
        right = self._pop()
        left = self._pop()
        if instr.opcode == Opcode.DIV and right.to_python() == 0:
            raise self._fault("Division by zero", received=f"{left.describe()} / 0")

        self.stack.append(StakInteger(ARITHMETIC_OPERATIONS[instr.opcode](left.to_python(), right.to_python())))

    def _op_compare(self, instr: Instruction) -> None:
        """EQ, NE: Pop right then left, push 1 if the comparison holds, else 0."""
        right = self._pop()
        left = self._pop()
        holds = COMPARISON_OPERATIONS[instr.opcode](left.to_python(), right.to_python())
        self.stack.append(STAK_TRUE if holds else STAK_FALSE)

    def _op_declare(self, instr: Instruction) -> None:
        """DECLARE: Skip over the function body; bodies only run when called."""
        info = self._program.functions.get(str(instr.arg1))
        if info is None:
            raise self._fault(f"DECLARE of unknown function '{instr.arg1}'")

        self.ip = info.exit_index + 1

    def _op_enter(self, _instr: Instruction) -> None:
        """ENTER: Function prologue marker; CALL has already built the frame."""

    def _op_exit(self, _instr: Instruction) -> None:
        """EXIT: Control fell off the end of a body; return without a value."""
        if len(self.frames) == 1:
            raise self._fault("EXIT outside of a function")

        frame = self.frames.pop()
        del self.stack[frame.stack_base:]
        self.ip = frame.return_address

    def _op_call(self, instr: Instruction) -> None:
        """CALL: Bind arguments in a new frame and jump to the callee's entry."""
        info = self._resolve_callee(instr)
        depth = self.frames[-1].depth + 1
        if depth > self.max_call_depth:
            raise self._fault(
                "Call stack overflow",
                context=f"Maximum call depth is {self.max_call_depth}",
                suggestion="Make the recursive call the returned value so it becomes a tail call",
                example=f"return {info.name}(...);"
            )

        args = self._pop_arguments(int(instr.arg2))
        frame = StakCallFrame(
            function=info.name,
            bindings=dict(zip(info.parameters, args)),
            return_address=self.ip,
            depth=depth,
            stack_base=len(self.stack)
        )
        self.frames.append(frame)
        self.frames_allocated += 1
        self.max_depth_reached = max(self.max_depth_reached, depth)

        if self.trace_frames:
            self._emit_trace(StakTraceKind.FRAME, f'Allocate stack frame for function: "{info.name}"')

        self.ip = info.entry

    def _op_tailcall(self, instr: Instruction) -> None:
        """TAILCALL: Rebind the current frame in place and jump to the callee's entry."""
        if len(self.frames) == 1:
            raise self._fault("TAILCALL outside of a function")

        info = self._resolve_callee(instr)
        args = self._pop_arguments(int(instr.arg2))

        # The return address and depth are untouched; only the bindings change
        frame = self.frames[-1]
        frame.function = info.name
        frame.bindings.clear()
        frame.bindings.update(zip(info.parameters, args))
        del self.stack[frame.stack_base:]
        self.tail_calls += 1

        if self.trace_frames:
            self._emit_trace(StakTraceKind.FRAME, f"Tail call - reuse stack frame for function: {info.name}")

        self.ip = info.entry

    def _op_ret(self, _instr: Instruction) -> None:
        """RET: Pop the result and the frame, push the result for the caller."""
        result = self._pop()
        frame = self.frames.pop()
        del self.stack[frame.stack_base:]
        self.stack.append(result)
        self.ip = frame.return_address

        if not self.frames:
            self.state = StakVMState.HALTED

    def _op_print(self, _instr: Instruction) -> None:
        """PRINT: Pop a value and emit it."""
        self._emit_trace(StakTraceKind.OUTPUT, self._pop().describe())

    def _op_jump(self, instr: Instruction) -> None:
        """JUMP: Unconditional jump."""
        self.ip = int(instr.arg1)

    def _op_jump_if_false(self, instr: Instruction) -> None:
        """JUMP_IF_FALSE: Pop a value and jump if it is zero."""
        if self._pop().is_false():
            self.ip = int(instr.arg1)
