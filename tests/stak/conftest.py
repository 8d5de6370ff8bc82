"""Shared fixtures and utilities for Stak tests."""

from typing import Dict, List, Sequence, Tuple

import pytest

from stak import Stak, StakCompiler
from stak.stak_ir import Instruction, StakFunctionInfo, StakFunctionTable, StakProgram
from stak.stak_trace import StakBufferingTraceWatcher
from stak.stak_vm import StakVM


FACTORIAL_SOURCE = """
fn factorial(n) {
    if n == 0 {
        return 1;
    } else {
        return n * factorial(n - 1);
    }
}
print(factorial(5));
"""

TAIL_FACTORIAL_SOURCE = """
fn factorial(n, acc) {
    if n == 0 {
        return acc;
    } else {
        return factorial(n - 1, acc * n);
    }
}
print(factorial(5, 1));
"""


@pytest.fixture
def stak():
    """Create a fresh Stak instance for each test."""
    return Stak()


@pytest.fixture
def stak_custom():
    """Factory for Stak instances with custom configuration."""
    def _create_stak(
        optimize: bool = True,
        max_call_depth: int = 10000,
        trace_frames: bool = True,
        validate: bool = True
    ) -> Stak:
        return Stak(
            optimize=optimize,
            max_call_depth=max_call_depth,
            trace_frames=trace_frames,
            validate=validate
        )
    return _create_stak


@pytest.fixture
def compiler():
    """Create an optimizing compiler."""
    return StakCompiler()


@pytest.fixture
def raw_compiler():
    """Create a compiler with no IR passes."""
    return StakCompiler(optimize=False)


class StakTestHelpers:
    """Helper utilities for Stak testing."""

    @staticmethod
    def dump(source: str, optimize: bool = True) -> List[str]:
        """Compile source and return the IR dump as a list of lines."""
        program = StakCompiler(optimize=optimize).compile(source)
        return program.dump().split("\n") if program.instructions else []

    @staticmethod
    def program(
        instructions: Sequence[Instruction],
        functions: Dict[str, Tuple[int, int, Tuple[str, ...]]] | None = None
    ) -> StakProgram:
        """
        Build a program by hand.

        functions maps name -> (declare_index, exit_index, parameters).
        """
        entries = {
            name: StakFunctionInfo(name, declare_index, exit_index, params)
            for name, (declare_index, exit_index, params) in (functions or {}).items()
        }
        return StakProgram(tuple(instructions), StakFunctionTable(entries))

    @staticmethod
    def run_program(program: StakProgram, **vm_options) -> Tuple[StakVM, List[str]]:
        """Run a program on a fresh VM and return the VM and its output."""
        vm = StakVM(**vm_options)
        watcher = StakBufferingTraceWatcher()
        vm.set_trace_watcher(watcher)
        vm.execute(program)
        return vm, watcher.get_traces()

    @staticmethod
    def run_source(source: str, optimize: bool = True, **vm_options) -> Tuple[StakVM, List[str]]:
        """Compile and run source on a fresh VM and return the VM and its output."""
        program = StakCompiler(optimize=optimize).compile(source)
        return StakTestHelpers.run_program(program, **vm_options)

    @staticmethod
    def allocate_line(name: str) -> str:
        return f'Allocate stack frame for function: "{name}"'

    @staticmethod
    def tail_call_line(name: str) -> str:
        return f"Tail call - reuse stack frame for function: {name}"


@pytest.fixture
def helpers():
    """Provide test helper utilities."""
    return StakTestHelpers


@pytest.fixture
def factorial_source():
    """Non-tail recursive factorial of 5."""
    return FACTORIAL_SOURCE


@pytest.fixture
def tail_factorial_source():
    """Accumulator-passing, tail recursive factorial of 5."""
    return TAIL_FACTORIAL_SOURCE
