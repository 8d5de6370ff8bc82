"""Stak: a small imperative language compiled to stack IR, with constant folding and a tail-call optimizing VM."""

# Main API
from stak.stak import Stak
from stak.stak_compiler import StakCompiler
from stak.stak_config import StakConfig

# Exceptions (enhanced with detailed context)
from stak.stak_error import (
    StakError, StakTokenError, StakParseError, StakCodegenFault,
    StakValidationError, StakRuntimeFault, StakConfigError
)

# IR types
from stak.stak_ir import (
    Opcode, Instruction, StakProgram, StakFunctionInfo, StakFunctionTable
)

# Value types
from stak.stak_value import StakValue, StakInteger

# Lower-level components (for advanced usage)
from stak.stak_token import StakToken, StakTokenType
from stak.stak_lexer import StakLexer
from stak.stak_parser import StakParser
from stak.stak_codegen import StakCodeGen
from stak.stak_constant_folder import StakConstantFolder
from stak.stak_validator import validate_program
from stak.stak_vm import StakVM, StakVMState

# Trace watchers
from stak.stak_vm import StakTraceKind, StakTraceWatcher
from stak.stak_trace import (
    StakStreamTraceWatcher, StakStdoutTraceWatcher, StakFileTraceWatcher, StakBufferingTraceWatcher
)

__all__ = [
    # Main API
    "Stak", "StakCompiler", "StakConfig",

    # Exceptions (enhanced with detailed context)
    "StakError", "StakTokenError", "StakParseError", "StakCodegenFault",
    "StakValidationError", "StakRuntimeFault", "StakConfigError",

    # IR types
    "Opcode", "Instruction", "StakProgram", "StakFunctionInfo", "StakFunctionTable",

    # Value types
    "StakValue", "StakInteger",

    # Lower-level components
    "StakToken", "StakTokenType", "StakLexer", "StakParser", "StakCodeGen",
    "StakConstantFolder", "validate_program", "StakVM", "StakVMState",

    # Trace watchers
    "StakTraceKind", "StakTraceWatcher", "StakStreamTraceWatcher", "StakStdoutTraceWatcher",
    "StakFileTraceWatcher", "StakBufferingTraceWatcher",
]
