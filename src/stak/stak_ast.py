"""Stak AST node hierarchy - compile-time representation with source location metadata.

The parser produces these nodes and the code generator consumes them.  They
are separate from runtime StakValue types so no source metadata is carried
into the IR or the VM.

Statement nodes:
    StakASTVariableDeclaration  this x = <expr>;
    StakASTAssignment           x = <expr>;
    StakASTCallStatement        f(<args>);
    StakASTPrint                print(<expr>);
    StakASTIf                   if <condition> { ... } else { ... }
    StakASTFunctionDeclaration  fn f(a, b) { ... }
    StakASTReturn               return <expr>;

Expression nodes:
    StakASTInteger, StakASTIdentifier, StakASTBinaryOp, StakASTCall

Condition nodes:
    StakASTComparison, StakASTLogical
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple, Union


class StakOperator(Enum):
    """Arithmetic operators."""
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"


class StakComparator(Enum):
    """Comparison operators allowed in conditions."""
    EQ = "=="
    NE = "!="


class StakLogicalOperator(Enum):
    """Logical connectives.  Parsed, but rejected by the code generator."""
    AND = "&&"
    OR = "||"


@dataclass(frozen=True)
class StakASTNode:
    """
    Base class for all Stak AST nodes.

    All AST nodes are immutable and carry source location metadata for error
    reporting.  Location fields are keyword-only so node fields stay positional.
    """
    line: int | None = field(default=None, kw_only=True, compare=False)
    column: int | None = field(default=None, kw_only=True, compare=False)


# Expressions

@dataclass(frozen=True)
class StakASTInteger(StakASTNode):
    """
    Integer literal.

    negative records a leading '-' in the source, so '-0' is distinguishable
    from '0' even though both have the value 0.
    """
    value: int
    negative: bool = False

    def describe(self) -> str:
        return f"-{abs(self.value)}" if self.negative else str(self.value)


@dataclass(frozen=True)
class StakASTIdentifier(StakASTNode):
    """Reference to a variable or parameter."""
    name: str

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True)
class StakASTBinaryOp(StakASTNode):
    """Arithmetic on two subexpressions."""
    operator: StakOperator
    left: 'StakASTExpr'
    right: 'StakASTExpr'

    def describe(self) -> str:
        return f"({self.left.describe()} {self.operator.value} {self.right.describe()})"


@dataclass(frozen=True)
class StakASTCall(StakASTNode):
    """Function call expression."""
    name: str
    arguments: Tuple['StakASTExpr', ...] = ()

    def describe(self) -> str:
        args = ", ".join(arg.describe() for arg in self.arguments)
        return f"{self.name}({args})"


StakASTExpr = Union[StakASTInteger, StakASTIdentifier, StakASTBinaryOp, StakASTCall]


# Conditions

@dataclass(frozen=True)
class StakASTComparison(StakASTNode):
    """Equality or inequality between two expressions."""
    operator: StakComparator
    left: StakASTExpr
    right: StakASTExpr


@dataclass(frozen=True)
class StakASTLogical(StakASTNode):
    """Logical AND/OR of two conditions."""
    operator: StakLogicalOperator
    left: 'StakASTCondition'
    right: 'StakASTCondition'


StakASTCondition = Union[StakASTComparison, StakASTLogical]


# Statements

@dataclass(frozen=True)
class StakASTBlock(StakASTNode):
    """Brace-delimited statement list."""
    statements: Tuple['StakASTStatement', ...] = ()


@dataclass(frozen=True)
class StakASTVariableDeclaration(StakASTNode):
    """this name = value;"""
    name: str
    value: StakASTExpr


@dataclass(frozen=True)
class StakASTAssignment(StakASTNode):
    """name = value;"""
    name: str
    value: StakASTExpr


@dataclass(frozen=True)
class StakASTCallStatement(StakASTNode):
    """A call evaluated for its side effects."""
    call: StakASTCall


@dataclass(frozen=True)
class StakASTPrint(StakASTNode):
    """print(value);"""
    value: StakASTExpr


@dataclass(frozen=True)
class StakASTIf(StakASTNode):
    """if condition { then_block } else { else_block }"""
    condition: StakASTCondition
    then_block: StakASTBlock
    else_block: StakASTBlock | None = None


@dataclass(frozen=True)
class StakASTParameter(StakASTNode):
    """Function parameter.  The only type annotation is 'int'."""
    name: str
    type_annotation: str | None = None


@dataclass(frozen=True)
class StakASTFunctionDeclaration(StakASTNode):
    """fn name(parameters) -> int { body }"""
    name: str
    parameters: Tuple[StakASTParameter, ...]
    body: StakASTBlock
    return_type: str | None = None


@dataclass(frozen=True)
class StakASTReturn(StakASTNode):
    """return value;"""
    value: StakASTExpr


StakASTStatement = Union[
    StakASTVariableDeclaration,
    StakASTAssignment,
    StakASTCallStatement,
    StakASTPrint,
    StakASTIf,
    StakASTFunctionDeclaration,
    StakASTReturn,
]


@dataclass(frozen=True)
class StakASTProgram(StakASTNode):
    """Top-level statement list."""
    statements: Tuple[StakASTStatement, ...] = ()
