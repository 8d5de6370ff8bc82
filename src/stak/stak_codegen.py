"""Stak code generator - lowers the AST to a flat stack-machine IR.

Statements are lowered in source order.  Expressions are lowered post-order so
operands are on the operand stack before their operator executes.

A call is compiled as TAILCALL only when it is the entire value of a return
statement.  Calls nested inside larger expressions, and calls used as
statements, are always ordinary CALLs.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from stak.stak_ast import (
    StakASTAssignment, StakASTBinaryOp, StakASTBlock, StakASTCall, StakASTCallStatement,
    StakASTComparison, StakASTCondition, StakASTExpr, StakASTFunctionDeclaration, StakASTIdentifier,
    StakASTIf, StakASTInteger, StakASTLogical, StakASTNode, StakASTPrint, StakASTProgram, StakASTReturn,
    StakASTStatement, StakASTVariableDeclaration, StakComparator, StakOperator
)
from stak.stak_error import StakCodegenFault
from stak.stak_ir import Instruction, Opcode, StakFunctionTableBuilder, StakProgram


ARITHMETIC_OPCODES = {
    StakOperator.ADD: Opcode.ADD,
    StakOperator.SUB: Opcode.SUB,
    StakOperator.MUL: Opcode.MUL,
    StakOperator.DIV: Opcode.DIV,
}

COMPARISON_OPCODES = {
    StakComparator.EQ: Opcode.EQ,
    StakComparator.NE: Opcode.NE,
}


@dataclass
class CodeGenContext:
    """
    Code generation context - tracks instruction emission and name scopes.

    One context is used for a whole program.  The scope switches between the
    module scope and the scope of the function currently being lowered.
    """
    instructions: List[Instruction] = field(default_factory=list)
    functions: StakFunctionTableBuilder = field(default_factory=StakFunctionTableBuilder)
    signatures: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    declarations: Dict[str, StakASTFunctionDeclaration] = field(default_factory=dict)
    module_scope: Set[str] = field(default_factory=set)
    function_scope: Set[str] | None = None
    current_function: str | None = None

    def emit(self, opcode: Opcode, arg1: int | str = 0, arg2: int = 0) -> int:
        """Emit an instruction and return its index."""
        index = len(self.instructions)
        self.instructions.append(Instruction(opcode, arg1, arg2))
        return index

    def patch_jump(self, instr_index: int, target: int) -> None:
        """Patch a jump instruction to point to target."""
        instr = self.instructions[instr_index]
        assert instr.opcode in (Opcode.JUMP, Opcode.JUMP_IF_FALSE), f"Cannot patch {instr!r}"
        self.instructions[instr_index] = Instruction(instr.opcode, target)

    def current_instruction_index(self) -> int:
        """Get index of next instruction to be emitted."""
        return len(self.instructions)

    def scope(self) -> Set[str]:
        """Names visible at the current point of generation."""
        return self.function_scope if self.function_scope is not None else self.module_scope


class StakCodeGen:
    """
    Generates IR from a Stak AST.

    Besides lowering, the generator resolves every identifier and callee
    statically and rejects constructs the VM does not support.
    """

    def __init__(self) -> None:
        self._logger = logging.getLogger("StakCodeGen")
        self._source: str | None = None

    def generate(self, program: StakASTProgram, source: str | None = None, name: str = "<program>") -> StakProgram:
        """
        Generate IR for a whole program.

        Args:
            program: Parsed program
            source: Optional source text, used to show context in faults
            name: Name for the program (e.g. the source filename)

        Returns:
            Compiled program with its frozen function table

        Raises:
            StakCodegenFault: If the program uses an unsupported construct or
                refers to an undefined name
        """
        self._source = source
        ctx = CodeGenContext()
        self._collect_signatures(program, ctx)

        for statement in program.statements:
            self._generate_statement(statement, ctx)

        compiled = StakProgram(tuple(ctx.instructions), ctx.functions.freeze(), name)
        self._logger.debug(
            "Generated %d instructions and %d functions for %s",
            len(compiled.instructions), len(compiled.functions), name
        )
        return compiled

    def _fault(self, message: str, node: StakASTNode, **kwargs: str) -> StakCodegenFault:
        return StakCodegenFault(
            message=message,
            line=node.line,
            column=node.column,
            source=self._source,
            **kwargs
        )

    def _collect_signatures(self, program: StakASTProgram, ctx: CodeGenContext) -> None:
        """Record every function's parameters up front so calls may precede declarations."""
        for statement in program.statements:
            if not isinstance(statement, StakASTFunctionDeclaration):
                continue

            if statement.name in ctx.signatures:
                raise self._fault(
                    f"Function '{statement.name}' is already defined",
                    statement,
                    suggestion="Rename one of the functions"
                )

            params = tuple(param.name for param in statement.parameters)
            duplicates = sorted({p for p in params if params.count(p) > 1})
            if duplicates:
                raise self._fault(
                    f"Duplicate parameter '{duplicates[0]}' in function '{statement.name}'",
                    statement,
                    suggestion="Give every parameter a distinct name"
                )

            ctx.signatures[statement.name] = params
            ctx.declarations[statement.name] = statement

    def _generate_statement(self, statement: StakASTStatement, ctx: CodeGenContext) -> None:
        """Generate code for a statement."""
        if isinstance(statement, (StakASTVariableDeclaration, StakASTAssignment)):
            self._generate_store(statement, ctx)

        elif isinstance(statement, StakASTCallStatement):
            self._generate_call(statement.call, ctx, tail=False)

        elif isinstance(statement, StakASTPrint):
            self._generate_expr(statement.value, ctx)
            ctx.emit(Opcode.PRINT)

        elif isinstance(statement, StakASTIf):
            self._generate_if(statement, ctx)

        elif isinstance(statement, StakASTFunctionDeclaration):
            self._generate_function(statement, ctx)

        elif isinstance(statement, StakASTReturn):
            self._generate_return(statement, ctx)

        else:
            raise ValueError(f"Unknown statement type: {type(statement)}")

    def _generate_store(self, statement: StakASTVariableDeclaration | StakASTAssignment, ctx: CodeGenContext) -> None:
        """Generate code for a declaration or assignment."""
        scope = ctx.scope()
        if isinstance(statement, StakASTAssignment) and statement.name not in scope:
            raise self._fault(
                f"Assignment to undeclared variable '{statement.name}'",
                statement,
                suggestion="Declare the variable first",
                example=f"this {statement.name} = 0;"
            )

        # The value is generated before the name is declared, so 'this x = x;' is an error
        self._generate_expr(statement.value, ctx)
        ctx.emit(Opcode.STORE, statement.name)
        scope.add(statement.name)

    def _generate_block(self, block: StakASTBlock, ctx: CodeGenContext) -> None:
        for statement in block.statements:
            self._generate_statement(statement, ctx)

    def _generate_if(self, statement: StakASTIf, ctx: CodeGenContext) -> None:
        """Generate code for an if/else statement."""
        self._generate_condition(statement.condition, ctx)

        jump_to_else = ctx.emit(Opcode.JUMP_IF_FALSE, 0)
        self._generate_block(statement.then_block, ctx)
        jump_past_else = ctx.emit(Opcode.JUMP, 0)

        ctx.patch_jump(jump_to_else, ctx.current_instruction_index())
        if statement.else_block is not None:
            self._generate_block(statement.else_block, ctx)

        ctx.patch_jump(jump_past_else, ctx.current_instruction_index())

    def _generate_condition(self, condition: StakASTCondition, ctx: CodeGenContext) -> None:
        """Generate a comparison that leaves 1 or 0 on the operand stack."""
        if isinstance(condition, StakASTLogical):
            raise self._fault(
                f"Logical '{condition.operator.value}' is not supported in conditions",
                condition,
                suggestion="Nest if statements instead",
                example="if a == 0 { if b == 0 { ... } }"
            )

        assert isinstance(condition, StakASTComparison)
        self._generate_expr(condition.left, ctx)
        self._generate_expr(condition.right, ctx)
        ctx.emit(COMPARISON_OPCODES[condition.operator])

    def _generate_function(self, statement: StakASTFunctionDeclaration, ctx: CodeGenContext) -> None:
        """Generate DECLARE, ENTER, the body and EXIT for a function."""
        if ctx.current_function is not None or ctx.declarations.get(statement.name) is not statement:
            raise self._fault(
                f"Function '{statement.name}' is not declared at the top level",
                statement,
                suggestion="Declare functions at the top level of the program, outside any block"
            )

        params = ctx.signatures[statement.name]
        declare_index = ctx.emit(Opcode.DECLARE, statement.name)
        ctx.emit(Opcode.ENTER)
        ctx.functions.declare(statement.name, declare_index, params)

        ctx.current_function = statement.name
        ctx.function_scope = set(params)
        try:
            self._generate_block(statement.body, ctx)

        finally:
            ctx.current_function = None
            ctx.function_scope = None

        # EXIT only runs if control falls off the end of the body
        exit_index = ctx.emit(Opcode.EXIT)
        ctx.functions.set_exit(statement.name, exit_index)
        self._logger.debug(
            "Function %s: entry %d, exit %d, %d params",
            statement.name, declare_index + 2, exit_index, len(params)
        )

    def _generate_return(self, statement: StakASTReturn, ctx: CodeGenContext) -> None:
        """Generate RET, or TAILCALL when the returned value is a call."""
        if ctx.current_function is None:
            raise self._fault(
                "'return' outside of a function",
                statement,
                suggestion="Use 'return' only inside a function body"
            )

        if isinstance(statement.value, StakASTCall):
            self._generate_call(statement.value, ctx, tail=True)
            return

        self._generate_expr(statement.value, ctx)
        ctx.emit(Opcode.RET)

    def _generate_expr(self, expr: StakASTExpr, ctx: CodeGenContext) -> None:
        """Generate code for an expression."""
        if isinstance(expr, StakASTInteger):
            if expr.negative:
                raise self._fault(
                    f"Negative integer literal {expr.describe()} is not supported",
                    expr,
                    suggestion="Write it as a subtraction",
                    example=f"0 - {abs(expr.value)}"
                )

            ctx.emit(Opcode.PUSH, expr.value)

        elif isinstance(expr, StakASTIdentifier):
            if expr.name not in ctx.scope():
                where = f"function '{ctx.current_function}'" if ctx.current_function else "the program"
                raise self._fault(
                    f"Undefined variable '{expr.name}'",
                    expr,
                    context=f"No parameter or declaration named '{expr.name}' in {where}",
                    suggestion="Declare it with 'this' before using it",
                    example=f"this {expr.name} = 0;"
                )

            ctx.emit(Opcode.LOAD, expr.name)

        elif isinstance(expr, StakASTBinaryOp):
            self._generate_expr(expr.left, ctx)
            self._generate_expr(expr.right, ctx)
            ctx.emit(ARITHMETIC_OPCODES[expr.operator])

        elif isinstance(expr, StakASTCall):
            self._generate_call(expr, ctx, tail=False)

        else:
            raise ValueError(f"Unknown expression type: {type(expr)}")

    def _generate_call(self, call: StakASTCall, ctx: CodeGenContext, tail: bool) -> None:
        """Generate arguments left to right, then CALL or TAILCALL."""
        if call.name not in ctx.signatures:
            raise self._fault(
                f"Undefined function '{call.name}'",
                call,
                context=f"Defined functions: {', '.join(sorted(ctx.signatures)) or '(none)'}",
                suggestion="Declare the function with 'fn'"
            )

        for arg in call.arguments:
            self._generate_expr(arg, ctx)

        ctx.emit(Opcode.TAILCALL if tail else Opcode.CALL, call.name, len(call.arguments))
