"""Tests for the Stak code generator.

IR is compared through StakProgram.dump(), with optimization disabled so the
listings show exactly what the generator emits.
"""

import pytest

from stak.stak_ast import (
    StakASTBinaryOp, StakASTCall, StakASTFunctionDeclaration, StakASTIdentifier, StakASTInteger,
    StakASTParameter, StakASTBlock, StakASTPrint, StakASTProgram, StakASTReturn, StakOperator
)
from stak.stak_codegen import StakCodeGen
from stak.stak_error import StakCodegenFault
from stak.stak_ir import Opcode


class TestCodegenExpressions:
    """Test expression lowering."""

    def test_post_order_arithmetic(self, helpers):
        """Operands are emitted before their operator."""
        assert helpers.dump("print(2 + 3 * 4);", optimize=False) == [
            "PUSH 2",
            "PUSH 3",
            "PUSH 4",
            "MUL",
            "ADD",
            "PRINT",
        ]

    def test_variables(self, helpers):
        assert helpers.dump("this x = 1; x = x + 2; print(x);", optimize=False) == [
            "PUSH 1",
            "STORE x",
            "LOAD x",
            "PUSH 2",
            "ADD",
            "STORE x",
            "LOAD x",
            "PRINT",
        ]

    def test_arguments_left_to_right(self, helpers):
        """Call arguments are evaluated left to right before the CALL."""
        source = """
        fn sub(a, b) { return a - b; }
        print(sub(10, 3));
        """
        assert helpers.dump(source, optimize=False) == [
            "DECLARE sub",
            "ENTER",
            "LOAD a",
            "LOAD b",
            "SUB",
            "RET",
            "EXIT",
            "PUSH 10",
            "PUSH 3",
            "CALL sub 2",
            "PRINT",
        ]


class TestCodegenControlFlow:
    """Test if/else lowering and jump patching."""

    def test_if_else(self, helpers):
        source = """
        this x = 1;
        if x == 1 {
            print(10);
        } else {
            print(20);
        }
        print(30);
        """
        assert helpers.dump(source, optimize=False) == [
            "PUSH 1",
            "STORE x",
            "LOAD x",
            "PUSH 1",
            "EQ",
            "JUMP_IF_FALSE 9",
            "PUSH 10",
            "PRINT",
            "JUMP 11",
            "PUSH 20",
            "PRINT",
            "PUSH 30",
            "PRINT",
        ]

    def test_if_without_else(self, helpers):
        """Without an else branch both jumps land on the next statement."""
        assert helpers.dump("this x = 0; if x != 0 { print(x); }", optimize=False) == [
            "PUSH 0",
            "STORE x",
            "LOAD x",
            "PUSH 0",
            "NE",
            "JUMP_IF_FALSE 9",
            "LOAD x",
            "PRINT",
            "JUMP 9",
        ]

    def test_jump_to_end_of_program_is_in_range(self, raw_compiler):
        """The end-of-program index is a valid jump target."""
        program = raw_compiler.compile("this x = 0; if x == 0 { print(x); }")
        assert program.instructions[-1].opcode == Opcode.JUMP
        assert program.instructions[-1].arg1 == len(program)


class TestCodegenFunctions:
    """Test function lowering and tail call detection."""

    def test_recursive_factorial(self, helpers, factorial_source):
        assert helpers.dump(factorial_source, optimize=False) == [
            "DECLARE factorial",
            "ENTER",
            "LOAD n",
            "PUSH 0",
            "EQ",
            "JUMP_IF_FALSE 9",
            "PUSH 1",
            "RET",
            "JUMP 16",
            "LOAD n",
            "LOAD n",
            "PUSH 1",
            "SUB",
            "CALL factorial 1",
            "MUL",
            "RET",
            "EXIT",
            "PUSH 5",
            "CALL factorial 1",
            "PRINT",
        ]

    def test_tail_recursive_factorial(self, helpers, tail_factorial_source):
        """A call that is the whole return value becomes TAILCALL with no RET after it."""
        assert helpers.dump(tail_factorial_source, optimize=False) == [
            "DECLARE factorial",
            "ENTER",
            "LOAD n",
            "PUSH 0",
            "EQ",
            "JUMP_IF_FALSE 9",
            "LOAD acc",
            "RET",
            "JUMP 16",
            "LOAD n",
            "PUSH 1",
            "SUB",
            "LOAD acc",
            "LOAD n",
            "MUL",
            "TAILCALL factorial 2",
            "EXIT",
            "PUSH 5",
            "PUSH 1",
            "CALL factorial 2",
            "PRINT",
        ]

    def test_call_inside_expression_is_not_tail(self, helpers):
        """return 1 + f(x) is an ordinary CALL followed by ADD and RET."""
        lines = helpers.dump("fn f(x) { return 1 + f(x); }", optimize=False)
        assert "CALL f 1" in lines
        assert "TAILCALL f 1" not in lines
        assert lines[-3:] == ["ADD", "RET", "EXIT"]

    def test_call_statement_is_never_tail(self, helpers):
        """A call as the last statement of a body is still a CALL."""
        lines = helpers.dump("fn g() { return 0; } fn f() { g(); }", optimize=False)
        assert lines[-3:] == ["ENTER", "CALL g 0", "EXIT"]

    def test_function_table(self, raw_compiler, tail_factorial_source):
        program = raw_compiler.compile(tail_factorial_source)
        info = program.functions["factorial"]
        assert info.declare_index == 0
        assert info.entry == 2
        assert info.exit_index == 16
        assert info.parameters == ("n", "acc")
        assert info.arity == 2

    def test_exit_always_emitted(self, helpers):
        lines = helpers.dump("fn f() { print(1); }", optimize=False)
        assert lines == ["DECLARE f", "ENTER", "PUSH 1", "PRINT", "EXIT"]

    def test_forward_reference(self, helpers):
        """Calls may refer to functions declared later in the program."""
        lines = helpers.dump("print(double(4)); fn double(x) { return x * 2; }", optimize=False)
        assert lines[:3] == ["PUSH 4", "CALL double 1", "PRINT"]

    def test_mutual_recursion(self, raw_compiler):
        source = """
        fn even(n) { if n == 0 { return 1; } else { return odd(n - 1); } }
        fn odd(n) { if n == 0 { return 0; } else { return even(n - 1); } }
        print(even(10));
        """
        program = raw_compiler.compile(source)
        assert set(program.functions) == {"even", "odd"}

    def test_generate_from_ast(self):
        """The generator accepts hand-built ASTs."""
        ast = StakASTProgram((
            StakASTFunctionDeclaration(
                "inc",
                (StakASTParameter("x"),),
                StakASTBlock((
                    StakASTReturn(StakASTBinaryOp(StakOperator.ADD, StakASTIdentifier("x"), StakASTInteger(1))),
                ))
            ),
            StakASTPrint(StakASTCall("inc", (StakASTInteger(41),))),
        ))
        program = StakCodeGen().generate(ast)
        assert program.dump().split("\n") == [
            "DECLARE inc",
            "ENTER",
            "LOAD x",
            "PUSH 1",
            "ADD",
            "RET",
            "EXIT",
            "PUSH 41",
            "CALL inc 1",
            "PRINT",
        ]


class TestCodegenFaults:
    """Test compile-time faults."""

    def fault(self, compiler, source):
        with pytest.raises(StakCodegenFault) as exc_info:
            compiler.compile(source)

        return exc_info.value

    def test_undefined_variable(self, raw_compiler):
        error = self.fault(raw_compiler, "this a = 1;\nprint(b);")
        assert "Undefined variable 'b'" in error.message
        assert (error.line, error.column) == (2, 7)

    def test_self_referential_declaration(self, raw_compiler):
        error = self.fault(raw_compiler, "this x = x;")
        assert "Undefined variable 'x'" in error.message

    def test_module_variables_not_visible_in_functions(self, raw_compiler):
        error = self.fault(raw_compiler, "this x = 1; fn f() { return x; }")
        assert "Undefined variable 'x'" in error.message

    def test_assignment_to_undeclared(self, raw_compiler):
        error = self.fault(raw_compiler, "y = 1;")
        assert "Assignment to undeclared variable 'y'" in error.message

    def test_negative_literal(self, raw_compiler):
        error = self.fault(raw_compiler, "print(-5);")
        assert "Negative integer literal" in error.message
        assert error.example == "0 - 5"

    def test_negative_zero_literal(self, raw_compiler):
        """A leading minus is rejected even when the value is zero."""
        error = self.fault(raw_compiler, "print(-0);")
        assert "Negative integer literal -0" in error.message
        assert error.example == "0 - 0"

    def test_negative_zero_literal_with_folding(self, compiler):
        error = self.fault(compiler, "print(1 + -0);")
        assert "Negative integer literal -0" in error.message

    def test_logical_and(self, raw_compiler):
        error = self.fault(raw_compiler, "this x = 1; if x == 1 && x == 1 { print(x); }")
        assert "Logical '&&'" in error.message

    def test_logical_or(self, raw_compiler):
        error = self.fault(raw_compiler, "this x = 1; if x == 1 || x == 2 { print(x); }")
        assert "Logical '||'" in error.message

    def test_return_outside_function(self, raw_compiler):
        error = self.fault(raw_compiler, "return 1;")
        assert "'return' outside of a function" in error.message

    def test_nested_function(self, raw_compiler):
        error = self.fault(raw_compiler, "fn f() { fn g() { return 1; } return 2; }")
        assert "Function 'g' is not declared at the top level" in error.message

    def test_function_inside_top_level_block(self, raw_compiler):
        error = self.fault(raw_compiler, "this x = 1; if x == 1 { fn g() { return 1; } }")
        assert "Function 'g' is not declared at the top level" in error.message

    def test_duplicate_function(self, raw_compiler):
        error = self.fault(raw_compiler, "fn f() { return 1; } fn f() { return 2; }")
        assert "Function 'f' is already defined" in error.message

    def test_duplicate_parameter(self, raw_compiler):
        error = self.fault(raw_compiler, "fn f(a, a) { return a; }")
        assert "Duplicate parameter 'a'" in error.message

    def test_undefined_function(self, raw_compiler):
        error = self.fault(raw_compiler, "print(g(1));")
        assert "Undefined function 'g'" in error.message

    def test_fault_shows_source_context(self, raw_compiler):
        error = self.fault(raw_compiler, "this a = 1;\nprint(b);")
        assert "> 2: print(b);" in str(error)
