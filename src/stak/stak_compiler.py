"""Stak Compiler - Orchestrates the complete compilation pipeline.

This is the main entry point for compiling Stak source code to IR.  It chains
together the lexer, parser, code generator and IR optimization passes.
"""

import logging
from typing import List

from stak.stak_ast import StakASTProgram
from stak.stak_codegen import StakCodeGen
from stak.stak_constant_folder import StakConstantFolder
from stak.stak_ir import StakProgram
from stak.stak_ir_optimization_pass import StakIROptimizationPass
from stak.stak_lexer import StakLexer
from stak.stak_parser import StakParser


class StakCompiler:
    """
    Main compiler pass manager.
    """

    def __init__(self, optimize: bool = True):
        """
        Initialize compiler with all passes.

        Args:
            optimize: Enable IR optimization passes
        """
        self.optimize = optimize
        self._logger = logging.getLogger("StakCompiler")

        self.lexer = StakLexer()
        self.codegen = StakCodeGen()

        self.ir_passes: List[StakIROptimizationPass] = []
        if optimize:
            self.ir_passes = [
                StakConstantFolder(),
            ]

    def parse(self, source: str) -> StakASTProgram:
        """
        Run the front end: lexing and parsing.

        Args:
            source: Stak source code as a string

        Returns:
            Parsed program AST
        """
        tokens = self.lexer.lex(source)
        return StakParser(tokens, source).parse()

    def compile(self, source: str, name: str = "<program>") -> StakProgram:
        """
        Compile Stak source code to IR.

        Args:
            source: Stak source code as a string
            name: Optional name for the program (e.g. filename)

        Returns:
            Compiled, optimized program ready for execution
        """
        return self.compile_ast(self.parse(source), name, source)

    def compile_ast(self, ast: StakASTProgram, name: str = "<program>", source: str | None = None) -> StakProgram:
        """
        Compile an already-parsed program to IR.

        Args:
            ast: Program AST
            name: Optional name for the program
            source: Optional source text, used to show context in faults

        Returns:
            Compiled, optimized program ready for execution
        """
        program = self.codegen.generate(ast, source, name)

        # Run the pass sequence until no pass makes any further changes
        if self.ir_passes:
            changed = True
            rounds = 0
            while changed:
                changed = False
                rounds += 1
                for ir_pass in self.ir_passes:
                    program, pass_changed = ir_pass.optimize(program)
                    changed = changed or pass_changed

            self._logger.debug("IR optimization of %s reached a fixed point after %d round(s)", name, rounds)

        return program
