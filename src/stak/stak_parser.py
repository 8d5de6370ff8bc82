"""Parser for Stak source code with detailed error messages."""

from typing import List

from stak.stak_ast import (
    StakASTAssignment, StakASTBinaryOp, StakASTBlock, StakASTCall, StakASTCallStatement,
    StakASTComparison, StakASTCondition, StakASTExpr, StakASTFunctionDeclaration, StakASTIdentifier,
    StakASTIf, StakASTInteger, StakASTLogical, StakASTParameter, StakASTPrint, StakASTProgram,
    StakASTReturn, StakASTStatement, StakASTVariableDeclaration, StakComparator, StakLogicalOperator,
    StakOperator
)
from stak.stak_error import StakParseError
from stak.stak_token import StakToken, StakTokenType


class StakParser:
    """
    Recursive descent parser producing a StakASTProgram.

    Arithmetic uses precedence climbing: '*' and '/' bind tighter than '+' and
    '-', and operators of equal precedence associate to the left.
    """

    BINARY_OPERATORS = {
        StakTokenType.PLUS: StakOperator.ADD,
        StakTokenType.MINUS: StakOperator.SUB,
        StakTokenType.STAR: StakOperator.MUL,
        StakTokenType.SLASH: StakOperator.DIV,
    }

    PRECEDENCE = {
        StakOperator.ADD: 1,
        StakOperator.SUB: 1,
        StakOperator.MUL: 2,
        StakOperator.DIV: 2,
    }

    COMPARATORS = {
        StakTokenType.EQUAL: StakComparator.EQ,
        StakTokenType.NOT_EQUAL: StakComparator.NE,
    }

    LOGICAL_OPERATORS = {
        StakTokenType.AND: StakLogicalOperator.AND,
        StakTokenType.OR: StakLogicalOperator.OR,
    }

    def __init__(self, tokens: List[StakToken], source: str = ""):
        """
        Initialize parser with tokens and the original source.

        Args:
            tokens: List of tokens to parse
            source: Original source text for error context
        """
        self.tokens = tokens
        self.source = source
        self.pos = 0

    def parse(self) -> StakASTProgram:
        """
        Parse the token stream into a program.

        Returns:
            Parsed program

        Raises:
            StakParseError: If the tokens do not form a valid program
        """
        statements = []
        while self._peek() is not None:
            statements.append(self._parse_statement())

        return StakASTProgram(tuple(statements), line=1, column=1)

    # Token helpers

    def _peek(self, offset: int = 0) -> StakToken | None:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _check(self, token_type: StakTokenType) -> bool:
        token = self._peek()
        return token is not None and token.type == token_type

    def _advance(self) -> StakToken:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _error(self, message: str, token: StakToken | None, **kwargs: str) -> StakParseError:
        """Build a parse error located at token, or at the end of input if token is None."""
        if token is None:
            lines = self.source.split('\n') if self.source else [""]
            return StakParseError(
                message=message,
                line=len(lines),
                column=len(lines[-1]) + 1,
                source=self.source or None,
                received="End of input",
                **kwargs
            )

        return StakParseError(
            message=message,
            line=token.line,
            column=token.column,
            source=self.source or None,
            received=f"Found: {token.value}",
            **kwargs
        )

    def _expect(self, token_type: StakTokenType, context: str) -> StakToken:
        token = self._peek()
        if token is None or token.type != token_type:
            raise self._error(f"Expected '{token_type.value}' {context}", token, expected=f"'{token_type.value}'")

        return self._advance()

    def _expect_identifier(self, context: str) -> StakToken:
        token = self._peek()
        if token is None or token.type != StakTokenType.IDENTIFIER:
            raise self._error(f"Expected identifier {context}", token, expected="Identifier")

        return self._advance()

    def _skip_optional_semicolon(self) -> None:
        if self._check(StakTokenType.SEMICOLON):
            self._advance()

    # Statements

    def _parse_statement(self) -> StakASTStatement:
        token = self._peek()
        assert token is not None

        if token.type == StakTokenType.THIS:
            return self._parse_variable_declaration()

        if token.type == StakTokenType.FN:
            return self._parse_function_declaration()

        if token.type == StakTokenType.PRINT:
            return self._parse_print()

        if token.type == StakTokenType.IF:
            return self._parse_if()

        if token.type == StakTokenType.RETURN:
            self._advance()
            value = self._parse_expression()
            self._expect(StakTokenType.SEMICOLON, "after return value")
            return StakASTReturn(value, line=token.line, column=token.column)

        if token.type == StakTokenType.IDENTIFIER:
            next_token = self._peek(1)
            if next_token is not None and next_token.type == StakTokenType.ASSIGN:
                self._advance()
                self._advance()
                value = self._parse_expression()
                self._expect(StakTokenType.SEMICOLON, "after assignment")
                return StakASTAssignment(token.value, value, line=token.line, column=token.column)

            if next_token is not None and next_token.type == StakTokenType.LPAREN:
                call = self._parse_call()
                self._expect(StakTokenType.SEMICOLON, "after function call")
                return StakASTCallStatement(call, line=token.line, column=token.column)

        raise self._error(
            "Invalid statement",
            token,
            expected="Declaration, assignment, call, print, if, fn or return",
            example="this x = 1;  x = x + 1;  print(x);"
        )

    def _parse_variable_declaration(self) -> StakASTVariableDeclaration:
        start = self._advance()
        name = self._expect_identifier("after 'this'")
        self._expect(StakTokenType.ASSIGN, "in variable declaration")
        value = self._parse_expression()
        self._expect(StakTokenType.SEMICOLON, "after variable declaration")
        return StakASTVariableDeclaration(name.value, value, line=start.line, column=start.column)

    def _parse_print(self) -> StakASTPrint:
        start = self._advance()
        self._expect(StakTokenType.LPAREN, "after 'print'")
        value = self._parse_expression()
        self._expect(StakTokenType.RPAREN, "to close 'print'")
        self._expect(StakTokenType.SEMICOLON, "after print statement")
        return StakASTPrint(value, line=start.line, column=start.column)

    def _parse_if(self) -> StakASTIf:
        start = self._advance()
        condition = self._parse_condition()
        then_block = self._parse_block()
        else_block = None
        if self._check(StakTokenType.ELSE):
            self._advance()
            else_block = self._parse_block()

        self._skip_optional_semicolon()
        return StakASTIf(condition, then_block, else_block, line=start.line, column=start.column)

    def _parse_function_declaration(self) -> StakASTFunctionDeclaration:
        start = self._advance()
        name = self._expect_identifier("after 'fn'")
        self._expect(StakTokenType.LPAREN, "after function name")
        parameters = self._parse_parameters()
        self._expect(StakTokenType.RPAREN, "to close parameter list")

        return_type = None
        if self._check(StakTokenType.ARROW):
            self._advance()
            return_type = self._parse_type_annotation()

        body = self._parse_block()
        self._skip_optional_semicolon()
        return StakASTFunctionDeclaration(
            name.value, tuple(parameters), body, return_type, line=start.line, column=start.column
        )

    def _parse_parameters(self) -> List[StakASTParameter]:
        parameters: List[StakASTParameter] = []
        if self._check(StakTokenType.RPAREN):
            return parameters

        while True:
            name = self._expect_identifier("in parameter list")
            annotation = None
            if self._check(StakTokenType.COLON):
                self._advance()
                annotation = self._parse_type_annotation()

            parameters.append(StakASTParameter(name.value, annotation, line=name.line, column=name.column))
            if not self._check(StakTokenType.COMMA):
                return parameters

            self._advance()

    def _parse_type_annotation(self) -> str:
        token = self._peek()
        if token is None or token.type != StakTokenType.IDENTIFIER or token.value != "int":
            raise self._error("Unsupported type annotation", token, expected="'int'", example="fn f(n: int) -> int { ... }")

        self._advance()
        return "int"

    def _parse_block(self) -> StakASTBlock:
        start = self._expect(StakTokenType.LBRACE, "to open block")
        statements: List[StakASTStatement] = []
        while not self._check(StakTokenType.RBRACE):
            token = self._peek()
            if token is None:
                raise self._error("Unterminated block", token, expected="'}'", suggestion="Close the block with '}'")

            statement = self._parse_statement()
            statements.append(statement)
            next_token = self._peek()
            if isinstance(statement, StakASTReturn) and next_token is not None and next_token.type != StakTokenType.RBRACE:
                raise self._error(
                    "Unreachable statement after return",
                    next_token,
                    expected="'}'",
                    suggestion="'return' must be the last statement in its block"
                )

        self._advance()
        return StakASTBlock(tuple(statements), line=start.line, column=start.column)

    # Conditions

    def _parse_condition(self) -> StakASTCondition:
        left = self._parse_condition_primary()
        while True:
            token = self._peek()
            if token is None or token.type not in self.LOGICAL_OPERATORS:
                return left

            self._advance()
            right = self._parse_condition_primary()
            left = StakASTLogical(
                self.LOGICAL_OPERATORS[token.type], left, right, line=token.line, column=token.column
            )

    def _parse_condition_primary(self) -> StakASTCondition:
        # '(' may open either a parenthesized condition or an arithmetic term such as
        # '(a + b) == c', so try the condition first and backtrack if that fails.
        if self._check(StakTokenType.LPAREN):
            saved = self.pos
            try:
                self._advance()
                condition = self._parse_condition()
                self._expect(StakTokenType.RPAREN, "to close condition")
                return condition

            except StakParseError:
                self.pos = saved

        left = self._parse_expression()
        token = self._peek()
        if token is None or token.type not in self.COMPARATORS:
            raise self._error(
                "Unsupported comparison operator",
                token,
                expected="'==' or '!='",
                example="if n == 0 { return 1; }"
            )

        self._advance()
        right = self._parse_expression()
        return StakASTComparison(self.COMPARATORS[token.type], left, right, line=token.line, column=token.column)

    # Expressions

    def _parse_expression(self, min_precedence: int = 1) -> StakASTExpr:
        left = self._parse_term()
        while True:
            token = self._peek()
            if token is None or token.type not in self.BINARY_OPERATORS:
                return left

            operator = self.BINARY_OPERATORS[token.type]
            precedence = self.PRECEDENCE[operator]
            if precedence < min_precedence:
                return left

            self._advance()
            right = self._parse_expression(precedence + 1)
            left = StakASTBinaryOp(operator, left, right, line=token.line, column=token.column)

    def _parse_term(self) -> StakASTExpr:
        token = self._peek()
        if token is None:
            raise self._error("Unexpected end of input", token, expected="Expression")

        if token.type == StakTokenType.INTEGER:
            self._advance()
            return StakASTInteger(token.value, line=token.line, column=token.column)

        if token.type == StakTokenType.MINUS:
            # The grammar allows a leading '-' on integer literals only
            next_token = self._peek(1)
            if next_token is None or next_token.type != StakTokenType.INTEGER:
                raise self._error(
                    "Unary minus is only allowed on integer literals",
                    token,
                    expected="Integer literal after '-'",
                    suggestion="Write the expression as a subtraction, e.g. 0 - x"
                )

            self._advance()
            self._advance()
            return StakASTInteger(-next_token.value, negative=True, line=token.line, column=token.column)

        if token.type == StakTokenType.IDENTIFIER:
            next_token = self._peek(1)
            if next_token is not None and next_token.type == StakTokenType.LPAREN:
                return self._parse_call()

            self._advance()
            return StakASTIdentifier(token.value, line=token.line, column=token.column)

        if token.type == StakTokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(StakTokenType.RPAREN, "to close parenthesized expression")
            return expr

        raise self._error("Invalid term", token, expected="Integer, identifier, call or '('")

    def _parse_call(self) -> StakASTCall:
        name = self._advance()
        self._expect(StakTokenType.LPAREN, "after function name")
        arguments: List[StakASTExpr] = []
        if not self._check(StakTokenType.RPAREN):
            while True:
                arguments.append(self._parse_expression())
                if not self._check(StakTokenType.COMMA):
                    break

                self._advance()

        self._expect(StakTokenType.RPAREN, "to close argument list")
        return StakASTCall(name.value, tuple(arguments), line=name.line, column=name.column)
