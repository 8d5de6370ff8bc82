"""Lexer for Stak source code with detailed error messages."""

from typing import List

from stak.stak_error import StakTokenError
from stak.stak_token import KEYWORDS, StakToken, StakTokenType


class StakLexer:
    """Converts Stak source text into a list of tokens."""

    TWO_CHAR_TOKENS = {
        "==": StakTokenType.EQUAL,
        "!=": StakTokenType.NOT_EQUAL,
        "&&": StakTokenType.AND,
        "||": StakTokenType.OR,
        "->": StakTokenType.ARROW,
    }

    SINGLE_CHAR_TOKENS = {
        "+": StakTokenType.PLUS,
        "-": StakTokenType.MINUS,
        "*": StakTokenType.STAR,
        "/": StakTokenType.SLASH,
        "=": StakTokenType.ASSIGN,
        "(": StakTokenType.LPAREN,
        ")": StakTokenType.RPAREN,
        "{": StakTokenType.LBRACE,
        "}": StakTokenType.RBRACE,
        ",": StakTokenType.COMMA,
        ":": StakTokenType.COLON,
        ";": StakTokenType.SEMICOLON,
    }

    def __init__(self) -> None:
        self._source = ""
        self._pos = 0
        self._line = 1
        self._line_start = 0

    def lex(self, source: str) -> List[StakToken]:
        """
        Tokenize Stak source code.

        Args:
            source: Source text to tokenize

        Returns:
            List of tokens

        Raises:
            StakTokenError: If an unexpected character is found
        """
        self._source = source
        self._pos = 0
        self._line = 1
        self._line_start = 0

        tokens: List[StakToken] = []
        while self._pos < len(source):
            ch = source[self._pos]

            if ch == '\n':
                self._pos += 1
                self._line += 1
                self._line_start = self._pos
                continue

            if ch.isspace():
                self._pos += 1
                continue

            # Comments run from '//' to the end of the line
            if source.startswith("//", self._pos):
                while self._pos < len(source) and source[self._pos] != '\n':
                    self._pos += 1

                continue

            if '0' <= ch <= '9':
                tokens.append(self._read_integer())
                continue

            if ch.isalpha() or ch == '_':
                tokens.append(self._read_word())
                continue

            pair = source[self._pos:self._pos + 2]
            if pair in self.TWO_CHAR_TOKENS:
                tokens.append(self._make_token(self.TWO_CHAR_TOKENS[pair], pair, 2))
                self._pos += 2
                continue

            if ch in self.SINGLE_CHAR_TOKENS:
                tokens.append(self._make_token(self.SINGLE_CHAR_TOKENS[ch], ch, 1))
                self._pos += 1
                continue

            raise StakTokenError(
                message=f"Unexpected character: {ch!r}",
                line=self._line,
                column=self._column(),
                source=source,
                received=f"Character: {ch!r}",
                expected="Identifier, integer, operator or punctuation",
                suggestion="Remove the character or replace it with a supported operator"
            )

        return tokens

    def _column(self) -> int:
        """Return the 1-indexed column of the current position."""
        return self._pos - self._line_start + 1

    def _make_token(self, token_type: StakTokenType, value: object, length: int) -> StakToken:
        return StakToken(token_type, value, self._line, self._column(), length)

    def _read_integer(self) -> StakToken:
        """Read a run of digits as an integer literal."""
        start = self._pos
        while self._pos < len(self._source) and '0' <= self._source[self._pos] <= '9':
            self._pos += 1

        text = self._source[start:self._pos]
        if self._pos < len(self._source) and (self._source[self._pos].isalpha() or self._source[self._pos] == '_'):
            raise StakTokenError(
                message=f"Invalid number literal: {text}{self._source[self._pos]}",
                line=self._line,
                column=start - self._line_start + 1,
                source=self._source,
                expected="Digits only, separated from identifiers by whitespace or an operator",
                example="this x = 42;"
            )

        return StakToken(StakTokenType.INTEGER, int(text), self._line, start - self._line_start + 1, len(text))

    def _read_word(self) -> StakToken:
        """Read an identifier or keyword."""
        start = self._pos
        while self._pos < len(self._source) and (self._source[self._pos].isalnum() or self._source[self._pos] == '_'):
            self._pos += 1

        word = self._source[start:self._pos]
        token_type = KEYWORDS.get(word, StakTokenType.IDENTIFIER)
        return StakToken(token_type, word, self._line, start - self._line_start + 1, len(word))
