"""
Converts Lox source text into a flat list of tokens.
"""
from typing import Any, List, Optional

from lox.lox_tokens import Token, TokenType, KEYWORDS

# Characters whose token kind never depends on the next character.
_SINGLE_CHAR_TOKENS = {
    "(": TokenType.LEFT_PAREN,
    ")": TokenType.RIGHT_PAREN,
    "{": TokenType.LEFT_BRACE,
    "}": TokenType.RIGHT_BRACE,
    ",": TokenType.COMMA,
    ".": TokenType.DOT,
    "-": TokenType.MINUS,
    "+": TokenType.PLUS,
    ";": TokenType.SEMICOLON,
    "*": TokenType.STAR,
}

# Characters that form a two-character operator when followed by '='.
_EQUAL_SUFFIXED = {
    "!": (TokenType.BANG_EQUAL, TokenType.BANG),
    "=": (TokenType.EQUAL_EQUAL, TokenType.EQUAL),
    "<": (TokenType.LESS_EQUAL, TokenType.LESS),
    ">": (TokenType.GREATER_EQUAL, TokenType.GREATER),
}


def _is_digit(c: str) -> bool:
    return "0" <= c <= "9"


def _is_alpha(c: str) -> bool:
    return ("a" <= c <= "z") or ("A" <= c <= "Z") or c == "_"


def _is_alphanumeric(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


class Scanner:
    """Single-pass scanner with one character of lookahead.

    Problems are sent to the reporter and scanning carries on, so the caller
    always gets a complete token list ending in EOF.
    """
    def __init__(self, source: str, reporter: Optional[Any] = None):
        if reporter is None:
            from lox.lox_runtime import ErrorReporter
            reporter = ErrorReporter()
        self.source = source
        self.reporter = reporter
        self.tokens: List[Token] = []
        self._start = 0
        self._current = 0
        self._line = 1

    def scan_tokens(self) -> List[Token]:
        while not self._is_at_end():
            self._start = self._current
            self._scan_token()

        self.tokens.append(Token(TokenType.EOF, "", None, self._line))
        return self.tokens

    def _scan_token(self):
        c = self._advance()

        if c in _SINGLE_CHAR_TOKENS:
            self._add_token(_SINGLE_CHAR_TOKENS[c])
            return
        if c in _EQUAL_SUFFIXED:
            matched, plain = _EQUAL_SUFFIXED[c]
            self._add_token(matched if self._match("=") else plain)
            return

        match c:
            case "/":
                if self._match("/"):
                    # Line comment runs to the end of the line.
                    while self._peek() != "\n" and not self._is_at_end():
                        self._advance()
                else:
                    self._add_token(TokenType.SLASH)
            case " " | "\r" | "\t":
                pass
            case "\n":
                self._line += 1
            case '"':
                self._string()
            case _ if _is_digit(c):
                self._number()
            case _ if _is_alpha(c):
                self._identifier()
            case _:
                self.reporter.syntax_error(self._line, "", "Unexpected character.")

    def _string(self):
        while self._peek() != '"' and not self._is_at_end():
            if self._peek() == "\n":
                self._line += 1
            self._advance()

        if self._is_at_end():
            self.reporter.syntax_error(self._line, "", "Unterminated string.")
            return

        # The closing quote.
        self._advance()
        value = self.source[self._start + 1:self._current - 1]
        self._add_token(TokenType.STRING, value)

    def _number(self):
        while _is_digit(self._peek()):
            self._advance()

        # A fractional part needs at least one digit after the '.'.
        if self._peek() == "." and _is_digit(self._peek_next()):
            self._advance()
            while _is_digit(self._peek()):
                self._advance()

        self._add_token(TokenType.NUMBER, float(self.source[self._start:self._current]))

    def _identifier(self):
        while _is_alphanumeric(self._peek()):
            self._advance()

        text = self.source[self._start:self._current]
        self._add_token(KEYWORDS.get(text, TokenType.IDENTIFIER))

    def _is_at_end(self) -> bool:
        return self._current >= len(self.source)

    def _advance(self) -> str:
        c = self.source[self._current]
        self._current += 1
        return c

    def _match(self, expected: str) -> bool:
        if self._is_at_end() or self.source[self._current] != expected:
            return False
        self._current += 1
        return True

    def _peek(self) -> str:
        if self._is_at_end():
            return "\0"
        return self.source[self._current]

    def _peek_next(self) -> str:
        if self._current + 1 >= len(self.source):
            return "\0"
        return self.source[self._current + 1]

    def _add_token(self, token_type: TokenType, literal: Any = None):
        text = self.source[self._start:self._current]
        self.tokens.append(Token(token_type, text, literal, self._line))
