"""
Lexer for the 8-bit CPU assembly dialect.

Produces a flat token stream for the pass-1 parser. Unlike the high-level
lexer, newlines and comments are real tokens here because assembly is
line-oriented and the parser resynchronises on line boundaries.

Recognised forms:
  - Comments:    ``; text`` or ``// text`` up to end of line
  - Labels:      ``LOOP:`` (identifier immediately followed by ':')
  - Directives:  ``.ORG``, ``.DB``, ``.DW`` (identifier starting with '.')
  - Numbers:     ``42``, ``0x2A``, ``0b101010`` (raw text is kept)
  - Strings:     ``"text"`` or ``'text'`` (escapes passed through untouched)
  - Identifiers: mnemonics, registers and label references, upper-cased

The lexer never fails: an unrecognised character is skipped silently.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import List


# ──────────────────────────────────────────────
# Token types
# ──────────────────────────────────────────────

class TokenType(enum.Enum):
    IDENTIFIER = "IDENTIFIER"
    NUMBER = "NUMBER"
    LABEL = "LABEL"
    DIRECTIVE = "DIRECTIVE"
    STRING = "STRING"
    COMMA = "COMMA"
    COMMENT = "COMMENT"
    NEWLINE = "NEWLINE"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    line: int
    col: int

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, L{self.line}:{self.col})"


# ──────────────────────────────────────────────
# Lexer
# ──────────────────────────────────────────────

class Lexer:
    """Tokenizes assembly source into a list of Tokens."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.col = 1
        self.tokens: List[Token] = []

    def _peek(self, offset: int = 0) -> str:
        i = self.pos + offset
        return self.source[i] if i < len(self.source) else "\0"

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _at_end(self) -> bool:
        return self.pos >= len(self.source)

    @staticmethod
    def _is_ident_char(ch: str) -> bool:
        return ch.isascii() and (ch.isalnum() or ch in "_.")

    def _skip_whitespace(self):
        # Newlines are significant and are not skipped here
        while not self._at_end() and self.source[self.pos] in " \t\r":
            self._advance()

    def _read_comment(self) -> Token:
        start_line, start_col = self.line, self.col
        start_pos = self.pos
        while not self._at_end() and self.source[self.pos] != "\n":
            self._advance()
        return Token(TokenType.COMMENT, self.source[start_pos:self.pos], start_line, start_col)

    def _read_string(self) -> Token:
        start_line, start_col = self.line, self.col
        quote = self._advance()
        start_pos = self.pos
        while not self._at_end() and self._peek() != quote:
            if self._peek() == "\\" and self.pos + 1 < len(self.source):
                self._advance()
            self._advance()
        value = self.source[start_pos:self.pos]
        if not self._at_end():
            self._advance()  # closing quote
        return Token(TokenType.STRING, value, start_line, start_col)

    def _read_number(self) -> Token:
        start_line, start_col = self.line, self.col
        start_pos = self.pos

        if self._peek() == "0" and self._peek(1) in "xX":
            self._advance()
            self._advance()
            while not self._at_end() and self._peek() in "0123456789abcdefABCDEF":
                self._advance()
        elif self._peek() == "0" and self._peek(1) in "bB":
            self._advance()
            self._advance()
            while not self._at_end() and self._peek() in "01":
                self._advance()
        else:
            while not self._at_end() and self._peek() in "0123456789":
                self._advance()

        return Token(TokenType.NUMBER, self.source[start_pos:self.pos], start_line, start_col)

    def _read_identifier(self) -> Token:
        start_line, start_col = self.line, self.col
        start_pos = self.pos
        while not self._at_end() and self._is_ident_char(self._peek()):
            self._advance()

        text = self.source[start_pos:self.pos].upper()

        if text.startswith("."):
            return Token(TokenType.DIRECTIVE, text, start_line, start_col)

        if self._peek() == ":":
            self._advance()
            return Token(TokenType.LABEL, text, start_line, start_col)

        return Token(TokenType.IDENTIFIER, text, start_line, start_col)

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source and return a list of tokens ending in EOF."""
        self.tokens = []

        while not self._at_end():
            self._skip_whitespace()
            if self._at_end():
                break

            ch = self._peek()

            if ch == ";" or (ch == "/" and self._peek(1) == "/"):
                self.tokens.append(self._read_comment())
                continue

            if ch == "\n":
                self.tokens.append(Token(TokenType.NEWLINE, ch, self.line, self.col))
                self._advance()
                continue

            if ch == ",":
                self.tokens.append(Token(TokenType.COMMA, ch, self.line, self.col))
                self._advance()
                continue

            if ch in "\"'":
                self.tokens.append(self._read_string())
                continue

            if ch.isascii() and ch.isdigit():
                self.tokens.append(self._read_number())
                continue

            if ch.isascii() and (ch.isalpha() or ch in "_."):
                self.tokens.append(self._read_identifier())
                continue

            # Unknown character: dropped without a diagnostic
            self._advance()

        self.tokens.append(Token(TokenType.EOF, "", self.line, self.col))
        return self.tokens


def tokenize(source: str) -> List[Token]:
    return Lexer(source).tokenize()
