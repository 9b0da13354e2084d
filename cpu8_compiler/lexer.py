"""
Lexer / Tokenizer for the C-like language of the 8-bit CPU compiler.

Converts source text into a stream of tokens for the parser. Handles the
fixed keyword set (uint8, int8, bool, void, if, else, while, for, return,
true, false), identifiers, numbers (decimal, 0x hex, 0b binary), string
literals in either quote style, operators and punctuation.

Whitespace, newlines and both comment styles are dropped here and never
reach the parser. The lexer does not fail: a character it does not know
is skipped.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import Dict, List


# ──────────────────────────────────────────────
# Token types
# ──────────────────────────────────────────────

class TokenType(enum.Enum):
    # Literals
    NUMBER = "NUMBER"
    STRING = "STRING"

    # Identifier
    IDENT = "IDENT"

    # Keywords
    KW_UINT8 = "uint8"
    KW_INT8 = "int8"
    KW_BOOL = "bool"
    KW_VOID = "void"
    KW_IF = "if"
    KW_ELSE = "else"
    KW_WHILE = "while"
    KW_FOR = "for"
    KW_RETURN = "return"
    KW_TRUE = "true"
    KW_FALSE = "false"

    # Operators
    PLUS = "+"
    MINUS = "-"
    AMP = "&"
    PIPE = "|"
    CARET = "^"
    TILDE = "~"
    BANG = "!"
    ASSIGN = "="
    EQ = "=="
    NEQ = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="

    # Punctuation
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    LBRACKET = "["
    RBRACKET = "]"
    SEMI = ";"
    COMMA = ","

    # Special
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
# Keyword and operator tables
# ──────────────────────────────────────────────

KEYWORDS: Dict[str, TokenType] = {
    "uint8": TokenType.KW_UINT8,
    "int8": TokenType.KW_INT8,
    "bool": TokenType.KW_BOOL,
    "void": TokenType.KW_VOID,
    "if": TokenType.KW_IF,
    "else": TokenType.KW_ELSE,
    "while": TokenType.KW_WHILE,
    "for": TokenType.KW_FOR,
    "return": TokenType.KW_RETURN,
    "true": TokenType.KW_TRUE,
    "false": TokenType.KW_FALSE,
}

TYPE_KEYWORDS = (TokenType.KW_UINT8, TokenType.KW_INT8, TokenType.KW_BOOL, TokenType.KW_VOID)

MULTI_CHAR_OPS = [
    ("==", TokenType.EQ),
    ("!=", TokenType.NEQ),
    ("<=", TokenType.LE),
    (">=", TokenType.GE),
]

SINGLE_CHAR_OPS: Dict[str, TokenType] = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "&": TokenType.AMP,
    "|": TokenType.PIPE,
    "^": TokenType.CARET,
    "~": TokenType.TILDE,
    "!": TokenType.BANG,
    "=": TokenType.ASSIGN,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    ";": TokenType.SEMI,
    ",": TokenType.COMMA,
}


# ──────────────────────────────────────────────
# Lexer
# ──────────────────────────────────────────────

class Lexer:
    """Tokenizes C-like source into a list of Tokens."""

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

    def _skip_whitespace(self):
        while self.pos < len(self.source) and self.source[self.pos] in " \t\r\n":
            self._advance()

    def _skip_line_comment(self):
        while self.pos < len(self.source) and self.source[self.pos] != "\n":
            self._advance()

    def _skip_block_comment(self):
        # An unterminated comment runs to end of input
        while self.pos < len(self.source):
            if self.source[self.pos] == "*" and self._peek(1) == "/":
                self._advance()  # *
                self._advance()  # /
                return
            self._advance()

    def _read_number(self) -> Token:
        start_line, start_col = self.line, self.col
        start_pos = self.pos

        if self._peek() == "0" and self._peek(1) in "xX":
            self._advance()  # '0'
            self._advance()  # 'x'
            while self.pos < len(self.source) and self.source[self.pos] in "0123456789abcdefABCDEF":
                self._advance()
        elif self._peek() == "0" and self._peek(1) in "bB":
            self._advance()  # '0'
            self._advance()  # 'b'
            while self.pos < len(self.source) and self.source[self.pos] in "01":
                self._advance()
        else:
            while self.pos < len(self.source) and self.source[self.pos] in "0123456789":
                self._advance()

        # Raw text; the parser converts it
        return Token(TokenType.NUMBER, self.source[start_pos:self.pos], start_line, start_col)

    def _read_string(self) -> Token:
        start_line, start_col = self.line, self.col
        quote = self._advance()
        start_pos = self.pos
        while self.pos < len(self.source) and self._peek() != quote:
            if self._peek() == "\\" and self.pos + 1 < len(self.source):
                self._advance()
            self._advance()
        value = self.source[start_pos:self.pos]
        if self.pos < len(self.source):
            self._advance()  # closing quote
        return Token(TokenType.STRING, value, start_line, start_col)

    def _read_identifier_or_keyword(self) -> Token:
        start_line, start_col = self.line, self.col
        start_pos = self.pos

        while self.pos < len(self.source) and (self.source[self.pos].isalnum() or self.source[self.pos] == "_"):
            self._advance()

        text = self.source[start_pos:self.pos]
        if text in KEYWORDS:
            return Token(KEYWORDS[text], text, start_line, start_col)
        return Token(TokenType.IDENT, text, start_line, start_col)

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source and return a list of tokens ending in EOF."""
        self.tokens = []

        while self.pos < len(self.source):
            self._skip_whitespace()
            if self.pos >= len(self.source):
                break

            ch = self._peek()

            # Line comment
            if ch == "/" and self._peek(1) == "/":
                self._skip_line_comment()
                continue

            # Block comment
            if ch == "/" and self._peek(1) == "*":
                self._advance()
                self._advance()
                self._skip_block_comment()
                continue

            if ch in "\"'":
                self.tokens.append(self._read_string())
                continue

            if ch.isascii() and ch.isdigit():
                self.tokens.append(self._read_number())
                continue

            if ch.isascii() and (ch.isalpha() or ch == "_"):
                self.tokens.append(self._read_identifier_or_keyword())
                continue

            matched = False
            for op_str, op_type in MULTI_CHAR_OPS:
                if self.source[self.pos:self.pos + len(op_str)] == op_str:
                    start_line, start_col = self.line, self.col
                    for _ in op_str:
                        self._advance()
                    self.tokens.append(Token(op_type, op_str, start_line, start_col))
                    matched = True
                    break

            if matched:
                continue

            if ch in SINGLE_CHAR_OPS:
                start_line, start_col = self.line, self.col
                self._advance()
                self.tokens.append(Token(SINGLE_CHAR_OPS[ch], ch, start_line, start_col))
                continue

            # Unknown character: skipped
            self._advance()

        self.tokens.append(Token(TokenType.EOF, "", self.line, self.col))
        return self.tokens


def tokenize(source: str) -> List[Token]:
    return Lexer(source).tokenize()
