"""
Assembly parser (pass 1) for the 8-bit CPU.

Walks the token stream from asm_lexer, tracking a running address counter:

  LABEL:        binds the name to the current address (duplicates are errors)
  .ORG addr     moves the address counter (addr must be 0-255)
  .DB byte      reserves one byte of data
  .DW word      reserves two bytes of data (little-endian)
  MNEMONIC ...  looks up the instruction, reads exactly as many
                comma-separated operands as the table says

Nothing is encoded here. The result is a ParseResult holding the ordered
items, the label table and every syntax error found. A bad statement does
not stop the parse: the error is recorded with its line number and the
parser skips ahead to the next line or statement start.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .asm_lexer import Lexer, Token, TokenType
from .instruction_set import ADDRESS_SPACE, InstructionDef, lookup_instruction

logger = logging.getLogger(__name__)

DIRECTIVES = ('.ORG', '.DB', '.DW')
DIRECTIVE_SIZES = {'.ORG': 0, '.DB': 1, '.DW': 2}


class ParseError(Exception):
    def __init__(self, message: str, token: Token):
        self.token = token
        self.line = token.line
        self.message = message
        super().__init__(f"Line {token.line}: {message}")


# ──────────────────────────────────────────────
# Parse result types
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Operand:
    """One instruction operand as written in the source.

    kind is 'number' (value holds an int), 'symbol' (register or label
    name, upper-cased) or 'string' (raw text between the quotes).
    """
    kind: str
    value: Union[int, str]

    def __str__(self):
        if self.kind == 'string':
            return f'"{self.value}"'
        return str(self.value)


@dataclass
class ParsedInstruction:
    mnemonic: str
    definition: InstructionDef
    operands: List[Operand]
    line: int
    address: int


@dataclass
class ParsedDirective:
    name: str        # '.ORG', '.DB' or '.DW'
    value: int
    line: int
    address: int     # address before the directive took effect


@dataclass
class ParseResult:
    instructions: List[ParsedInstruction] = field(default_factory=list)
    labels: Dict[str, int] = field(default_factory=dict)
    directives: List[ParsedDirective] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    # Instructions and directives interleaved in source order
    items: List[Union[ParsedInstruction, ParsedDirective]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def parse_number(text: str) -> int:
    """Convert a NUMBER token's raw text: 0x.. hex, 0b.. binary, else decimal.

    Raises ValueError for malformed literals such as a bare '0x'.
    """
    lowered = text.lower()
    if lowered.startswith('0x'):
        return int(lowered[2:], 16)
    if lowered.startswith('0b'):
        return int(lowered[2:], 2)
    return int(lowered, 10)


# ──────────────────────────────────────────────
# Parser
# ──────────────────────────────────────────────

class Parser:
    """Pass-1 parser: tokens in, ParseResult out."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.address = 0
        self.result = ParseResult()

    # ── Helpers ─────────────────────────────

    def _cur(self) -> Token:
        return self.tokens[self.pos]

    def _prev(self) -> Optional[Token]:
        return self.tokens[self.pos - 1] if self.pos > 0 else None

    def _at(self, *types: TokenType) -> bool:
        return self._cur().type in types

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _at_end(self) -> bool:
        return self._cur().type == TokenType.EOF

    def _number(self, tok: Token) -> int:
        try:
            return parse_number(tok.value)
        except ValueError:
            raise ParseError(f"Invalid number '{tok.value}'", tok) from None

    # ── Top level ───────────────────────────

    def parse(self) -> ParseResult:
        """Run pass 1 over the whole token stream."""
        self.pos = 0
        self.address = 0
        self.result = ParseResult()

        while not self._at_end():
            if self._at(TokenType.NEWLINE, TokenType.COMMENT):
                self._advance()
                continue

            error = self._parse_statement_or_error()
            if error is not None:
                self.result.errors.append(str(error))
                self._synchronize()

        logger.debug(
            f"pass 1: {len(self.result.instructions)} instructions, "
            f"{len(self.result.directives)} directives, "
            f"{len(self.result.labels)} labels, {len(self.result.errors)} errors"
        )
        return self.result

    def _parse_statement_or_error(self) -> Optional[ParseError]:
        """Parse one statement; hand back the syntax error instead of raising it."""
        try:
            self._parse_statement()
        except ParseError as e:
            return e
        return None

    def _synchronize(self):
        """Skip to the next line or the next label/directive/instruction."""
        self._advance()
        while not self._at_end():
            prev = self._prev()
            if prev is not None and prev.type == TokenType.NEWLINE:
                return
            if self._at(TokenType.LABEL, TokenType.DIRECTIVE, TokenType.IDENTIFIER):
                return
            self._advance()

    def _parse_statement(self):
        tok = self._cur()
        if tok.type == TokenType.LABEL:
            self._parse_label()
        elif tok.type == TokenType.DIRECTIVE:
            self._parse_directive()
        elif tok.type == TokenType.IDENTIFIER:
            self._parse_instruction()
        else:
            raise ParseError(f"Unexpected token '{tok.value}'", tok)

    # ── Statements ──────────────────────────

    def _parse_label(self):
        tok = self._advance()
        if tok.value in self.result.labels:
            raise ParseError(f"Label '{tok.value}' already defined", tok)
        self.result.labels[tok.value] = self.address

    def _parse_directive(self):
        tok = self._advance()
        name = tok.value
        if name not in DIRECTIVES:
            raise ParseError(f"Unknown directive '{name}'", tok)

        arg = self._cur()
        if arg.type != TokenType.NUMBER:
            raise ParseError(f"{name} expects a numeric argument", arg)
        self._advance()
        value = self._number(arg)
        if name == '.ORG' and not 0 <= value < ADDRESS_SPACE:
            raise ParseError(
                f".ORG address {value} outside the address space (0-{ADDRESS_SPACE - 1})", arg)

        directive = ParsedDirective(name, value, tok.line, self.address)
        self.result.directives.append(directive)
        self.result.items.append(directive)

        if name == '.ORG':
            self.address = value
        else:
            self.address += DIRECTIVE_SIZES[name]

    def _parse_instruction(self):
        tok = self._advance()
        definition = lookup_instruction(tok.value)
        if definition is None:
            raise ParseError(f"Unknown instruction '{tok.value}'", tok)

        operands: List[Operand] = []
        for i in range(definition.operands):
            if i > 0:
                if not self._at(TokenType.COMMA):
                    raise ParseError(
                        f"{definition.mnemonic} expects {definition.operands} operands", self._cur())
                self._advance()
            operands.append(self._parse_operand(definition))

        instr = ParsedInstruction(definition.mnemonic, definition, operands, tok.line, self.address)
        self.result.instructions.append(instr)
        self.result.items.append(instr)
        self.address += definition.size

    def _parse_operand(self, definition: InstructionDef) -> Operand:
        tok = self._cur()
        if tok.type == TokenType.NUMBER:
            self._advance()
            return Operand('number', self._number(tok))
        if tok.type == TokenType.IDENTIFIER:
            self._advance()
            return Operand('symbol', tok.value)
        if tok.type == TokenType.STRING:
            self._advance()
            return Operand('string', tok.value)
        raise ParseError(f"Expected operand for {definition.mnemonic}", tok)


def parse(source: str) -> ParseResult:
    """Tokenize and run pass 1 over assembly source."""
    return Parser(Lexer(source).tokenize()).parse()
