"""
Recursive-descent parser for the 8-bit CPU C-like language.

Parses a token stream from the Lexer into an AST defined in ast_nodes.
Supported constructs:

  - Function definitions:   type name(type a, type b) { ... }
  - Variable declarations:  type name;  type name = expr;  type name[4];
  - Assignments:            name = expr;  name[index] = expr;
  - Control flow:           if/else, while, for, return, { blocks }
  - Calls:                  user functions and the built-ins
                            input(port), output(port, value), delay(n), halt()

Expression precedence, loosest first:

    |   &   == !=   < <= > >=   ^   + -   unary ! ~ -   call   primary

Note '^' binds tighter than the comparisons and '|'/'&' sit where C puts
'||'/'&&'. Both '|' and '&' are still bitwise operators.

A syntax error does not end the parse. The statement loop records it as
"Line N: message" and skips ahead to the next ';' or the next token that
can start a statement, so several independent errors can be reported.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .asm_parser import parse_number
from .ast_nodes import *
from .lexer import TYPE_KEYWORDS, Token, TokenType

logger = logging.getLogger(__name__)

TYPE_MAP = {
    TokenType.KW_UINT8: DataType.UINT8,
    TokenType.KW_INT8: DataType.INT8,
    TokenType.KW_BOOL: DataType.BOOL,
    TokenType.KW_VOID: DataType.VOID,
}

SYNC_TOKENS = (TokenType.KW_IF, TokenType.KW_WHILE, TokenType.KW_FOR, TokenType.KW_RETURN) + TYPE_KEYWORDS


class ParseError(Exception):
    def __init__(self, message: str, token: Token):
        self.token = token
        self.line = token.line
        self.message = message
        super().__init__(f"Line {token.line}: {message}")


@dataclass
class StatementOutcome:
    """Result of parsing one top-level statement: a node or the error that stopped it."""
    node: Optional[ASTNode] = None
    error: Optional[ParseError] = None


@dataclass
class ParseOutput:
    program: Program
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class Parser:
    """Recursive descent parser producing an AST from tokens."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.errors: List[str] = []

    # ── Helpers ─────────────────────────────

    def _cur(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset: int = 0) -> Token:
        i = self.pos + offset
        if i < len(self.tokens):
            return self.tokens[i]
        return self.tokens[-1]  # EOF

    def _previous(self) -> Token:
        return self.tokens[self.pos - 1] if self.pos > 0 else self.tokens[0]

    def _at(self, *types: TokenType) -> bool:
        return self._cur().type in types

    def _at_end(self) -> bool:
        return self._cur().type == TokenType.EOF

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _expect(self, ttype: TokenType, msg: str = "") -> Token:
        if self._cur().type != ttype:
            if not msg:
                msg = f"Expected {ttype.value!r}"
            raise ParseError(msg, self._cur())
        return self._advance()

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._cur().type in types:
            return self._advance()
        return None

    # ── Top level ───────────────────────────

    def parse(self) -> ParseOutput:
        """Parse the whole token stream, collecting syntax errors as it goes."""
        self.pos = 0
        self.errors = []
        program = Program(line=1, col=1)

        while not self._at_end():
            outcome = self._parse_statement_or_error()
            if outcome.error is not None:
                self.errors.append(str(outcome.error))
                self._synchronize()
            elif outcome.node is not None:
                program.body.append(outcome.node)

        logger.debug(f"parsed {len(program.body)} top-level statements, {len(self.errors)} errors")
        return ParseOutput(program, list(self.errors))

    def _parse_statement_or_error(self) -> StatementOutcome:
        try:
            return StatementOutcome(node=self._parse_statement())
        except ParseError as e:
            return StatementOutcome(error=e)

    def _synchronize(self):
        """Skip past the broken statement: stop after ';' or before a statement keyword."""
        self._advance()
        while not self._at_end():
            if self._previous().type == TokenType.SEMI:
                return
            if self._at(*SYNC_TOKENS):
                return
            self._advance()

    # ── Types ───────────────────────────────

    def _is_type_start(self) -> bool:
        return self._at(*TYPE_KEYWORDS)

    def _parse_type(self) -> DataType:
        tok = self._cur()
        if tok.type not in TYPE_MAP:
            raise ParseError("Expected type specifier", tok)
        self._advance()
        return TYPE_MAP[tok.type]

    # ── Statements ──────────────────────────

    def _parse_statement(self) -> ASTNode:
        if self._is_type_start():
            if self._peek(1).type == TokenType.IDENT and self._peek(2).type == TokenType.LPAREN:
                return self._parse_function()
            return self._parse_var_decl()

        if self._at(TokenType.KW_IF):
            return self._parse_if()
        if self._at(TokenType.KW_WHILE):
            return self._parse_while()
        if self._at(TokenType.KW_FOR):
            return self._parse_for()
        if self._at(TokenType.KW_RETURN):
            return self._parse_return()
        if self._at(TokenType.LBRACE):
            return self._parse_block()

        if self._at(TokenType.IDENT):
            if self._peek(1).type in (TokenType.ASSIGN, TokenType.LBRACKET):
                return self._parse_assignment()
            tok = self._cur()
            expr = self._parse_expression()
            self._expect(TokenType.SEMI, "Expected ';' after expression")
            return ExpressionStatement(line=tok.line, col=tok.col, expression=expr)

        tok = self._cur()
        raise ParseError(f"Unexpected token '{tok.value}'", tok)

    def _parse_function(self) -> FunctionDeclaration:
        tok = self._cur()
        return_type = self._parse_type()
        name = self._expect(TokenType.IDENT, "Expected function name").value
        self._expect(TokenType.LPAREN, "Expected '(' after function name")

        params: List[Parameter] = []
        if not self._at(TokenType.RPAREN):
            while True:
                ptok = self._cur()
                ptype = self._parse_type()
                pname = self._expect(TokenType.IDENT, "Expected parameter name").value
                params.append(Parameter(line=ptok.line, col=ptok.col, name=pname, data_type=ptype))
                if not self._match(TokenType.COMMA):
                    break
        self._expect(TokenType.RPAREN, "Expected ')' after parameters")

        body = self._parse_block()
        return FunctionDeclaration(line=tok.line, col=tok.col, name=name,
                                   return_type=return_type, parameters=params, body=body)

    def _parse_var_decl(self, require_semi: bool = True, allow_array: bool = True) -> VariableDeclaration:
        tok = self._cur()
        dtype = self._parse_type()
        name = self._expect(TokenType.IDENT, "Expected variable name").value
        decl = VariableDeclaration(line=tok.line, col=tok.col, name=name, data_type=dtype)

        if allow_array and self._match(TokenType.LBRACKET):
            size_tok = self._expect(TokenType.NUMBER, "Expected array size")
            decl.is_array = True
            decl.array_size = self._number(size_tok)
            if decl.array_size < 1:
                raise ParseError(f"Array '{name}' must have at least one element", size_tok)
            self._expect(TokenType.RBRACKET, "Expected ']' after array size")

        if self._match(TokenType.ASSIGN):
            decl.initializer = self._parse_expression()

        if require_semi:
            self._expect(TokenType.SEMI, "Expected ';' after variable declaration")
        return decl

    def _parse_assignment(self, require_semi: bool = True, allow_index: bool = True) -> Assignment:
        tok = self._expect(TokenType.IDENT, "Expected variable name")
        target = Identifier(line=tok.line, col=tok.col, name=tok.value)

        index = None
        if allow_index and self._match(TokenType.LBRACKET):
            index = self._parse_expression()
            self._expect(TokenType.RBRACKET, "Expected ']' after array index")

        self._expect(TokenType.ASSIGN, "Expected '=' in assignment")
        value = self._parse_expression()
        if require_semi:
            self._expect(TokenType.SEMI, "Expected ';' after assignment")
        return Assignment(line=tok.line, col=tok.col, target=target, value=value, index=index)

    def _parse_block(self) -> BlockStatement:
        tok = self._expect(TokenType.LBRACE, "Expected '{'")
        stmts: List[ASTNode] = []
        while not self._at(TokenType.RBRACE) and not self._at_end():
            stmts.append(self._parse_statement())
        self._expect(TokenType.RBRACE, "Expected '}'")
        return BlockStatement(line=tok.line, col=tok.col, body=stmts)

    def _parse_if(self) -> IfStatement:
        tok = self._advance()  # 'if'
        self._expect(TokenType.LPAREN, "Expected '(' after 'if'")
        cond = self._parse_expression()
        self._expect(TokenType.RPAREN, "Expected ')' after if condition")
        consequent = self._parse_statement()
        alternate = None
        if self._match(TokenType.KW_ELSE):
            alternate = self._parse_statement()
        return IfStatement(line=tok.line, col=tok.col, condition=cond,
                           consequent=consequent, alternate=alternate)

    def _parse_while(self) -> WhileLoop:
        tok = self._advance()  # 'while'
        self._expect(TokenType.LPAREN, "Expected '(' after 'while'")
        cond = self._parse_expression()
        self._expect(TokenType.RPAREN, "Expected ')' after while condition")
        body = self._parse_statement()
        return WhileLoop(line=tok.line, col=tok.col, condition=cond, body=body)

    def _parse_for(self) -> ForLoop:
        tok = self._advance()  # 'for'
        self._expect(TokenType.LPAREN, "Expected '(' after 'for'")

        init = None
        if self._is_type_start():
            init = self._parse_var_decl(require_semi=False, allow_array=False)
        elif self._at(TokenType.IDENT):
            init = self._parse_assignment(require_semi=False, allow_index=False)
        self._expect(TokenType.SEMI, "Expected ';' after for init")

        cond = None
        if not self._at(TokenType.SEMI):
            cond = self._parse_expression()
        self._expect(TokenType.SEMI, "Expected ';' after for condition")

        update = None
        if not self._at(TokenType.RPAREN):
            update = self._parse_assignment(require_semi=False, allow_index=False)
        self._expect(TokenType.RPAREN, "Expected ')' after for clauses")

        body = self._parse_statement()
        return ForLoop(line=tok.line, col=tok.col, init=init, condition=cond,
                       update=update, body=body)

    def _parse_return(self) -> ReturnStatement:
        tok = self._advance()  # 'return'
        value = None
        if not self._at(TokenType.SEMI):
            value = self._parse_expression()
        self._expect(TokenType.SEMI, "Expected ';' after return")
        return ReturnStatement(line=tok.line, col=tok.col, value=value)

    # ── Expressions (precedence climbing) ───

    def _parse_expression(self) -> Expression:
        return self._parse_or()

    def _binary_level(self, next_level, *ops: TokenType) -> Expression:
        left = next_level()
        while self._at(*ops):
            op_tok = self._advance()
            right = next_level()
            left = BinaryExpression(line=op_tok.line, col=op_tok.col,
                                    operator=op_tok.value, left=left, right=right)
        return left

    def _parse_or(self) -> Expression:
        return self._binary_level(self._parse_and, TokenType.PIPE)

    def _parse_and(self) -> Expression:
        return self._binary_level(self._parse_equality, TokenType.AMP)

    def _parse_equality(self) -> Expression:
        return self._binary_level(self._parse_relational, TokenType.EQ, TokenType.NEQ)

    def _parse_relational(self) -> Expression:
        return self._binary_level(self._parse_xor,
                                  TokenType.LT, TokenType.LE, TokenType.GT, TokenType.GE)

    def _parse_xor(self) -> Expression:
        return self._binary_level(self._parse_additive, TokenType.CARET)

    def _parse_additive(self) -> Expression:
        return self._binary_level(self._parse_unary, TokenType.PLUS, TokenType.MINUS)

    def _parse_unary(self) -> Expression:
        if self._at(TokenType.BANG, TokenType.TILDE, TokenType.MINUS):
            op_tok = self._advance()
            operand = self._parse_unary()
            return UnaryExpression(line=op_tok.line, col=op_tok.col,
                                   operator=op_tok.value, operand=operand)
        return self._parse_call()

    def _parse_call(self) -> Expression:
        expr = self._parse_primary()
        while self._at(TokenType.LPAREN):
            paren = self._advance()
            if not isinstance(expr, Identifier):
                raise ParseError("Can only call functions", paren)
            expr = self._finish_call(expr)
        return expr

    def _finish_call(self, callee: Identifier) -> CallExpression:
        args: List[Expression] = []
        if not self._at(TokenType.RPAREN):
            while True:
                args.append(self._parse_expression())
                if not self._match(TokenType.COMMA):
                    break
        close = self._expect(TokenType.RPAREN, "Expected ')' after arguments")

        builtin = BUILTIN_FUNCTIONS.get(callee.name)
        if builtin is not None and len(args) != builtin.arity:
            raise ParseError(
                f"Function '{callee.name}' expects {builtin.arity} arguments, got {len(args)}",
                close)

        return CallExpression(line=callee.line, col=callee.col, callee=callee.name, arguments=args)

    def _parse_primary(self) -> Expression:
        tok = self._cur()

        if tok.type in (TokenType.KW_TRUE, TokenType.KW_FALSE):
            self._advance()
            return Literal(line=tok.line, col=tok.col,
                           value=tok.type == TokenType.KW_TRUE, data_type=DataType.BOOL)

        if tok.type == TokenType.NUMBER:
            self._advance()
            return Literal(line=tok.line, col=tok.col, value=self._number(tok),
                           data_type=DataType.UINT8)

        if tok.type == TokenType.STRING:
            self._advance()
            return Literal(line=tok.line, col=tok.col, value=tok.value, data_type=DataType.UINT8)

        if tok.type == TokenType.IDENT:
            self._advance()
            return Identifier(line=tok.line, col=tok.col, name=tok.value)

        if tok.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "Expected ')' after expression")
            return expr

        raise ParseError(f"Unexpected token '{tok.value}' in expression", tok)

    def _number(self, tok: Token) -> int:
        try:
            return parse_number(tok.value)
        except ValueError:
            raise ParseError(f"Invalid number '{tok.value}'", tok) from None


def parse(tokens: List[Token]) -> ParseOutput:
    return Parser(tokens).parse()
