"""
Front-end tests: both lexers and the C-like parser.
"""

import pytest
from cpu8_compiler import asm_lexer
from cpu8_compiler.ast_nodes import (Assignment, BinaryExpression, CallExpression, DataType,
                                     ExpressionStatement, ForLoop, FunctionDeclaration,
                                     Identifier, IfStatement, Literal, ReturnStatement,
                                     UnaryExpression, VariableDeclaration, WhileLoop)
from cpu8_compiler.lexer import Lexer, TokenType
from cpu8_compiler.parser import Parser


def _types(source: str) -> list:
    return [t.type for t in Lexer(source).tokenize()]


def _parse(source: str):
    return Parser(Lexer(source).tokenize()).parse()


def _program(source: str):
    out = _parse(source)
    assert out.errors == []
    return out.program


def _init(expr_src: str):
    """Parse 'uint8 r = <expr>;' and return the initializer expression."""
    return _program(f"uint8 r = {expr_src};").body[0].initializer


# ─── High-level lexer ─────────────────────

class TestLexer:
    def test_keywords_and_identifiers(self):
        tokens = Lexer("uint8 count while whiley").tokenize()
        assert [t.type for t in tokens] == [
            TokenType.KW_UINT8, TokenType.IDENT, TokenType.KW_WHILE, TokenType.IDENT, TokenType.EOF]
        assert tokens[3].value == "whiley"

    def test_two_char_operators_win(self):
        assert _types("a==b!=c<=d>=e")[1::2][:4] == [
            TokenType.EQ, TokenType.NEQ, TokenType.LE, TokenType.GE]

    def test_numbers_keep_raw_text(self):
        tokens = Lexer("0x2A 0b1010 42").tokenize()
        assert [t.value for t in tokens[:3]] == ["0x2A", "0b1010", "42"]
        assert all(t.type == TokenType.NUMBER for t in tokens[:3])

    def test_comments_and_newlines_dropped(self):
        src = "// line\nuint8 /* block\n spanning */ x;"
        assert _types(src) == [TokenType.KW_UINT8, TokenType.IDENT, TokenType.SEMI, TokenType.EOF]

    def test_unterminated_block_comment(self):
        assert _types("x; /* never closed") == [TokenType.IDENT, TokenType.SEMI, TokenType.EOF]

    def test_strings_either_quote(self):
        tokens = Lexer("'A' \"hi\"").tokenize()
        assert [(t.type, t.value) for t in tokens[:2]] == [
            (TokenType.STRING, "A"), (TokenType.STRING, "hi")]

    def test_positions(self):
        tokens = Lexer("uint8 x;\n  halt();").tokenize()
        halt = tokens[3]
        assert (halt.value, halt.line, halt.col) == ("halt", 2, 3)

    def test_unknown_characters_skipped(self):
        assert _types("x @ $ y") == [TokenType.IDENT, TokenType.IDENT, TokenType.EOF]

    def test_non_ascii_digits_end_a_number(self):
        tokens = Lexer("1٣").tokenize()
        assert [(t.type, t.value) for t in tokens] == [
            (TokenType.NUMBER, "1"), (TokenType.EOF, "")]
        assert _init("1٣").value == 1


# ─── Assembly lexer ───────────────────────

class TestAsmLexer:
    def test_line_tokens(self):
        tokens = asm_lexer.tokenize("loop: ldi 0x05 ; comment\n.org 10")
        assert [(t.type.name, t.value) for t in tokens] == [
            ("LABEL", "LOOP"),
            ("IDENTIFIER", "LDI"),
            ("NUMBER", "0x05"),
            ("COMMENT", "; comment"),
            ("NEWLINE", "\n"),
            ("DIRECTIVE", ".ORG"),
            ("NUMBER", "10"),
            ("EOF", ""),
        ]

    def test_slash_comment_and_comma(self):
        types = [t.type for t in asm_lexer.tokenize("MOV A, B // copy")]
        assert types == [
            asm_lexer.TokenType.IDENTIFIER, asm_lexer.TokenType.IDENTIFIER,
            asm_lexer.TokenType.COMMA, asm_lexer.TokenType.IDENTIFIER,
            asm_lexer.TokenType.COMMENT, asm_lexer.TokenType.EOF]

    def test_non_ascii_digits_end_a_number(self):
        tokens = asm_lexer.tokenize("LDI 4٢")
        assert [t.value for t in tokens] == ["LDI", "4", ""]

    def test_line_numbers(self):
        tokens = asm_lexer.tokenize("NOP\n\nHLT")
        assert tokens[-2].value == "HLT"
        assert tokens[-2].line == 3


# ─── Expressions ──────────────────────────

class TestExpressionParsing:
    def test_literal_types(self):
        assert _init("0x10") == Literal(line=1, col=11, value=16, data_type=DataType.UINT8)
        assert _init("true").value is True
        assert _init("true").data_type is DataType.BOOL
        assert _init("'A'").value == "A"

    def test_additive_left_associative(self):
        expr = _init("1 - 2 - 3")
        assert expr.operator == "-"
        assert isinstance(expr.left, BinaryExpression)
        assert expr.right.value == 3

    def test_xor_binds_tighter_than_comparison(self):
        expr = _init("a < b ^ c")
        assert expr.operator == "<"
        assert expr.right.operator == "^"

    def test_comparison_binds_tighter_than_bitwise_and_or(self):
        expr = _init("a | b & c == d")
        assert expr.operator == "|"
        assert expr.right.operator == "&"
        assert expr.right.right.operator == "=="

    def test_parentheses(self):
        expr = _init("(1 + 2) ^ 3")
        assert expr.operator == "^"
        assert expr.left.operator == "+"

    def test_unary_chain(self):
        expr = _init("!~-x")
        assert isinstance(expr, UnaryExpression)
        assert [expr.operator, expr.operand.operator, expr.operand.operand.operator] == ["!", "~", "-"]
        assert isinstance(expr.operand.operand.operand, Identifier)

    def test_call_arguments(self):
        expr = _init("f(1, g(2), x + 1)")
        assert isinstance(expr, CallExpression)
        assert expr.callee == "f"
        assert len(expr.arguments) == 3
        assert isinstance(expr.arguments[1], CallExpression)


# ─── Statements ───────────────────────────

class TestStatementParsing:
    def test_function_declaration(self):
        func = _program("uint8 add(uint8 a, bool b) { return a; }").body[0]
        assert isinstance(func, FunctionDeclaration)
        assert func.return_type is DataType.UINT8
        assert [(p.name, p.data_type) for p in func.parameters] == [
            ("a", DataType.UINT8), ("b", DataType.BOOL)]
        assert isinstance(func.body.body[0], ReturnStatement)

    def test_declarations(self):
        body = _program("int8 x; bool flag = false; uint8 buf[8];").body
        assert all(isinstance(s, VariableDeclaration) for s in body)
        assert body[0].data_type is DataType.INT8 and body[0].initializer is None
        assert body[1].initializer.value is False
        assert body[2].is_array and body[2].array_size == 8

    def test_assignments(self):
        body = _program("x = 1; buf[2] = x;").body
        assert isinstance(body[0], Assignment) and body[0].index is None
        assert body[1].index.value == 2
        assert body[1].target.name == "buf"

    def test_expression_statement(self):
        stmt = _program("output(1, 2);").body[0]
        assert isinstance(stmt, ExpressionStatement)
        assert stmt.expression.callee == "output"

    def test_if_else_without_braces(self):
        stmt = _program("if (x) y = 1; else y = 2;").body[0]
        assert isinstance(stmt, IfStatement)
        assert isinstance(stmt.consequent, Assignment)
        assert isinstance(stmt.alternate, Assignment)

    def test_while(self):
        stmt = _program("while (x) { x = x - 1; }").body[0]
        assert isinstance(stmt, WhileLoop)
        assert len(stmt.body.body) == 1

    def test_for_clauses(self):
        stmt = _program("for (uint8 i = 0; i < 3; i = i + 1) { }").body[0]
        assert isinstance(stmt, ForLoop)
        assert isinstance(stmt.init, VariableDeclaration)
        assert stmt.condition.operator == "<"
        assert isinstance(stmt.update, Assignment)

    def test_for_empty_clauses(self):
        stmt = _program("for (;;) { halt(); }").body[0]
        assert stmt.init is None and stmt.condition is None and stmt.update is None

    def test_bare_return(self):
        func = _program("void f() { return; }").body[0]
        assert func.body.body[0].value is None


# ─── Error recovery ───────────────────────

class TestParseErrors:
    def test_errors_on_separate_statements(self):
        out = _parse("uint8 x = ;\nuint8 y = 5;\nuint8 z = ;")
        assert len(out.errors) == 2
        assert out.errors[0].startswith("Line 1:")
        assert out.errors[1].startswith("Line 3:")
        assert [s.name for s in out.program.body] == ["y"]

    def test_builtin_arity_checked_while_parsing(self):
        assert _parse("halt(1);").errors == ["Line 1: Function 'halt' expects 0 arguments, got 1"]

    def test_stray_brace(self):
        out = _parse("} uint8 x;")
        assert out.errors == ["Line 1: Unexpected token '}'"]
        assert len(out.program.body) == 1

    def test_missing_semicolon(self):
        assert _parse("uint8 x = 1").errors == ["Line 1: Expected ';' after variable declaration"]

    def test_invalid_number(self):
        assert _parse("uint8 x = 0b;").errors == ["Line 1: Invalid number '0b'"]

    def test_array_size_required(self):
        assert _parse("uint8 buf[];").errors == ["Line 1: Expected array size"]
        assert "at least one element" in _parse("uint8 buf[0];").errors[0]

    def test_call_on_non_identifier(self):
        assert _parse("uint8 r = 1(2);").errors == ["Line 1: Can only call functions"]

    def test_error_inside_function_reports_line(self):
        out = _parse("void main() {\n  uint8 x = 1;\n  x = ;\n}")
        assert out.errors[0] == "Line 3: Unexpected token ';' in expression"
        assert not out.ok


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
