"""
Test suite for the 8-bit CPU C-like compiler.

Tests cover:
  - Basic compilation and program layout (MAIN entry, FUNC_ labels)
  - Arithmetic and bitwise operators
  - Comparisons and unary operators (0/1 results)
  - Control flow (if/else, while, for, return)
  - Built-ins (input, output, delay, halt)
  - Arrays with constant indices
  - Semantic errors (undefined names, memory exhaustion, bad ports)
  - Determinism
"""

import pytest
from cpu8_compiler import compile_source
from cpu8_compiler.codegen import CodeGenError, CodeGenerator, MemoryArena
from cpu8_compiler.compiler import compile_high_level
from cpu8_compiler.lexer import Lexer
from cpu8_compiler.parser import Parser


def _compile(code: str) -> str:
    """Compile C-like source and return assembly text."""
    return compile_source(code)


def _lines(asm: str) -> list:
    """Return stripped non-empty non-comment instruction lines."""
    result = []
    for line in asm.split("\n"):
        s = line.strip()
        if s and not s.startswith(";") and not s.startswith(".") and not s.endswith(":"):
            result.append(s)
    return result


def _errors(code: str) -> list:
    result = compile_high_level(code)
    assert not result.success
    assert result.binary is None
    return result.errors


# ─── Basic compilation ─────────────────────

class TestBasicCompilation:
    def test_main_halt(self):
        asm = _compile("void main() { halt(); }")
        assert "FUNC_MAIN:" in asm
        assert "CALL FUNC_MAIN" in asm
        binary = compile_source("void main() { halt(); }", output="binary")
        assert 0xFF in binary

    def test_main_halt_exact_binary(self):
        binary = compile_source("void main() { halt(); }", output="binary")
        # LDI 0xFF; CALL FUNC_MAIN; HLT; FUNC_MAIN: HLT; FUNC_MAIN_END: RET
        assert binary == bytes([0x13, 0xFF, 0x45, 0x05, 0xFF, 0xFF, 0x46])

    def test_header_and_entry(self):
        asm = _compile("void main() {}")
        assert asm.startswith("; Generated C-like code for CPU 8-Bit\n")
        assert ".ORG 0x00" in asm
        assert "MAIN:" in asm
        assert _lines(asm)[0] == "LDI 0xFF"

    def test_without_main_ends_in_hlt(self):
        asm = _compile("uint8 x = 1;")
        assert "CALL" not in asm
        assert _lines(asm)[-1] == "HLT"

    def test_literal_store(self):
        asm = _compile("uint8 x = 42;")
        assert "LDI 42" in asm
        assert "STA 0x80" in asm

    def test_global_initialiser_runs_before_main(self):
        asm = _compile("uint8 x = 5; void main() { halt(); }")
        assert asm.index("STA 0x80") < asm.index("CALL FUNC_MAIN")

    def test_function_call(self):
        asm = _compile("""
        uint8 add(uint8 a, uint8 b) {
            return a + b;
        }
        void main() {
            uint8 result = add(5, 3);
        }
        """)
        assert "FUNC_ADD:" in asm
        assert "CALL FUNC_ADD" in asm
        assert "RET" in asm
        assert "STA 0x80    ; Parameter a" in asm
        assert "STA 0x81    ; Parameter b" in asm

    def test_bool_and_string_literals(self):
        asm = _compile("bool f = true; bool g = false; uint8 c = 'A'; uint8 e = \"\";")
        assert "LDI 1" in asm
        assert "LDI 0" in asm
        assert "LDI 65" in asm
        assert "Empty string" in asm


# ─── Expressions ──────────────────────────

class TestExpressions:
    def test_add(self):
        asm = _compile("uint8 x = 5 + 3;")
        assert "ADD 0x81" in asm

    def test_subtract_reloads_left(self):
        lines = _lines(_compile("uint8 x = 10 - 3;"))
        # left spilled to 0x81, right to 0x82, then 0x81 - 0x82
        assert lines[-5:-2] == [
            "STA 0x82    ; Store right operand",
            "LDA 0x81    ; Load left operand",
            "SUB 0x82    ; left - right",
        ]

    def test_bitwise(self):
        asm = _compile("uint8 x = 0xFF & 0x0F; uint8 y = 1 | 2; uint8 z = 3 ^ 4;")
        assert "AND 0x" in asm
        assert "OR 0x" in asm
        assert "XOR 0x" in asm

    def test_less_than_uses_borrow(self):
        asm = _compile("uint8 a = 1; uint8 b = a < 2;")
        assert "JC CMP_TRUE_0" in asm
        assert "CMP_END_1:" in asm

    def test_greater_than_swaps_operands(self):
        asm = _compile("uint8 a = 1; uint8 b = a > 2;")
        assert "Compare right - left" in asm
        assert "JC CMP_TRUE_0" in asm

    def test_equality(self):
        asm = _compile("uint8 a = 1; bool b = a == 1; bool c = a != 1;")
        assert "JZ CMP_TRUE_0" in asm
        assert "JNZ CMP_TRUE_2" in asm

    def test_unary_ops(self):
        assert "NOT" in _compile("uint8 x = ~5;")
        neg = _lines(_compile("int8 x = -5;"))
        assert neg[-4:-2] == ["NOT", "ADI 1"]
        lnot = _compile("bool x = !0;")
        assert "ORI 0" in lnot
        assert "JZ CMP_TRUE_0" in lnot


# ─── Control flow ─────────────────────────

class TestControlFlow:
    def test_if(self):
        asm = _compile("uint8 x = 1; if (x) { x = 0; }")
        assert "JZ END_IF_1" in asm
        assert "END_IF_1:" in asm
        assert "ELSE_0:" not in asm

    def test_if_else(self):
        asm = _compile("""
        uint8 x = 1;
        if (x) { x = 0; }
        else { x = 2; }
        """)
        assert "JZ ELSE_0" in asm
        assert "JMP END_IF_1" in asm
        assert "ELSE_0:" in asm

    def test_while(self):
        asm = _compile("uint8 x = 3; while (x) { x = x - 1; }")
        assert "WHILE_LOOP_0:" in asm
        assert "JZ WHILE_END_1" in asm
        assert "JMP WHILE_LOOP_0" in asm

    def test_for(self):
        asm = _compile("for (uint8 i = 0; i < 3; i = i + 1) { output(1, i); }")
        assert "FOR_LOOP_0:" in asm
        assert "FOR_UPDATE_1:" in asm
        assert "FOR_END_2:" in asm
        assert "OUT 1" in asm

    def test_return_jumps_to_exit(self):
        asm = _compile("uint8 f() { return 7; } void main() { uint8 v = f(); }")
        assert "JMP FUNC_F_END" in asm
        assert "FUNC_F_END:" in asm

    def test_condition_sets_flags(self):
        lines = _lines(_compile("uint8 x = 1; while (x) { x = 0; }"))
        i = lines.index("JZ WHILE_END_1")
        assert lines[i - 1] == "ORI 0"


# ─── Built-ins ────────────────────────────

class TestBuiltins:
    def test_input(self):
        assert "IN 3" in _compile("uint8 v = input(3);")

    def test_output(self):
        assert _lines(_compile("output(2, 9);")) == ["LDI 0xFF", "LDI 9", "OUT 2", "HLT"]

    def test_delay(self):
        asm = _compile("delay(10);")
        assert "DELAY_LOOP_0:" in asm
        assert "SUI 1" in asm
        assert "JNZ DELAY_LOOP_0" in asm
        assert "DELAY_END_1:" in asm

    def test_non_constant_port(self):
        errors = _errors("uint8 p = 1; output(p, 2);")
        assert "must be a constant" in errors[0]

    def test_cannot_redefine_builtin(self):
        errors = _errors("void halt() { }")
        assert "built-in" in errors[0]


# ─── Arrays ───────────────────────────────

class TestArrays:
    def test_constant_index_store(self):
        asm = _compile("uint8 buf[4]; buf[2] = 7;")
        assert "STA 0x82" in asm

    def test_out_of_bounds(self):
        assert "out of bounds" in _errors("uint8 buf[4]; buf[4] = 1;")[0]

    def test_non_constant_index(self):
        assert "must be a constant" in _errors("uint8 i = 0; uint8 buf[4]; buf[i] = 1;")[0]

    def test_array_reserves_cells(self):
        asm = _compile("uint8 buf[4]; uint8 after = 1;")
        assert "STA 0x84" in asm


# ─── Semantic errors ──────────────────────

class TestSemanticErrors:
    def test_undefined_function(self):
        errors = _errors("undefined_function();")
        assert len(errors) >= 1
        assert errors[0] == "Code generation error: Line 1: Undefined function: undefined_function"

    def test_undefined_variable(self):
        assert "Undefined variable: x" in _errors("x = 1;")[0]

    def test_nested_function(self):
        assert "Nested function" in _errors("void main() { void inner() { } }")[0]

    def test_return_outside_function(self):
        assert "outside of a function" in _errors("return 1;")[0]

    def test_out_of_data_memory(self):
        assert "Out of data memory" in _errors("uint8 big[200];")[0]

    def test_literal_too_large(self):
        assert "does not fit in 8 bits" in _errors("uint8 x = 300;")[0]

    def test_user_function_arity(self):
        errors = _errors("void f(uint8 a) { } void main() { f(); }")
        assert "expects 1 arguments, got 0" in errors[0]

    def test_locals_do_not_leak(self):
        assert "Undefined variable: y" in _errors("void f() { uint8 y = 1; } uint8 z = y;")[0]

    def test_function_label_clash(self):
        errors = _errors("void main() { } void main_end() { }")
        assert errors == [
            "Code generation error: Line 1: Function 'main_end' clashes with the labels "
            "of another function"]
        assert "clashes" in _errors("void f_end() { } void f() { }")[0]

    def test_code_overlapping_data_memory(self):
        body = " x = x + 0;" * 20
        errors = _errors(f"uint8 x = 0; void main() {{{body} }}")
        assert len(errors) == 1
        assert errors[0].startswith("Program code (")
        assert errors[0].endswith("bytes) overlaps data memory at 0x80")

    def test_code_just_below_data_memory(self):
        body = " x = x + 0;" * 5
        result = compile_high_level(f"uint8 x = 0; void main() {{{body} }}")
        assert result.success, result.errors
        assert len(result.binary) <= 0x80

    def test_arena_limit(self):
        arena = MemoryArena()
        assert arena.allocate(0x7F) == 0x80
        assert arena.allocate(1) == 0xFF
        with pytest.raises(CodeGenError, match="Out of data memory"):
            arena.allocate(1)


# ─── Determinism ──────────────────────────

class TestDeterminism:
    SRC = """
    uint8 counter = 0;
    void main() {
        while (counter < 10) {
            output(1, counter);
            counter = counter + 1;
            delay(5);
        }
        halt();
    }
    """

    def test_same_binary_twice(self):
        first = compile_source(self.SRC, output="binary")
        second = compile_source(self.SRC, output="binary")
        assert first == second
        assert len(first) > 0

    def test_generator_reuse_resets_state(self):
        program = Parser(Lexer(self.SRC).tokenize()).parse().program
        gen = CodeGenerator()
        assert gen.generate(program) == gen.generate(program)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
