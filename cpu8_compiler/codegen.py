"""
Code generator for the 8-bit CPU C-like language.

Translates the AST into assembly text for the 8-bit CPU assembler.

Register usage:
  - A (accumulator): every expression leaves its value here
  - Temporaries are spilled to data memory, never to B

Calling convention:
  - Each parameter owns a fixed data-memory cell, assigned when the
    function signature is collected
  - The caller stores argument i into parameter cell i, then CALLs
  - The return value is left in A
  - No recursion: a nested call to the same function overwrites its
    parameter cells

Memory layout:
  - $00-$7F: code (the program starts at .ORG 0x00 with the MAIN entry)
  - $80-$FF: data arena for variables, parameters and temporaries.
    Cells are handed out in order and never reused within one run.

Generated program layout:
  MAIN: stack setup, top-level statements in source order,
        CALL FUNC_MAIN (when main exists), HLT,
        then every function body: FUNC_<NAME>: ... FUNC_<NAME>_END: RET
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .ast_nodes import *

logger = logging.getLogger(__name__)

DATA_MEMORY_BASE = 0x80
DATA_MEMORY_LIMIT = 0x100

HEADER_LINES = [
    "; Generated C-like code for CPU 8-Bit",
    "; Compiled from high-level language",
    "",
    ".ORG 0x00",
    "",
]

ENTRY_LINES = [
    "MAIN:",
    "    ; Initialize stack pointer",
    "    LDI 0xFF",
    "    ; Stack setup would go here in a real implementation",
    "",
]

# Jump taken when the comparison holds, after A = lhs - rhs (or rhs - lhs when swapped)
COMPARISON_JUMPS = {
    "==": ("JZ", False),
    "!=": ("JNZ", False),
    "<":  ("JC", False),     # lhs - rhs borrows
    ">=": ("JNC", False),
    ">":  ("JC", True),      # rhs - lhs borrows
    "<=": ("JNC", True),
}

SIMPLE_BINARY_OPS = {
    "+": "ADD",
    "&": "AND",
    "|": "OR",
    "^": "XOR",
}


class CodeGenError(Exception):
    def __init__(self, message: str, node: Optional[ASTNode] = None):
        self.node = node
        self.line = node.line if node is not None else 0
        super().__init__(f"Line {self.line}: {message}" if self.line else message)


# ──────────────────────────────────────────────
# Symbol tracking
# ──────────────────────────────────────────────

@dataclass
class Variable:
    name: str
    data_type: DataType
    address: int
    is_array: bool = False
    array_size: int = 1


@dataclass
class FunctionInfo:
    name: str
    return_type: DataType
    parameters: List[Variable] = field(default_factory=list)
    start_label: str = ""
    end_label: str = ""


class MemoryArena:
    """Bump allocator over the data segment. There is no free."""

    def __init__(self, base: int = DATA_MEMORY_BASE, limit: int = DATA_MEMORY_LIMIT):
        self.base = base
        self.limit = limit
        self.cursor = base

    def allocate(self, size: int = 1, node: Optional[ASTNode] = None) -> int:
        if self.cursor + size > self.limit:
            raise CodeGenError(
                f"Out of data memory: need {size} byte(s) at 0x{self.cursor:02x}, "
                f"limit is 0x{self.limit:02x}", node)
        addr = self.cursor
        self.cursor += size
        return addr

    @property
    def used(self) -> int:
        return self.cursor - self.base


# ──────────────────────────────────────────────
# Code generator
# ──────────────────────────────────────────────

class CodeGenerator:
    """Generates 8-bit CPU assembly from an AST.

    All symbol state is reset at the start of every generate() call, so one
    instance can be reused, but it must not be shared between threads.
    """

    def __init__(self):
        self._reset()

    def _reset(self):
        self._lines: List[str] = []
        self._variables: Dict[str, Variable] = {}
        self._functions: Dict[str, FunctionInfo] = {}
        self._label_counter = 0
        self._arena = MemoryArena()
        self._current_function: Optional[FunctionInfo] = None

    # ── Label generation ──────────────────────

    def _label(self, prefix: str) -> str:
        label = f"{prefix}_{self._label_counter}"
        self._label_counter += 1
        return label

    # ── Output helpers ────────────────────────

    def _emit(self, line: str):
        self._lines.append(f"    {line}")

    def _emit_label(self, label: str):
        self._lines.append(f"{label}:")

    def _emit_comment(self, text: str):
        self._lines.append(f"    ; {text}")

    def _emit_blank(self):
        self._lines.append("")

    @staticmethod
    def _addr(val: int) -> str:
        return f"0x{val:02x}"

    def _emit_test_zero(self):
        """Set Z from A without changing it. Loads do not update flags."""
        self._emit("ORI 0")

    # ── Main generation entry point ───────────

    def generate(self, program: Program) -> str:
        """Generate complete assembly text from a Program AST."""
        self._reset()

        self._lines.extend(HEADER_LINES)
        self._lines.extend(ENTRY_LINES)

        # First pass: signatures and parameter cells
        functions: List[FunctionDeclaration] = []
        for stmt in program.body:
            if isinstance(stmt, FunctionDeclaration):
                self._collect_function(stmt)
                functions.append(stmt)

        # Second pass: top-level code, then the call into main, then bodies
        for stmt in program.body:
            if not isinstance(stmt, FunctionDeclaration):
                self._gen_statement(stmt)

        if "main" in self._functions:
            self._emit(f"CALL {self._functions['main'].start_label}")
        self._emit("HLT")
        self._emit_blank()

        for func in functions:
            self._gen_function(func)

        logger.debug(
            f"generated {len(self._lines)} lines, {len(self._functions)} functions, "
            f"{self._arena.used} bytes of data memory"
        )
        return "\n".join(self._lines) + "\n"

    # ── Functions ─────────────────────────────

    def _collect_function(self, decl: FunctionDeclaration):
        if decl.name in BUILTIN_FUNCTIONS:
            raise CodeGenError(f"Cannot redefine built-in function '{decl.name}'", decl)
        start_label = f"FUNC_{decl.name.upper()}"
        end_label = f"{start_label}_END"
        if decl.name in self._functions:
            raise CodeGenError(f"Function '{decl.name}' already defined", decl)
        # main's exit label FUNC_MAIN_END is also main_end's entry label
        taken = {label for f in self._functions.values()
                 for label in (f.start_label, f.end_label)}
        if start_label in taken or end_label in taken:
            raise CodeGenError(
                f"Function '{decl.name}' clashes with the labels of another function", decl)

        params = []
        for p in decl.parameters:
            if p.data_type is DataType.VOID:
                raise CodeGenError(f"Parameter '{p.name}' cannot have type void", p)
            params.append(Variable(p.name, p.data_type,
                                   self._arena.allocate(p.data_type.size, p)))

        self._functions[decl.name] = FunctionInfo(
            name=decl.name,
            return_type=decl.return_type,
            parameters=params,
            start_label=start_label,
            end_label=end_label,
        )

    def _gen_function(self, decl: FunctionDeclaration):
        info = self._functions[decl.name]
        self._current_function = info

        # Parameters and locals are visible only inside the body
        saved = dict(self._variables)
        for param in info.parameters:
            self._variables[param.name] = param

        self._lines.append(f"; Function: {decl.name}")
        self._emit_label(info.start_label)
        for stmt in decl.body.body:
            self._gen_statement(stmt)
        self._emit_label(info.end_label)
        if info.return_type is not DataType.VOID:
            self._emit_comment("Return value is in accumulator")
        self._emit("RET")
        self._emit_blank()

        self._variables = saved
        self._current_function = None

    # ── Statements ────────────────────────────

    def _gen_statement(self, stmt: ASTNode):
        if isinstance(stmt, VariableDeclaration):
            self._gen_var_decl(stmt)
        elif isinstance(stmt, Assignment):
            self._gen_assignment(stmt)
        elif isinstance(stmt, IfStatement):
            self._gen_if(stmt)
        elif isinstance(stmt, WhileLoop):
            self._gen_while(stmt)
        elif isinstance(stmt, ForLoop):
            self._gen_for(stmt)
        elif isinstance(stmt, ReturnStatement):
            self._gen_return(stmt)
        elif isinstance(stmt, BlockStatement):
            for s in stmt.body:
                self._gen_statement(s)
        elif isinstance(stmt, ExpressionStatement):
            self._gen_expr(stmt.expression)
        elif isinstance(stmt, FunctionDeclaration):
            raise CodeGenError(f"Nested function declaration '{stmt.name}' is not supported", stmt)
        else:
            raise CodeGenError(f"Unhandled statement type {type(stmt).__name__}", stmt)

    def _gen_var_decl(self, decl: VariableDeclaration):
        if decl.data_type is DataType.VOID:
            raise CodeGenError(f"Variable '{decl.name}' cannot have type void", decl)

        size = decl.data_type.size * (decl.array_size if decl.is_array else 1)
        address = self._arena.allocate(size, decl)
        self._variables[decl.name] = Variable(
            decl.name, decl.data_type, address, decl.is_array, size)

        if decl.is_array:
            self._emit_comment(f"Variable declaration: {decl.data_type} {decl.name}[{size}]")
            if decl.initializer is not None:
                raise CodeGenError(f"Array '{decl.name}' cannot have an initializer", decl)
            return

        self._emit_comment(f"Variable declaration: {decl.data_type} {decl.name}")
        if decl.initializer is not None:
            self._gen_expr(decl.initializer)
            self._emit(f"STA {self._addr(address)}")

    def _lookup_variable(self, name: str, node: ASTNode) -> Variable:
        var = self._variables.get(name)
        if var is None:
            raise CodeGenError(f"Undefined variable: {name}", node)
        return var

    def _gen_assignment(self, stmt: Assignment):
        var = self._lookup_variable(stmt.target.name, stmt.target)
        address = var.address

        if stmt.index is not None:
            if not var.is_array:
                raise CodeGenError(f"'{var.name}' is not an array", stmt)
            if not (isinstance(stmt.index, Literal) and isinstance(stmt.index.value, int)
                    and not isinstance(stmt.index.value, bool)):
                raise CodeGenError(f"Array index for '{var.name}' must be a constant", stmt.index)
            k = stmt.index.value
            if not 0 <= k < var.array_size:
                raise CodeGenError(
                    f"Array index {k} out of bounds for '{var.name}[{var.array_size}]'", stmt.index)
            address = var.address + k
            self._emit_comment(f"Assignment to {var.name}[{k}]")
        else:
            self._emit_comment(f"Assignment to {var.name}")

        self._gen_expr(stmt.value)
        self._emit(f"STA {self._addr(address)}")

    def _gen_if(self, stmt: IfStatement):
        else_label = self._label("ELSE")
        end_label = self._label("END_IF")

        self._emit_comment("If statement")
        self._gen_expr(stmt.condition)
        self._emit_test_zero()
        self._emit(f"JZ {else_label if stmt.alternate is not None else end_label}")

        self._gen_statement(stmt.consequent)

        if stmt.alternate is not None:
            self._emit(f"JMP {end_label}")
            self._emit_label(else_label)
            self._gen_statement(stmt.alternate)

        self._emit_label(end_label)

    def _gen_while(self, stmt: WhileLoop):
        loop_label = self._label("WHILE_LOOP")
        end_label = self._label("WHILE_END")

        self._emit_comment("While loop")
        self._emit_label(loop_label)
        self._gen_expr(stmt.condition)
        self._emit_test_zero()
        self._emit(f"JZ {end_label}")

        self._gen_statement(stmt.body)
        self._emit(f"JMP {loop_label}")
        self._emit_label(end_label)

    def _gen_for(self, stmt: ForLoop):
        loop_label = self._label("FOR_LOOP")
        update_label = self._label("FOR_UPDATE")
        end_label = self._label("FOR_END")

        self._emit_comment("For loop")
        if stmt.init is not None:
            self._gen_statement(stmt.init)

        self._emit_label(loop_label)
        if stmt.condition is not None:
            self._gen_expr(stmt.condition)
            self._emit_test_zero()
            self._emit(f"JZ {end_label}")

        self._gen_statement(stmt.body)

        self._emit_label(update_label)
        if stmt.update is not None:
            self._gen_assignment(stmt.update)
        self._emit(f"JMP {loop_label}")
        self._emit_label(end_label)

    def _gen_return(self, stmt: ReturnStatement):
        if self._current_function is None:
            raise CodeGenError("'return' outside of a function", stmt)
        self._emit_comment("Return statement")
        if stmt.value is not None:
            self._gen_expr(stmt.value)
        self._emit(f"JMP {self._current_function.end_label}")

    # ── Expressions ───────────────────────────

    def _gen_expr(self, expr: Expression):
        """Evaluate an expression into A."""
        if isinstance(expr, Literal):
            self._gen_literal(expr)
        elif isinstance(expr, Identifier):
            var = self._lookup_variable(expr.name, expr)
            self._emit(f"LDA {self._addr(var.address)}    ; Load {expr.name}")
        elif isinstance(expr, BinaryExpression):
            self._gen_binary(expr)
        elif isinstance(expr, UnaryExpression):
            self._gen_unary(expr)
        elif isinstance(expr, CallExpression):
            self._gen_call(expr)
        else:
            raise CodeGenError(f"Unhandled expression type {type(expr).__name__}", expr)

    def _gen_literal(self, lit: Literal):
        if isinstance(lit.value, bool):
            self._emit(f"LDI {1 if lit.value else 0}")
        elif isinstance(lit.value, int):
            if not 0 <= lit.value <= 0xFF:
                raise CodeGenError(f"Literal {lit.value} does not fit in 8 bits", lit)
            self._emit(f"LDI {lit.value}")
        elif lit.value:
            code = ord(lit.value[0])
            if code > 0xFF:
                raise CodeGenError(f"Character {lit.value[0]!r} does not fit in 8 bits", lit)
            self._emit(f"LDI {code}    ; String: \"{lit.value}\"")
        else:
            self._emit("LDI 0    ; Empty string")

    def _gen_binary(self, expr: BinaryExpression):
        self._emit_comment("Binary expression")
        left_addr = self._arena.allocate(1, expr)

        self._gen_expr(expr.left)
        self._emit(f"STA {self._addr(left_addr)}    ; Store left operand")
        self._gen_expr(expr.right)

        op = expr.operator
        if op in SIMPLE_BINARY_OPS:
            self._emit(f"{SIMPLE_BINARY_OPS[op]} {self._addr(left_addr)}")
            return

        right_addr = self._arena.allocate(1, expr)
        self._emit(f"STA {self._addr(right_addr)}    ; Store right operand")

        if op == "-":
            self._emit(f"LDA {self._addr(left_addr)}    ; Load left operand")
            self._emit(f"SUB {self._addr(right_addr)}    ; left - right")
            return

        if op not in COMPARISON_JUMPS:
            raise CodeGenError(f"Unknown binary operator '{op}'", expr)

        jump, swapped = COMPARISON_JUMPS[op]
        if swapped:
            self._emit(f"LDA {self._addr(right_addr)}")
            self._emit(f"SUB {self._addr(left_addr)}    ; Compare right - left")
        else:
            self._emit(f"LDA {self._addr(left_addr)}")
            self._emit(f"SUB {self._addr(right_addr)}    ; Compare left - right")
        self._emit_select(jump)

    def _emit_select(self, jump: str):
        """A = 1 if `jump` would be taken on the current flags, else A = 0."""
        true_label = self._label("CMP_TRUE")
        end_label = self._label("CMP_END")
        self._emit(f"{jump} {true_label}")
        self._emit("LDI 0")
        self._emit(f"JMP {end_label}")
        self._emit_label(true_label)
        self._emit("LDI 1")
        self._emit_label(end_label)

    def _gen_unary(self, expr: UnaryExpression):
        self._gen_expr(expr.operand)
        if expr.operator == "~":
            self._emit("NOT")
        elif expr.operator == "-":
            self._emit_comment("Negate (two's complement)")
            self._emit("NOT")
            self._emit("ADI 1")
        elif expr.operator == "!":
            self._emit_comment("Logical NOT")
            self._emit_test_zero()
            self._emit_select("JZ")
        else:
            raise CodeGenError(f"Unknown unary operator '{expr.operator}'", expr)

    # ── Calls ─────────────────────────────────

    def _gen_call(self, call: CallExpression):
        if call.callee in BUILTIN_FUNCTIONS:
            self._gen_builtin_call(call)
            return

        info = self._functions.get(call.callee)
        if info is None:
            raise CodeGenError(f"Undefined function: {call.callee}", call)
        if len(call.arguments) != len(info.parameters):
            raise CodeGenError(
                f"Function '{call.callee}' expects {len(info.parameters)} arguments, "
                f"got {len(call.arguments)}", call)

        self._emit_comment(f"Call function {call.callee}")
        for arg, param in zip(call.arguments, info.parameters):
            self._gen_expr(arg)
            self._emit(f"STA {self._addr(param.address)}    ; Parameter {param.name}")
        self._emit(f"CALL {info.start_label}")

    def _constant_port(self, call: CallExpression) -> int:
        port = call.arguments[0]
        if not (isinstance(port, Literal) and isinstance(port.value, int)
                and not isinstance(port.value, bool)):
            raise CodeGenError(f"Port for {call.callee}() must be a constant", port)
        if not 0 <= port.value <= 0xFF:
            raise CodeGenError(f"Port {port.value} out of range (0-255)", port)
        return port.value

    def _gen_builtin_call(self, call: CallExpression):
        name = call.callee
        builtin = BUILTIN_FUNCTIONS[name]
        if len(call.arguments) != builtin.arity:
            raise CodeGenError(
                f"Function '{name}' expects {builtin.arity} arguments, got {len(call.arguments)}",
                call)

        if name == "input":
            port = self._constant_port(call)
            self._emit_comment("Built-in: input(port)")
            self._emit(f"IN {port}")

        elif name == "output":
            port = self._constant_port(call)
            self._emit_comment("Built-in: output(port, value)")
            self._gen_expr(call.arguments[1])
            self._emit(f"OUT {port}")

        elif name == "delay":
            loop_label = self._label("DELAY_LOOP")
            end_label = self._label("DELAY_END")
            self._emit_comment("Built-in: delay(cycles)")
            self._gen_expr(call.arguments[0])
            self._emit_test_zero()
            self._emit(f"JZ {end_label}")
            self._emit_label(loop_label)
            self._emit("SUI 1")
            self._emit(f"JNZ {loop_label}")
            self._emit_label(end_label)

        elif name == "halt":
            self._emit_comment("Built-in: halt()")
            self._emit("HLT")

        else:
            raise CodeGenError(f"Unhandled built-in function '{name}'", call)


def generate_assembly(program: Program) -> str:
    """Generate assembly text for a parsed program with a fresh generator."""
    return CodeGenerator().generate(program)
