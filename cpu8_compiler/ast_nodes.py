"""
AST Node definitions for the 8-bit CPU C-like language.

Defines the Abstract Syntax Tree produced by the parser and consumed by the
code generator. Every node owns its children; the only extra data a node
carries is its source position for diagnostics.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union


# ──────────────────────────────────────────────
# Type system
# ──────────────────────────────────────────────

class DataType(enum.Enum):
    UINT8 = "uint8"
    INT8 = "int8"
    BOOL = "bool"
    VOID = "void"

    @property
    def size(self) -> int:
        """Size in bytes of one value."""
        return 0 if self is DataType.VOID else 1

    def __str__(self) -> str:
        return self.value


# ──────────────────────────────────────────────
# Base AST node
# ──────────────────────────────────────────────

@dataclass
class ASTNode:
    """Base class for all AST nodes."""
    line: int = 0
    col: int = 0


@dataclass
class Program(ASTNode):
    """Root node: top-level statements in source order."""
    body: List[ASTNode] = field(default_factory=list)


# ──────────────────────────────────────────────
# Declarations
# ──────────────────────────────────────────────

@dataclass
class Parameter(ASTNode):
    name: str = ""
    data_type: DataType = DataType.UINT8

@dataclass
class FunctionDeclaration(ASTNode):
    """Function definition."""
    name: str = ""
    return_type: DataType = DataType.VOID
    parameters: List[Parameter] = field(default_factory=list)
    body: Optional[BlockStatement] = None

@dataclass
class VariableDeclaration(ASTNode):
    """type name[size]? (= init)?;"""
    name: str = ""
    data_type: DataType = DataType.UINT8
    initializer: Optional[Expression] = None
    is_array: bool = False
    array_size: int = 0


# ──────────────────────────────────────────────
# Statements
# ──────────────────────────────────────────────

@dataclass
class Assignment(ASTNode):
    """name = value  or  name[index] = value"""
    target: Identifier = None         # type: ignore
    value: Expression = None          # type: ignore
    index: Optional[Expression] = None

@dataclass
class BlockStatement(ASTNode):
    """Compound statement: { ... }"""
    body: List[ASTNode] = field(default_factory=list)

@dataclass
class ExpressionStatement(ASTNode):
    expression: Expression = None  # type: ignore

@dataclass
class ReturnStatement(ASTNode):
    """return [expr];"""
    value: Optional[Expression] = None

@dataclass
class IfStatement(ASTNode):
    """if (cond) consequent [else alternate]"""
    condition: Expression = None  # type: ignore
    consequent: ASTNode = None    # type: ignore
    alternate: Optional[ASTNode] = None

@dataclass
class WhileLoop(ASTNode):
    """while (cond) body"""
    condition: Expression = None  # type: ignore
    body: ASTNode = None          # type: ignore

@dataclass
class ForLoop(ASTNode):
    """for (init; cond; update) body"""
    init: Optional[Union[VariableDeclaration, Assignment]] = None
    condition: Optional[Expression] = None
    update: Optional[Assignment] = None
    body: ASTNode = None          # type: ignore


# ──────────────────────────────────────────────
# Expressions
# ──────────────────────────────────────────────

Expression = Union[
    "BinaryExpression", "UnaryExpression", "CallExpression",
    "Identifier", "Literal",
]


@dataclass
class BinaryExpression(ASTNode):
    """left op right"""
    operator: str = ""
    left: Expression = None   # type: ignore
    right: Expression = None  # type: ignore

@dataclass
class UnaryExpression(ASTNode):
    operator: str = ""          # !, ~, -
    operand: Expression = None  # type: ignore

@dataclass
class CallExpression(ASTNode):
    """Function call: callee(args...)."""
    callee: str = ""
    arguments: List[Expression] = field(default_factory=list)

@dataclass
class Identifier(ASTNode):
    """Variable reference."""
    name: str = ""

@dataclass
class Literal(ASTNode):
    """Number, boolean or string constant.

    Integer literals are typed uint8, true/false are bool. A string literal
    keeps its text and is typed uint8 since it loads as its first character.
    """
    value: Union[int, bool, str] = 0
    data_type: DataType = DataType.UINT8


# ──────────────────────────────────────────────
# Built-in functions
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class BuiltinFunction:
    name: str
    parameters: tuple   # parameter names
    return_type: DataType
    description: str = ""

    @property
    def arity(self) -> int:
        return len(self.parameters)


BUILTIN_FUNCTIONS: Dict[str, BuiltinFunction] = {
    "input": BuiltinFunction("input", ("port",), DataType.UINT8, "Read a byte from an I/O port"),
    "output": BuiltinFunction("output", ("port", "value"), DataType.VOID, "Write a byte to an I/O port"),
    "delay": BuiltinFunction("delay", ("cycles",), DataType.VOID, "Busy-wait for a number of cycles"),
    "halt": BuiltinFunction("halt", (), DataType.VOID, "Stop the processor"),
}
