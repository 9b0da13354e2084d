"""
CPU 8-Bit Compiler
==================
An assembler and a small C-like language compiler for a fictitious 8-bit CPU
with a single accumulator, 256 bytes of address space and 28 instructions.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌───────────┐
    │ C Source │───>│  Lexer   │───>│  Parser  │───>│  CodeGen  │──┐
    │ (.c)     │    │ (tokens) │    │  (AST)   │    │ (asm text)│  │
    └──────────┘    └──────────┘    └──────────┘    └───────────┘  │
                                                                    v
    ┌──────────┐    ┌───────────┐    ┌────────────┐    ┌────────────────┐
    │ Asm text │───>│ asm_lexer │───>│ asm_parser │───>│   assembler    │
    │ (.s)     │    │ (tokens)  │    │  (pass 1)  │    │ (pass 2: bytes,│
    └──────────┘    └───────────┘    └────────────┘    │  hex, map)     │
                                                       └────────────────┘

    - instruction_set.py: opcode table and register indices
    - asm_lexer.py / asm_parser.py: line-oriented assembly front end
    - assembler.py:   byte emission, Intel HEX and memory map output
    - lexer.py / parser.py / ast_nodes.py: C-like front end
    - codegen.py:     tree-walk emitter producing assembly text
    - compiler.py:    drives the stages and collects errors
"""

__version__ = "1.0.0"

from .instruction_set import INSTRUCTION_SET, REGISTERS, InstructionDef
from .assembler import AssemblerError, CodeGenResult, assemble, format_map, to_intel_hex
from .lexer import Lexer, Token, TokenType
from .ast_nodes import *
from .parser import ParseError, Parser
from .codegen import CodeGenError, CodeGenerator, generate_assembly
from .compiler import (CompileResult, Compiler, CompilerOptions, OutputArtifact,
                       compile_assembly, compile_high_level)


def compile_source(source: str, *, language: str = "c", output: str = "asm"):
    """Compile source code to assembly text, raw bytes or Intel HEX.

    Args:
        source: source code string.
        language: 'c' (default) for the C-like language, 'asm' for assembly.
        output: 'asm' (default, C only), 'binary' or 'hex'.

    Returns:
        Assembly text (str), raw bytes (bytes) or Intel HEX text (str).

    Raises:
        ValueError: for an unknown language/output, or when compilation fails
            (the message lists every error).
    """
    fmt = {"asm": "asm", "binary": "bin", "hex": "hex"}.get(output)
    if fmt is None:
        raise ValueError(f"Unknown output {output!r}; expected 'asm', 'binary' or 'hex'")

    result = Compiler(CompilerOptions(language=language, output_format=fmt)).compile(source)
    if not result.success:
        raise ValueError("Compilation failed:\n" + "\n".join(result.errors))

    if output == "asm":
        return result.assembly
    if output == "binary":
        return result.binary
    return result.artifact("hex").content
