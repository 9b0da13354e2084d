"""
Compilation driver for the 8-bit CPU toolchain.

Chains the stages together and turns stage errors into a structured result:

    language="c":   lexer -> parser -> codegen -> (asm text) -> assembler
    language="asm":                               (asm text) -> assembler

Everything stays in memory. Output files are described by OutputArtifact
records (name, kind, content) and it is up to the caller to write them.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from . import asm_lexer, asm_parser
from .assembler import AssemblerError, CodeGenResult, format_map, generate_binary, to_intel_hex
from .codegen import DATA_MEMORY_BASE, CodeGenError, generate_assembly
from .lexer import Lexer
from .parser import ParseError, Parser

logger = logging.getLogger(__name__)

LANGUAGES = ("asm", "c")
OUTPUT_FORMATS = ("bin", "hex", "both", "asm")

ARTIFACT_EXTENSIONS = {
    "bin": "bin",
    "hex": "hex",
    "map": "map",
    "asm": "s",
}


@dataclass
class CompilerOptions:
    language: str = "asm"
    output_format: str = "bin"
    keep_assembly: bool = False
    verbose: bool = False

    def __post_init__(self):
        if self.language not in LANGUAGES:
            raise ValueError(f"Unsupported language {self.language!r}; expected one of {LANGUAGES}")
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Unsupported output format {self.output_format!r}; expected one of {OUTPUT_FORMATS}")
        if self.output_format == "asm" and self.language != "c":
            raise ValueError("Output format 'asm' is only available for language 'c'")


@dataclass
class OutputArtifact:
    name: str                       # e.g. "blink.hex"
    kind: str                       # "bin", "hex", "map" or "asm"
    content: Union[bytes, str]


@dataclass
class CompileResult:
    success: bool = False
    binary: Optional[bytes] = None
    assembly: Optional[str] = None
    address_map: Dict[int, str] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    artifacts: List[OutputArtifact] = field(default_factory=list)

    def artifact(self, kind: str) -> Optional[OutputArtifact]:
        """First artifact of the given kind, if any."""
        for a in self.artifacts:
            if a.kind == kind:
                return a
        return None


class Compiler:
    """Runs a source string through the pipeline selected by CompilerOptions.

    Usage:
        result = Compiler(CompilerOptions(language="c", output_format="hex")).compile(src, "blink")
        if result.success:
            hex_text = result.artifact("hex").content
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        self.options = options or CompilerOptions()

    def _log(self, msg: str):
        logger.log(logging.INFO if self.options.verbose else logging.DEBUG, msg)

    def compile(self, source: str, filename: Optional[str] = None) -> CompileResult:
        """Compile source text; never raises for errors in the source itself."""
        if self.options.language == "c":
            return self._compile_high_level(source, filename)
        return self._compile_assembly(source, filename)

    # ── Assembly ──────────────────────────────

    def _assemble(self, source: str) -> CodeGenResult:
        self._log("Tokenizing assembly source...")
        tokens = asm_lexer.Lexer(source).tokenize()

        self._log("Parsing assembly (pass 1)...")
        parsed = asm_parser.Parser(tokens).parse()
        if parsed.errors:
            # generate_binary reports pass-1 errors without emitting anything
            self._log(f"Pass 1 found {len(parsed.errors)} error(s)")

        self._log("Generating machine code (pass 2)...")
        return generate_binary(parsed)

    def _compile_assembly(self, source: str, filename: Optional[str],
                          error_prefix: str = "") -> CompileResult:
        result = CompileResult()
        try:
            gen = self._assemble(source)
        except (asm_parser.ParseError, AssemblerError) as e:
            result.errors.append(f"{error_prefix}{e}")
            return result

        if gen.errors:
            result.errors.extend(f"{error_prefix}{err}" for err in gen.errors)
            return result

        result.binary = gen.binary
        result.address_map = dict(gen.address_map)
        result.artifacts.extend(self._binary_artifacts(gen, filename))
        result.success = True
        self._log(f"Assembled {len(gen.binary)} bytes")
        return result

    def _binary_artifacts(self, gen: CodeGenResult, filename: Optional[str]) -> List[OutputArtifact]:
        fmt = self.options.output_format
        artifacts = []
        if fmt in ("bin", "both"):
            artifacts.append(self._artifact(filename, "bin", gen.binary))
        if fmt in ("hex", "both"):
            artifacts.append(self._artifact(filename, "hex", to_intel_hex(gen.binary)))
        artifacts.append(self._artifact(filename, "map", format_map(gen.binary, gen.address_map)))
        return artifacts

    @staticmethod
    def _artifact(filename: Optional[str], kind: str, content: Union[bytes, str]) -> OutputArtifact:
        return OutputArtifact(f"{filename or 'output'}.{ARTIFACT_EXTENSIONS[kind]}", kind, content)

    # ── High-level language ───────────────────

    def _compile_high_level(self, source: str, filename: Optional[str]) -> CompileResult:
        result = CompileResult()

        self._log("Tokenizing C-like source...")
        tokens = Lexer(source).tokenize()

        self._log("Parsing C-like tokens...")
        try:
            parsed = Parser(tokens).parse()
        except ParseError as e:
            result.errors.append(str(e))
            return result
        except RecursionError:
            result.errors.append("Parse error: nesting too deep")
            return result
        if parsed.errors:
            result.errors.extend(parsed.errors)
            return result

        self._log("Generating assembly code...")
        try:
            assembly = generate_assembly(parsed.program)
        except CodeGenError as e:
            result.errors.append(f"Code generation error: {e}")
            return result
        except RecursionError:
            result.errors.append("Code generation error: nesting too deep")
            return result

        result.assembly = assembly
        self._log(f"Generated assembly:\n{assembly}")

        if self.options.output_format != "asm":
            asm_result = self._compile_assembly(assembly, filename,
                                                error_prefix="Assembly compilation: ")
            if not asm_result.success:
                result.errors.extend(asm_result.errors)
                return result
            if len(asm_result.binary) > DATA_MEMORY_BASE:
                result.errors.append(
                    f"Program code ({len(asm_result.binary)} bytes) overlaps data memory "
                    f"at 0x{DATA_MEMORY_BASE:02x}")
                return result
            result.binary = asm_result.binary
            result.address_map = asm_result.address_map
            result.artifacts.extend(asm_result.artifacts)

        if self.options.keep_assembly or self.options.output_format == "asm":
            result.artifacts.append(self._artifact(filename, "asm", assembly))

        result.success = True
        return result


# ──────────────────────────────────────────────
# Convenience functions
# ──────────────────────────────────────────────

def compile_assembly(source: str, filename: Optional[str] = None, *,
                     output_format: str = "bin", verbose: bool = False) -> CompileResult:
    """Assemble source text into a binary."""
    options = CompilerOptions(language="asm", output_format=output_format, verbose=verbose)
    return Compiler(options).compile(source, filename)


def compile_high_level(source: str, filename: Optional[str] = None, *,
                       output_format: str = "bin", keep_assembly: bool = False,
                       verbose: bool = False) -> CompileResult:
    """Compile C-like source through assembly into a binary (or assembly only)."""
    options = CompilerOptions(language="c", output_format=output_format,
                              keep_assembly=keep_assembly, verbose=verbose)
    return Compiler(options).compile(source, filename)
