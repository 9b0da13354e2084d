"""
Binary generator (pass 2) and output formats for the 8-bit CPU assembler.

Input:  a ParseResult from asm_parser (pass 1)
Output: raw bytes, an address -> description map, Intel HEX text, map text

How the two passes fit together:
  Pass 1 (asm_parser) walked the source once, assigned every label the
         address of the next emitted byte and checked the syntax.
  Pass 2 (here) walks the same items in program order and emits bytes.
         All labels are known by now, so forward references resolve.

Byte position in the output always equals the address: a forward .ORG pads
the gap with zero bytes. Any encoding problem (operand out of range,
undefined label, backward .ORG) aborts the whole pass and no partial binary
is returned.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from .asm_parser import Operand, ParsedDirective, ParsedInstruction, ParseResult, parse
from .instruction_set import register_index

__all__ = ['AssemblerError', 'CodeGenResult', 'BinaryGenerator', 'generate_binary',
           'assemble', 'to_intel_hex', 'format_map', 'HEX_RECORD_SIZE']

logger = logging.getLogger(__name__)

HEX_RECORD_SIZE = 16
HEX_EOF_RECORD = ':00000001FF'

MAP_HEADER = [
    'CPU 8-Bit Compiler - Memory Map',
    '================================',
    '',
    'Address  | Hex | Description',
    '---------|-----|------------',
]


class AssemblerError(Exception):
    """Raised on encoding errors in pass 2."""
    def __init__(self, message: str, line_num: int = 0):
        self.line_num = line_num
        super().__init__(f"Line {line_num}: {message}" if line_num else message)


@dataclass
class CodeGenResult:
    binary: bytes = b''
    address_map: Dict[int, str] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ──────────────────────────────────────────────
# Pass 2
# ──────────────────────────────────────────────

class BinaryGenerator:
    """Turns a pass-1 ParseResult into bytes.

    Usage:
        gen = BinaryGenerator(parse_result)
        result = gen.generate()
    """

    def __init__(self, parsed: ParseResult):
        self.parsed = parsed
        self.binary = bytearray()
        self.address_map: Dict[int, str] = {}

    def generate(self) -> CodeGenResult:
        self.binary = bytearray()
        self.address_map = {}

        if self.parsed.errors:
            return CodeGenResult(errors=list(self.parsed.errors))

        try:
            for item in self.parsed.items:
                if isinstance(item, ParsedDirective):
                    self._emit_directive(item)
                elif isinstance(item, ParsedInstruction):
                    self._emit_instruction(item)
                else:
                    raise AssemblerError(f"Unhandled item {type(item).__name__}")
        except AssemblerError as e:
            logger.debug(f"pass 2 failed: {e}")
            return CodeGenResult(errors=[f"Assembly error: {e}"])

        logger.debug(f"pass 2: emitted {len(self.binary)} bytes")
        return CodeGenResult(bytes(self.binary), dict(self.address_map), [])

    # ── Directives ──

    def _emit_directive(self, d: ParsedDirective):
        if d.name == '.ORG':
            if d.value < len(self.binary):
                raise AssemblerError(
                    f".ORG 0x{d.value:02X} is below the current address 0x{len(self.binary):02X}",
                    d.line)
            while len(self.binary) < d.value:
                self._emit_byte(0, f"padding (.ORG {d.value})", d.line)
        elif d.name == '.DB':
            if not 0 <= d.value <= 0xFF:
                raise AssemblerError(f".DB value {d.value} out of range (0-255)", d.line)
            self._emit_byte(d.value, f"DB {d.value}", d.line)
        elif d.name == '.DW':
            if not 0 <= d.value <= 0xFFFF:
                raise AssemblerError(f".DW value {d.value} out of range (0-65535)", d.line)
            self._emit_byte(d.value & 0xFF, f"DW {d.value} (low byte)", d.line)
            self._emit_byte((d.value >> 8) & 0xFF, f"DW {d.value} (high byte)", d.line)
        else:
            raise AssemblerError(f"Unknown directive '{d.name}'", d.line)

    # ── Instructions ──

    def _emit_instruction(self, instr: ParsedInstruction):
        self._emit_byte(instr.definition.opcode, f"{instr.mnemonic} (opcode)", instr.line)
        for i, operand in enumerate(instr.operands):
            self._emit_operand(operand, instr, i)

    def _emit_operand(self, operand: Operand, instr: ParsedInstruction, index: int):
        prefix = f"{instr.mnemonic} operand {index}"

        if operand.kind == 'number':
            value = operand.value
            if not 0 <= value <= 0xFF:
                raise AssemblerError(
                    f"Operand {value} out of range (0-255) for instruction {instr.mnemonic}",
                    instr.line)
            self._emit_byte(value, f"{prefix}: {value}", instr.line)

        elif operand.kind == 'symbol':
            name = operand.value
            reg = register_index(name)
            if reg is not None:
                self._emit_byte(reg, f"{prefix}: register {name}", instr.line)
                return
            if name not in self.parsed.labels:
                raise AssemblerError(f"Undefined label: {name}", instr.line)
            addr = self.parsed.labels[name]
            if addr > 0xFF:
                raise AssemblerError(
                    f"Label {name} at address {addr} does not fit in one byte", instr.line)
            self._emit_byte(addr, f"{prefix}: label {name} ({addr})", instr.line)

        elif operand.kind == 'string':
            # Single-character strings encode as their character code
            text = operand.value
            if len(text) != 1:
                raise AssemblerError(
                    f"String operand {operand} for {instr.mnemonic} must be one character",
                    instr.line)
            self._emit_byte(ord(text), f"{prefix}: {operand}", instr.line)

        else:
            raise AssemblerError(
                f"Invalid operand type for {instr.mnemonic}: {operand.kind}", instr.line)

    def _emit_byte(self, value: int, description: str, line_num: int = 0):
        if not 0 <= value <= 0xFF:
            raise AssemblerError(f"Byte value out of range: {value}", line_num)
        self.address_map[len(self.binary)] = description
        self.binary.append(value)


# ──────────────────────────────────────────────
# Output formats
# ──────────────────────────────────────────────

def _checksum(data: bytes) -> int:
    """Intel HEX checksum: two's complement of the low byte of the sum."""
    return (256 - sum(data) % 256) % 256


def to_intel_hex(binary: bytes, record_size: int = HEX_RECORD_SIZE) -> str:
    """Convert a binary image to Intel HEX data records plus the EOF record.

    Each record covers up to `record_size` bytes; its address is the offset of
    the first byte in the image.
    """
    lines = []
    for offset in range(0, len(binary), record_size):
        chunk = bytes(binary[offset:offset + record_size])
        header = bytes([len(chunk), (offset >> 8) & 0xFF, offset & 0xFF])
        cksum = _checksum(header + chunk)
        lines.append(f":{len(chunk):02X}{offset & 0xFFFF:04X}00{chunk.hex().upper()}{cksum:02X}")
    lines.append(HEX_EOF_RECORD)
    return '\n'.join(lines) + '\n'


def format_map(binary: bytes, address_map: Dict[int, str]) -> str:
    """Human-readable memory map: one row per byte (decimal address, hex, description)."""
    lines = list(MAP_HEADER)
    for addr, value in enumerate(binary):
        lines.append(f"{addr:>7}  | {value:02X}  | {address_map.get(addr, '')}")
    return '\n'.join(lines) + '\n'


# ──────────────────────────────────────────────
# Convenience functions
# ──────────────────────────────────────────────

def generate_binary(parsed: ParseResult) -> CodeGenResult:
    """Run pass 2 over a pass-1 result."""
    return BinaryGenerator(parsed).generate()


def assemble(source: str) -> CodeGenResult:
    """Assemble source text through both passes."""
    return generate_binary(parse(source))
