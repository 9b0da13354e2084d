"""
Instruction set of the fictitious 8-bit CPU.

Every instruction is one opcode byte followed by zero, one or two operand
bytes. There are no addressing modes: an operand byte is an immediate value,
a memory address, a port number, a register index or a jump target, depending
only on the mnemonic.

The tables below are built once at import time and never mutated, so they
can be shared freely between concurrent compilations.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class InstructionDef:
    """One row of the instruction table."""
    mnemonic: str
    opcode: int
    operands: int          # 0, 1 or 2 operand bytes
    description: str = ""

    @property
    def size(self) -> int:
        """Encoded size in bytes (opcode + operands)."""
        return 1 + self.operands


# ──────────────────────────────────────────────
# Opcode table
# ──────────────────────────────────────────────

INSTRUCTION_SET: Dict[str, InstructionDef] = {}


def _op(mnemonic: str, opcode: int, operands: int, description: str):
    """Register an instruction definition."""
    INSTRUCTION_SET[mnemonic] = InstructionDef(mnemonic, opcode, operands, description)


# ── Data movement ──
_op('MOV',  0x10, 2, 'Move data from source to destination')
_op('LDA',  0x11, 1, 'Load accumulator from memory')
_op('STA',  0x12, 1, 'Store accumulator to memory')
_op('LDI',  0x13, 1, 'Load immediate value to accumulator')

# ── Arithmetic ──
_op('ADD',  0x20, 1, 'Add memory to accumulator')
_op('ADI',  0x21, 1, 'Add immediate to accumulator')
_op('SUB',  0x22, 1, 'Subtract memory from accumulator')
_op('SUI',  0x23, 1, 'Subtract immediate from accumulator')

# ── Logic ──
_op('AND',  0x30, 1, 'Logical AND with accumulator')
_op('ANI',  0x31, 1, 'Logical AND immediate with accumulator')
_op('OR',   0x32, 1, 'Logical OR with accumulator')
_op('ORI',  0x33, 1, 'Logical OR immediate with accumulator')
_op('XOR',  0x34, 1, 'Logical XOR with accumulator')
_op('XRI',  0x35, 1, 'Logical XOR immediate with accumulator')
_op('NOT',  0x36, 0, 'Logical NOT accumulator')

# ── Control flow ──
_op('JMP',  0x40, 1, 'Jump to address')
_op('JZ',   0x41, 1, 'Jump if zero flag set')
_op('JNZ',  0x42, 1, 'Jump if zero flag clear')
_op('JC',   0x43, 1, 'Jump if carry flag set')
_op('JNC',  0x44, 1, 'Jump if carry flag clear')
_op('CALL', 0x45, 1, 'Call subroutine')
_op('RET',  0x46, 0, 'Return from subroutine')

# ── Stack ──
_op('PUSH', 0x50, 0, 'Push accumulator to stack')
_op('POP',  0x51, 0, 'Pop from stack to accumulator')

# ── I/O ──
_op('IN',   0x60, 1, 'Input from port')
_op('OUT',  0x61, 1, 'Output to port')

# ── Misc ──
_op('NOP',  0x00, 0, 'No operation')
_op('HLT',  0xFF, 0, 'Halt processor')

ADDRESS_SPACE = 0x100       # 8-bit addresses: 0x00-0xFF


# ──────────────────────────────────────────────
# Registers
# ──────────────────────────────────────────────

REGISTERS: Dict[str, int] = {
    'A': 0x00,   # Accumulator
    'B': 0x01,   # General purpose
    'PC': 0x02,  # Program counter
    'SP': 0x03,  # Stack pointer
}


def lookup_instruction(mnemonic: str) -> Optional[InstructionDef]:
    return INSTRUCTION_SET.get(mnemonic.upper())


def register_index(name: str) -> Optional[int]:
    return REGISTERS.get(name.upper())
