"""
CHIP-8 Emulator — ALU Operations

Flag conventions (all flags land in VF as 0 or 1):
  ADD Vx, Vy   VF = carry out of bit 7
  SUB / SUBN   VF = 1 when minuend >= subtrahend (no borrow)
  SHR          VF = bit 0 before the shift
  SHL          VF = bit 7 before the shift
  OR/AND/XOR   VF untouched

Arithmetic helpers return a tuple: (result_byte, flag). The caller writes
the result to Vx first and the flag to VF second, so VF as a destination
ends up holding the flag.
"""

from typing import Tuple


def add8(a: int, b: int) -> Tuple[int, bool]:
    """8-bit add. Flag is the unsigned carry."""
    result = a + b
    return (result & 0xFF, result > 0xFF)


def sub8(a: int, b: int) -> Tuple[int, bool]:
    """8-bit subtract a - b. Flag is True when there is no borrow."""
    return ((a - b) & 0xFF, a >= b)


def shr8(val: int) -> Tuple[int, bool]:
    """Logical shift right. Flag is the bit shifted out (bit 0)."""
    return ((val & 0xFF) >> 1, bool(val & 0x01))


def shl8(val: int) -> Tuple[int, bool]:
    """Shift left. Flag is the bit shifted out (bit 7)."""
    return ((val << 1) & 0xFF, bool(val & 0x80))


def or8(a: int, b: int) -> int:
    return (a | b) & 0xFF


def and8(a: int, b: int) -> int:
    return a & b & 0xFF


def xor8(a: int, b: int) -> int:
    return (a ^ b) & 0xFF


def add_imm8(a: int, b: int) -> int:
    """ADD Vx, nn. Wraps, no flag."""
    return (a + b) & 0xFF


def bcd(val: int) -> Tuple[int, int, int]:
    """Split a byte into (hundreds, tens, ones)."""
    val &= 0xFF
    return (val // 100, (val // 10) % 10, val % 10)
