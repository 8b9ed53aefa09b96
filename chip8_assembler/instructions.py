"""
CHIP-8 Instruction Set: variants, binary codec, mnemonic codec.

One table drives all three directions. Each instruction is a frozen
dataclass registered with ``_op()``:

    opcode word  <──>  Instruction  <──>  mnemonic text
     (decode/encode)                 (parse/print)

Binary layout (16-bit, big-endian in memory):
  bits 12-15  opcode class
  bits 8-11   X    first register
  bits 4-7    Y    second register
  bits 0-3    N    4-bit immediate
  bits 0-7    NN   8-bit immediate
  bits 0-11   NNN  12-bit address

Decoding is permissive: any word that matches no registered pattern
decodes to ``Nop``. Memory past the end of a ROM must never stop the
engine.

Mnemonics (Cowgod-style, case-insensitive on input):
  CLS  RET  NOP
  JP nnn        CALL nnn      JP V0 nnn
  SE Vx nn      SE Vx Vy      SNE Vx nn     SNE Vx Vy
  LD Vx nn      LD Vx Vy      LD I nnn      LD Vx DT      LD Vx K
  LD DT Vx      LD ST Vx      LD F Vx       LD B Vx       LD [I] Vx
  LD Vx [I]
  ADD Vx nn     ADD Vx Vy     ADD I Vx
  OR  AND  XOR  SUB  SUBN  Vx Vy
  SHR Vx        SHL Vx        RND Vx nn     DRW Vx Vy n
  SKP Vx        SKNP Vx

Registers are written ``V`` + one hex digit. Numbers are decimal unless
prefixed with ``0x``.
"""

from __future__ import annotations
from dataclasses import dataclass, fields, replace
from typing import ClassVar, Dict, List, Optional, Tuple, Type
import re

__all__ = [
    'Instruction', 'ParseError', 'INSTRUCTION_SET', 'INSTRUCTION_SIZE',
    'encode', 'decode', 'to_bytes', 'from_bytes', 'parse_mnemonic',
    'Nop', 'ClearScreen', 'Ret', 'Jump', 'Call', 'SkipEqImm', 'SkipNeImm',
    'SkipEqReg', 'SetImm', 'AddImm', 'SetReg', 'OrReg', 'AndReg', 'XorReg',
    'AddReg', 'SubReg', 'ShiftRight', 'SubFrom', 'ShiftLeft', 'SkipNeReg',
    'SetIndex', 'JumpOffset', 'Rand', 'Draw', 'SkipKeyPressed',
    'SkipKeyNotPressed', 'GetDelay', 'WaitForKey', 'SetDelay', 'SetSound',
    'AddIndex', 'SetChar', 'BCD', 'RegDump', 'RegLoad',
]

INSTRUCTION_SIZE = 2


class ParseError(ValueError):
    """Raised when a mnemonic cannot be turned into an instruction."""
    def __init__(self, mnemonic: str, message: str):
        self.mnemonic = mnemonic
        self.message = message
        super().__init__(f"{message}: '{mnemonic}'")


# ──────────────────────────────────────────────
# Operand fields
# ──────────────────────────────────────────────
# Field name -> (bit shift, bit width)

FIELDS: Dict[str, Tuple[int, int]] = {
    'x':   (8, 4),
    'y':   (4, 4),
    'n':   (0, 4),
    'nn':  (0, 8),
    'nnn': (0, 12),
}

REGISTER_FIELDS = ('x', 'y')

# Literal operand keywords (upper-case in the syntax tables)
KEYWORDS = {'I', 'DT', 'ST', 'K', 'F', 'B', '[I]', 'V0'}

_REGISTER_RE = re.compile(r'^v([0-9a-f])$')
_NUMBER_RE = re.compile(r'^(?:0x([0-9a-f]+)|([0-9]+))$')


# ──────────────────────────────────────────────
# Variant registry
# ──────────────────────────────────────────────

INSTRUCTION_SET: List[Type['Instruction']] = []
_BY_KEYWORD: Dict[str, List[Type['Instruction']]] = {}
_BY_CLASS: Dict[int, List[Type['Instruction']]] = {}


def _op(pattern: int, mnemonic: str, *syntax: str, mask: Optional[int] = None):
    """Register an instruction variant.

    pattern:  opcode word with every operand field zeroed
    mnemonic: printed keyword
    syntax:   operand order in text form; lower-case names are fields,
              upper-case names are literal keywords
    mask:     bits that must equal ``pattern`` on decode (default: every
              bit not covered by an operand field)
    """
    def register(cls):
        field_names = [f.name for f in fields(cls)]
        if mask is None:
            m = 0xFFFF
            for name in field_names:
                shift, width = FIELDS[name]
                m &= ~(((1 << width) - 1) << shift) & 0xFFFF
        else:
            m = mask
        cls.PATTERN = pattern
        cls.MASK = m
        cls.MNEMONIC = mnemonic
        cls.SYNTAX = syntax
        INSTRUCTION_SET.append(cls)
        _BY_KEYWORD.setdefault(mnemonic.lower(), []).append(cls)
        group = _BY_CLASS.setdefault(pattern >> 12, [])
        group.append(cls)
        # Most specific patterns are tried first
        group.sort(key=lambda c: bin(c.MASK).count('1'), reverse=True)
        return cls
    return register


@dataclass(frozen=True)
class Instruction:
    """Base class for all CHIP-8 instruction variants."""
    PATTERN: ClassVar[int] = 0
    MASK: ClassVar[int] = 0xFFFF
    MNEMONIC: ClassVar[str] = ''
    SYNTAX: ClassVar[Tuple[str, ...]] = ()

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            _, width = FIELDS[f.name]
            if not isinstance(value, int) or not 0 <= value < (1 << width):
                raise ValueError(
                    f"{type(self).__name__}.{f.name}={value!r} "
                    f"does not fit in {width} bits")

    @property
    def size(self) -> int:
        return INSTRUCTION_SIZE

    def encode(self) -> int:
        """Pack into a 16-bit opcode word."""
        word = self.PATTERN
        for f in fields(self):
            shift, _ = FIELDS[f.name]
            word |= getattr(self, f.name) << shift
        return word

    def to_bytes(self) -> bytes:
        return self.encode().to_bytes(2, 'big')

    def with_target(self, addr: int) -> 'Instruction':
        """Copy of this instruction with its 12-bit address replaced."""
        return replace(self, nnn=addr)

    def __str__(self) -> str:
        parts = [self.MNEMONIC]
        for token in self.SYNTAX:
            if token in KEYWORDS:
                parts.append(token)
            elif token in REGISTER_FIELDS:
                parts.append(f"V{getattr(self, token):X}")
            elif token == 'nnn':
                parts.append(f"0x{self.nnn:03X}")
            else:
                parts.append(str(getattr(self, token)))
        return ' '.join(parts)


# ──────────────────────────────────────────────
# The instruction table
# ──────────────────────────────────────────────

# ── Control flow ──

@_op(0x0000, 'NOP')
@dataclass(frozen=True)
class Nop(Instruction):
    pass


@_op(0x00E0, 'CLS')
@dataclass(frozen=True)
class ClearScreen(Instruction):
    pass


@_op(0x00EE, 'RET')
@dataclass(frozen=True)
class Ret(Instruction):
    pass


@_op(0x1000, 'JP', 'nnn')
@dataclass(frozen=True)
class Jump(Instruction):
    nnn: int


@_op(0x2000, 'CALL', 'nnn')
@dataclass(frozen=True)
class Call(Instruction):
    nnn: int


@_op(0xB000, 'JP', 'V0', 'nnn')
@dataclass(frozen=True)
class JumpOffset(Instruction):
    nnn: int


# ── Conditional skips ──

@_op(0x3000, 'SE', 'x', 'nn')
@dataclass(frozen=True)
class SkipEqImm(Instruction):
    x: int
    nn: int


@_op(0x4000, 'SNE', 'x', 'nn')
@dataclass(frozen=True)
class SkipNeImm(Instruction):
    x: int
    nn: int


@_op(0x5000, 'SE', 'x', 'y')
@dataclass(frozen=True)
class SkipEqReg(Instruction):
    x: int
    y: int


@_op(0x9000, 'SNE', 'x', 'y')
@dataclass(frozen=True)
class SkipNeReg(Instruction):
    x: int
    y: int


# ── Register load / arithmetic ──

@_op(0x6000, 'LD', 'x', 'nn')
@dataclass(frozen=True)
class SetImm(Instruction):
    x: int
    nn: int


@_op(0x7000, 'ADD', 'x', 'nn')
@dataclass(frozen=True)
class AddImm(Instruction):
    x: int
    nn: int


@_op(0x8000, 'LD', 'x', 'y')
@dataclass(frozen=True)
class SetReg(Instruction):
    x: int
    y: int


@_op(0x8001, 'OR', 'x', 'y')
@dataclass(frozen=True)
class OrReg(Instruction):
    x: int
    y: int


@_op(0x8002, 'AND', 'x', 'y')
@dataclass(frozen=True)
class AndReg(Instruction):
    x: int
    y: int


@_op(0x8003, 'XOR', 'x', 'y')
@dataclass(frozen=True)
class XorReg(Instruction):
    x: int
    y: int


@_op(0x8004, 'ADD', 'x', 'y')
@dataclass(frozen=True)
class AddReg(Instruction):
    x: int
    y: int


@_op(0x8005, 'SUB', 'x', 'y')
@dataclass(frozen=True)
class SubReg(Instruction):
    x: int
    y: int


# Shifts ignore Y on decode; many ROMs leave junk there.
@_op(0x8006, 'SHR', 'x', mask=0xF00F)
@dataclass(frozen=True)
class ShiftRight(Instruction):
    x: int


@_op(0x8007, 'SUBN', 'x', 'y')
@dataclass(frozen=True)
class SubFrom(Instruction):
    x: int
    y: int


@_op(0x800E, 'SHL', 'x', mask=0xF00F)
@dataclass(frozen=True)
class ShiftLeft(Instruction):
    x: int


@_op(0xC000, 'RND', 'x', 'nn')
@dataclass(frozen=True)
class Rand(Instruction):
    x: int
    nn: int


# ── Address register ──

@_op(0xA000, 'LD', 'I', 'nnn')
@dataclass(frozen=True)
class SetIndex(Instruction):
    nnn: int


@_op(0xF01E, 'ADD', 'I', 'x')
@dataclass(frozen=True)
class AddIndex(Instruction):
    x: int


@_op(0xF029, 'LD', 'F', 'x')
@dataclass(frozen=True)
class SetChar(Instruction):
    x: int


# ── Display ──

@_op(0xD000, 'DRW', 'x', 'y', 'n')
@dataclass(frozen=True)
class Draw(Instruction):
    x: int
    y: int
    n: int


# ── Keys ──

@_op(0xE09E, 'SKP', 'x')
@dataclass(frozen=True)
class SkipKeyPressed(Instruction):
    x: int


@_op(0xE0A1, 'SKNP', 'x')
@dataclass(frozen=True)
class SkipKeyNotPressed(Instruction):
    x: int


@_op(0xF00A, 'LD', 'x', 'K')
@dataclass(frozen=True)
class WaitForKey(Instruction):
    x: int


# ── Timers ──

@_op(0xF007, 'LD', 'x', 'DT')
@dataclass(frozen=True)
class GetDelay(Instruction):
    x: int


@_op(0xF015, 'LD', 'DT', 'x')
@dataclass(frozen=True)
class SetDelay(Instruction):
    x: int


@_op(0xF018, 'LD', 'ST', 'x')
@dataclass(frozen=True)
class SetSound(Instruction):
    x: int


# ── Bulk register transfer ──

@_op(0xF033, 'LD', 'B', 'x')
@dataclass(frozen=True)
class BCD(Instruction):
    x: int


@_op(0xF055, 'LD', '[I]', 'x')
@dataclass(frozen=True)
class RegDump(Instruction):
    x: int


@_op(0xF065, 'LD', 'x', '[I]')
@dataclass(frozen=True)
class RegLoad(Instruction):
    x: int


# ──────────────────────────────────────────────
# Binary codec
# ──────────────────────────────────────────────

def encode(instruction: Instruction) -> int:
    return instruction.encode()


def decode(word: int) -> Instruction:
    """Decode a 16-bit opcode word. Unknown patterns decode to Nop."""
    word &= 0xFFFF
    for cls in _BY_CLASS.get(word >> 12, ()):
        if word & cls.MASK == cls.PATTERN:
            kwargs = {}
            for f in fields(cls):
                shift, width = FIELDS[f.name]
                kwargs[f.name] = (word >> shift) & ((1 << width) - 1)
            return cls(**kwargs)
    return Nop()


def to_bytes(instruction: Instruction) -> bytes:
    return instruction.to_bytes()


def from_bytes(data: bytes, offset: int = 0) -> Instruction:
    """Decode the big-endian word at ``data[offset:offset+2]``."""
    return decode((data[offset] << 8) | data[offset + 1])


# ──────────────────────────────────────────────
# Mnemonic parser
# ──────────────────────────────────────────────

def is_register(token: str) -> bool:
    return bool(_REGISTER_RE.match(token.lower()))


def parse_register(token: str, mnemonic: str) -> int:
    match = _REGISTER_RE.match(token.lower())
    if not match:
        raise ParseError(mnemonic, f"Invalid register name {token}")
    return int(match.group(1), 16)


def parse_number(token: str, width: int, mnemonic: str) -> int:
    """Parse a decimal or 0x-prefixed hex numeral that fits in ``width`` bits."""
    match = _NUMBER_RE.match(token.lower())
    if not match:
        raise ParseError(mnemonic, f"Couldn't parse value {token}")
    if match.group(1) is not None:
        value = int(match.group(1), 16)
    else:
        value = int(match.group(2), 10)
    if not 0 <= value < (1 << width):
        raise ParseError(mnemonic, f"Value {value} out of range for {width}-bit immediate")
    return value


def _shape_matches(syntax: Tuple[str, ...], operands: List[str]) -> bool:
    """True if the operand tokens have the shape this syntax expects."""
    if len(syntax) != len(operands):
        return False
    for slot, token in zip(syntax, operands):
        if slot in KEYWORDS:
            if token != slot.lower():
                return False
        elif slot in REGISTER_FIELDS:
            if not is_register(token):
                return False
        elif is_register(token) or token.upper() in KEYWORDS:
            return False
    return True


def parse_mnemonic(text: str) -> Instruction:
    """Parse one mnemonic such as ``ld v0 1`` or ``DRW V1 V2 5``.

    Keywords shared by several encodings (LD, ADD, SE, SNE, JP) pick the
    variant whose operand shapes match: register tokens select the
    register form, keyword tokens their dedicated form, anything else
    the immediate form.
    """
    lower = text.strip().lower()
    if lower.endswith(';'):
        lower = lower[:-1].rstrip()
    parts = lower.split()
    if not parts:
        raise ParseError(text, "Empty instruction")

    candidates = _BY_KEYWORD.get(parts[0])
    if candidates is None:
        raise ParseError(text, "Unknown instruction")
    operands = parts[1:]

    chosen = None
    for cls in candidates:
        if _shape_matches(cls.SYNTAX, operands):
            chosen = cls
            break

    if chosen is None:
        arities = sorted({len(c.SYNTAX) for c in candidates})
        if len(operands) < arities[0]:
            raise ParseError(text, f"Missing argument {len(operands) + 1}")
        if len(operands) > arities[-1]:
            raise ParseError(text, f"Too many arguments ({len(operands)})")
        same_arity = [c for c in candidates if len(c.SYNTAX) == len(operands)]
        if len(same_arity) == 1:
            # Unambiguous form: report the first operand that is wrong
            for slot, token in zip(same_arity[0].SYNTAX, operands):
                if slot in REGISTER_FIELDS and not is_register(token):
                    raise ParseError(text, f"Invalid register name {token}")
                if slot in KEYWORDS and token != slot.lower():
                    raise ParseError(text, f"Expected {slot}, got {token}")
        raise ParseError(text, f"Invalid operands for {parts[0].upper()}")

    kwargs = {}
    for slot, token in zip(chosen.SYNTAX, operands):
        if slot in KEYWORDS:
            continue
        if slot in REGISTER_FIELDS:
            kwargs[slot] = parse_register(token, text)
        else:
            kwargs[slot] = parse_number(token, FIELDS[slot][1], text)
    return chosen(**kwargs)
