"""
CHIP-8 Two-Pass Assembler.

Assembles CHIP-8 mnemonic text into a raw ROM image loaded at $200.

Input:  Assembly text, one statement per line (or ';'-separated)
Output: Raw big-endian bytes

Source format:
  start:                 label (case-insensitive identifier + ':')
  loop: add v0 1         label and instruction on one line
  ld v1 0x10;            trailing ';' is allowed
  jp loop                jp/call may name a label instead of an address
  bytes 0xF0 0x90 90     raw data block, hex bytes ('0x' optional)
  # comment              to end of line

How the two-pass algorithm works:
  Pass 1: Parse every statement into a Line (Instruction or Data). A label
          records the index of the next line. A jp/call naming a label is
          emitted with a placeholder address of 0 and the label is noted
          in ``references`` at the same index.
  Pass 2: For each reference, sum the byte sizes of every line before the
          label's line and add the load address. Instructions are 2 bytes;
          Data blocks are as long as their contents, so a flat index*2 does
          not work once data is mixed in.

Parse errors do not stop pass 1. Each bad line is recorded and all of them
are raised together at the end of the pass.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
import logging
import re

from .instructions import (
    Instruction, ParseError, Jump, Call, parse_mnemonic, is_register,
)

__all__ = [
    'Assembler', 'AssemblerError', 'UndefinedLabelError', 'ReferenceInvariantError',
    'AsmLineError', 'Data', 'Line', 'Program', 'parse_program', 'assemble',
    'PROGRAM_START',
]

log = logging.getLogger(__name__)

PROGRAM_START = 0x200
MAX_ADDRESS = 0xFFF


# ──────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────

@dataclass
class AsmLineError:
    """One recoverable error tied to a source line."""
    line_num: int
    mnemonic: str
    message: str

    def __str__(self) -> str:
        return f"line {self.line_num}: '{self.mnemonic}': {self.message}"


class AssemblerError(Exception):
    """Raised on assembly errors. ``errors`` holds every per-line failure."""
    def __init__(self, message: str, errors: Optional[List[AsmLineError]] = None):
        self.errors = errors or []
        super().__init__(message)


class UndefinedLabelError(AssemblerError):
    """A jp/call names a label that is never defined."""
    def __init__(self, label: str, line_num: int = 0):
        self.label = label
        self.line_num = line_num
        error = AsmLineError(line_num, label, "Undefined label")
        super().__init__(f"Undefined label '{label}' (line {line_num})", [error])


class ReferenceInvariantError(AssemblerError):
    """A reference slot holds something other than jp/call. Internal bug."""


# ──────────────────────────────────────────────
# Program model
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Data:
    """Raw bytes embedded with the ``bytes`` pseudo-instruction."""
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def to_bytes(self) -> bytes:
        return bytes(self.data)

    def __str__(self) -> str:
        return 'BYTES ' + ' '.join(f"0x{b:02X}" for b in self.data)


Line = Union[Instruction, Data]


@dataclass
class Program:
    """Parsed program.

    Invariant: ``references[i]`` is a label name iff ``lines[i]`` is a
    Jump or Call whose target is that label; otherwise None.
    """
    lines: List[Line] = field(default_factory=list)
    labels: Dict[str, int] = field(default_factory=dict)   # label -> line index
    references: List[Optional[str]] = field(default_factory=list)
    line_numbers: List[int] = field(default_factory=list)  # 1-based source lines
    base: int = PROGRAM_START

    def append(self, line: Line, reference: Optional[str] = None, line_num: int = 0):
        self.lines.append(line)
        self.references.append(reference)
        self.line_numbers.append(line_num)

    def offset_of(self, index: int) -> int:
        """Byte offset of line ``index`` from the start of the program."""
        return sum(line.size for line in self.lines[:index])

    def address_of(self, index: int) -> int:
        return self.base + self.offset_of(index)

    @property
    def size(self) -> int:
        return self.offset_of(len(self.lines))

    def fix_references(self):
        """Pass 2: replace every label use with the label's address."""
        for usage, label in enumerate(self.references):
            if label is None:
                continue
            if label not in self.labels:
                raise UndefinedLabelError(label, self.line_numbers[usage])
            target = self.address_of(self.labels[label])
            if target > MAX_ADDRESS:
                raise AssemblerError(
                    f"Label '{label}' resolves to ${target:04X}, beyond $FFF",
                    [AsmLineError(self.line_numbers[usage], label, "Address out of range")])
            instruction = self.lines[usage]
            if not isinstance(instruction, (Jump, Call)):
                raise ReferenceInvariantError(
                    f"unexpected instruction {instruction!r} at line index {usage}")
            self.lines[usage] = instruction.with_target(target)
            log.debug("resolved %s -> $%03X at index %d", label, target, usage)

    def compile(self) -> bytes:
        """Concatenate every line's bytes in program order."""
        out = bytearray()
        for line in self.lines:
            out += line.to_bytes()
        return bytes(out)


# ──────────────────────────────────────────────
# Statement parser (pass 1)
# ──────────────────────────────────────────────

_LABEL_RE = re.compile(r'^([A-Za-z_][A-Za-z0-9_]*):(.*)$')
_IDENT_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
_HEX_BYTE_RE = re.compile(r'^(?:0x)?([0-9a-f]+)$')


def _split_statements(line: str) -> List[str]:
    """Strip the comment and split a source line on ';'."""
    text = line.split('#', 1)[0]
    return [s.strip() for s in text.split(';') if s.strip()]


def _parse_bytes(statement: str) -> Data:
    tokens = statement.split()[1:]
    if not tokens:
        raise ParseError(statement, "BYTES needs at least one value")
    data = bytearray()
    for token in tokens:
        match = _HEX_BYTE_RE.match(token.lower())
        if not match:
            raise ParseError(statement, f"Couldn't parse value {token}")
        value = int(match.group(1), 16)
        if not 0 <= value <= 0xFF:
            raise ParseError(statement, f"Value {token} is not a single byte")
        data.append(value)
    return Data(bytes(data))


def _parse_statement(statement: str):
    """Parse one instruction statement. Returns (line, label_reference)."""
    parts = statement.lower().split()
    keyword = parts[0]

    if keyword == 'bytes':
        return _parse_bytes(statement), None

    # jp/call with a label operand
    if keyword in ('jp', 'call') and len(parts) == 2:
        operand = parts[1]
        if _IDENT_RE.match(operand) and not is_register(operand):
            placeholder = Jump(0) if keyword == 'jp' else Call(0)
            return placeholder, operand

    return parse_mnemonic(statement), None


def parse_program(source: str, base: int = PROGRAM_START) -> Program:
    """Pass 1: build the Program and its label table.

    Raises AssemblerError listing every bad line if any line fails.
    """
    program = Program(base=base)
    errors: List[AsmLineError] = []

    for line_num, raw in enumerate(source.splitlines(), 1):
        for statement in _split_statements(raw):
            match = _LABEL_RE.match(statement)
            if match:
                label = match.group(1).lower()
                if label in program.labels:
                    errors.append(AsmLineError(line_num, statement, f"Duplicate label '{label}'"))
                else:
                    program.labels[label] = len(program.lines)
                statement = match.group(2).strip()
                if not statement:
                    continue
            try:
                line, reference = _parse_statement(statement)
            except ParseError as e:
                errors.append(AsmLineError(line_num, e.mnemonic, e.message))
                continue
            program.append(line, reference, line_num)

    log.debug("pass 1: %d lines, %d labels, %d errors",
              len(program.lines), len(program.labels), len(errors))
    if errors:
        raise AssemblerError(f"{len(errors)} error(s) in pass 1", errors)
    return program


# ──────────────────────────────────────────────
# The Assembler
# ──────────────────────────────────────────────

class Assembler:
    """Two-pass CHIP-8 assembler.

    Usage:
        asm = Assembler()
        rom = asm.assemble(source_text)
        print(asm.get_listing())
    """

    def __init__(self, base: int = PROGRAM_START):
        self.base = base
        self.program: Optional[Program] = None
        self.binary: bytes = b''
        self.errors: List[AsmLineError] = []

    @property
    def symbols(self) -> Dict[str, int]:
        """Label name -> resolved address."""
        if self.program is None:
            return {}
        return {name: self.program.address_of(index)
                for name, index in self.program.labels.items()}

    def assemble(self, source: str) -> bytes:
        """Assemble source text and return the ROM bytes."""
        self.errors = []
        self.program = None
        self.binary = b''
        try:
            program = parse_program(source, self.base)
            program.fix_references()
        except AssemblerError as e:
            self.errors = list(e.errors)
            raise
        self.program = program
        self.binary = program.compile()
        log.debug("assembled %d bytes", len(self.binary))
        return self.binary

    def get_listing(self) -> str:
        """Return a listing with address, bytes and mnemonic for every line."""
        if self.program is None:
            return ""
        by_index: Dict[int, List[str]] = {}
        for name, index in self.program.labels.items():
            by_index.setdefault(index, []).append(name)

        lines = [f"{'ADDR':>6}  {'BYTES':<12}  SOURCE", "-" * 48]
        for index, line in enumerate(self.program.lines):
            for name in by_index.get(index, []):
                lines.append(f"{'':6}  {'':12}  {name}:")
            addr = self.program.address_of(index)
            hex_str = ' '.join(f"{b:02X}" for b in line.to_bytes())
            if len(hex_str) > 12:
                hex_str = hex_str[:9] + '...'
            lines.append(f"0x{addr:03X}   {hex_str:<12}  {line}")
        for name in by_index.get(len(self.program.lines), []):
            lines.append(f"{'':6}  {'':12}  {name}:")
        return '\n'.join(lines)


# ──────────────────────────────────────────────
# Convenience functions
# ──────────────────────────────────────────────

def assemble(source: str) -> bytes:
    """Assemble source text, return the ROM bytes."""
    return Assembler().assemble(source)
