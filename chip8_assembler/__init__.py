"""
CHIP-8 Assembler / Disassembler
===============================
Mnemonic toolchain for the CHIP-8 virtual machine.

Architecture:
    ┌────────────┐    ┌─────────────┐    ┌──────────────┐    ┌──────────┐
    │ Asm Source │───>│ parse (p.1) │───>│ fix refs (2) │───>│ ROM .ch8 │
    └────────────┘    └─────────────┘    └──────────────┘    └──────────┘
                                                                  │
    ┌────────────┐    ┌─────────────┐                             │
    │ Mnemonics  │<───│ disassemble │<────────────────────────────┘
    └────────────┘    └─────────────┘

    - instructions.py: the 35-variant instruction set, binary + text codecs
    - assembler.py:    two-pass label resolver, listing
    - disassembler.py: ROM -> instructions / text / listing
"""

__version__ = "0.1.0"

from .instructions import (
    Instruction, ParseError, INSTRUCTION_SET, encode, decode, parse_mnemonic,
)
from .assembler import (
    Assembler, AssemblerError, UndefinedLabelError, ReferenceInvariantError,
    AsmLineError, Program, parse_program, assemble,
)
from .disassembler import disassemble, to_text, listing


def disassemble_source(data: bytes, *, output: str = "text",
                       stop_at_sentinel: bool = True, base: int = 0x200) -> str:
    """Disassemble a ROM image to mnemonic text or a listing.

    Args:
        data: raw ROM bytes.
        output: 'text' (default, ';'-separated mnemonics) or 'listing'.
        stop_at_sentinel: stop at the first NOP word (text output only).
        base: load address used for listing addresses.
    """
    if output == 'listing':
        return listing(data, base)
    return to_text(disassemble(data, stop_at_sentinel))
