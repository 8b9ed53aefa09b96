"""
CHIP-8 Disassembler.

Turns a raw ROM image back into instructions, mnemonic text or an
address-annotated listing. The text form uses ';' as the statement
separator, so it feeds straight back into the assembler.
"""

from __future__ import annotations
from typing import List
import logging

from .instructions import Instruction, Nop, decode, INSTRUCTION_SIZE

__all__ = ['disassemble', 'to_text', 'listing']

log = logging.getLogger(__name__)


def disassemble(data: bytes, stop_at_sentinel: bool = True) -> List[Instruction]:
    """Decode ``data`` two bytes at a time.

    Stops when the data runs out, or (with ``stop_at_sentinel``) at the first
    word that decodes to NOP. A trailing odd byte is ignored.
    """
    result: List[Instruction] = []
    for offset in range(0, len(data) - 1, INSTRUCTION_SIZE):
        instruction = decode((data[offset] << 8) | data[offset + 1])
        if stop_at_sentinel and isinstance(instruction, Nop):
            log.debug("sentinel at offset %d", offset)
            break
        result.append(instruction)
    return result


def to_text(instructions: List[Instruction]) -> str:
    return ";\n".join(str(i) for i in instructions)


def listing(data: bytes, base: int = 0x200) -> str:
    """One line per word: ``0x200: 6001  LD V0 1``."""
    lines = []
    for offset in range(0, len(data) - 1, INSTRUCTION_SIZE):
        word = (data[offset] << 8) | data[offset + 1]
        lines.append(f"0x{base + offset:03X}: {word:04X}  {decode(word)}")
    return '\n'.join(lines)
