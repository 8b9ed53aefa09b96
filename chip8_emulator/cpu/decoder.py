"""
CHIP-8 Emulator — Opcode Fetch / Decode

Opcodes are one big-endian 16-bit word. Decoding is delegated to the
shared instruction table in chip8_assembler.instructions, so the
emulator, assembler and disassembler can never disagree on an encoding.

Undefined patterns decode to NOP rather than raising; a ROM with junk in
it keeps running, the way the original interpreters behaved.

Decoded instructions are immutable, so results are memoised per word.
"""

from functools import lru_cache
from typing import Tuple

from chip8_assembler.instructions import Instruction, decode

OPCODE_SIZE = 2


@lru_cache(maxsize=4096)
def decode_word(word: int) -> Instruction:
    return decode(word & 0xFFFF)


def decode_opcode(memory, pc: int) -> Tuple[Instruction, int]:
    """Fetch and decode the opcode at ``pc``.

    Returns: (instruction, raw_word)
    """
    word = memory.read16(pc)
    return decode_word(word), word
