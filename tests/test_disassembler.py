"""
Disassembler Tests for the CHIP-8 toolkit.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chip8_assembler import disassemble_source
from chip8_assembler.disassembler import disassemble, to_text, listing
from chip8_assembler.instructions import SetImm, ClearScreen, SetReg, Nop, Draw


ROM = bytes([0x60, 0x01, 0x00, 0xE0, 0x00, 0x00, 0x81, 0x20])


class TestDisassemble:

    def test_stops_at_zero_word(self):
        assert disassemble(ROM) == [SetImm(0, 1), ClearScreen()]

    def test_whole_stream(self):
        assert disassemble(ROM, stop_at_sentinel=False) == \
            [SetImm(0, 1), ClearScreen(), Nop(), SetReg(1, 2)]

    def test_stops_at_unknown_pattern(self):
        assert disassemble(bytes([0x60, 0x01, 0x51, 0x21, 0x60, 0x02])) == [SetImm(0, 1)]

    def test_odd_trailing_byte_ignored(self):
        assert disassemble(bytes([0xD1, 0x25, 0x60])) == [Draw(1, 2, 5)]

    def test_empty(self):
        assert disassemble(b'') == []


class TestTextOutput:

    def test_to_text(self):
        assert to_text(disassemble(ROM)) == "LD V0 1;\nCLS"

    def test_listing_shows_every_word(self):
        text = listing(ROM)
        lines = text.splitlines()
        assert lines[0] == "0x200: 6001  LD V0 1"
        assert lines[2] == "0x204: 0000  NOP"
        assert lines[3] == "0x206: 8120  LD V1 V2"

    def test_listing_base(self):
        assert listing(b'\x00\xE0', base=0x300) == "0x300: 00E0  CLS"

    def test_disassemble_source(self):
        assert disassemble_source(ROM) == "LD V0 1;\nCLS"
        assert disassemble_source(ROM, stop_at_sentinel=False).endswith("NOP;\nLD V1 V2")
        assert disassemble_source(ROM, output="listing").startswith("0x200: 6001")
