"""
Assembler Tests for the CHIP-8 toolkit.

Tests the two-pass assembler: label table, reference fix-up with
variable-length data blocks, error collection, and emitted bytes.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from chip8_assembler.assembler import (
    Assembler, AssemblerError, UndefinedLabelError, ReferenceInvariantError,
    Data, Program, parse_program, assemble,
)
from chip8_assembler.instructions import Jump, Call, SetImm, AddImm, SkipEqReg, Nop
from chip8_assembler.disassembler import disassemble, to_text


COUNT_LOOP = """\
start:
ld v0 1
ld v1 10
loop:
add v0 1
se v0 v1
jp loop
end:
jp end
"""


class TestLabelResolution:
    """Pass 1 label table and pass 2 address fix-up."""

    def test_labels_and_references(self):
        program = parse_program(COUNT_LOOP)
        assert len(program.lines) == 6
        assert program.labels == {"start": 0, "loop": 2, "end": 5}
        assert program.references == [None, None, None, None, "loop", "end"]
        assert program.line_numbers == [2, 3, 5, 6, 7, 9]

    def test_fix_references(self):
        program = parse_program(COUNT_LOOP)
        program.fix_references()
        assert program.lines[4] == Jump(0x204)
        assert program.lines[5] == Jump(0x20A)

    def test_data_block_shifts_addresses(self):
        source = COUNT_LOOP.replace("end:", "bytes 01 02 03 04 0x05\nend:")
        program = parse_program(source)
        assert isinstance(program.lines[5], Data)
        assert program.lines[5].size == 5
        program.fix_references()
        assert program.lines[6] == Jump(0x20F)
        assert program.address_of(6) == 0x20F
        assert program.size == 17

    def test_backward_reference_to_start(self):
        program = parse_program("start:\nbytes 0xAA 0xBB 0xCC\njp start\njp done\ndone:\ncls")
        program.fix_references()
        assert program.lines[1] == Jump(0x200)
        assert program.lines[2] == Jump(0x207)

    def test_call_takes_label(self):
        rom = assemble("call sub\nloop: jp loop\nsub: ret")
        assert rom == bytes([0x22, 0x04, 0x12, 0x02, 0x00, 0xEE])

    def test_labels_are_case_insensitive(self):
        assert assemble("Loop:\njp LOOP") == b'\x12\x00'

    def test_label_and_instruction_on_one_line(self):
        assert assemble("loop: add v0 1; jp loop") == bytes([0x70, 0x01, 0x12, 0x00])

    def test_trailing_label(self):
        program = parse_program("jp tail\ncls\ntail:")
        program.fix_references()
        assert program.lines[0] == Jump(0x204)

    def test_numeric_jump_is_not_a_reference(self):
        program = parse_program("jp 0x300\njp v0 0x10")
        assert program.references == [None, None]


class TestEmission:
    """Emitted bytes and source format details."""

    def test_simple_program(self):
        assert assemble("ld v0 1\nld v1 10") == bytes([0x60, 0x01, 0x61, 0x0A])

    def test_count_loop_bytes(self):
        rom = assemble(COUNT_LOOP)
        assert rom == bytes([
            0x60, 0x01,  # ld v0 1
            0x61, 0x0A,  # ld v1 10
            0x70, 0x01,  # add v0 1
            0x50, 0x10,  # se v0 v1
            0x12, 0x04,  # jp loop
            0x12, 0x0A,  # jp end
        ])

    def test_comments_and_blank_lines(self):
        source = "# header\n\nld v0 1   # load\n   \ncls # clear\n"
        assert assemble(source) == bytes([0x60, 0x01, 0x00, 0xE0])

    def test_semicolon_separates_statements(self):
        assert assemble("ld v0 1; ld v1 2;") == bytes([0x60, 0x01, 0x61, 0x02])

    def test_bytes_block(self):
        assert assemble("bytes F0 0x90 90 f0") == bytes([0xF0, 0x90, 0x90, 0xF0])

    def test_disassembly_reassembles(self):
        rom = assemble(COUNT_LOOP)
        text = to_text(disassemble(rom))
        assert assemble(text) == rom


class TestErrors:
    """Per-line error collection."""

    def test_errors_collected_per_line(self):
        with pytest.raises(AssemblerError) as exc:
            assemble("ld v0 1\nfoo v1\nadd v0 xyz\ncls")
        errors = exc.value.errors
        assert len(errors) == 2
        assert (errors[0].line_num, errors[0].mnemonic, errors[0].message) == \
            (2, "foo v1", "Unknown instruction")
        assert (errors[1].line_num, errors[1].message) == (3, "Couldn't parse value xyz")
        assert str(errors[0]) == "line 2: 'foo v1': Unknown instruction"

    def test_undefined_label(self):
        with pytest.raises(UndefinedLabelError) as exc:
            assemble("cls\njp nowhere")
        assert exc.value.label == "nowhere"
        assert exc.value.line_num == 2
        assert isinstance(exc.value, AssemblerError)

    def test_duplicate_label(self):
        with pytest.raises(AssemblerError) as exc:
            assemble("a:\ncls\na:\nret")
        assert "Duplicate label 'a'" in exc.value.errors[0].message
        assert exc.value.errors[0].line_num == 3

    def test_bad_data_byte(self):
        with pytest.raises(AssemblerError) as exc:
            assemble("bytes 01 1FF")
        assert exc.value.errors[0].message == "Value 1FF is not a single byte"

    def test_data_byte_must_be_plain_hex(self):
        with pytest.raises(AssemblerError) as exc:
            assemble("bytes +1 f_f")
        assert [e.message for e in exc.value.errors] == ["Couldn't parse value +1"]
        assert assemble("bytes 0x0A ff") == bytes([0x0A, 0xFF])

    def test_reference_on_wrong_instruction(self):
        program = Program(lines=[SetImm(0, 1)], labels={"a": 0},
                          references=["a"], line_numbers=[1])
        with pytest.raises(ReferenceInvariantError):
            program.fix_references()

    def test_target_beyond_address_space(self):
        program = Program(base=0xFFE)
        program.append(Nop())
        program.labels["far"] = 1
        program.append(Jump(0), "far", 2)
        with pytest.raises(AssemblerError):
            program.fix_references()


class TestAssemblerClass:
    """Assembler object state: binary, symbols, listing, errors."""

    def test_symbols(self):
        asm = Assembler()
        asm.assemble(COUNT_LOOP)
        assert asm.symbols == {"start": 0x200, "loop": 0x204, "end": 0x20A}

    def test_listing(self):
        asm = Assembler()
        asm.assemble(COUNT_LOOP)
        listing = asm.get_listing()
        assert "0x200   60 01" in listing
        assert "LD V0 1" in listing
        assert "loop:" in listing
        assert "JP 0x20A" in listing

    def test_errors_attribute(self):
        asm = Assembler()
        with pytest.raises(AssemblerError):
            asm.assemble("ld v0")
        assert len(asm.errors) == 1
        assert asm.errors[0].message == "Missing argument 2"
        assert asm.program is None

    def test_program_parsed_instructions(self):
        asm = Assembler()
        asm.assemble(COUNT_LOOP)
        assert asm.program.lines[2] == AddImm(0, 1)
        assert asm.program.lines[3] == SkipEqReg(0, 1)
        assert asm.program.lines[5] == Jump(0x20A)
        assert not isinstance(asm.program.lines[0], Call)
