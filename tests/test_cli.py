"""
CLI Tests for chip8kit — asm, disasm and run through temp files.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging

import pytest
import chip8kit


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestAsmCommand:

    def test_assembles_to_file(self, tmp_path, capsys):
        src = _write(tmp_path / "prog.asm", "ld v0 1\nloop: jp loop\n")
        out = tmp_path / "prog.ch8"
        assert chip8kit.main(["asm", src, "-o", str(out)]) == 0
        assert out.read_bytes() == bytes([0x60, 0x01, 0x12, 0x02])
        assert "Assembled 4 bytes" in capsys.readouterr().out

    def test_default_output_name(self, tmp_path):
        src = _write(tmp_path / "prog.asm", "cls\n")
        assert chip8kit.main(["asm", src]) == 0
        assert (tmp_path / "prog.ch8").read_bytes() == b'\x00\xE0'

    def test_listing(self, tmp_path, capsys):
        src = _write(tmp_path / "prog.asm", "ld v0 1\n")
        assert chip8kit.main(["asm", src, "-o", str(tmp_path / "p.ch8"), "--listing"]) == 0
        assert "LD V0 1" in capsys.readouterr().out

    def test_errors_write_nothing(self, tmp_path, capsys):
        src = _write(tmp_path / "bad.asm", "ld v0 1\nfoo v1\nld v0\n")
        out = tmp_path / "bad.ch8"
        assert chip8kit.main(["asm", src, "-o", str(out)]) == 1
        err = capsys.readouterr().err
        assert "line 2: 'foo v1': Unknown instruction" in err
        assert "line 3: 'ld v0': Missing argument 2" in err
        assert not out.exists()

    def test_missing_input(self, tmp_path, capsys):
        assert chip8kit.main(["asm", str(tmp_path / "nope.asm")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_invalid_utf8_source(self, tmp_path, capsys):
        src = tmp_path / "bad.asm"
        src.write_bytes(b"ld v0 1\n\xff\xfe\n")
        out = tmp_path / "bad.ch8"
        assert chip8kit.main(["asm", str(src), "-o", str(out)]) == 1
        assert "Error:" in capsys.readouterr().err
        assert not out.exists()


class TestDisasmCommand:

    def test_to_stdout(self, tmp_path, capsys):
        rom = tmp_path / "r.ch8"
        rom.write_bytes(bytes([0x60, 0x01, 0x00, 0xE0, 0x00, 0x00, 0x61, 0x02]))
        assert chip8kit.main(["disasm", str(rom)]) == 0
        assert capsys.readouterr().out == "LD V0 1;\nCLS\n"

    def test_all_and_output_file(self, tmp_path):
        rom = tmp_path / "r.ch8"
        rom.write_bytes(bytes([0x60, 0x01, 0x00, 0x00, 0x61, 0x02]))
        out = tmp_path / "r.asm"
        assert chip8kit.main(["disasm", str(rom), "--all", "-o", str(out)]) == 0
        assert out.read_text(encoding="utf-8") == "LD V0 1;\nNOP;\nLD V1 2\n"

    def test_listing(self, tmp_path, capsys):
        rom = tmp_path / "r.ch8"
        rom.write_bytes(bytes([0xA2, 0x10]))
        assert chip8kit.main(["disasm", str(rom), "--listing"]) == 0
        assert "0x200: A210  LD I 0x210" in capsys.readouterr().out

    def test_asm_disasm_round_trip(self, tmp_path):
        src = _write(tmp_path / "a.asm", "start:\nld v0 5\nadd v0 v1\nse v0 3\njp start\n")
        rom = tmp_path / "a.ch8"
        assert chip8kit.main(["asm", src, "-o", str(rom)]) == 0
        text = tmp_path / "b.asm"
        assert chip8kit.main(["disasm", str(rom), "-o", str(text)]) == 0
        rom2 = tmp_path / "b.ch8"
        assert chip8kit.main(["asm", str(text), "-o", str(rom2)]) == 0
        assert rom.read_bytes() == rom2.read_bytes()


class TestRunCommand:

    def _rom(self, tmp_path, source):
        src = _write(tmp_path / "r.asm", source)
        rom = tmp_path / "r.ch8"
        assert chip8kit.main(["asm", src, "-o", str(rom)]) == 0
        return str(rom)

    def test_runs_frames(self, tmp_path, capsys):
        rom = self._rom(tmp_path, "ld v0 5\nloop: jp loop\n")
        capsys.readouterr()
        assert chip8kit.main(["run", rom, "--frames", "3", "--no-sleep"]) == 0
        out = capsys.readouterr().out
        assert "Stopped: TIMEOUT after 3 frames" in out
        assert "V0=05" in out

    def test_breakpoint(self, tmp_path, capsys):
        rom = self._rom(tmp_path, "ld v0 1\nld v1 2\nloop: jp loop\n")
        capsys.readouterr()
        assert chip8kit.main(["run", rom, "--no-sleep", "--break", "0x202"]) == 0
        out = capsys.readouterr().out
        assert "Stopped: BREAK" in out
        assert "V0=01" in out
        assert "V1=00" in out

    def test_error_exit_status(self, tmp_path, capsys):
        rom = self._rom(tmp_path, "ret\n")
        capsys.readouterr()
        assert chip8kit.main(["-q", "run", rom, "--frames", "2", "--no-sleep"]) == 1
        assert "Stopped: ERROR" in capsys.readouterr().out

    def test_show_display(self, tmp_path, capsys):
        rom = self._rom(tmp_path, "ld i 0\ndrw v0 v0 5\nloop: jp loop\n")
        capsys.readouterr()
        assert chip8kit.main(["run", rom, "--frames", "1", "--no-sleep",
                              "--show-display"]) == 0
        assert "████" in capsys.readouterr().out

    def test_trace_and_dump(self, tmp_path, capsys):
        rom = self._rom(tmp_path, "ld v0 7\nloop: jp loop\n")
        capsys.readouterr()
        assert chip8kit.main(["run", rom, "--frames", "1", "--no-sleep",
                              "--trace", "--dump", "0x200"]) == 0
        out = capsys.readouterr().out
        assert "$200: 6007" in out
        assert "200  60 07 12 02" in out

    def test_speed_profile(self, tmp_path, capsys):
        rom = self._rom(tmp_path, "loop: add v0 1\njp loop\n")
        capsys.readouterr()
        assert chip8kit.main(["run", rom, "--frames", "1", "--no-sleep",
                              "--speed", "fast"]) == 0
        # 1000 Hz / 60 = 16 steps = 8 increments
        assert "V0=08" in capsys.readouterr().out

    def test_rom_too_large(self, tmp_path, capsys):
        rom = tmp_path / "big.ch8"
        rom.write_bytes(bytes(4000))
        assert chip8kit.main(["run", str(rom), "--no-sleep"]) == 1
        assert "only 3584 fit" in capsys.readouterr().err


class TestMain:

    def test_no_command_prints_help(self, capsys):
        assert chip8kit.main([]) == 0
        assert "chip8kit" in capsys.readouterr().out

    def test_log_file(self, tmp_path):
        src = _write(tmp_path / "p.asm", "cls\n")
        log_path = tmp_path / "logs" / "run.log"
        assert chip8kit.main(["--log-file", str(log_path), "asm", src]) == 0
        for handler in logging.getLogger().handlers:
            handler.flush()
        text = log_path.read_text(encoding="utf-8")
        assert "chip8_assembler.assembler" in text
        assert "assembled 2 bytes" in text

    def test_bad_speed(self, tmp_path):
        with pytest.raises(SystemExit):
            chip8kit.main(["run", "x.ch8", "--speed", "warp"])
