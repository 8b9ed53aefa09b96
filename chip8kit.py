#!/usr/bin/env python3
"""
chip8kit — Unified CHIP-8 Toolkit
=================================

One CLI for everything:
    chip8kit asm     — Assemble CHIP-8 mnemonics to a ROM
    chip8kit disasm  — Disassemble a ROM to mnemonics or a listing
    chip8kit run     — Run a ROM headless and show the final machine state

Usage:
    python chip8kit.py <command> [options]
    python chip8kit.py --help
    python chip8kit.py <command> --help

Examples:
    python chip8kit.py asm maze.asm -o maze.ch8 --listing
    python chip8kit.py disasm maze.ch8 -o maze.asm
    python chip8kit.py disasm maze.ch8 --listing --all
    python chip8kit.py run maze.ch8 --frames 120 --no-sleep --show-display
    python chip8kit.py -v run pong.ch8 --speed fast --break 0x2A0 --trace
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from chip8_assembler import __version__
from chip8_assembler.assembler import Assembler, AssemblerError
from chip8_assembler.disassembler import disassemble, to_text, listing
from chip8_emulator.config import EmulatorConfig, SPEED_PROFILES
from chip8_emulator.driver import Chip8Driver, HeadlessFrontend
from chip8_emulator.emu import Chip8Emulator, StopReason
from chip8_emulator.errors import EmulatorError

log = logging.getLogger("chip8kit")

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"


# ═════════════════════════════════════════════════════════════════════════════
# LOGGING
# ═════════════════════════════════════════════════════════════════════════════

def setup_logging(verbose: int = 0, quiet: bool = False,
                  log_file: Optional[str] = None) -> logging.Logger:
    """Configure the root logger for a CLI run.

    Console (rich, stderr): WARNING by default, INFO with -v, DEBUG with -vv,
    ERROR only with -q. File: everything at DEBUG when --log-file is given.
    """
    if quiet:
        console_level = logging.ERROR
    elif verbose == 0:
        console_level = logging.WARNING
    elif verbose == 1:
        console_level = logging.INFO
    else:
        console_level = logging.DEBUG

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_chip8kit", False):
            root.removeHandler(handler)
            handler.close()

    ch = RichHandler(
        level=console_level,
        console=Console(stderr=True),
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
    )
    ch._chip8kit = True
    root.addHandler(ch)
    root_level = console_level

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        fh._chip8kit = True
        root.addHandler(fh)
        root_level = logging.DEBUG

    root.setLevel(root_level)
    return log


# ═════════════════════════════════════════════════════════════════════════════
# ARGUMENTS
# ═════════════════════════════════════════════════════════════════════════════

def _parse_hex(s):
    """Parse hex string with optional 0x or $ prefix."""
    s = s.strip()
    if s.startswith("0x") or s.startswith("0X"):
        return int(s, 16)
    if s.startswith("$"):
        return int(s[1:], 16)
    return int(s, 16)


def _parse_speed(s):
    """Clock speed in Hz, or a SPEED_PROFILES name."""
    if s in SPEED_PROFILES:
        return SPEED_PROFILES[s]
    try:
        value = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"expected Hz or one of: {', '.join(SPEED_PROFILES)}") from None
    if value < 60:
        raise argparse.ArgumentTypeError("clock speed must be at least 60 Hz")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chip8kit",
        description="CHIP-8 Toolkit — assemble, disassemble, run",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""commands:
  asm        Assemble CHIP-8 source to a ROM image
  disasm     Disassemble a ROM image to mnemonics
  run        Run a ROM in the headless emulator
""",
    )
    parser.add_argument("--version", action="version", version=f"chip8kit {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase verbosity (-v, -vv)")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Suppress all log output except errors")
    parser.add_argument("--log-file", help="Write a DEBUG log to this file")
    sub = parser.add_subparsers(dest="command", metavar="command")

    # ── asm ──────────────────────────────────────────────────────────────
    p_asm = sub.add_parser("asm", help="Assemble CHIP-8 source to a ROM image")
    p_asm.add_argument("input", help="Input .asm file")
    p_asm.add_argument("-o", "--output", help="Output ROM (default: input with .ch8)")
    p_asm.add_argument("--listing", action="store_true", help="Print listing to stdout")

    # ── disasm ───────────────────────────────────────────────────────────
    p_dis = sub.add_parser("disasm", help="Disassemble a ROM image")
    p_dis.add_argument("input", help="Input ROM file")
    p_dis.add_argument("-o", "--output", help="Output file (default: stdout)")
    p_dis.add_argument("--all", action="store_true",
                       help="Keep going past the first NOP (zero) word")
    p_dis.add_argument("--listing", action="store_true",
                       help="Address + opcode + mnemonic for every word")

    # ── run ──────────────────────────────────────────────────────────────
    p_run = sub.add_parser("run", help="Run a ROM in the headless emulator")
    p_run.add_argument("rom", help="ROM file")
    p_run.add_argument("--speed", type=_parse_speed, default=SPEED_PROFILES["default"],
                       help=f"Clock speed in Hz or profile ({', '.join(SPEED_PROFILES)})")
    p_run.add_argument("--frames", type=int, default=600,
                       help="Frames to run at 60 Hz (default: 600)")
    p_run.add_argument("--seed", type=int, default=None, help="Seed for RND")
    p_run.add_argument("--trace", action="store_true", help="Print an instruction trace")
    p_run.add_argument("--break", dest="breakpoints", type=_parse_hex, action="append",
                       default=[], metavar="ADDR", help="Stop when PC reaches ADDR (hex)")
    p_run.add_argument("--no-sleep", action="store_true",
                       help="Run frames back to back instead of at 60 Hz")
    p_run.add_argument("--show-display", action="store_true",
                       help="Print the final framebuffer")
    p_run.add_argument("--dump", type=_parse_hex, default=None, metavar="ADDR",
                       help="Hex dump 64 bytes of memory from ADDR")
    return parser


# ═════════════════════════════════════════════════════════════════════════════
# COMMAND IMPLEMENTATIONS
# ═════════════════════════════════════════════════════════════════════════════

# ── asm ──────────────────────────────────────────────────────────────────
def cmd_asm(args) -> int:
    try:
        with open(args.input, "r", encoding="utf-8") as f:
            source = f.read()
    except UnicodeDecodeError:
        print(f"Error: {args.input}: not valid UTF-8", file=sys.stderr)
        return 1

    asm = Assembler()
    try:
        rom = asm.assemble(source)
    except AssemblerError as e:
        if e.errors:
            for err in e.errors:
                print(err, file=sys.stderr)
        else:
            print(f"Assembly error: {e}", file=sys.stderr)
        return 1

    if args.listing:
        print(asm.get_listing())

    out = args.output or os.path.splitext(args.input)[0] + ".ch8"
    with open(out, "wb") as f:
        f.write(rom)
    print(f"Assembled {len(rom)} bytes -> {out}")
    return 0


# ── disasm ───────────────────────────────────────────────────────────────
def cmd_disasm(args) -> int:
    with open(args.input, "rb") as f:
        data = f.read()

    if args.listing:
        output = listing(data)
    else:
        output = to_text(disassemble(data, stop_at_sentinel=not args.all))

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output + "\n")
        print(f"Disassembled {len(data)} bytes -> {args.output}")
    else:
        print(output)
    return 0


# ── run ──────────────────────────────────────────────────────────────────
def render_registers(emu: Chip8Emulator) -> Table:
    regs = emu.regs
    table = Table(title="Registers", show_header=False)
    for _ in range(8):
        table.add_column(justify="right")
    for half in (0, 8):
        table.add_row(*(f"V{i:X}={regs.V[i]:02X}" for i in range(half, half + 8)))

    status = Table.grid(padding=(0, 2))
    status.add_row(
        f"PC=${regs.PC:03X}", f"I=${regs.I:04X}", f"SP={len(regs.stack)}",
        f"DT={emu.timers.delay}", f"ST={emu.timers.sound}",
        "WAIT=V%X" % regs.key_wait if regs.key_wait is not None else "",
    )
    outer = Table.grid()
    outer.add_row(table)
    outer.add_row(status)
    return outer


def render_display(emu: Chip8Emulator) -> Panel:
    return Panel("\n".join(emu.display.render()), title="Display",
                 expand=False, padding=0)


def cmd_run(args) -> int:
    config = EmulatorConfig(
        clock_speed=args.speed,
        seed=args.seed,
        realtime=not args.no_sleep,
        trace=args.trace,
    )
    emu = Chip8Emulator(config)
    try:
        emu.load_rom(args.rom)
    except EmulatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    for addr in args.breakpoints:
        emu.add_breakpoint(addr)

    frontend = HeadlessFrontend()
    driver = Chip8Driver(emu, frontend, config, stop_on_break=True)
    reason = driver.run(max_frames=args.frames)

    console = Console(highlight=False)
    if args.trace:
        console.print(emu.get_trace(), markup=False)
    if args.show_display:
        console.print(render_display(emu))
    console.print(render_registers(emu))
    if args.dump is not None:
        console.print(emu.mem.hexdump(args.dump, 64), markup=False)

    stop = reason.value if reason is not None else "QUIT"
    console.print(f"Stopped: {stop} after {driver.frames} frames "
                  f"({frontend.sound_frames} with sound)")
    return 1 if reason is StopReason.ERROR else 0


COMMANDS = {
    "asm": cmd_asm,
    "disasm": cmd_disasm,
    "run": cmd_run,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    setup_logging(args.verbose, args.quiet, args.log_file)

    handler = COMMANDS[args.command]
    try:
        return handler(args)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
