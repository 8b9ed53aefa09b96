"""
CHIP-8 Emulator — Main Emulator Class

Integrates:
  - Register file + call stack (cpu/regs.py)
  - Memory + framebuffer (mem/memory.py)
  - Opcode decoder (cpu/decoder.py)
  - ALU operations (cpu/alu.py)
  - Peripherals: delay/sound timers, hex keypad

Execution model (one step):
  1. If a LD Vx, K is pending, do nothing and report WAIT_KEY
  2. Fetch the word at PC and decode it
  3. Execute the handler
  4. PC += 2, except after JP, JP V0 and CALL which set PC themselves

CALL pushes its own address and RET pops it, so the +2 after RET lands on
the instruction following the CALL.

Timers are not touched by step(); the driver calls tick_timers() at 60 Hz.

Termination reasons for run():
  - TIMEOUT:   max_steps executed
  - BREAK:     PC reached a breakpoint
  - WAIT_KEY:  blocked on LD Vx, K until set_key()
  - ERROR:     an EmulatorError was raised (logged)
"""

from __future__ import annotations
from enum import Enum
from typing import Dict, List, Optional, Set
import logging
import random

from chip8_assembler.instructions import (
    INSTRUCTION_SET, Instruction,
    Nop, ClearScreen, Ret, Jump, Call, JumpOffset,
    SkipEqImm, SkipNeImm, SkipEqReg, SkipNeReg,
    SetImm, AddImm, SetReg, OrReg, AndReg, XorReg, AddReg, SubReg,
    ShiftRight, SubFrom, ShiftLeft, Rand,
    SetIndex, AddIndex, SetChar, Draw,
    SkipKeyPressed, SkipKeyNotPressed, WaitForKey,
    GetDelay, SetDelay, SetSound, BCD, RegDump, RegLoad,
)
from .config import EmulatorConfig, MEMORY_SIZE, PROGRAM_START, FONT_BASE, GLYPH_SIZE
from .errors import EmulatorError, RomTooLargeError
from .cpu.regs import Registers
from .cpu.decoder import decode_opcode, OPCODE_SIZE
from .cpu import alu
from .mem.memory import Memory, Display, read_rom
from .periph.timer import Timers
from .periph.keypad import Keypad

log = logging.getLogger(__name__)


class StopReason(Enum):
    TIMEOUT = 'TIMEOUT'
    BREAK = 'BREAK'
    WAIT_KEY = 'WAIT_KEY'
    ERROR = 'ERROR'


# Instructions that load PC themselves instead of falling through
_SETS_PC = (Jump, JumpOffset, Call)


class Chip8Emulator:
    """CHIP-8 virtual machine.

    Usage:
        emu = Chip8Emulator()
        emu.load_rom('pong.ch8')
        reason = emu.run(max_steps=1000)
        print(emu.regs.display())
    """

    DEFAULT_MAX_STEPS = 1_000_000

    def __init__(self, config: Optional[EmulatorConfig] = None,
                 rng: Optional[random.Random] = None):
        self.config = config or EmulatorConfig()

        # Core components
        self.regs = Registers(self.config.max_stack_depth)
        self.mem = Memory()
        self.display = Display()

        # Peripherals
        self.timers = Timers()
        self.keypad = Keypad()

        self.rng = rng or random.Random(self.config.seed)

        # Breakpoints: set of PC addresses that trigger BREAK
        self._breakpoints: Set[int] = set()
        self._resume_from: Optional[int] = None

        # Trace output
        self._trace = self.config.trace
        self._trace_output: List[str] = []

        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load_rom(self, path_or_data, base: int = PROGRAM_START):
        """Load a ROM file or bytes at ``base`` and point PC at it."""
        data = read_rom(path_or_data)
        limit = MEMORY_SIZE - base
        if len(data) > limit:
            raise RomTooLargeError(len(data), limit)
        self.mem.load_binary(data, base)
        self.regs.PC = base
        log.info("loaded %d-byte ROM at $%03X", len(data), base)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction.

        Returns StopReason.WAIT_KEY without executing anything while a
        LD Vx, K is pending, else None. EmulatorError propagates.
        """
        if self.regs.key_wait is not None:
            return StopReason.WAIT_KEY

        pc = self.regs.PC
        instruction, word = decode_opcode(self.mem, pc)

        if self._trace:
            line = f"${pc:03X}: {word:04X}  {str(instruction):<16} {self.regs.display()}"
            self._trace_output.append(line)
            log.debug(line)

        self._dispatch[type(instruction)](instruction)

        if not isinstance(instruction, _SETS_PC):
            self.regs.PC = (self.regs.PC + OPCODE_SIZE) & 0xFFF
        return None

    def run(self, max_steps: Optional[int] = None) -> StopReason:
        """Run until a breakpoint, a key wait, an error or ``max_steps``.

        A run that starts on the breakpoint it last stopped at steps past it.
        """
        if max_steps is None:
            max_steps = self.DEFAULT_MAX_STEPS

        resume_from, self._resume_from = self._resume_from, None
        for count in range(max_steps):
            pc = self.regs.PC
            if pc in self._breakpoints and not (count == 0 and pc == resume_from):
                self._resume_from = pc
                log.debug("breakpoint at $%03X", pc)
                return StopReason.BREAK
            try:
                reason = self.step()
            except EmulatorError as e:
                self._log_error(e)
                return StopReason.ERROR
            if reason is not None:
                return reason
        return StopReason.TIMEOUT

    def _log_error(self, error: EmulatorError):
        pc = self.regs.PC
        instruction, word = decode_opcode(self.mem, pc)
        log.error("%s at $%03X (%04X %s)", error, pc, word, instruction)
        if self._trace:
            self._trace_output.append(f"  ERROR: {error}")

    def tick_timers(self):
        """One 60 Hz frame: decrement delay and sound toward zero."""
        self.timers.tick()

    # ══════════════════════════════════════════════
    # Keypad API
    # ══════════════════════════════════════════════

    def set_key(self, key: int):
        """Press ``key``. Completes a pending LD Vx, K."""
        self.keypad.press(key)
        if self.regs.key_wait is not None:
            self.regs.V[self.regs.key_wait] = key
            log.debug("key %X released wait on V%X", key, self.regs.key_wait)
            self.regs.key_wait = None

    def clear_keys(self):
        self.keypad.clear()

    # ══════════════════════════════════════════════
    # State accessors
    # ══════════════════════════════════════════════

    @property
    def pc(self) -> int:
        return self.regs.PC

    @property
    def sound(self) -> bool:
        """True while the buzzer should sound."""
        return self.timers.sound_active

    @property
    def waiting_for_key(self) -> bool:
        return self.regs.key_wait is not None

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Handler signature: handler(instruction)

    def _build_dispatch(self) -> Dict[type, object]:
        """Build variant -> handler dispatch table.

        Every variant in INSTRUCTION_SET must have a handler.
        """
        dispatch = {
            # ── Flow ──
            Nop:               self._op_nop,
            ClearScreen:       self._op_cls,
            Ret:               self._op_ret,
            Jump:              self._op_jp,
            Call:              self._op_call,
            JumpOffset:        self._op_jp_v0,

            # ── Skips ──
            SkipEqImm:         self._op_se_imm,
            SkipNeImm:         self._op_sne_imm,
            SkipEqReg:         self._op_se_reg,
            SkipNeReg:         self._op_sne_reg,
            SkipKeyPressed:    self._op_skp,
            SkipKeyNotPressed: self._op_sknp,

            # ── Register / ALU ──
            SetImm:            self._op_ld_imm,
            AddImm:            self._op_add_imm,
            SetReg:            self._op_ld_reg,
            OrReg:             self._op_or,
            AndReg:            self._op_and,
            XorReg:            self._op_xor,
            AddReg:            self._op_add,
            SubReg:            self._op_sub,
            SubFrom:           self._op_subn,
            ShiftRight:        self._op_shr,
            ShiftLeft:         self._op_shl,
            Rand:              self._op_rnd,

            # ── Index / memory ──
            SetIndex:          self._op_ld_i,
            AddIndex:          self._op_add_i,
            SetChar:           self._op_ld_f,
            BCD:               self._op_ld_b,
            RegDump:           self._op_dump,
            RegLoad:           self._op_load,
            Draw:              self._op_drw,

            # ── Timers / keys ──
            GetDelay:          self._op_get_dt,
            SetDelay:          self._op_set_dt,
            SetSound:          self._op_set_st,
            WaitForKey:        self._op_wait_key,
        }
        missing = [cls.__name__ for cls in INSTRUCTION_SET if cls not in dispatch]
        if missing:
            raise RuntimeError(f"No handler for: {', '.join(missing)}")
        return dispatch

    def _skip_if(self, condition: bool):
        if condition:
            self.regs.PC = (self.regs.PC + OPCODE_SIZE) & 0xFFF

    # --- Flow ---

    def _op_nop(self, ins: Instruction):
        pass

    def _op_cls(self, ins):
        self.display.clear()

    def _op_ret(self, ins):
        self.regs.PC = self.regs.pop()

    def _op_jp(self, ins):
        self.regs.PC = ins.nnn

    def _op_call(self, ins):
        self.regs.push(self.regs.PC)
        self.regs.PC = ins.nnn

    def _op_jp_v0(self, ins):
        self.regs.PC = (self.regs.V[0] + ins.nnn) & 0xFFF

    # --- Skips ---

    def _op_se_imm(self, ins):
        self._skip_if(self.regs.V[ins.x] == ins.nn)

    def _op_sne_imm(self, ins):
        self._skip_if(self.regs.V[ins.x] != ins.nn)

    def _op_se_reg(self, ins):
        self._skip_if(self.regs.V[ins.x] == self.regs.V[ins.y])

    def _op_sne_reg(self, ins):
        self._skip_if(self.regs.V[ins.x] != self.regs.V[ins.y])

    def _op_skp(self, ins):
        self._skip_if(self.keypad.is_pressed(self.regs.V[ins.x] & 0xF))

    def _op_sknp(self, ins):
        self._skip_if(not self.keypad.is_pressed(self.regs.V[ins.x] & 0xF))

    # --- Register / ALU ---
    # Result is written before VF, so VF as destination keeps the flag.

    def _op_ld_imm(self, ins):
        self.regs.V[ins.x] = ins.nn

    def _op_add_imm(self, ins):
        self.regs.V[ins.x] = alu.add_imm8(self.regs.V[ins.x], ins.nn)

    def _op_ld_reg(self, ins):
        self.regs.V[ins.x] = self.regs.V[ins.y]

    def _op_or(self, ins):
        self.regs.V[ins.x] = alu.or8(self.regs.V[ins.x], self.regs.V[ins.y])

    def _op_and(self, ins):
        self.regs.V[ins.x] = alu.and8(self.regs.V[ins.x], self.regs.V[ins.y])

    def _op_xor(self, ins):
        self.regs.V[ins.x] = alu.xor8(self.regs.V[ins.x], self.regs.V[ins.y])

    def _op_add(self, ins):
        result, carry = alu.add8(self.regs.V[ins.x], self.regs.V[ins.y])
        self.regs.V[ins.x] = result
        self.regs.flag = carry

    def _op_sub(self, ins):
        result, no_borrow = alu.sub8(self.regs.V[ins.x], self.regs.V[ins.y])
        self.regs.V[ins.x] = result
        self.regs.flag = no_borrow

    def _op_subn(self, ins):
        result, no_borrow = alu.sub8(self.regs.V[ins.y], self.regs.V[ins.x])
        self.regs.V[ins.x] = result
        self.regs.flag = no_borrow

    def _op_shr(self, ins):
        result, bit = alu.shr8(self.regs.V[ins.x])
        self.regs.V[ins.x] = result
        self.regs.flag = bit

    def _op_shl(self, ins):
        result, bit = alu.shl8(self.regs.V[ins.x])
        self.regs.V[ins.x] = result
        self.regs.flag = bit

    def _op_rnd(self, ins):
        self.regs.V[ins.x] = self.rng.randint(0, 0xFF) & ins.nn

    # --- Index / memory ---

    def _op_ld_i(self, ins):
        self.regs.I = ins.nnn

    def _op_add_i(self, ins):
        self.regs.I = (self.regs.I + self.regs.V[ins.x]) & 0xFFFF

    def _op_ld_f(self, ins):
        self.regs.I = FONT_BASE + (self.regs.V[ins.x] & 0xF) * GLYPH_SIZE

    def _op_ld_b(self, ins):
        for offset, digit in enumerate(alu.bcd(self.regs.V[ins.x])):
            self.mem.write8(self.regs.I + offset, digit)

    def _op_dump(self, ins):
        for r in range(ins.x + 1):
            self.mem.write8(self.regs.I + r, self.regs.V[r])

    def _op_load(self, ins):
        for r in range(ins.x + 1):
            self.regs.V[r] = self.mem.read8(self.regs.I + r)

    def _op_drw(self, ins):
        sprite = self.mem.read_block(self.regs.I, ins.n)
        collision = self.display.draw(self.regs.V[ins.x], self.regs.V[ins.y], sprite)
        self.regs.flag = collision

    # --- Timers / keys ---

    def _op_get_dt(self, ins):
        self.regs.V[ins.x] = self.timers.delay

    def _op_set_dt(self, ins):
        self.timers.set_delay(self.regs.V[ins.x])

    def _op_set_st(self, ins):
        self.timers.set_sound(self.regs.V[ins.x])

    def _op_wait_key(self, ins):
        self.regs.key_wait = ins.x

    # ══════════════════════════════════════════════
    # Breakpoint API
    # ══════════════════════════════════════════════

    def add_breakpoint(self, addr: int):
        """Add a breakpoint at PC address. run() stops before executing it."""
        self._breakpoints.add(addr & 0xFFF)

    def remove_breakpoint(self, addr: int):
        self._breakpoints.discard(addr & 0xFFF)

    def clear_breakpoints(self):
        self._breakpoints.clear()

    @property
    def breakpoints(self) -> Set[int]:
        return set(self._breakpoints)

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output.clear()

    def reset(self):
        """Full emulator reset. The loaded ROM is cleared too."""
        self.regs.reset()
        self.mem.reset()
        self.display.clear()
        self.timers.reset()
        self.keypad.clear()
        if self.config.seed is not None:
            self.rng.seed(self.config.seed)
        self._breakpoints.clear()
        self._resume_from = None
        self._trace_output.clear()
