"""
CHIP-8 Emulator — Frame Pump (Driver)

The driver owns timing and I/O. Once per 60 Hz frame:

  running:  clear keys → tick timers → apply frame inputs
            → run steps_per_frame instructions (stop early on BREAK/ERROR)
  paused:   apply frame inputs; a STEP input runs one instruction
            plus one timer tick

then hands the emulator to the frontend for rendering. A frontend is any
object with get_inputs() and update(); HeadlessFrontend replays a
scripted input schedule and is what the CLI and the tests use.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Union
import logging
import time

from .config import EmulatorConfig, FRAME_RATE
from .emu import Chip8Emulator, StopReason
from .errors import EmulatorError

log = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# Input events
# ──────────────────────────────────────────────

class KeyInput(Enum):
    STEP = 'STEP'
    TOGGLE_PAUSE = 'TOGGLE_PAUSE'
    QUIT = 'QUIT'


@dataclass(frozen=True)
class Chip8Key:
    """A press of hex keypad key 0x0-0xF."""
    value: int

    def __post_init__(self):
        if not 0 <= self.value <= 0xF:
            raise ValueError(f"Chip8Key {self.value} out of range 0-F")


Input = Union[Chip8Key, KeyInput]


# ──────────────────────────────────────────────
# Frontends
# ──────────────────────────────────────────────

class Frontend:
    """Interface between the driver and a window / terminal / test script."""

    def get_inputs(self) -> List[Input]:
        return []

    def update(self, emulator: Chip8Emulator, running: bool) -> bool:
        """Present one frame. Return True to quit."""
        return False


class HeadlessFrontend(Frontend):
    """Scripted frontend: replays ``{frame_number: [inputs]}``.

    Counts frames presented and frames during which the buzzer was on.
    """

    def __init__(self, schedule: Optional[Dict[int, List[Input]]] = None,
                 quit_after: Optional[int] = None):
        self.schedule = schedule or {}
        self.quit_after = quit_after
        self.frames = 0
        self.sound_frames = 0
        self.paused_frames = 0

    def get_inputs(self) -> List[Input]:
        return list(self.schedule.get(self.frames, []))

    def update(self, emulator: Chip8Emulator, running: bool) -> bool:
        self.frames += 1
        if emulator.sound:
            self.sound_frames += 1
        if not running:
            self.paused_frames += 1
        return self.quit_after is not None and self.frames >= self.quit_after


# ──────────────────────────────────────────────
# Driver
# ──────────────────────────────────────────────

class Chip8Driver:
    """Fixed-rate 60 Hz loop around a Chip8Emulator.

    Usage:
        driver = Chip8Driver(emu, HeadlessFrontend(), EmulatorConfig(realtime=False))
        reason = driver.run(max_frames=600)
    """

    def __init__(self, emulator: Chip8Emulator, frontend: Optional[Frontend] = None,
                 config: Optional[EmulatorConfig] = None, stop_on_break: bool = False):
        self.emu = emulator
        self.frontend = frontend or HeadlessFrontend()
        self.config = config or emulator.config
        self.stop_on_break = stop_on_break
        self.running = True
        self.quit_requested = False
        self.frames = 0

    @property
    def steps_per_frame(self) -> int:
        return self.config.steps_per_frame

    def pause(self):
        if self.running:
            self.running = False
            log.info("paused at $%03X", self.emu.pc)

    def resume(self):
        if not self.running:
            self.running = True
            log.info("resumed at $%03X", self.emu.pc)

    def _apply_inputs(self, inputs: List[Input]) -> bool:
        """Apply frame inputs. Returns True if a STEP was requested."""
        step = False
        for event in inputs:
            if isinstance(event, Chip8Key):
                # paused frames never clear, so only the latest key is held
                if not self.running:
                    self.emu.clear_keys()
                self.emu.set_key(event.value)
            elif event is KeyInput.STEP:
                step = True
            elif event is KeyInput.TOGGLE_PAUSE:
                if self.running:
                    self.pause()
                else:
                    self.resume()
            elif event is KeyInput.QUIT:
                self.quit_requested = True
        return step

    def run_frame(self) -> Optional[StopReason]:
        """Advance one 60 Hz frame. Returns BREAK or ERROR if one occurred."""
        inputs = self.frontend.get_inputs()
        if self.running:
            self.emu.clear_keys()
            self.emu.tick_timers()
        step_requested = self._apply_inputs(inputs)

        reason = None
        if self.running:
            reason = self.emu.run(self.steps_per_frame)
            if reason is StopReason.BREAK:
                self.pause()
            elif reason is not StopReason.ERROR:
                reason = None
        elif step_requested:
            try:
                self.emu.step()
            except EmulatorError as e:
                log.error("%s at $%03X", e, self.emu.pc)
                reason = StopReason.ERROR
            self.emu.tick_timers()

        self.frames += 1
        if self.frontend.update(self.emu, self.running):
            self.quit_requested = True
        return reason

    def run(self, max_frames: Optional[int] = None) -> Optional[StopReason]:
        """Pump frames until quit, error or ``max_frames``.

        Returns ERROR on a fatal engine error, BREAK if stop_on_break is set
        and a breakpoint was hit, TIMEOUT when max_frames ran out, and None
        when the frontend asked to quit.
        """
        budget = 1.0 / FRAME_RATE
        while not self.quit_requested:
            if max_frames is not None and self.frames >= max_frames:
                return StopReason.TIMEOUT
            start = time.perf_counter()
            reason = self.run_frame()
            if reason is StopReason.ERROR:
                return reason
            if reason is StopReason.BREAK and self.stop_on_break:
                return reason
            if self.config.realtime:
                remaining = budget - (time.perf_counter() - start)
                if remaining > 0:
                    time.sleep(remaining)
        log.info("quit after %d frames", self.frames)
        return None
