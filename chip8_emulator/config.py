"""
CHIP-8 Emulator — Machine Constants + Run Configuration

Memory map:
  $000–$04F  Built-in hex font (16 glyphs × 5 bytes)
  $050–$1FF  Reserved (interpreter area on original hardware)
  $200–$FFF  Program space (ROMs load here, 3584 bytes max)

Display: 64 × 32 monochrome, indexed [x, y].
Timers: delay + sound, decremented at 60 Hz by the driver.
"""

from dataclasses import dataclass
from typing import Optional

MEMORY_SIZE = 0x1000
PROGRAM_START = 0x200
MAX_ROM_SIZE = MEMORY_SIZE - PROGRAM_START
FONT_BASE = 0x000
GLYPH_SIZE = 5

DISPLAY_COLUMNS = 64
DISPLAY_ROWS = 32

FRAME_RATE = 60
DEFAULT_CLOCK_SPEED = 500

# Hex digit glyphs 0-F, 4 pixels wide (high nibble), 5 rows tall
FONTSET = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
])

# Named clock speeds (instructions per second)
SPEED_PROFILES = {
    'slow':    300,
    'default': DEFAULT_CLOCK_SPEED,
    'fast':    1000,
    'turbo':   3000,
}


@dataclass
class EmulatorConfig:
    """Run-time knobs shared by the emulator, driver and CLI."""
    clock_speed: int = DEFAULT_CLOCK_SPEED
    seed: Optional[int] = None
    realtime: bool = True            # sleep out the rest of each frame
    trace: bool = False
    max_stack_depth: Optional[int] = None   # None = unlimited

    @property
    def steps_per_frame(self) -> int:
        return self.clock_speed // FRAME_RATE

    @classmethod
    def from_profile(cls, name: str, **overrides) -> 'EmulatorConfig':
        """Build a config from a SPEED_PROFILES entry."""
        if name not in SPEED_PROFILES:
            raise ValueError(f"Unknown speed profile '{name}'. "
                             f"Choose from: {', '.join(SPEED_PROFILES)}")
        return cls(clock_speed=SPEED_PROFILES[name], **overrides)
