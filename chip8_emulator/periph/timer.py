"""
CHIP-8 Emulator — Delay + Sound Timers

Two 8-bit down-counters, ticked once per 60 Hz frame by the driver:
  DT  delay timer, readable with LD Vx, DT
  ST  sound timer, the buzzer sounds while it is nonzero

Neither timer goes below zero.
"""


class Timers:
    """Delay and sound timer pair."""

    __slots__ = ('delay', 'sound')

    def __init__(self):
        self.delay = 0
        self.sound = 0

    def set_delay(self, value: int):
        self.delay = value & 0xFF

    def set_sound(self, value: int):
        self.sound = value & 0xFF

    @property
    def sound_active(self) -> bool:
        return self.sound > 0

    def tick(self):
        """Advance one 60 Hz frame."""
        if self.delay > 0:
            self.delay -= 1
        if self.sound > 0:
            self.sound -= 1

    def reset(self):
        self.delay = 0
        self.sound = 0
