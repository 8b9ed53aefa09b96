"""
CHIP-8 Emulator — 16-Key Hex Keypad

Layout of the original COSMAC VIP keypad:
  1 2 3 C
  4 5 6 D
  7 8 9 E
  A 0 B F

Keys are level-triggered booleans. The driver clears them all at the
start of each frame and then presses whatever the frontend reports.
"""

from typing import List

NUM_KEYS = 16


class Keypad:
    """Pressed state for keys 0x0-0xF."""

    def __init__(self):
        self._keys: List[bool] = [False] * NUM_KEYS

    def press(self, key: int):
        if not 0 <= key < NUM_KEYS:
            raise ValueError(f"Key {key} out of range 0-F")
        self._keys[key] = True

    def is_pressed(self, key: int) -> bool:
        return self._keys[key & 0xF]

    def clear(self):
        self._keys = [False] * NUM_KEYS

    @property
    def pressed(self) -> List[int]:
        return [k for k, down in enumerate(self._keys) if down]
