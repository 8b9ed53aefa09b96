"""
CHIP-8 Emulator — 4K Memory + 64×32 Framebuffer

Memory is a flat 4096-byte bytearray. Every address wraps modulo 4096,
so no operand can reach outside it. The hex font is copied to $000 on
construction and on reset().

The framebuffer is a numpy bool array indexed [x, y]. Sprites are XORed
onto it row by row; each pixel coordinate wraps independently (x mod 64,
y mod 32), so a sprite drawn off the right edge reappears on the left.
"""

from pathlib import Path
from typing import List, Union

import numpy as np

from ..config import MEMORY_SIZE, FONT_BASE, FONTSET, DISPLAY_COLUMNS, DISPLAY_ROWS

ADDR_MASK = MEMORY_SIZE - 1


class Memory:
    """4096 bytes of byte-addressable, wrapping memory with the font preloaded."""

    def __init__(self):
        self._mem = bytearray(MEMORY_SIZE)
        self.load_font()

    def load_font(self):
        self._mem[FONT_BASE:FONT_BASE + len(FONTSET)] = FONTSET

    # --- Core read/write ---

    def read8(self, addr: int) -> int:
        return self._mem[addr & ADDR_MASK]

    def write8(self, addr: int, value: int):
        self._mem[addr & ADDR_MASK] = value & 0xFF

    def read16(self, addr: int) -> int:
        """Read a big-endian word (opcode fetch)."""
        return (self.read8(addr) << 8) | self.read8(addr + 1)

    def read_block(self, addr: int, length: int) -> bytes:
        """Read ``length`` bytes starting at ``addr``, wrapping at the top."""
        return bytes(self._mem[(addr + i) & ADDR_MASK] for i in range(length))

    # --- Bulk load ---

    def load_binary(self, data: bytes, base_addr: int):
        """Copy ``data`` into memory at ``base_addr``."""
        for i, byte in enumerate(data):
            self._mem[(base_addr + i) & ADDR_MASK] = byte

    def reset(self):
        self._mem = bytearray(MEMORY_SIZE)
        self.load_font()

    # --- Hex dump ---

    def hexdump(self, start: int, length: int = 256) -> str:
        """Produce a hex dump of memory for debugging."""
        lines = []
        for offset in range(0, length, 16):
            addr = (start + offset) & ADDR_MASK
            row = self.read_block(addr, 16)
            hex_bytes = ' '.join(f'{b:02X}' for b in row)
            ascii_bytes = ''.join(chr(b) if 0x20 <= b < 0x7F else '.' for b in row)
            lines.append(f'{addr:03X}  {hex_bytes}  {ascii_bytes}')
        return '\n'.join(lines)

    def __len__(self) -> int:
        return MEMORY_SIZE


_SPRITE_COLUMNS = np.arange(8)


class Display:
    """64×32 monochrome framebuffer."""

    def __init__(self, columns: int = DISPLAY_COLUMNS, rows: int = DISPLAY_ROWS):
        self.columns = columns
        self.rows = rows
        self.pixels = np.zeros((columns, rows), dtype=np.bool_)

    def clear(self):
        self.pixels[:, :] = False

    def draw(self, x: int, y: int, sprite: bytes) -> bool:
        """XOR an 8-pixel-wide sprite onto the screen at (x, y).

        Returns True if any lit pixel was turned off (collision).
        """
        collision = False
        xs = (x + _SPRITE_COLUMNS) % self.columns
        for row, byte in enumerate(sprite):
            bits = np.unpackbits(np.array([byte], dtype=np.uint8)).astype(np.bool_)
            py = (y + row) % self.rows
            prev = self.pixels[xs, py]
            if np.any(prev & bits):
                collision = True
            self.pixels[xs, py] = prev ^ bits
        return collision

    def get(self, x: int, y: int) -> bool:
        return bool(self.pixels[x % self.columns, y % self.rows])

    @property
    def lit(self) -> int:
        """Number of pixels currently on."""
        return int(np.count_nonzero(self.pixels))

    def render(self, on: str = '█', off: str = ' ') -> List[str]:
        """Render the framebuffer as one string per row."""
        return [''.join(on if self.pixels[x, y] else off for x in range(self.columns))
                for y in range(self.rows)]


def read_rom(path_or_data: Union[str, Path, bytes, bytearray]) -> bytes:
    """Return ROM bytes from a file path or a bytes-like object."""
    if isinstance(path_or_data, (str, Path)):
        return Path(path_or_data).read_bytes()
    return bytes(path_or_data)
