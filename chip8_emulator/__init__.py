# CHIP-8 Emulator — Pure-software CHIP-8 virtual machine
# Part of the chip8kit toolchain
#
# Layout mirrors the hardware:
#   cpu/     register file, ALU helpers, opcode decode
#   mem/     4K memory, font, 64x32 framebuffer
#   periph/  delay/sound timers, hex keypad
#   emu.py   fetch/decode/execute engine
#   driver.py  60 Hz frame pump + frontends

from .config import EmulatorConfig, SPEED_PROFILES
from .errors import EmulatorError, StackUnderflowError, StackOverflowError, RomTooLargeError
from .emu import Chip8Emulator, StopReason
from .driver import Chip8Driver, Frontend, HeadlessFrontend, KeyInput, Chip8Key
