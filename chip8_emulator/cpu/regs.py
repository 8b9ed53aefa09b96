"""
CHIP-8 Emulator — Register File + Call Stack

Register model:
  V0–VF  16 × 8-bit general registers. VF doubles as the flag register
         (carry / no-borrow / shifted-out bit / sprite collision).
  I      16-bit index register (memory pointer for sprites, BCD, dumps)
  PC     program counter, starts at $200
  stack  return addresses, kept outside addressable memory so a runaway
         CALL can never overwrite program bytes
  key_wait  register index waiting for LD Vx, K, or None
"""

from typing import List, Optional

from ..config import PROGRAM_START
from ..errors import StackUnderflowError, StackOverflowError

VF = 0xF


class Registers:
    """CHIP-8 register set."""

    __slots__ = ('V', 'I', 'PC', 'stack', 'key_wait', 'max_stack_depth')

    def __init__(self, max_stack_depth: Optional[int] = None):
        self.V: List[int] = [0] * 16
        self.I: int = 0
        self.PC: int = PROGRAM_START
        self.stack: List[int] = []
        self.key_wait: Optional[int] = None
        self.max_stack_depth = max_stack_depth

    # --- Flag register ---

    @property
    def flag(self) -> int:
        return self.V[VF]

    @flag.setter
    def flag(self, value):
        self.V[VF] = 1 if value else 0

    # --- Stack operations ---

    def push(self, addr: int):
        if self.max_stack_depth is not None and len(self.stack) >= self.max_stack_depth:
            raise StackOverflowError(
                f"call stack depth {self.max_stack_depth} exceeded at ${addr:03X}")
        self.stack.append(addr)

    def pop(self) -> int:
        if not self.stack:
            raise StackUnderflowError(f"RET with empty stack at ${self.PC:03X}")
        return self.stack.pop()

    # --- Display ---

    def display(self) -> str:
        """Format register state for debugging."""
        vregs = ' '.join(f"V{i:X}={v:02X}" for i, v in enumerate(self.V))
        wait = f" WAIT=V{self.key_wait:X}" if self.key_wait is not None else ""
        return f"PC={self.PC:03X} I={self.I:04X} SP={len(self.stack)} {vregs}{wait}"

    def reset(self):
        """Reset to power-on state."""
        self.V = [0] * 16
        self.I = 0
        self.PC = PROGRAM_START
        self.stack = []
        self.key_wait = None
