"""CHIP-8 emulator exceptions."""


class EmulatorError(Exception):
    """Base class for fatal engine errors. run() reports these as ERROR."""


class StackUnderflowError(EmulatorError):
    """RET executed with an empty call stack."""


class StackOverflowError(EmulatorError):
    """CALL exceeded the configured maximum stack depth."""


class RomTooLargeError(EmulatorError):
    """ROM image does not fit between the load address and the end of memory."""
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"ROM is {size} bytes, only {limit} fit")
