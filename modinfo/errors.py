"""Error taxonomy for reading the module information table."""

from __future__ import annotations


class ModInfoError(Exception):
    """Base class for every failure raised by :mod:`modinfo`."""


class PathResolutionFailure(ModInfoError):
    """The path of the running executable could not be determined."""


class UnrecognizedFormat(ModInfoError, ValueError):
    """The file starts with none of the ELF, PE or Mach-O magic numbers."""


class MalformedExecutable(ModInfoError, ValueError):
    """The format was recognised but its headers could not be parsed."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ReadFailure(ModInfoError):
    """Bytes could not be read from the executable."""


class UnmappedAddress(ReadFailure):
    """No segment or section maps the whole requested address range."""

    def __init__(self, address: int, size: int):
        super().__init__(
            f"address not mapped: 0x{address:x} (+{size} bytes)"
        )
        self.address = address
        self.size = size


class IOFailure(ReadFailure, OSError):
    """A lower-level open, seek or read failed."""

    def __init__(self, message: str, address: int | None = None):
        super().__init__(message)
        self.address = address


class NoModuleInfo(ModInfoError, LookupError):
    """The read-only data holds no complete marker pair."""
