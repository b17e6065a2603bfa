"""Shared data models used by the readers, the locator and the table."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class BinaryFormat(str, Enum):
    ELF = "ELF"
    PE = "PE"
    MACHO = "MACHO"


class ByteOrder(str, Enum):
    LITTLE = "little"
    BIG = "big"


# ---------------------------------------------------------------------------
# Address helpers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AddressRange:
    """Half-open span ``[start, end)`` of virtual addresses."""

    start: int = 0
    end: int = 0

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"Invalid address range: start 0x{self.start:x} > end 0x{self.end:x}"
            )

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Segment:
    """A file-backed, address-mapped region of an executable."""

    name: str
    vaddr: int
    offset: int
    filesz: int

    def contains(self, addr: int, size: int) -> bool:
        """True if ``[addr, addr+size)`` lies inside the file-backed part."""
        return self.vaddr <= addr and addr + size <= self.vaddr + self.filesz


# ---------------------------------------------------------------------------
# Table models
# ---------------------------------------------------------------------------

DEVEL_VERSION = "(devel)"  # no version metadata was available at build time


@dataclass(frozen=True)
class Module:
    """An owned ``{path, version}`` identity for the main module or a dependency."""

    path: str
    version: str = ""

    @property
    def is_devel(self) -> bool:
        return self.version == DEVEL_VERSION

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Entry:
    """One decoded table row.

    The scanner reuses a single instance and its fields are ``memoryview``
    slices of the blob being scanned: an ``Entry`` is only valid until the
    next call to ``TableScanner.scan()``. Use :meth:`copy` to keep one.
    """

    keyword: memoryview | bytes = b""
    path: memoryview | bytes = b""
    version: memoryview | bytes = b""

    def copy(self) -> Entry:
        return Entry(bytes(self.keyword), bytes(self.path), bytes(self.version))

    def to_module(self) -> Module:
        return Module(path=_text(self.path), version=_text(self.version))


def _text(raw: memoryview | bytes) -> str:
    return bytes(raw).decode("utf-8", errors="replace")


@dataclass
class ExeInfo:
    """Descriptive summary of an opened executable."""

    path: str
    format: BinaryFormat
    byte_order: ByteOrder
    addr_size: int
    entry: int
    rodata: AddressRange
    text: AddressRange
    sections: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["format"] = self.format.value
        d["byte_order"] = self.byte_order.value
        return d
