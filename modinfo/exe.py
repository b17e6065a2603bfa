"""Executable readers: ELF, PE and Mach-O behind one address-mapped interface.

``open_exe`` sniffs the magic number and returns one of ``ElfExe``,
``PeExe`` or ``MachoExe``. Every reader owns the open file handle and
translates virtual addresses to file offsets through its own segment or
section table, so callers can read bytes by address without knowing
which container format produced the file.

Header parsing is delegated to *pyelftools*, *pefile* and *lief*; data
reads always go through the reader's own handle so that only the bytes
asked for are pulled from disk.
"""

from __future__ import annotations

import logging
import mmap
import os
import struct
from abc import ABC, abstractmethod
from typing import BinaryIO

import lief
import pefile
from elftools.common.exceptions import ELFError
from elftools.elf.constants import P_FLAGS
from elftools.elf.elffile import ELFFile

from .errors import IOFailure, MalformedExecutable, UnmappedAddress
from .models import AddressRange, BinaryFormat, ByteOrder, ExeInfo, Segment
from .utils import HEADER_SNIFF_SIZE, MACHO_FAT_MAGICS, detect_format, validate_file

logger = logging.getLogger(__name__)

if os.getenv("DEBUG", "0") != "1":
    lief.logging.disable()

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_PF_RWX = P_FLAGS.PF_R | P_FLAGS.PF_W | P_FLAGS.PF_X

_PE32_PLUS_MAGIC = 0x20B

_MACHO_PAGEZERO = "__PAGEZERO"
_MACHO_64_MAGICS = (b"\xfe\xed\xfa\xcf", b"\xcf\xfa\xed\xfe")
_MACHO_LE_MAGICS = (b"\xce\xfa\xed\xfe", b"\xcf\xfa\xed\xfe")


# ---------------------------------------------------------------------------
# Base reader
# ---------------------------------------------------------------------------

class Exe(ABC):
    """Address-mapped view of an executable file.

    The reader owns *fh* and must be closed exactly once by its owner;
    it is also a context manager.
    """

    format: BinaryFormat

    def __init__(self, path: str, fh: BinaryIO):
        self.path = path
        self._fh = fh
        self._closed = False

    # -- capability set ---------------------------------------------------

    @abstractmethod
    def byte_order(self) -> ByteOrder:
        ...

    @abstractmethod
    def rodata_range(self) -> AddressRange:
        """Virtual-address span of the read-only data to search."""
        ...

    @abstractmethod
    def segments(self) -> list[Segment]:
        """Regions used to translate virtual addresses to file offsets."""
        ...

    def read_at(self, addr: int, size: int) -> bytes:
        """Read *size* bytes starting at virtual address *addr*."""
        for seg in self.segments():
            if seg.contains(addr, size):
                return self._read_file(seg.offset + (addr - seg.vaddr), size, addr)
        raise UnmappedAddress(addr, size)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._fh.close()

    # -- introspection ----------------------------------------------------

    @abstractmethod
    def addr_size(self) -> int:
        """Pointer size in bytes."""
        ...

    @abstractmethod
    def entry(self) -> int:
        ...

    @abstractmethod
    def text_range(self) -> AddressRange:
        ...

    @abstractmethod
    def section_names(self) -> list[str]:
        ...

    def info(self) -> ExeInfo:
        return ExeInfo(
            path=self.path,
            format=self.format,
            byte_order=self.byte_order(),
            addr_size=self.addr_size(),
            entry=self.entry(),
            rodata=self.rodata_range(),
            text=self.text_range(),
            sections=self.section_names(),
        )

    # -- helpers ----------------------------------------------------------

    def _read_file(self, offset: int, size: int, addr: int) -> bytes:
        try:
            self._fh.seek(offset)
            data = self._fh.read(size)
        except (OSError, ValueError) as exc:
            raise IOFailure(
                f"can't read {size} bytes at address 0x{addr:x}: {exc}", address=addr
            ) from exc
        if len(data) != size:
            raise IOFailure(
                f"short read at address 0x{addr:x}: wanted {size} bytes, got {len(data)}",
                address=addr,
            )
        return data

    def __enter__(self) -> Exe:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.path!r}>"


# ---------------------------------------------------------------------------
# ELF
# ---------------------------------------------------------------------------

class ElfExe(Exe):
    format = BinaryFormat.ELF

    def __init__(self, path: str, fh: BinaryIO):
        super().__init__(path, fh)
        try:
            self._elf = ELFFile(fh)
            self._phdrs = [seg.header for seg in self._elf.iter_segments()]
        except (ELFError, OSError, ValueError, struct.error) as exc:
            raise MalformedExecutable(f"invalid ELF file {path}: {exc}", exc) from exc
        self._segments = [
            Segment(str(h["p_type"]), h["p_vaddr"], h["p_offset"], h["p_filesz"])
            for h in self._phdrs
        ]

    def byte_order(self) -> ByteOrder:
        return ByteOrder.LITTLE if self._elf.little_endian else ByteOrder.BIG

    def _loads(self):
        return [h for h in self._phdrs if h["p_type"] == "PT_LOAD"]

    def rodata_range(self) -> AddressRange:
        # Pure read-only first, then read+execute for toolchains that merge rodata into text.
        for wanted in (P_FLAGS.PF_R, P_FLAGS.PF_R | P_FLAGS.PF_X):
            for h in self._loads():
                if h["p_flags"] & _PF_RWX == wanted:
                    return AddressRange(h["p_vaddr"], h["p_vaddr"] + h["p_filesz"])
        return AddressRange()

    def segments(self) -> list[Segment]:
        return self._segments

    def addr_size(self) -> int:
        return self._elf.elfclass // 8

    def entry(self) -> int:
        return self._elf.header["e_entry"]

    def text_range(self) -> AddressRange:
        for h in self._loads():
            if h["p_flags"] & P_FLAGS.PF_X:
                return AddressRange(h["p_vaddr"], h["p_vaddr"] + h["p_filesz"])
        return AddressRange()

    def section_names(self) -> list[str]:
        return [sec.name for sec in self._elf.iter_sections()]


# ---------------------------------------------------------------------------
# PE
# ---------------------------------------------------------------------------

class PeExe(Exe):
    format = BinaryFormat.PE

    def __init__(self, path: str, fh: BinaryIO):
        super().__init__(path, fh)
        try:
            self._map = mmap.mmap(fh.fileno(), 0, access=mmap.ACCESS_READ)
        except (OSError, ValueError) as exc:
            raise IOFailure(f"can't map {path}: {exc}") from exc
        try:
            # Parse from a mapping of our own handle; nothing reopens the file by path.
            self._pe = pefile.PE(data=self._map, fast_load=True)
        except pefile.PEFormatError as exc:
            self._map.close()
            raise MalformedExecutable(f"invalid PE file {path}: {exc}", exc) from exc
        self._image_base = self._pe.OPTIONAL_HEADER.ImageBase
        # Addresses are image-base relative; section size is the raw (file) size.
        self._segments = [
            Segment(
                name=sec.Name.rstrip(b"\x00").decode(errors="replace"),
                vaddr=self._image_base + sec.VirtualAddress,
                offset=sec.PointerToRawData,
                filesz=sec.SizeOfRawData,
            )
            for sec in self._pe.sections
        ]

    def byte_order(self) -> ByteOrder:
        return ByteOrder.LITTLE

    def rodata_range(self) -> AddressRange:
        # First non-empty section; the producing toolchain places the table there.
        for seg in self._segments:
            if seg.vaddr != self._image_base and seg.filesz != 0:
                return AddressRange(seg.vaddr, seg.vaddr + seg.filesz)
        return AddressRange()

    def segments(self) -> list[Segment]:
        return self._segments

    def addr_size(self) -> int:
        return 8 if self._pe.OPTIONAL_HEADER.Magic == _PE32_PLUS_MAGIC else 4

    def entry(self) -> int:
        return self._image_base + self._pe.OPTIONAL_HEADER.AddressOfEntryPoint

    def text_range(self) -> AddressRange:
        return self.rodata_range()

    def section_names(self) -> list[str]:
        return [seg.name for seg in self._segments]

    def close(self) -> None:
        if not self._closed:
            self._pe.close()
            self._map.close()
        super().close()


# ---------------------------------------------------------------------------
# Mach-O
# ---------------------------------------------------------------------------

class MachoExe(Exe):
    format = BinaryFormat.MACHO

    def __init__(self, path: str, fh: BinaryIO):
        super().__init__(path, fh)
        try:
            self._slice_offset = _fat_slice_offset(fh)
            fh.seek(self._slice_offset)
            self._magic = fh.read(4)
            fat = lief.MachO.parse(path)
        except (AttributeError, TypeError, ValueError, RuntimeError, struct.error) as exc:
            raise MalformedExecutable(f"invalid Mach-O file {path}: {exc}", exc) from exc
        if fat is None or fat.size == 0:
            raise MalformedExecutable(f"invalid Mach-O file {path}: no parsable architecture")
        # Universal binaries: the first architecture slice is used.
        self._binary = fat.at(0)
        self._segments = [
            Segment(
                name=seg.name,
                vaddr=seg.virtual_address,
                offset=self._slice_offset + seg.file_offset,
                filesz=seg.file_size,
            )
            for seg in self._binary.segments
        ]

    def byte_order(self) -> ByteOrder:
        return ByteOrder.LITTLE if self._magic in _MACHO_LE_MAGICS else ByteOrder.BIG

    def rodata_range(self) -> AddressRange:
        # First non-empty segment other than the zero page.
        for seg in self._segments:
            if seg.name != _MACHO_PAGEZERO and seg.vaddr != 0 and seg.filesz != 0:
                return AddressRange(seg.vaddr, seg.vaddr + seg.filesz)
        return AddressRange()

    def segments(self) -> list[Segment]:
        return [seg for seg in self._segments if seg.name != _MACHO_PAGEZERO]

    def addr_size(self) -> int:
        return 8 if self._magic in _MACHO_64_MAGICS else 4

    def entry(self) -> int:
        return self._binary.entrypoint

    def text_range(self) -> AddressRange:
        return self.rodata_range()

    def section_names(self) -> list[str]:
        return [sec.name for sec in self._binary.sections]


def _fat_slice_offset(fh: BinaryIO) -> int:
    """File offset of the first architecture in a universal binary, else 0."""
    fh.seek(0)
    header = fh.read(8)
    if header[:4] not in MACHO_FAT_MAGICS:
        return 0
    endian = ">" if header[:4] == MACHO_FAT_MAGICS[0] else "<"
    _, nfat_arch = struct.unpack(endian + "II", header)
    if nfat_arch == 0:
        raise ValueError("universal binary has no architectures")
    # fat_arch: cputype, cpusubtype, offset, size, align
    _, _, offset, _, _ = struct.unpack(endian + "iiIII", fh.read(20))
    return offset


# ---------------------------------------------------------------------------
# Format detector
# ---------------------------------------------------------------------------

_READERS: dict[BinaryFormat, type[Exe]] = {
    BinaryFormat.ELF: ElfExe,
    BinaryFormat.PE: PeExe,
    BinaryFormat.MACHO: MachoExe,
}


def open_exe(path: str | os.PathLike[str]) -> Exe:
    """Open *path* and return the reader matching its magic number.

    Raises ``UnrecognizedFormat`` when no magic matches and
    ``MalformedExecutable`` when the matched format fails to parse. The
    file handle is closed on every failure path.
    """
    p = validate_file(path)
    try:
        fh = open(p, "rb")
    except OSError as exc:
        raise IOFailure(f"can't open {p}: {exc}") from exc

    try:
        try:
            header = fh.read(HEADER_SNIFF_SIZE)
            fh.seek(0)
        except OSError as exc:
            raise IOFailure(f"can't read header of {p}: {exc}") from exc
        fmt = detect_format(header)
        exe = _READERS[fmt](str(p), fh)
        fh.seek(0)
    except BaseException:
        fh.close()
        raise

    logger.debug("opened %s as %s", p, fmt.value)
    return exe
