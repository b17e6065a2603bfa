"""
Shared fixtures: synthetic executables and an in-memory reader.

The images built here are minimal but structurally valid: just enough
headers for pyelftools, pefile and lief to parse the segment/section
tables, with the payload placed where each format's read-only range
heuristic looks for it.
"""

from __future__ import annotations

import struct
from pathlib import Path

import pytest

from modinfo.models import AddressRange
from modinfo.utils import INFO_END, INFO_START

# ---------------------------------------------------------------------------
# Sample table
# ---------------------------------------------------------------------------

SAMPLE_TABLE = (
    b"path\tgo-mymods/test/cmd\n"
    b"mod\tgo-mymods/test\t(devel)\n"
    b"dep\tgithub.com/apparentlymart/go-mymods\tv0.0.0\n"
)


def wrap(table: bytes) -> bytes:
    return INFO_START + table + INFO_END


# ---------------------------------------------------------------------------
# ELF
# ---------------------------------------------------------------------------

PT_LOAD = 1
PF_X, PF_W, PF_R = 0x1, 0x2, 0x4

ELF_TEXT_VADDR = 0x400000
ELF_RODATA_VADDR = 0x401000
ELF_RODATA_OFFSET = 0x1000


def build_elf(
    rodata: bytes,
    *,
    rodata_flags: int = PF_R,
    big_endian: bool = False,
    entry: int = ELF_TEXT_VADDR + 0x100,
) -> bytes:
    """ELF64 executable: an R+X text segment, then a segment holding *rodata*."""
    e = ">" if big_endian else "<"
    phdrs = [
        (PT_LOAD, PF_R | PF_X, 0, ELF_TEXT_VADDR, ELF_RODATA_OFFSET),
        (PT_LOAD, rodata_flags, ELF_RODATA_OFFSET, ELF_RODATA_VADDR, len(rodata)),
    ]
    ident = b"\x7fELF" + bytes([2, 2 if big_endian else 1, 1, 0]) + b"\x00" * 8
    header = ident + struct.pack(
        e + "HHIQQQIHHHHHH",
        2,            # e_type: EXEC
        62,           # e_machine: x86-64
        1,            # e_version
        entry,
        64,           # e_phoff
        0,            # e_shoff
        0,            # e_flags
        64,           # e_ehsize
        56,           # e_phentsize
        len(phdrs),
        64,           # e_shentsize
        0,            # e_shnum
        0,            # e_shstrndx
    )
    for p_type, flags, offset, vaddr, filesz in phdrs:
        header += struct.pack(
            e + "IIQQQQQQ", p_type, flags, offset, vaddr, vaddr, filesz, filesz, 0x1000
        )
    return header.ljust(ELF_RODATA_OFFSET, b"\x00") + rodata


# ---------------------------------------------------------------------------
# PE
# ---------------------------------------------------------------------------

PE_IMAGE_BASE = 0x140000000
PE_TEXT_RVA = 0x1000
PE_TEXT_OFFSET = 0x400


def _align(n: int, a: int) -> int:
    return (n + a - 1) // a * a


def build_pe(text: bytes, *, entry_rva: int = PE_TEXT_RVA) -> bytes:
    """PE32+ image with a ``.text`` section holding *text* and a small ``.data``."""
    text_raw = _align(max(len(text), 1), 0x200)
    data_offset = PE_TEXT_OFFSET + text_raw
    data_rva = PE_TEXT_RVA + _align(text_raw, 0x1000)
    sections = [
        (b".text", len(text), PE_TEXT_RVA, text_raw, PE_TEXT_OFFSET, 0x60000020),
        (b".data", 0x10, data_rva, 0x200, data_offset, 0xC0000040),
    ]

    dos = b"MZ".ljust(0x3C, b"\x00") + struct.pack("<I", 0x40)
    file_header = struct.pack("<HHIIIHH", 0x8664, len(sections), 0, 0, 0, 240, 0x22)
    optional = struct.pack(
        "<HBBIIIIIQIIHHHHHHIIIIHHQQQQII",
        0x20B,                 # PE32+
        14, 0,
        text_raw, 0x200, 0,
        entry_rva,
        PE_TEXT_RVA,
        PE_IMAGE_BASE,
        0x1000, 0x200,         # section / file alignment
        6, 0, 0, 0, 6, 0,
        0,
        data_rva + 0x1000,     # SizeOfImage
        PE_TEXT_OFFSET,        # SizeOfHeaders
        0,
        3,                     # console subsystem
        0x8160,
        0x100000, 0x1000, 0x100000, 0x1000,
        0,
        16,
    ) + b"\x00" * (16 * 8)
    section_table = b"".join(
        struct.pack("<8sIIIIIIHHI", name, vsize, rva, raw, offset, 0, 0, 0, 0, chars)
        for name, vsize, rva, raw, offset, chars in sections
    )
    headers = dos + b"PE\x00\x00" + file_header + optional + section_table
    image = headers.ljust(PE_TEXT_OFFSET, b"\x00")
    image += text.ljust(text_raw, b"\x00")
    image += b"\x00" * 0x200
    return image


# ---------------------------------------------------------------------------
# Mach-O
# ---------------------------------------------------------------------------

MACHO_TEXT_VADDR = 0x100000000
MACHO_PAYLOAD_OFFSET = 0x1000
LC_SEGMENT_64 = 0x19
CPU_TYPE_X86_64 = 0x01000007


def build_macho(payload: bytes) -> bytes:
    """Thin little-endian Mach-O 64: ``__PAGEZERO`` then a ``__TEXT`` holding *payload*."""
    size = MACHO_PAYLOAD_OFFSET + len(payload)
    segments = [
        (b"__PAGEZERO", 0, MACHO_TEXT_VADDR, 0, 0, 0),
        (b"__TEXT", MACHO_TEXT_VADDR, _align(size, 0x1000), 0, size, 5),
    ]
    commands = b"".join(
        struct.pack(
            "<II16sQQQQiiII",
            LC_SEGMENT_64, 72, name, vmaddr, vmsize, fileoff, filesize, prot, prot, 0, 0,
        )
        for name, vmaddr, vmsize, fileoff, filesize, prot in segments
    )
    header = struct.pack(
        "<IiiIIIII", 0xFEEDFACF, CPU_TYPE_X86_64, 3, 2, len(segments), len(commands), 0, 0
    )
    return (header + commands).ljust(MACHO_PAYLOAD_OFFSET, b"\x00") + payload


def build_fat(thin: bytes, *, offset: int = 0x1000) -> bytes:
    """Universal binary wrapping a single *thin* slice."""
    header = struct.pack(">II", 0xCAFEBABE, 1)
    header += struct.pack(">iiIII", CPU_TYPE_X86_64, 3, offset, len(thin), 12)
    return header.ljust(offset, b"\x00") + thin


# ---------------------------------------------------------------------------
# In-memory reader
# ---------------------------------------------------------------------------


class FakeReader:
    """Serves *image* at virtual address *base* and records every read."""

    def __init__(self, image: bytes, base: int = 0x10000):
        self.image = image
        self.base = base
        self.reads: list[tuple[int, int]] = []
        self.closed = 0

    def rodata_range(self) -> AddressRange:
        return AddressRange(self.base, self.base + len(self.image))

    def read_at(self, addr: int, size: int) -> bytes:
        rng = self.rodata_range()
        assert rng.start <= addr and addr + size <= rng.end, "read outside range"
        self.reads.append((addr, size))
        off = addr - self.base
        return self.image[off:off + size]

    def close(self) -> None:
        self.closed += 1

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def write_file(tmp_path: Path):
    def _write(name: str, data: bytes) -> Path:
        p = tmp_path / name
        p.write_bytes(data)
        return p
    return _write


@pytest.fixture
def elf_path(write_file) -> Path:
    rodata = b"\x00" * 0x40 + wrap(SAMPLE_TABLE) + b"\x00" * 0x40
    return write_file("test.elf", build_elf(rodata))


@pytest.fixture
def pe_path(write_file) -> Path:
    text = b"\xcc" * 0x30 + wrap(SAMPLE_TABLE)
    return write_file("test.exe", build_pe(text))


@pytest.fixture
def macho_path(write_file) -> Path:
    return write_file("test.macho", build_macho(wrap(SAMPLE_TABLE)))
