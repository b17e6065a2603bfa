"""Utility helpers: markers, format sniffing, file validation, path lookup."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from .errors import IOFailure, PathResolutionFailure, UnrecognizedFormat
from .models import BinaryFormat

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Brackets written around the module table by the producing toolchain.
INFO_START = bytes.fromhex("3077af0c9274080241e1c107e6d618e6")
INFO_END = bytes.fromhex("f932433186182072008242104116d8f2")
MARKER_LEN = 16

HEADER_SNIFF_SIZE = 16

ELF_MAGIC = b"\x7fELF"
PE_MAGIC = b"MZ"
MACHO_MAGIC_BE = b"\xfe\xed\xfa"       # feedface / feedfacf
MACHO_MAGIC_LE = b"\xfa\xed\xfe"       # cefaedfe / cffaedfe, from offset 1
MACHO_FAT_MAGICS = (b"\xca\xfe\xba\xbe", b"\xbe\xba\xfe\xca")

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_file(path: str | os.PathLike[str]) -> Path:
    """Ensure *path* exists and is a regular file.

    Returns the resolved ``Path`` on success; raises ``IOFailure`` otherwise.
    """
    p = Path(path).resolve()
    if not p.exists():
        raise IOFailure(f"File not found: {p}")
    if not p.is_file():
        raise IOFailure(f"Not a regular file: {p}")
    return p


def detect_format(data: bytes) -> BinaryFormat:
    """Detect the executable format from its leading magic bytes.

    Checks ELF, then PE, then Mach-O (thin in either byte order, or fat).
    """
    if data.startswith(ELF_MAGIC):
        return BinaryFormat.ELF
    if data.startswith(PE_MAGIC):
        return BinaryFormat.PE
    if (
        data.startswith(MACHO_MAGIC_BE)
        or data[1:].startswith(MACHO_MAGIC_LE)
        or data[:4] in MACHO_FAT_MAGICS
    ):
        return BinaryFormat.MACHO
    raise UnrecognizedFormat(
        f"unrecognized executable format (leading bytes {data[:4].hex() or 'none'})"
    )


def executable_path() -> str:
    """Return the absolute path of the running program's executable image.

    For a Python process this is the interpreter binary.
    """
    exe = sys.executable
    if not exe:
        raise PathResolutionFailure("cannot find running executable")
    return os.path.abspath(exe)
