"""Read the module version table a toolchain embeds in an executable."""

from .errors import (
    IOFailure,
    MalformedExecutable,
    ModInfoError,
    NoModuleInfo,
    PathResolutionFailure,
    ReadFailure,
    UnmappedAddress,
    UnrecognizedFormat,
)
from .exe import ElfExe, Exe, MachoExe, PeExe, open_exe
from .locate import find_module_info, read_exe_table
from .models import DEVEL_VERSION, AddressRange, BinaryFormat, ByteOrder, Entry, Module
from .scan import TableScanner, scan_table
from .table import Table, read_table

__version__ = "0.1.0"

__all__ = [
    "AddressRange",
    "BinaryFormat",
    "ByteOrder",
    "DEVEL_VERSION",
    "ElfExe",
    "Entry",
    "Exe",
    "IOFailure",
    "MachoExe",
    "MalformedExecutable",
    "ModInfoError",
    "Module",
    "NoModuleInfo",
    "PathResolutionFailure",
    "PeExe",
    "ReadFailure",
    "Table",
    "TableScanner",
    "UnmappedAddress",
    "UnrecognizedFormat",
    "find_module_info",
    "open_exe",
    "read_exe_table",
    "read_table",
    "scan_table",
]
