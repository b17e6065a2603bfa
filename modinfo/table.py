"""Query surface over a module information table."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from .locate import WINDOW_SIZE, read_exe_table
from .models import Module
from .scan import scan_table
from .utils import executable_path

_KW_PATH = b"path"
_KW_MOD = b"mod"
_KW_DEP = b"dep"


@dataclass(frozen=True)
class Table:
    """The raw table extracted from an executable.

    Every query runs its own scan over ``buf``, so a ``Table`` can be
    shared and queried from several threads at once.
    """

    buf: bytes = b""

    def main_package(self) -> str:
        """Path of the package containing the program's entry point.

        Returns ``""`` when the table has no ``path`` row.
        """
        sc = scan_table(self.buf)
        while sc.scan():
            if sc.has_keyword(_KW_PATH):
                return bytes(sc.entry().path).decode("utf-8", errors="replace")
        return ""

    def main_module(self) -> Module | None:
        """The module that contains :meth:`main_package`, or ``None``.

        Its version may be ``DEVEL_VERSION`` when the build had no
        version information for it.
        """
        sc = scan_table(self.buf)
        while sc.scan():
            if sc.has_keyword(_KW_MOD):
                return sc.entry().to_module()
        return None

    def dependencies(self) -> dict[str, Module]:
        """Map of dependency module path to module; later rows win."""
        deps: dict[str, Module] = {}
        sc = scan_table(self.buf)
        while sc.scan():
            if sc.has_keyword(_KW_DEP):
                mod = sc.entry().to_module()
                deps[mod.path] = mod
        return deps

    def to_dict(self) -> dict[str, Any]:
        main = self.main_module()
        return {
            "main_package": self.main_package(),
            "main_module": main.to_dict() if main else None,
            "dependencies": {k: m.to_dict() for k, m in self.dependencies().items()},
        }


def read_table(
    path: str | os.PathLike[str] | None = None,
    window_size: int = WINDOW_SIZE,
) -> Table:
    """Read the module information table from an executable.

    With no *path*, the running program's own executable is used. Note
    that the file on disk is not necessarily the image that is running:
    it may have been replaced or removed since the process started.
    """
    if path is None:
        path = executable_path()
    return Table(read_exe_table(path, window_size=window_size))
