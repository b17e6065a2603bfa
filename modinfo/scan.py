"""Line/field scanner over a raw module table.

Each row is ``keyword \\t path [\\t version]``. The scanner never copies
the blob: fields are ``memoryview`` slices of it, and one ``Entry`` is
reused for every row. An entry returned by :meth:`TableScanner.entry`
is only valid until the next :meth:`TableScanner.scan` call; copy what
you need out of it first.
"""

from __future__ import annotations

from typing import Iterator

from .models import Entry


class TableScanner:
    """Stateful cursor producing one ``Entry`` per well-formed row."""

    def __init__(self, buf: bytes):
        self._buf = bytes(buf)
        self._view = memoryview(self._buf)
        self._pos = 0
        self._cur = Entry()

    def scan(self) -> bool:
        """Advance to the next row; ``False`` once the table is exhausted."""
        buf = self._buf
        while True:
            line = self._next_line()
            if line is None:
                return False
            start, end = line
            tab = buf.find(b"\t", start, end)
            if tab < 0:
                # Malformed row, skip it.
                continue
            self._cur.keyword = self._view[start:tab]
            start = tab + 1
            tab = buf.find(b"\t", start, end)
            if tab < 0:
                self._cur.path = self._view[start:end]
                self._cur.version = b""
                return True
            self._cur.path = self._view[start:tab]
            start = tab + 1
            tab = buf.find(b"\t", start, end)
            self._cur.version = self._view[start:end if tab < 0 else tab]
            return True

    def entry(self) -> Entry:
        """The current row. Valid only until the next ``scan()``."""
        return self._cur

    def has_keyword(self, kw: bytes) -> bool:
        """Exact, case-sensitive comparison against the current keyword."""
        return self._cur.keyword == kw

    def __iter__(self) -> Iterator[Entry]:
        while self.scan():
            yield self._cur

    def _next_line(self) -> tuple[int, int] | None:
        buf = self._buf
        if self._pos >= len(buf):
            return None
        start = self._pos
        end = buf.find(b"\n", start)
        if end < 0:
            end = len(buf)
        self._pos = end + 1
        if end > start and buf[end - 1] == 0x0D:  # drop \r of a \r\n ending
            end -= 1
        return start, end


def scan_table(buf: bytes) -> TableScanner:
    """Start an independent scan over *buf*."""
    return TableScanner(buf)
