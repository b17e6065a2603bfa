"""Locate the marker-bracketed module table inside an executable.

The read-only data range is walked in bounded windows, lowest address
first, so the whole region is never held in memory at once. Windows
overlap so that a marker, or a table, lying across a window boundary is
still found:

* while seeking, consecutive windows share ``MARKER_LEN - 1`` bytes;
* once a start marker has been seen without its end marker, the next
  window restarts at the start marker and is at least large enough to
  hold a maximum-size table and both markers.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Protocol

from .errors import NoModuleInfo
from .exe import open_exe
from .models import AddressRange
from .utils import INFO_END, INFO_START, MARKER_LEN

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

WINDOW_SIZE = 4 << 20      # 4 MiB per read
MAX_TABLE_SIZE = 128 << 10  # 128 KiB between the markers, at most

# Bytes needed to hold a complete marker-bracketed table.
_FULL_SPAN = MARKER_LEN + MAX_TABLE_SIZE + MARKER_LEN


class AddressMappedReader(Protocol):
    def rodata_range(self) -> AddressRange: ...

    def read_at(self, addr: int, size: int) -> bytes: ...


class SearchState(Enum):
    SEEKING = "seeking"
    START_FOUND = "start-found"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def find_module_info(reader: AddressMappedReader, window_size: int = WINDOW_SIZE) -> bytes:
    """Return the bytes strictly between the first start/end marker pair.

    Raises ``NoModuleInfo`` when the read-only range holds no complete
    pair. Read errors from *reader* propagate unchanged.
    """
    if window_size < 2 * MARKER_LEN:
        raise ValueError(f"window size must be at least {2 * MARKER_LEN} bytes")

    rng = reader.rodata_range()
    logger.debug("scanning read-only range 0x%x-0x%x", rng.start, rng.end)

    state = SearchState.SEEKING
    addr = rng.start
    while addr < rng.end:
        want = window_size if state is SearchState.SEEKING else max(window_size, _FULL_SPAN)
        size = min(want, rng.end - addr)
        data = reader.read_at(addr, size)
        logger.debug("window 0x%x+%d (%s)", addr, size, state.value)

        i = data.find(INFO_START)
        if i < 0:
            state = SearchState.SEEKING
            addr = _next_seek_addr(addr, size, rng.end)
            continue

        j = data.find(INFO_END, i + MARKER_LEN)
        if j >= 0:
            logger.debug("module table found at 0x%x (%d bytes)", addr + i, j - i - MARKER_LEN)
            return data[i + MARKER_LEN:j]

        if addr + size >= min(rng.end, addr + i + _FULL_SPAN):
            # The window already held everything a valid table could use.
            logger.debug("start marker at 0x%x has no end marker; skipping", addr + i)
            state = SearchState.SEEKING
            addr += i + MARKER_LEN
        else:
            logger.debug("start marker at 0x%x; end marker not in window yet", addr + i)
            state = SearchState.START_FOUND
            addr += i

    raise NoModuleInfo("no module information in executable")


def read_exe_table(path: str | os.PathLike[str], window_size: int = WINDOW_SIZE) -> bytes:
    """Open *path*, locate its module table and close it again."""
    with open_exe(path) as exe:
        return find_module_info(exe, window_size=window_size)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _next_seek_addr(addr: int, size: int, end: int) -> int:
    if addr + size >= end:
        return end
    # Keep a marker that straddles the boundary in the next window.
    return addr + size - (MARKER_LEN - 1)
