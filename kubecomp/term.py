"""Terminal helpers."""

from __future__ import annotations

import os
from typing import IO


def terminal_size(stream: IO) -> tuple[int, int]:
    """Return (width, height) of the terminal behind stream.

    Raises OSError when the stream is not a terminal.
    """
    try:
        fd = stream.fileno()
    except (AttributeError, OSError, ValueError):
        raise OSError("given writer is no terminal") from None
    if not os.isatty(fd):
        raise OSError("given writer is no terminal")
    size = os.get_terminal_size(fd)
    return size.columns, size.lines