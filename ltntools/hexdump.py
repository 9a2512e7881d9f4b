"""Hex rendering of byte buffers."""

from __future__ import annotations

from typing import Union

__all__ = ["hexdump"]


def hexdump(buf: Union[bytes, bytearray, memoryview], bytes_per_row: int = 16) -> str:
    """Render ``buf`` as hex pairs, ``bytes_per_row`` per line, ending with a newline."""
    if bytes_per_row <= 0:
        raise ValueError("bytes_per_row must be positive")
    parts = [
        "%02x%s" % (byte, "\n" if (i + 1) % bytes_per_row == 0 else " ")
        for i, byte in enumerate(bytes(buf))
    ]
    parts.append("\n")
    return "".join(parts)