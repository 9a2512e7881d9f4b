"""Bit-level reader and writer over a fixed-size byte buffer.

A stream is used either for reading or for writing, never both. Bits are
written MSB first into an 8-bit shift register that is flushed to the
buffer each time it fills. Running past the end of the buffer never
raises: the ``overrun`` flag is set and data beyond the buffer is dropped
on write or read as zero bits.
"""

from __future__ import annotations

import copy
import logging
import os
from typing import Union

__all__ = ["BitStream", "bitmove", "bitcopy"]

_log = logging.getLogger(__name__)

BufferLike = Union[bytes, bytearray, memoryview]


class BitStream:
    """A bit stream over a fixed-size buffer."""

    __slots__ = ("_buf", "_used", "_reg", "_reg_used", "_overrun")

    def __init__(self, buffer: BufferLike) -> None:
        self._buf = buffer if isinstance(buffer, bytearray) else bytearray(buffer)
        self._used = 0
        self._reg = 0
        self._reg_used = 0
        self._overrun = False

    @classmethod
    def allocate(cls, size: int) -> "BitStream":
        """Create a stream over a new zero-filled buffer of ``size`` bytes."""
        if size < 0:
            raise ValueError("size must not be negative")
        return cls(bytearray(size))

    def __copy__(self) -> "BitStream":
        clone = BitStream.__new__(BitStream)
        clone._buf = self._buf
        clone._used = self._used
        clone._reg = self._reg
        clone._reg_used = self._reg_used
        clone._overrun = self._overrun
        return clone

    @property
    def byte_count(self) -> int:
        """Bytes read from or written to the buffer so far."""
        return self._used

    @property
    def buffer_size(self) -> int:
        """Total size of the underlying buffer in bytes."""
        return len(self._buf)

    @property
    def bytes_free(self) -> int:
        """Bytes not yet read or written."""
        return len(self._buf) - self._used

    @property
    def overrun(self) -> bool:
        """True once an access went, or reached, past the end of the buffer."""
        return self._overrun

    def getvalue(self) -> bytes:
        """The bytes written (or consumed) so far."""
        return bytes(self._buf[: self._used])

    def save(self, path: Union[str, os.PathLike]) -> None:
        """Write the used part of the buffer to ``path``; the stream is unchanged."""
        with open(path, "wb") as fh:
            fh.write(self._buf[: self._used])

    def _flag(self, what: str) -> None:
        if not self._overrun:
            _log.debug(
                "bitstream overrun (%s): used %d, size %d", what, self._used, len(self._buf)
            )
        self._overrun = True

    def _check_end(self, what: str) -> None:
        if self._used >= len(self._buf):
            self._flag(what)

    # Writing

    def write_bit(self, bit: int) -> None:
        """Append a single bit (only its lowest bit is used)."""
        self._check_end("write bit")
        if self._reg_used < 8:
            self._reg = ((self._reg << 1) | (bit & 1)) & 0xFF
            self._reg_used += 1
        if self._reg_used == 8:
            if self._used >= len(self._buf):
                self._flag("write bit")
            else:
                self._buf[self._used] = self._reg
                self._used += 1
            self._reg_used = 0

    def write_bits(self, bits: int, bitcount: int) -> None:
        """Append the low ``bitcount`` bits of ``bits``, most significant first."""
        for shift in range(bitcount - 1, -1, -1):
            self.write_bit(bits >> shift)
            self._check_end("write bits")

    def write_byte_stuff(self, bit: int) -> None:
        """Pad with ``bit`` until the stream is byte aligned."""
        while self._reg_used > 0:
            self.write_bit(bit)
            self._check_end("write byte stuff")

    def flush(self) -> None:
        """Pad any pending bits with zeros and write them to the buffer."""
        while self._reg_used > 0:
            self.write_bit(0)
            self._check_end("write buffer complete")

    # Reading

    def read_bit(self) -> int:
        """Consume and return the next bit."""
        if self._used > len(self._buf):
            self._flag("read bit")
        if self._reg_used == 0:
            if self._used >= len(self._buf):
                self._flag("read bit")
                self._reg = 0
            else:
                self._reg = self._buf[self._used]
                self._used += 1
            self._reg_used = 8
        bit = 1 if self._reg & 0x80 else 0
        self._reg = (self._reg << 1) & 0xFF
        self._reg_used -= 1
        return bit

    def _read_byte_aligned(self) -> int:
        if self._used >= len(self._buf):
            self._flag("read byte aligned")
            return 0
        value = self._buf[self._used]
        self._used += 1
        return value

    def read_bits(self, bitcount: int) -> int:
        """Consume ``bitcount`` bits and return them as an unsigned integer."""
        if bitcount == 8 and self._reg_used == 0:
            return self._read_byte_aligned()
        bits = 0
        for _ in range(bitcount):
            bits = (bits << 1) | self.read_bit()
            self._check_end("read bits")
        return bits

    def peek_bits(self, bitcount: int) -> int:
        """Return the next ``bitcount`` bits without consuming them."""
        if self._used + bitcount >= len(self._buf):
            self._flag("peek bits")
        return copy.copy(self).read_bits(bitcount)

    def read_byte_stuff(self) -> None:
        """Discard bits until the stream is byte aligned."""
        while self._reg_used > 0:
            self.read_bit()
            self._check_end("read byte stuff")

    def peek_binary(self, bitcount: int) -> str:
        """Render the next ``bitcount`` bits as 0/1 characters, a space after each byte."""
        clone = copy.copy(self)
        parts = []
        for i in range(1, bitcount + 1):
            if clone._used > len(clone._buf):
                break
            parts.append(str(clone.read_bit()))
            if i % 8 == 0:
                parts.append(" ")
        return "".join(parts)


def bitmove(dst: BitStream, src: BitStream, bits: int) -> None:
    """Read ``bits`` bits from ``src`` and write them to ``dst``."""
    for _ in range(bits):
        dst.write_bit(src.read_bit())


def bitcopy(dst: BitStream, src: BitStream, bits: int) -> None:
    """Copy ``bits`` bits from ``src`` to ``dst`` without advancing ``src``."""
    clone = copy.copy(src)
    if src.byte_count + bits >= src.buffer_size or dst.byte_count + bits >= dst.buffer_size:
        src._flag("bitcopy")
        dst._flag("bitcopy")
    bitmove(dst, clone, bits)