"""Split a PES (or any byte payload) into 188-byte transport packets."""

from __future__ import annotations

from typing import List, Optional, Tuple, Union

from ltntools.ts import PACKET_SIZE, SYNC_BYTE, pack_pcr

__all__ = ["packetize", "packetize_with_pcr"]

_PAYLOAD = PACKET_SIZE - 4

BufferLike = Union[bytes, bytearray, memoryview]


def _validate(data: BufferLike, pid: int) -> None:
    if not data:
        raise ValueError("nothing to packetize")
    if not 0 <= pid <= 0x1FFF:
        raise ValueError(f"pid {pid:#x} out of range")


def _header(pid: int, cc: int, first: bool, flags: int = 0x10) -> bytearray:
    b1 = (pid >> 8) | (0x40 if first else 0)
    return bytearray((SYNC_BYTE, b1, pid & 0xFF, flags | (cc & 0x0F)))


def packetize(data: BufferLike, pid: int, cc: int) -> Tuple[List[bytes], int]:
    """Split ``data`` into packets on ``pid``; return the packets and the next cc.

    The first packet has payload_unit_start_indicator set; the last is padded with 0xff.
    """
    _validate(data, pid)
    data = bytes(data)
    packets = []
    for pos in range(0, len(data), _PAYLOAD):
        chunk = data[pos : pos + _PAYLOAD]
        pkt = _header(pid, cc, not packets) + chunk + b"\xff" * (_PAYLOAD - len(chunk))
        packets.append(bytes(pkt))
        cc = (cc + 1) & 0xFF
    return packets, cc


def packetize_with_pcr(
    data: BufferLike, pid: int, cc: int, pcr: Optional[int]
) -> Tuple[List[bytes], int]:
    """Like :func:`packetize`, with ``pcr`` in an adaptation field of the first packet.

    A ``pcr`` of None or below zero means no PCR is carried.
    """
    _validate(data, pid)
    data = bytes(data)
    with_pcr = pcr is not None and pcr >= 0
    packets = []
    pos = 0
    while pos < len(data):
        first = not packets
        count = min(len(data) - pos, _PAYLOAD)
        if with_pcr and first:
            pkt = _header(pid, cc, True, 0x30)
            pkt += bytes((7, 0x10)) + pack_pcr(pcr)
            count -= 8
            if count < 0:
                count = len(data) - pos
        else:
            pkt = _header(pid, cc, first)
        pkt += data[pos : pos + count]
        pkt += b"\xff" * (PACKET_SIZE - len(pkt))
        packets.append(bytes(pkt))
        pos += count
        cc = (cc + 1) & 0xFF
    return packets, cc