"""MPEG transport stream packet helpers: headers, PCR handling and test packets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

__all__ = [
    "PACKET_SIZE",
    "SYNC_BYTE",
    "PcrPosition",
    "pid",
    "sync_present",
    "adaptation_field_control",
    "has_adaptation",
    "adaptation_field_length",
    "pcr_to_scr",
    "scr",
    "pack_pcr",
    "generate_pcr_only_packet",
    "find_pes_header",
    "find_pes_header_reverse",
    "section_table_id",
    "is_video_stream_type",
    "is_audio_stream_type",
    "stream_type_description",
    "generate_null_packet",
    "verify_packet_with_counter",
    "update_packet_with_counter",
    "generate_packet_with_counter",
    "find_sync_position",
    "query_pcrs",
    "query_pcr_pid",
    "pts_to_ascii",
    "pcr_to_ascii",
]

PACKET_SIZE = 188
SYNC_BYTE = 0x47

_PES_START_CODE = b"\x00\x00\x01"
_U64_MASK = (1 << 64) - 1

BufferLike = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class PcrPosition:
    """A PCR found in a buffer: its pid, byte offset and 27MHz value."""

    pid: int
    offset: int
    pcr: int


def pid(pkt: BufferLike) -> int:
    """The 13-bit packet identifier."""
    return ((pkt[1] & 0x1F) << 8) | pkt[2]


def sync_present(pkt: BufferLike) -> bool:
    """True when the packet starts with the sync byte."""
    return pkt[0] == SYNC_BYTE


def adaptation_field_control(pkt: BufferLike) -> int:
    """The two-bit adaptation_field_control value."""
    return (pkt[3] >> 4) & 0x03


def has_adaptation(pkt: BufferLike) -> bool:
    """True when the packet carries an adaptation field."""
    return adaptation_field_control(pkt) in (2, 3)


def adaptation_field_length(pkt: BufferLike) -> int:
    """The adaptation field length byte."""
    return pkt[4]


def pcr_to_scr(data: BufferLike) -> int:
    """Convert six raw PCR bytes (33-bit base, 6 reserved, 9-bit extension) to 27MHz."""
    if len(data) < 6:
        raise ValueError("a PCR field needs six bytes")
    base = (
        (data[0] << 25) | (data[1] << 17) | (data[2] << 9) | (data[3] << 1) | (data[4] >> 7)
    ) & 0x1FFFFFFFF
    ext = ((data[4] << 8) | data[5]) & 0x1FF
    return base * 300 + ext


def scr(pkt: BufferLike) -> Optional[int]:
    """The packet's PCR in 27MHz ticks, or None when it carries none."""
    if len(pkt) < 12 or not sync_present(pkt):
        return None
    if adaptation_field_control(pkt) < 2:
        return None
    if pkt[4] == 0:
        return None
    if not pkt[5] & 0x10:
        return None
    return pcr_to_scr(pkt[6:12])


def pack_pcr(pcr: int) -> bytes:
    """Pack a 27MHz value into the six bytes of an adaptation field PCR."""
    base, ext = divmod(pcr, 300)
    return bytes(
        (
            (base >> 25) & 0xFF,
            (base >> 17) & 0xFF,
            (base >> 9) & 0xFF,
            (base >> 1) & 0xFF,
            ((base << 7) & 0xFF) | 0x7E | ((ext & 0x100) >> 8),
            ext & 0xFF,
        )
    )


def _header(pid_value: int, flags: int, cc: int) -> bytes:
    return bytes(
        (SYNC_BYTE, (pid_value & 0x1FFF) >> 8, pid_value & 0xFF, flags | (cc & 0x0F))
    )


def generate_pcr_only_packet(pid: int, cc: int, pcr: int) -> Tuple[bytes, int]:
    """Build an adaptation-only packet carrying ``pcr``; return it and the next cc."""
    pkt = bytearray(b"\xff" * PACKET_SIZE)
    pkt[0:4] = _header(pid, 0x20, cc)
    pkt[4] = 1 + 6
    pkt[5] = 0x10
    pkt[6:12] = pack_pcr(pcr)
    return bytes(pkt), (cc + 1) & 0xFF


def find_pes_header(buf: BufferLike) -> Optional[int]:
    """Offset of the first 00 00 01 start code, or None.

    A start code whose last byte is the final byte of the buffer is not found.
    """
    pos = bytes(buf).find(_PES_START_CODE, 0, max(len(buf) - 1, 0))
    return None if pos < 0 else pos


def find_pes_header_reverse(buf: BufferLike) -> Optional[int]:
    """Offset of the last 00 00 01 start code, or None."""
    pos = bytes(buf).rfind(_PES_START_CODE)
    return None if pos < 0 else pos


def section_table_id(pkt: BufferLike) -> int:
    """The table_id of a section starting in this packet (pointer field assumed zero)."""
    offset = 5
    if has_adaptation(pkt):
        offset += 1 + adaptation_field_length(pkt)
    return pkt[offset]


_VIDEO_TYPES = frozenset({0x01, 0x02, 0x1B, 0x21, 0x24, 0x25, 0x27, 0x28, 0x29, 0x2A, 0xDB})
_AUDIO_TYPES = frozenset({0x03, 0x04, 0x07, 0x0F, 0x81, 0xC1, 0xC2, 0xCF})

_DESCRIPTIONS = {
    0x00: "Reserved",
    0x01: "ISO/IEC 11172 Video",
    0x02: "ISO/IEC 13818-2 Video",
    0x03: "ISO/IEC 11172 Audio",
    0x04: "ISO/IEC 13818-3 Audio",
    0x05: "ISO/IEC 13818-1 Private Section",
    0x06: "ISO/IEC 13818-1 Private PES data packets",
    0x07: "ISO/IEC 13522 MHEG",
    0x08: "ISO/IEC 13818-1 Annex A DSM CC",
    0x09: "H222.1",
    0x0A: "ISO/IEC 13818-6 type A",
    0x0B: "ISO/IEC 13818-6 type B",
    0x0C: "ISO/IEC 13818-6 type C",
    0x0D: "ISO/IEC 13818-6 type D",
    0x0E: "ISO/IEC 13818-1 auxillary",
    0x0F: "ISO/IEC 13818-7 Audio with ADTS transport syntax",
    0x10: "ISO/IEC 14496-2 (MPEG-4) Visual",
    0x11: "ISO/IEC 14496-3 Audio with the LATM transport syntax as defined in ISO/IEC 14496-3 / AMD 1",
    0x12: "ISO/IEC 14496-1 SL-packetized stream or FlexMux stream carried in PES packets",
    0x13: "ISO/IEC 14496-1 SL-packetized stream or FlexMux stream carried in ISO/IEC14496_sections",
    0x14: "ISO/IEC 13818-6 Synchronized Download Protocol",
    0x1B: "H.264 Video",
    0x21: "JPEG 2000",
    0x24: "HEVC Video",
    0x25: "HEVC Video",
    0x27: "HEVC Video",
    0x28: "HEVC Video",
    0x29: "HEVC Video",
    0x2A: "HEVC Video",
    0x81: "ATSC AC-3 Audio",
    0xC1: "ATSC AC-3 Audio (HLS TS Encryption)",
    0xC2: "ATSC EAC-3 Audio (HLS TS Encryption)",
    0xCF: "ISO/IEC 13818-7 Audio with ADTS transport syntax (HLS TS Encryption)",
    0xDB: "H.264 Video (HLS TS Encryption)",
}


def is_video_stream_type(stream_type: int) -> bool:
    """True for PMT stream types that carry video."""
    return stream_type in _VIDEO_TYPES


def is_audio_stream_type(stream_type: int) -> bool:
    """True for PMT stream types that carry audio."""
    return stream_type in _AUDIO_TYPES


def stream_type_description(stream_type: int) -> str:
    """A human readable name for a PMT stream type."""
    try:
        return _DESCRIPTIONS[stream_type]
    except KeyError:
        return "ISO/IEC 13818-1 reserved" if stream_type < 0x80 else "User Private"


def generate_null_packet() -> bytes:
    """A null packet on pid 0x1fff."""
    return bytes((SYNC_BYTE, 0x1F, 0xFF, 0x10)) + b"\xff" * (PACKET_SIZE - 4)


_COUNTER_FILL = b"\xff" * (PACKET_SIZE - 16)


def _require_packet(pkt: BufferLike) -> None:
    if len(pkt) < PACKET_SIZE:
        raise ValueError(f"a packet needs {PACKET_SIZE} bytes, got {len(pkt)}")


def verify_packet_with_counter(pkt: BufferLike, pid: int, last_counter: int) -> int:
    """Check a counter test packet and return its 64-bit counter.

    Raises ValueError if the header, the counter sequence or the fill is wrong.
    """
    _require_packet(pkt)
    if pkt[0] != SYNC_BYTE:
        raise ValueError("missing sync byte")
    if pkt[1] != (pid & 0x1FFF) >> 8 or pkt[2] != (pid & 0xFF):
        raise ValueError("unexpected pid")
    if pkt[3] & 0xF0 != 0x10:
        raise ValueError("unexpected adaptation or scrambling bits")
    counter = int.from_bytes(bytes(pkt[8:16]), "big")
    if (last_counter + 1) & _U64_MASK != counter:
        raise ValueError(f"counter {counter} does not follow {last_counter}")
    if bytes(pkt[16:PACKET_SIZE]) != _COUNTER_FILL:
        raise ValueError("payload fill is corrupt")
    return counter


def update_packet_with_counter(pkt: bytearray, pid: int, cc: int, counter: int) -> int:
    """Rewrite the header and counter of ``pkt`` in place; return the next cc."""
    _require_packet(pkt)
    pkt[0:4] = _header(pid, 0x10, cc)
    pkt[8:16] = (counter & _U64_MASK).to_bytes(8, "big")
    return (cc + 1) & 0xFF


def generate_packet_with_counter(pid: int, cc: int, counter: int) -> Tuple[bytes, int]:
    """Build a counter test packet; return it and the next cc."""
    pkt = bytearray(b"\xff" * PACKET_SIZE)
    next_cc = update_packet_with_counter(pkt, pid, cc, counter)
    return bytes(pkt), next_cc


def find_sync_position(buf: BufferLike) -> Optional[int]:
    """Offset of the first sync byte repeated over three packets, or None."""
    if len(buf) < 3 * PACKET_SIZE:
        return None
    for i in range(PACKET_SIZE):
        if (
            buf[i] == SYNC_BYTE
            and buf[i + PACKET_SIZE] == SYNC_BYTE
            and buf[i + 2 * PACKET_SIZE] == SYNC_BYTE
        ):
            return i
    return None


def _is_rtp_header(pkt: BufferLike) -> bool:
    return len(pkt) > 12 and pkt[0] == 0x80 and pkt[12] == SYNC_BYTE


def query_pcrs(buf: BufferLike, addr: int = 0) -> List[PcrPosition]:
    """Every PCR in a buffer of packets; offsets are reported relative to ``addr``.

    Raises ValueError if no packet alignment can be found.
    """
    offset = find_sync_position(buf)
    if offset is None:
        raise ValueError("no transport packet alignment found")
    found = []
    i = offset
    end = len(buf) - offset
    while i < end:
        pkt = buf[i : i + PACKET_SIZE]
        if _is_rtp_header(pkt):
            i += 12 + PACKET_SIZE
            continue
        value = scr(pkt)
        if value is not None:
            found.append(PcrPosition(pid(pkt), addr + i, value))
        i += PACKET_SIZE
    return found


def query_pcr_pid(buf: BufferLike, pcr_pid: int, aligned: bool = True) -> Optional[PcrPosition]:
    """The first PCR on ``pcr_pid``, scanning packets from the buffer start.

    When ``aligned`` is false the buffer must hold three aligned packets,
    otherwise None is returned. None is also returned when no PCR is found.
    """
    if not aligned and find_sync_position(buf) is None:
        return None
    i = 0
    while i < len(buf):
        pkt = buf[i : i + PACKET_SIZE]
        if _is_rtp_header(pkt):
            i += 12 + PACKET_SIZE
            continue
        if len(pkt) >= 3 and pid(pkt) == pcr_pid:
            value = scr(pkt)
            if value is not None:
                return PcrPosition(pcr_pid, i, value)
        i += PACKET_SIZE
    return None


def _tdiv(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def _tmod(a: int, b: int) -> int:
    return a - b * _tdiv(a, b)


def pts_to_ascii(pts: int) -> str:
    """Render a 90kHz timestamp as days.hh:mm:ss.mmm."""
    t = _tdiv(pts, 90000)
    ms = _tmod(_tdiv(pts, 90), 1000)
    secs = _tmod(t, 60)
    mins = _tmod(_tdiv(t, 60), 60)
    hrs = _tmod(_tdiv(t, 3600), 24)
    days = _tdiv(t, 86400)
    return "%d.%02d:%02d:%02d.%03d" % (days, hrs, mins, secs, ms)


def pcr_to_ascii(pcr: int) -> str:
    """Render a 27MHz clock value as days.hh:mm:ss.mmm."""
    return pts_to_ascii(_tdiv(pcr, 300))