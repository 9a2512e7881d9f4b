import pytest

from ltntools import ts
from ltntools.packetizer import packetize, packetize_with_pcr

DATA = bytes(range(1, 101)) * 4  # no 0xff bytes in the payload


def test_packetize_reassembles():
    packets, next_cc = packetize(DATA, 0x101, 2)
    assert all(len(p) == 188 for p in packets)
    payload = b"".join(p[4:] for p in packets)
    assert payload[: len(DATA)] == DATA
    assert set(payload[len(DATA) :]) <= {0xFF}
    assert next_cc == 2 + len(packets)


def test_packetize_headers():
    packets, _ = packetize(DATA, 0x101, 14)
    for index, pkt in enumerate(packets):
        assert ts.sync_present(pkt)
        assert ts.pid(pkt) == 0x101
        assert bool(pkt[1] & 0x40) == (index == 0)
        assert pkt[3] & 0x0F == (14 + index) & 0x0F
        assert ts.adaptation_field_control(pkt) == 1


def test_packetize_single_packet():
    packets, next_cc = packetize(b"\x00\x00\x01\xe0", 0x20, 0)
    assert len(packets) == 1
    assert next_cc == 1
    assert packets[0][4:8] == b"\x00\x00\x01\xe0"


@pytest.mark.parametrize("func", [packetize, lambda d, p, c: packetize_with_pcr(d, p, c, 0)])
def test_invalid_arguments(func):
    with pytest.raises(ValueError):
        func(b"", 0x100, 0)
    with pytest.raises(ValueError):
        func(DATA, 0x2000, 0)


def test_packetize_with_pcr_carries_pcr():
    packets, next_cc = packetize_with_pcr(DATA, 0x1E1, 0, 27_000_000)
    first = packets[0]
    assert ts.scr(first) == 27_000_000
    assert ts.adaptation_field_control(first) == 3
    assert first[1] & 0x40
    assert next_cc == len(packets)
    for pkt in packets[1:]:
        assert ts.scr(pkt) is None
        assert ts.pid(pkt) == 0x1E1


def test_packetize_with_pcr_reassembles():
    packets, _ = packetize_with_pcr(DATA, 0x1E1, 0, 900)
    collected = bytes(b for b in packets[0][12:] if b != 0xFF)
    collected += b"".join(bytes(b for b in p[4:] if b != 0xFF) for p in packets[1:])
    assert collected == DATA


def test_packetize_with_pcr_none_matches_plain():
    assert packetize_with_pcr(DATA, 0x50, 3, None) == packetize(DATA, 0x50, 3)
    assert packetize_with_pcr(DATA, 0x50, 3, -1) == packetize(DATA, 0x50, 3)


def test_packetize_with_pcr_short_payload():
    packets, _ = packetize_with_pcr(b"\x01\x02\x03", 0x50, 0, 300)
    assert ts.scr(packets[0]) == 300
    assert packets[0][12:15] == b"\x01\x02\x03"