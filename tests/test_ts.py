import pytest

from ltntools import ts


def test_null_packet_header():
    pkt = ts.generate_null_packet()
    assert len(pkt) == 188
    assert ts.sync_present(pkt)
    assert ts.pid(pkt) == 0x1FFF
    assert ts.adaptation_field_control(pkt) == 1
    assert not ts.has_adaptation(pkt)
    assert ts.scr(pkt) is None


@pytest.mark.parametrize("pcr", [0, 1, 299, 300, 27_000_000, (1 << 33) * 300 - 1])
def test_pack_pcr_round_trip(pcr):
    packed = ts.pack_pcr(pcr)
    assert len(packed) == 6
    assert ts.pcr_to_scr(packed) == pcr


def test_pcr_to_scr_needs_six_bytes():
    with pytest.raises(ValueError):
        ts.pcr_to_scr(b"\x00\x00\x00")


def test_pcr_only_packet():
    pkt, next_cc = ts.generate_pcr_only_packet(0x123, 5, 81_000_123)
    assert len(pkt) == 188
    assert ts.pid(pkt) == 0x123
    assert ts.adaptation_field_control(pkt) == 2
    assert ts.scr(pkt) == 81_000_123
    assert next_cc == 6
    assert pkt[3] & 0x0F == 5


def test_cc_wraps_in_header():
    pkt, next_cc = ts.generate_pcr_only_packet(0x20, 255, 0)
    assert next_cc == 0
    assert pkt[3] & 0x0F == 255 & 0x0F


def test_find_pes_header():
    prefix = b"\xaa\xbb"
    buf = prefix + b"\x00\x00\x01\xe0\x00"
    assert ts.find_pes_header(buf) == len(prefix)
    assert ts.find_pes_header_reverse(buf) == len(prefix)


def test_find_pes_header_ignores_code_at_very_end():
    prefix = b"\xaa"
    buf = prefix + b"\x00\x00\x01"
    assert ts.find_pes_header(buf) is None
    assert ts.find_pes_header_reverse(buf) == len(prefix)


def test_find_pes_header_picks_first_and_last():
    buf = b"\x00\x00\x01\x11\x22\x00\x00\x01\x33\x44"
    first = ts.find_pes_header(buf)
    last = ts.find_pes_header_reverse(buf)
    assert first < last
    assert buf[first : first + 3] == buf[last : last + 3] == b"\x00\x00\x01"


def test_section_table_id_without_adaptation():
    pkt = bytearray(ts.generate_null_packet())
    pkt[5] = 0x02
    assert ts.section_table_id(pkt) == 0x02


def test_section_table_id_with_adaptation():
    pkt = bytearray(b"\xff" * 188)
    pkt[0:4] = bytes((0x47, 0x40, 0x00, 0x30))
    pkt[4] = 3
    pkt[5 + 1 + 3] = 0x02
    assert ts.section_table_id(pkt) == 0x02


def test_stream_type_classification():
    assert ts.is_video_stream_type(0x1B)
    assert ts.is_video_stream_type(0x24)
    assert not ts.is_video_stream_type(0x81)
    assert ts.is_audio_stream_type(0x81)
    assert ts.is_audio_stream_type(0x0F)
    assert not ts.is_audio_stream_type(0x1B)


def test_stream_type_description():
    assert ts.stream_type_description(0x1B) == "H.264 Video"
    assert ts.stream_type_description(0x2A) == "HEVC Video"
    assert ts.stream_type_description(0x00) == "Reserved"
    assert ts.stream_type_description(0x50) == "ISO/IEC 13818-1 reserved"
    assert ts.stream_type_description(0x90) == "User Private"


def test_counter_packet_round_trip():
    pkt, next_cc = ts.generate_packet_with_counter(0x100, 3, 1000)
    assert next_cc == 4
    assert ts.pid(pkt) == 0x100
    assert ts.verify_packet_with_counter(pkt, 0x100, 999) == 1000


def test_counter_packet_wrong_sequence():
    pkt, _ = ts.generate_packet_with_counter(0x100, 0, 1000)
    with pytest.raises(ValueError):
        ts.verify_packet_with_counter(pkt, 0x100, 1000)


def test_counter_packet_wrong_pid():
    pkt, _ = ts.generate_packet_with_counter(0x100, 0, 10)
    with pytest.raises(ValueError):
        ts.verify_packet_with_counter(pkt, 0x101, 9)


def test_counter_packet_corrupt_fill():
    pkt, _ = ts.generate_packet_with_counter(0x100, 0, 10)
    corrupt = bytearray(pkt)
    corrupt[100] = 0
    with pytest.raises(ValueError):
        ts.verify_packet_with_counter(corrupt, 0x100, 9)


def test_counter_packet_too_short():
    with pytest.raises(ValueError):
        ts.verify_packet_with_counter(b"\x47" * 100, 0x100, 0)
    with pytest.raises(ValueError):
        ts.update_packet_with_counter(bytearray(100), 0x100, 0, 0)


def test_update_packet_with_counter():
    pkt, cc = ts.generate_packet_with_counter(0x44, 0, 7)
    buf = bytearray(pkt)
    cc = ts.update_packet_with_counter(buf, 0x44, cc, 8)
    assert cc == 2
    assert ts.verify_packet_with_counter(buf, 0x44, 7) == 8


def test_find_sync_position():
    junk = b"\x01\x02\x03\x04\x05"
    buf = junk + ts.generate_null_packet() * 3
    assert ts.find_sync_position(buf) == len(junk)
    assert ts.find_sync_position(ts.generate_null_packet() * 2) is None
    assert ts.find_sync_position(b"\x00" * (188 * 3)) is None


def test_query_pcrs():
    pcr_pkt, _ = ts.generate_pcr_only_packet(0x31, 0, 54_000_000)
    null = ts.generate_null_packet()
    buf = null + pcr_pkt + null + null
    found = ts.query_pcrs(buf, 5000)
    assert found == [ts.PcrPosition(pid=0x31, offset=5000 + len(null), pcr=54_000_000)]


def test_query_pcrs_without_alignment():
    with pytest.raises(ValueError):
        ts.query_pcrs(b"\x00" * 600)


def test_query_pcr_pid():
    a, _ = ts.generate_pcr_only_packet(0x31, 0, 100_000)
    b, _ = ts.generate_pcr_only_packet(0x32, 0, 200_000)
    null = ts.generate_null_packet()
    buf = null + a + b + null
    pos = ts.query_pcr_pid(buf, 0x32)
    assert pos == ts.PcrPosition(pid=0x32, offset=len(null) + len(a), pcr=200_000)
    assert ts.query_pcr_pid(buf, 0x40) is None
    assert ts.query_pcr_pid(buf, 0x31, aligned=False).pcr == 100_000
    assert ts.query_pcr_pid(b"\x00" * 600, 0x31, aligned=False) is None


def test_pts_to_ascii():
    assert ts.pts_to_ascii(0) == "0.00:00:00.000"
    assert ts.pts_to_ascii(90000 * 86400) == "1.00:00:00.000"


@pytest.mark.parametrize("pcr", [0, 27_000_000, 123_456_789_012])
def test_pcr_to_ascii_matches_pts(pcr):
    assert ts.pcr_to_ascii(pcr) == ts.pts_to_ascii(pcr // 300)