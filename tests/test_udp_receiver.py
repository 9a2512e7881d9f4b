import socket
import threading

import pytest

from ltntools.ts import PACKET_SIZE, generate_null_packet
from ltntools.udp_receiver import UdpReceiver, strip_rtp_header


def _collector():
    received = []
    event = threading.Event()

    def callback(data):
        received.append(data)
        event.set()

    return received, event, callback


def _send(port, payload):
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as tx:
        tx.sendto(payload, ("127.0.0.1", port))


def test_strip_rtp_header_drops_header_and_trailer():
    packets = generate_null_packet() * 2
    datagram = b"\x80" + b"\x00" * 11 + packets + b"\xaa" * 5
    assert strip_rtp_header(datagram) == packets


def test_strip_rtp_header_short_datagram():
    assert strip_rtp_header(b"\x80\x00") == b""


def test_strip_rtp_header_partial_packet_only():
    datagram = b"\x00" * 12 + b"\x47" * (PACKET_SIZE - 1)
    assert strip_rtp_header(datagram) == b""


def test_invalid_address_rejected():
    with pytest.raises(ValueError):
        UdpReceiver("not-an-address", 0, None)


def test_receives_datagrams():
    received, event, callback = _collector()
    payload = generate_null_packet() * 3
    with UdpReceiver("127.0.0.1", 0, callback) as rx:
        rx.start()
        assert rx.running
        _send(rx.port, payload)
        assert event.wait(5)
    assert received[0] == payload


def test_receives_with_rtp_stripped():
    received, event, callback = _collector()
    packets = generate_null_packet() * 2
    with UdpReceiver("127.0.0.1", 0, callback, strip_rtp=True) as rx:
        rx.start()
        _send(rx.port, b"\x80" + b"\x01" * 11 + packets + b"\x00\x00")
        assert event.wait(5)
    assert received[0] == packets


def test_close_stops_thread():
    rx = UdpReceiver("127.0.0.1", 0, None)
    rx.start()
    rx.close()
    assert rx.closed
    assert not rx.running


def test_start_twice_rejected():
    with UdpReceiver("127.0.0.1", 0, None) as rx:
        rx.start()
        with pytest.raises(RuntimeError):
            rx.start()


def test_start_after_close_rejected():
    rx = UdpReceiver("127.0.0.1", 0, None)
    rx.close()
    with pytest.raises(RuntimeError):
        rx.start()


def test_join_multicast_on_unicast_rejected():
    with UdpReceiver("127.0.0.1", 0, None) as rx:
        with pytest.raises(ValueError):
            rx.join_multicast("lo")
        with pytest.raises(ValueError):
            rx.drop_multicast("lo")


def test_address_property():
    with UdpReceiver("127.0.0.1", 0, None) as rx:
        assert rx.address == "127.0.0.1"
        assert rx.port > 0