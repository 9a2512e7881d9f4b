"""A threaded UDP receiver for transport streams, with optional RTP header stripping."""

from __future__ import annotations

import ipaddress
import logging
import selectors
import socket
import struct
import sys
import threading
from typing import Callable, List, Optional

from ltntools.ts import PACKET_SIZE

__all__ = ["UdpReceiver", "strip_rtp_header"]

_log = logging.getLogger(__name__)

RTP_HEADER_SIZE = 12
RX_BUFFER_SIZE = 2048
POLL_INTERVAL = 0.25

Callback = Callable[[bytes], None]


def strip_rtp_header(datagram: bytes) -> bytes:
    """Drop the 12-byte RTP header and any trailing bytes that are not whole packets."""
    if len(datagram) < RTP_HEADER_SIZE:
        return b""
    payload = (len(datagram) - RTP_HEADER_SIZE) // PACKET_SIZE * PACKET_SIZE
    return bytes(datagram[RTP_HEADER_SIZE : RTP_HEADER_SIZE + payload])


class UdpReceiver:
    """Receive UDP datagrams on a background thread and hand them to a callback."""

    def __init__(
        self,
        address: str,
        port: int,
        callback: Optional[Callback],
        socket_buffer_size: int = 1 << 20,
        strip_rtp: bool = False,
    ) -> None:
        if address is None:
            raise ValueError("an address is required")
        self._group = ipaddress.IPv4Address(address)
        self._callback = callback
        self._strip_rtp = strip_rtp
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._joined: List[int] = []
        self._closed = False

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, socket_buffer_size)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((str(self._group), port))
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        self._sock = sock

    @property
    def address(self) -> str:
        """The address the receiver is bound to."""
        return str(self._group)

    @property
    def port(self) -> int:
        """The bound UDP port."""
        return self._sock.getsockname()[1]

    @property
    def running(self) -> bool:
        """True while the receive thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def closed(self) -> bool:
        """True once the receiver has been closed."""
        return self._closed

    def start(self) -> None:
        """Start the receive thread."""
        if self._closed:
            raise RuntimeError("receiver is closed")
        if self._thread is not None:
            raise RuntimeError("receiver already started")
        self._thread = threading.Thread(target=self._run, name="udp-receiver", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        with selectors.DefaultSelector() as selector:
            selector.register(self._sock, selectors.EVENT_READ)
            while not self._stop.is_set():
                if not selector.select(POLL_INTERVAL):
                    continue
                try:
                    data = self._sock.recv(RX_BUFFER_SIZE)
                except (BlockingIOError, InterruptedError):
                    continue
                except OSError:
                    if self._stop.is_set():
                        break
                    continue
                if not data or self._callback is None:
                    continue
                if self._strip_rtp:
                    data = strip_rtp_header(data)
                self._callback(data)

    def _interfaces(self, ifname: Optional[str]) -> List[int]:
        if ifname is None:
            return [0]
        wanted = ifname.lower()
        found = [index for index, name in socket.if_nameindex() if name.lower() == wanted]
        if not found:
            raise ValueError(f"no network interface named {ifname!r}")
        return found

    def _mreq(self, index: int) -> bytes:
        group = self._group.packed
        if sys.platform.startswith("linux"):
            return struct.pack("=4s4si", group, socket.inet_aton("0.0.0.0"), index)
        return struct.pack("=4s4s", group, socket.inet_aton("0.0.0.0"))

    def _require_multicast(self) -> None:
        if not self._group.is_multicast:
            raise ValueError(f"{self._group} is not a multicast address")

    def join_multicast(self, ifname: Optional[str]) -> None:
        """Join the bound multicast group on ``ifname`` (None: the default interface)."""
        self._require_multicast()
        for index in self._interfaces(ifname):
            self._sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, self._mreq(index))
            self._joined.append(index)
            _log.info("joined multicast group %s on interface %s", self._group, ifname)

    def drop_multicast(self, ifname: Optional[str]) -> None:
        """Leave the bound multicast group on ``ifname`` (None: the default interface)."""
        self._require_multicast()
        for index in self._interfaces(ifname):
            self._sock.setsockopt(socket.IPPROTO_IP, socket.IP_DROP_MEMBERSHIP, self._mreq(index))
            if index in self._joined:
                self._joined.remove(index)
            _log.info("left multicast group %s on interface %s", self._group, ifname)

    def close(self) -> None:
        """Stop the receive thread, leave any joined groups and close the socket."""
        if self._closed:
            return
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
        for index in list(self._joined):
            try:
                self._sock.setsockopt(
                    socket.IPPROTO_IP, socket.IP_DROP_MEMBERSHIP, self._mreq(index)
                )
            except OSError as exc:
                _log.warning("cannot leave multicast group %s: %s", self._group, exc)
        self._joined.clear()
        self._sock.close()
        self._closed = True

    def __enter__(self) -> "UdpReceiver":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()