"""A virtual video buffering verifier (VBV).

Compressed frames are written into the buffer in DTS order. A simulated
decoder drains one frame per frame period once enough content has
accumulated. Overflow, underflow and fullness conditions are reported
to a callback as events.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Callable, Deque, Dict, Optional, Union

__all__ = [
    "VbvEvent",
    "DecoderProfile",
    "PesFrame",
    "VbvBuffer",
    "bitrate_lookup",
    "is_valid_framerate",
    "profile_defaults",
    "validate_profile",
    "event_name",
    "framerate_to_ns",
    "framerate_to_us",
    "framerate_to_ticks",
]

_log = logging.getLogger(__name__)

DEFAULT_VBV_SIZE = 800 * 1024
MAX_PTS_VALUE = (1 << 33) - 1
INT64_MAX = (1 << 63) - 1

# Do not drain until this many 90kHz ticks of content are buffered (0.6s).
INITIAL_CPB_REMOVAL_DELAY = (90000 // 100) * 60

_UINT32_MASK = 0xFFFFFFFF
_IDLE_POLL = 0.05


class VbvEvent(IntEnum):
    """Conditions reported by the buffer."""

    UNDEFINED = 0
    UNDERFLOW = 1
    OVERFLOW = 2
    FULLNESS_PCT = 3
    BPS = 4
    OOO_DTS = 5


# (codec, level x 10) -> buffer size in kilobits. Codec 1 is H.264.
_VBV_BITRATES: Dict[tuple, int] = {
    (1, 10): 64,
    (1, 11): 192,
    (1, 12): 384,
    (1, 13): 768,
    (1, 20): 2400,
    (1, 21): 4000,
    (1, 22): 4000,
    (1, 30): 10000,
    (1, 31): 14000,
    (1, 32): 20000,
    (1, 40): 20000,
    (1, 41): 50000,
    (1, 42): 50000,
    (1, 50): 135000,
    (1, 51): 240000,
}

_FRAMERATES = (23.98, 24, 25, 29.97, 30, 50, 59.94, 60)


@dataclass
class DecoderProfile:
    """Buffer size in bytes and frame rate of the simulated decoder."""

    vbv_buffer_size: int = 0
    framerate: float = 0.0


@dataclass
class PesFrame:
    """The parts of a PES packet the buffer needs: timestamps and size."""

    pts: int = 0
    dts: int = 0
    pts_dts_flags: int = 0
    length: int = 0

    @property
    def clock(self) -> int:
        """DTS when present, else PTS when present, else 0."""
        flags = self.pts_dts_flags & 0x03
        if flags == 1:
            return self.pts
        if flags == 3:
            return self.dts
        return 0


@dataclass
class _Statistic:
    count: int = 0
    timestamp: float = 0.0


def bitrate_lookup(codec: int, level_x10: int) -> Optional[int]:
    """The VBV size in bytes for a codec and level (3.1 is 31), or None if unknown."""
    kbits = _VBV_BITRATES.get((codec, level_x10))
    if kbits is None:
        return None
    return (kbits * 1000) // 8


def is_valid_framerate(framerate: float) -> bool:
    """True for the supported broadcast frame rates."""
    return framerate in _FRAMERATES


def profile_defaults(codec: int, level_x10: int, framerate: float) -> DecoderProfile:
    """Build a profile for a codec level and frame rate.

    Raises ValueError for an unknown level or an unsupported frame rate.
    """
    size = bitrate_lookup(codec, level_x10)
    if size is None:
        raise ValueError(f"no VBV size known for codec {codec} level {level_x10}")
    if not is_valid_framerate(framerate):
        raise ValueError(f"unsupported framerate {framerate}")
    _log.info("vbv_buf_size %d, framerate %6.2f", size, framerate)
    return DecoderProfile(vbv_buffer_size=size, framerate=framerate)


def validate_profile(profile: DecoderProfile) -> bool:
    """True when the profile's frame rate is supported."""
    return is_valid_framerate(profile.framerate)


def event_name(event: Union[VbvEvent, int]) -> str:
    """The symbolic name of an event, or EVENT_VBV_UNKNOWN."""
    try:
        return f"EVENT_VBV_{VbvEvent(event).name}"
    except ValueError:
        return "EVENT_VBV_UNKNOWN"


def framerate_to_ns(framerate: float) -> int:
    """One frame period in nanoseconds."""
    return int(1e9 / framerate) & _UINT32_MASK


def framerate_to_us(framerate: float) -> int:
    """One frame period, computed via microseconds, expressed in nanoseconds."""
    return int((1e6 / framerate) * 1000) & _UINT32_MASK


def framerate_to_ticks(framerate: float) -> int:
    """One frame period in 27MHz ticks."""
    return int((1e6 / framerate) * 27) & _UINT32_MASK


Callback = Callable[[VbvEvent], None]


class VbvBuffer:
    """A virtual decoder buffer for one video pid."""

    def __init__(
        self, pid: int, callback: Optional[Callback], profile: Optional[DecoderProfile]
    ) -> None:
        if profile is None:
            raise ValueError("a decoder profile is required")
        self.pid = pid
        self.verbose = False
        self.profile = replace(profile)
        if self.profile.vbv_buffer_size == 0:
            self.profile.vbv_buffer_size = DEFAULT_VBV_SIZE
        self._callback = callback
        self._lock = threading.Lock()
        self._frames: Deque[PesFrame] = deque()
        self.used_bytes = 0
        self.dts_hwm = 0
        self.dts_lwm = INT64_MAX
        self.dts_last = INT64_MAX
        self.encoder_stc = 0
        self.decoder_stc = INT64_MAX
        self.statistics: Dict[VbvEvent, _Statistic] = {
            VbvEvent.OVERFLOW: _Statistic(),
            VbvEvent.UNDERFLOW: _Statistic(),
            VbvEvent.FULLNESS_PCT: _Statistic(),
        }
        self._draining = False
        self._stc_rebased = False
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    @property
    def draining(self) -> bool:
        """True once enough content was buffered for the decoder to start."""
        return self._draining

    @property
    def frame_count(self) -> int:
        """Frames currently held in the buffer."""
        with self._lock:
            return len(self._frames)

    @property
    def fullness(self) -> float:
        """Buffer occupancy as a percentage of its size."""
        return self.used_bytes / self.profile.vbv_buffer_size * 100.0

    def _raise_event(self, event: VbvEvent) -> None:
        stat = self.statistics.get(event)
        if stat is None:
            _log.error("no stat for event %s (%d)", event_name(event), int(event))
        else:
            stat.count += 1
            stat.timestamp = time.time()
        if self.verbose:
            _log.info("%.6f: %s pid 0x%04x", time.time(), event_name(event), self.pid)
        if self._callback is not None:
            self._callback(event)

    def write(self, frame: PesFrame) -> None:
        """Add a frame to the buffer.

        Raises BufferError (after reporting an OVERFLOW event) when the frame
        would not fit.
        """
        if frame is None:
            raise ValueError("a frame is required")
        stored = replace(frame)
        with self._lock:
            fits = self.used_bytes + frame.length < self.profile.vbv_buffer_size
            if fits:
                self._frames.append(stored)
                self.used_bytes += stored.length
                self._track_clock(frame.clock)
        if not fits:
            self._raise_event(VbvEvent.OVERFLOW)
            raise BufferError(
                f"frame of {frame.length} bytes overflows the VBV "
                f"({self.used_bytes} of {self.profile.vbv_buffer_size} used)"
            )

    def _track_clock(self, clk: int) -> None:
        if clk > self.dts_last:
            self.encoder_stc += (clk - self.dts_last) * 300
        elif clk < self.dts_last:
            # The clock moved backwards: assume it wrapped.
            self.encoder_stc += (MAX_PTS_VALUE - self.dts_last) * 300
            self.encoder_stc += clk * 300
        self.dts_last = clk
        self.dts_hwm = max(clk, self.dts_hwm)
        if clk != 0 and clk <= self.dts_lwm:
            self.dts_lwm = clk

    def _check_permit(self) -> bool:
        if (
            not self._draining
            and self.dts_lwm != INT64_MAX
            and self.dts_hwm != 0
            and self.dts_hwm - self.dts_lwm > INITIAL_CPB_REMOVAL_DELAY
        ):
            self._draining = True
            _log.info("vbv initial level reached")
        return self._draining

    def drain_one(self) -> Optional[PesFrame]:
        """Perform one decoder step: remove and return the oldest frame.

        Returns None before the initial buffer level is reached (nothing
        happens) or when the buffer is empty (an UNDERFLOW event is reported).
        """
        if not self._check_permit():
            return None

        with self._lock:
            frame = self._frames.popleft() if self._frames else None
            if frame is not None:
                self.used_bytes -= frame.length

        if frame is not None:
            if not self._stc_rebased:
                self._stc_rebased = True
                self.decoder_stc = frame.dts or frame.pts
                if self.decoder_stc == 0:
                    self._stc_rebased = False
            pct = self.fullness
            if self.verbose:
                _log.info(
                    "decoder STC %14d, got PTS %14d DTS %14d vbv: %8d / %5.2f%%",
                    self.decoder_stc, frame.pts, frame.dts, self.used_bytes, pct,
                )
            if pct <= 2.5 or pct >= 96.0:
                self._raise_event(VbvEvent.FULLNESS_PCT)
        else:
            self._raise_event(VbvEvent.UNDERFLOW)

        self.decoder_stc += framerate_to_ticks(self.profile.framerate)
        return frame

    def start(self) -> None:
        """Run the simulated decoder on a background thread."""
        if self._closed:
            raise RuntimeError("buffer is closed")
        if self._thread is not None:
            raise RuntimeError("decoder already started")
        self._thread = threading.Thread(target=self._run, name="thread-vbv", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        deadline: Optional[float] = None
        period = framerate_to_us(self.profile.framerate) / 1e9
        while not self._stop.is_set():
            if not self._check_permit():
                self._stop.wait(_IDLE_POLL)
                continue
            if deadline is None:
                deadline = time.monotonic()
            self.drain_one()
            deadline += period
            self._stop.wait(max(0.0, deadline - time.monotonic()))

    def close(self) -> None:
        """Stop the decoder thread, if running."""
        if self._closed:
            return
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
        self._closed = True