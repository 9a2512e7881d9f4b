"""Millisecond histograms for measuring intervals, durations and cumulative timings.

Buckets are 1 ms wide and span ``min_ms`` to ``max_ms``. Values outside that
range are counted as misses rather than stored.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, List, Optional

__all__ = ["Bucket", "Histogram"]

VIDEO_DEFAULT_MAX_MS = 16 * 1000


def _usecs(t: float) -> int:
    return int(round(t * 1_000_000))


def _ms_between(later: float, earlier: float) -> int:
    """Whole milliseconds from ``earlier`` to ``later`` (both in epoch seconds)."""
    return (_usecs(later) - _usecs(earlier)) // 1000


@dataclass
class Bucket:
    """One histogram bucket: how often its value was seen, and when last."""

    count: int = 0
    last_update: float = 0.0


class Histogram:
    """A histogram of millisecond values with 1 ms buckets."""

    def __init__(self, name: str, min_ms: int, max_ms: int) -> None:
        if name is None:
            raise ValueError("a histogram needs a name")
        if min_ms < 0 or max_ms < 0:
            raise ValueError("bucket range must not be negative")
        if min_ms == max_ms or max_ms < min_ms or not max_ms:
            raise ValueError(f"invalid bucket range {min_ms} -> {max_ms}")
        self.name = name
        self.min_ms = min_ms
        self.max_ms = max_ms
        self.buckets: Dict[int, Bucket] = {}
        self.bucket_miss_count = 0
        self.total_count = 0
        self.interval_last = 0.0
        self.cumulative_ms = 0
        self.cumulative_last = 0.0
        self.sample_ms = 0
        self.sample_last = 0.0
        self.print_last = 0.0
        self.print_summary_last = 0.0
        self.reset()

    @classmethod
    def video_defaults(cls, name: str) -> "Histogram":
        """A histogram spanning 0 to 16 seconds, suited to frame timings."""
        return cls(name, 0, VIDEO_DEFAULT_MAX_MS)

    @property
    def bucket_count(self) -> int:
        """Number of 1 ms buckets in the range."""
        return self.max_ms - self.min_ms

    def reset(self) -> None:
        """Clear every bucket and counter and restart the interval clock."""
        self.buckets.clear()
        self.interval_last = time.time()
        self.bucket_miss_count = 0
        self.cumulative_ms = 0
        self.total_count = 0

    def _record(self, ms: int, when: float) -> Optional[int]:
        if ms < self.min_ms or ms > self.max_ms:
            self.bucket_miss_count += 1
            return None
        bucket = self.buckets.setdefault(ms, Bucket())
        bucket.count += 1
        bucket.last_update = when
        self.total_count += 1
        return ms

    def update_with_value(self, diff_ms: int) -> Optional[int]:
        """Count ``diff_ms``; return it, or None when it fell outside the range."""
        return self._record(int(diff_ms), time.time())

    def interval_update(self, timestamp: Optional[float] = None) -> Optional[int]:
        """Count the interval since the previous update, ending at ``timestamp``.

        Returns the interval in ms, or None when it fell outside the range.
        """
        if timestamp is None:
            timestamp = time.time()
        diff_ms = _ms_between(timestamp, self.interval_last)
        self.interval_last = timestamp
        return self._record(diff_ms, timestamp)

    def _due(self, attr: str, seconds: int) -> bool:
        now = time.time()
        if _ms_between(now, getattr(self, attr)) < seconds * 1000:
            return False
        setattr(self, attr, now)
        return True

    def _render(self) -> str:
        lines: List[str] = [f"Histogram '{self.name}' (ms, count, last update time, pct)\n"]
        running = 0
        distinct = 0
        measurements = 0
        for ms in sorted(self.buckets):
            bucket = self.buckets[ms]
            if not bucket.count:
                continue
            running += bucket.count
            overall = bucket.count / self.total_count * 100.0
            ranked = running / self.total_count * 100.0
            lines.append(
                "-> %5d %15d  %s  %10.6f%%  %10.6f%%\n"
                % (ms, bucket.count, time.ctime(bucket.last_update), overall, ranked)
            )
            distinct += 1
            measurements += bucket.count
        if self.bucket_miss_count:
            lines.append(f"{self.bucket_miss_count} out-of-range bucket misses\n")
        lines.append(
            f"{distinct} distinct buckets with {measurements} total measurements, "
            f"range: {self.min_ms} -> {self.max_ms} ms\n"
        )
        return "".join(lines)

    def report(self, seconds: int = 0) -> Optional[str]:
        """Render the histogram.

        With ``seconds`` set, return None unless that long has passed since the
        last report.
        """
        if seconds and not self._due("print_last", seconds):
            return None
        return self._render()

    def summary_report(self, seconds: int, bucket_size_ms: int) -> Optional[str]:
        """Render the histogram regrouped into buckets of ``bucket_size_ms``.

        Each group is labelled with its upper edge. With ``seconds`` set, return
        None unless that long has passed since the last summary.
        """
        if bucket_size_ms <= 0:
            raise ValueError("bucket_size_ms must be positive")
        if seconds and not self._due("print_summary_last", seconds):
            return None
        summary = Histogram(
            f"{self.name} - Summarized into buckets of {bucket_size_ms} ms",
            self.min_ms,
            self.max_ms,
        )
        for ms, src in self.buckets.items():
            if not src.count:
                continue
            start = self.min_ms + ((ms - self.min_ms) // bucket_size_ms) * bucket_size_ms
            dst = summary.buckets.setdefault(start + bucket_size_ms, Bucket())
            dst.count += src.count
            dst.last_update = max(dst.last_update, src.last_update)
            summary.total_count += src.count
        return summary._render()

    def cumulative_initialize(self) -> None:
        """Start a new cumulative period."""
        self.cumulative_ms = 0

    def cumulative_begin(self) -> None:
        """Mark the start of one timed piece of a cumulative period."""
        self.cumulative_last = time.time()

    def cumulative_end(self) -> int:
        """End the timed piece; add its duration to the period and return it in ms."""
        value = _ms_between(time.time(), self.cumulative_last)
        self.cumulative_ms += value
        return value

    def cumulative_finalize(self) -> int:
        """Count the period's total duration into the buckets and return it."""
        self._record(self.cumulative_ms, time.time())
        return self.cumulative_ms

    def sample_begin(self) -> None:
        """Mark the start of a single measured sample."""
        self.sample_last = time.time()

    def sample_end(self) -> int:
        """Count the sample's duration into the buckets and return it in ms."""
        self.sample_ms = _ms_between(time.time(), self.sample_last)
        self._record(self.sample_ms, time.time())
        return self.sample_ms