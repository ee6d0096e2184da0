"""Transfer progress tracking with bar and gauge style reporting."""

from __future__ import annotations

import math
import sys
import time
from typing import Callable, Optional, TextIO

ProgressCallback = Callable[[int, int], None]

BAR_WIDTH = 48


def gettime() -> float:
    """Return the current time in seconds as a float."""
    return time.time()


def rate(transferred: float, elapsed: float) -> float:
    """Return the transfer rate in bytes per second, or 0 if no time passed."""
    if elapsed > 0:
        return transferred / elapsed
    return 0.0


def estimate(remaining: float, rate: float) -> float:
    """Return the estimated remaining seconds at the given rate, or 0."""
    if rate > 0:
        return remaining / rate
    return 0.0


def format_eta(remaining: float) -> str:
    """Format a number of seconds as MM:SS, or "--:--" when out of range."""
    if not math.isfinite(remaining):
        return "--:--"
    seconds = int(remaining + 0.5)
    if 0 <= seconds < 6000:
        return "%02d:%02d" % divmod(seconds, 60)
    return "--:--"


def kilo(value: float) -> float:
    """Convert to units of 1000."""
    return value / 1000.0


def kibi(value: float) -> float:
    """Convert to units of 1024."""
    return value / 1024.0


class Progress:
    """Progress state that reports updates to a callback.

    The ``bar``, ``gauge`` and ``gauge_xxx`` methods are ready-made
    callbacks that write to ``out`` (standard output by default).
    """

    def __init__(self, out: Optional[TextIO] = None) -> None:
        self.out = out
        self.callback: Optional[ProgressCallback] = None
        self.total = 0
        self.done = 0
        self.start_time = 0.0

    @property
    def _stream(self) -> TextIO:
        return self.out if self.out is not None else sys.stdout

    def start(self, callback: Optional[ProgressCallback], expected_total: int) -> None:
        """Begin a new transfer of ``expected_total`` bytes."""
        self.callback = callback
        self.total = expected_total
        self.done = 0
        self.start_time = gettime()

    def update(self, bytes_done: int) -> None:
        """Account for more transferred bytes and notify the callback."""
        self.done += bytes_done
        if self.callback:
            self.callback(self.total, self.done)

    def elapsed(self) -> float:
        """Seconds since ``start``, or 0 if never started."""
        if self.start_time != 0.0:
            return gettime() - self.start_time
        return 0.0

    def bar(self, total: int, done: int) -> None:
        """Draw a one-line progress bar."""
        ratio = done / total if total > 0 else 0.0
        pos = int(BAR_WIDTH * ratio)
        speed = rate(done, self.elapsed())
        eta = estimate(total - done, speed)
        out = self._stream
        parts = ["\r%3.0f%% [" % (ratio * 100), "=" * pos, " " * (BAR_WIDTH - pos)]
        if done < total:
            parts.append("]%6.1f kB/s, ETA %s " % (kilo(speed), format_eta(eta)))
        else:
            parts.append("] %5.0f kB, %6.1f kB/s\n" % (kilo(done), kilo(speed)))
        out.write("".join(parts))
        out.flush()

    def gauge(self, total: int, done: int) -> None:
        """Write the percentage done on a line of its own."""
        if total > 0:
            out = self._stream
            out.write("%.0f\n" % (done / total * 100))
            out.flush()

    def gauge_xxx(self, total: int, done: int) -> None:
        """Write the percentage plus a caption between XXX delimiters."""
        if total <= 0:
            return
        speed = rate(done, self.elapsed())
        eta = estimate(total - done, speed)
        lines = ["XXX", "%.0f" % (done / total * 100)]
        if done < total:
            lines.append("%d of %d, %.1f kB/s, ETA %s"
                         % (done, total, kilo(speed), format_eta(eta)))
        else:
            lines.append("Done: %.1f kB, at %.1f kB/s" % (kilo(done), kilo(speed)))
        lines.append("XXX")
        out = self._stream
        out.write("\n".join(lines) + "\n")
        out.flush()