"""Market hours in a fixed civil timezone.

The market is closed between 04:00 and 12:00 local time and open otherwise.
All instants are epoch milliseconds. "Wall clock" values are local time
expressed on the same millisecond scale (instant + UTC offset at that instant),
which makes hour flooring in local time plain integer arithmetic.

The UTC offset is looked up for every instant; nothing is cached, so a catch-up
that spans a daylight-saving change sees both offsets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from engine.types import HOUR_MS

DEFAULT_TIMEZONE = "Europe/London"
CLOSED_FROM_HOUR = 4
CLOSED_UNTIL_HOUR = 12

# Passes used to settle the offset when mapping wall clock back to an instant.
WALL_CLOCK_PASSES = 2


@dataclass(frozen=True)
class MarketCalendar:
    timezone_name: str = DEFAULT_TIMEZONE
    closed_from_hour: int = CLOSED_FROM_HOUR
    closed_until_hour: int = CLOSED_UNTIL_HOUR
    _zone: ZoneInfo = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_zone", ZoneInfo(self.timezone_name))

    def utc_offset_ms(self, instant_ms: int) -> int:
        """UTC offset of the reference timezone at ``instant_ms``."""
        local = datetime.fromtimestamp(instant_ms / 1000, tz=timezone.utc).astimezone(self._zone)
        offset = local.utcoffset()
        if offset is None:
            return 0
        return int(offset.total_seconds() * 1000)

    def local_hour(self, instant_ms: int) -> int:
        wall_ms = self.instant_to_wall_clock(instant_ms)
        return (wall_ms // HOUR_MS) % 24

    def is_open(self, instant_ms: int) -> bool:
        hour = self.local_hour(instant_ms)
        return not (self.closed_from_hour <= hour < self.closed_until_hour)

    def instant_to_wall_clock(self, instant_ms: int) -> int:
        return instant_ms + self.utc_offset_ms(instant_ms)

    def wall_clock_to_instant(self, wall_ms: int) -> int:
        """Map a local wall-clock value back to an instant.

        Local time is not a bijection across DST changes (skipped and repeated
        hours), so the offset is settled by iterating to a fixed point for at
        most two passes. Inside a skipped hour the result is approximate.
        """
        guess = wall_ms - self.utc_offset_ms(wall_ms)
        for _ in range(WALL_CLOCK_PASSES):
            next_guess = wall_ms - self.utc_offset_ms(guess)
            if next_guess == guess:
                break
            guess = next_guess
        return guess

    def hour_bucket_start(self, instant_ms: int) -> int:
        """Instant of the local hour boundary at or before ``instant_ms``."""
        wall_ms = self.instant_to_wall_clock(instant_ms)
        return self.wall_clock_to_instant((wall_ms // HOUR_MS) * HOUR_MS)

    def next_hour_bucket_start(self, instant_ms: int) -> int:
        """Instant of the first local hour boundary strictly after ``instant_ms``.

        A boundary inside a skipped hour can map back before ``instant_ms``;
        those are stepped over so a wake-up is never scheduled in the past.
        """
        wall_ms = (self.instant_to_wall_clock(instant_ms) // HOUR_MS) * HOUR_MS + HOUR_MS
        boundary = self.wall_clock_to_instant(wall_ms)
        while boundary <= instant_ms:
            wall_ms += HOUR_MS
            boundary = self.wall_clock_to_instant(wall_ms)
        return boundary

    def count_open_buckets(self, after_ms: int, up_to_ms: int) -> int:
        """Count open local hour boundaries in ``(after_ms, up_to_ms]``."""
        if up_to_ms <= after_ms:
            return 0

        first_wall = self.instant_to_wall_clock(after_ms) + HOUR_MS
        last_wall = self.instant_to_wall_clock(up_to_ms)

        open_buckets = 0
        for wall_ms in range(first_wall, last_wall + 1, HOUR_MS):
            if self.is_open(self.wall_clock_to_instant(wall_ms)):
                open_buckets += 1
        return open_buckets

    def local_datetime(self, instant_ms: int) -> datetime:
        return datetime.fromtimestamp(instant_ms / 1000, tz=timezone.utc).astimezone(self._zone)
