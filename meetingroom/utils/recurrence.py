"""
Expansion of a booking's repeat settings into concrete occurrences.

A booking stores one base interval plus a repeat rule:

- ``none``: the base interval only.
- ``daily``: every ``interval`` days.
- ``weekly``: every ``interval`` weeks, on the base weekday.
- ``custom``: every date whose weekday is in ``custom_days``
  (0 = Sunday ... 6 = Saturday), starting from the base date.

Repeating rules must carry an end condition in ``repeat_config``:
``occurrences`` (a count), ``end_date`` (inclusive) or both, in which case the
first one reached wins.
"""
from datetime import date, datetime, timedelta
from itertools import islice
from typing import Iterator, List, NamedTuple, Optional

from meetingroom.config import MAX_OCCURRENCES
from meetingroom.exceptions import RecurrenceError

REPEAT_NONE = "none"
REPEAT_DAILY = "daily"
REPEAT_WEEKLY = "weekly"
REPEAT_CUSTOM = "custom"
REPEAT_TYPES = (REPEAT_NONE, REPEAT_DAILY, REPEAT_WEEKLY, REPEAT_CUSTOM)


class Occurrence(NamedTuple):
    start: datetime
    end: datetime

    def overlaps(self, other: "Occurrence") -> bool:
        # half-open: touching endpoints do not overlap
        return self.start < other.end and other.start < self.end


def sunday_based_weekday(day: date) -> int:
    return (day.weekday() + 1) % 7


def _parse_end_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    raise RecurrenceError(f"Invalid repeat end date: {value!r}")


def _positive_int(value, name) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise RecurrenceError(f"{name} must be a positive integer")
    return value


class Recurrence:
    """Restartable, ascending sequence of a booking's occurrences."""

    def __init__(
        self,
        start: datetime,
        end: datetime,
        repeat_type: str = REPEAT_NONE,
        repeat_config: Optional[dict] = None,
        custom_days=None,
        max_occurrences: int = MAX_OCCURRENCES,
    ):
        if start is None or end is None:
            raise RecurrenceError("Start and end time are required")
        if end <= start:
            raise RecurrenceError("End time must be after start time")
        repeat_type = repeat_type or REPEAT_NONE
        if repeat_type not in REPEAT_TYPES:
            raise RecurrenceError(f"Unknown repeat type: {repeat_type}")

        self.start = start
        self.end = end
        self.duration = end - start
        self.repeat_type = repeat_type
        self.interval = 1
        self.count = None
        self.until = None
        self.weekdays = frozenset()

        if repeat_type == REPEAT_NONE:
            return

        config = repeat_config or {}
        if config.get("interval") is not None:
            self.interval = _positive_int(config["interval"], "Repeat interval")
        if config.get("occurrences") is not None:
            self.count = _positive_int(config["occurrences"], "Occurrence count")
        if config.get("end_date") is not None:
            self.until = _parse_end_date(config["end_date"])
            if self.until < start.date():
                raise RecurrenceError("Repeat end date is before the first occurrence")
        if self.count is None and self.until is None:
            raise RecurrenceError(
                "Repeating bookings need an end date or an occurrence count"
            )

        if repeat_type == REPEAT_CUSTOM:
            days = set(custom_days or [])
            if not days:
                raise RecurrenceError("Custom repeat needs at least one weekday")
            for day in days:
                if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
                    raise RecurrenceError(f"Invalid weekday index: {day!r}")
            self.weekdays = frozenset(days)

        total = sum(1 for _ in islice(self._generate(), max_occurrences + 1))
        if total > max_occurrences:
            raise RecurrenceError(
                f"Repeating booking exceeds the limit of {max_occurrences} occurrences"
            )
        if total == 0:
            raise RecurrenceError("Repeat settings produce no occurrences")

    @classmethod
    def for_booking(cls, booking, max_occurrences: int = MAX_OCCURRENCES) -> "Recurrence":
        return cls(
            booking.start_date_time,
            booking.end_date_time,
            booking.repeat_type,
            booking.repeat_config,
            booking.custom_days,
            max_occurrences=max_occurrences,
        )

    def __iter__(self) -> Iterator[Occurrence]:
        return self._generate()

    def _generate(self) -> Iterator[Occurrence]:
        if self.repeat_type == REPEAT_NONE:
            yield Occurrence(self.start, self.end)
            return

        if self.repeat_type == REPEAT_CUSTOM:
            step = timedelta(days=1)
        elif self.repeat_type == REPEAT_WEEKLY:
            step = timedelta(weeks=self.interval)
        else:
            step = timedelta(days=self.interval)

        produced = 0
        current = self.start
        while True:
            if self.count is not None and produced >= self.count:
                return
            if self.until is not None and current.date() > self.until:
                return
            if (
                self.repeat_type != REPEAT_CUSTOM
                or sunday_based_weekday(current.date()) in self.weekdays
            ):
                yield Occurrence(current, current + self.duration)
                produced += 1
            current += step

    def occurrences(self) -> List[Occurrence]:
        return list(self)

    def between(self, window_start: datetime, window_end: datetime) -> Iterator[Occurrence]:
        """Yield occurrences intersecting ``[window_start, window_end)``."""
        window = Occurrence(window_start, window_end)
        for occurrence in self:
            if occurrence.start >= window_end:
                return
            if occurrence.overlaps(window):
                yield occurrence

    @property
    def last_end(self) -> datetime:
        last = None
        for last in self:
            pass
        return last.end
