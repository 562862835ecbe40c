from datetime import datetime
from typing import Iterable, List, NamedTuple, Optional, Sequence

from meetingroom.models.booking import STATUS_CONFIRMED
from meetingroom.utils.recurrence import Occurrence, Recurrence


class Conflict(NamedTuple):
    occurrence: Occurrence
    booking_id: int
    booking_title: str
    existing: Occurrence

    def as_dict(self) -> dict:
        return {
            "occurrence_start": self.occurrence.start.isoformat(),
            "occurrence_end": self.occurrence.end.isoformat(),
            "booking_id": self.booking_id,
            "booking_title": self.booking_title,
            "existing_start": self.existing.start.isoformat(),
            "existing_end": self.existing.end.isoformat(),
        }


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    return a_start < b_end and b_start < a_end


def find_conflicts(
    candidates: Sequence[Occurrence],
    existing_bookings: Iterable,
    exclude_booking_id: Optional[int] = None,
) -> List[Conflict]:
    """
    Pair every candidate occurrence with each confirmed booking occurrence it overlaps.

    Existing bookings are expanded with their own repeat rule, restricted to the
    span covered by the candidates. Non-confirmed bookings and the booking being
    edited never conflict. Returns an empty list when the candidates fit.
    """
    candidates = sorted(candidates)
    if not candidates:
        return []
    window_start = candidates[0].start
    window_end = max(c.end for c in candidates)

    conflicts = []
    for booking in existing_bookings:
        if booking.status != STATUS_CONFIRMED:
            continue
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue
        existing = list(Recurrence.for_booking(booking).between(window_start, window_end))
        for candidate in candidates:
            for occurrence in existing:
                if occurrence.start >= candidate.end:
                    break
                if candidate.overlaps(occurrence):
                    conflicts.append(Conflict(candidate, booking.id, booking.title, occurrence))

    conflicts.sort(key=lambda c: (c.occurrence.start, c.existing.start, c.booking_id))
    return conflicts
