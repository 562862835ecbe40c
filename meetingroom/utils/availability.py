from datetime import datetime, timedelta
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

from meetingroom.models.booking import STATUS_CONFIRMED
from meetingroom.utils.recurrence import Occurrence, Recurrence

INSTANT = timedelta(microseconds=1)


class RoomAvailability(NamedTuple):
    room_id: int
    room_name: str
    is_available: bool
    booking_id: Optional[int] = None
    organizer_id: Optional[int] = None
    organizer_email: Optional[str] = None
    busy_until: Optional[datetime] = None


def query_window(start: datetime, end: Optional[datetime] = None) -> Occurrence:
    """An instant is tested as the smallest half-open interval starting at it."""
    return Occurrence(start, end if end is not None else start + INSTANT)


def occupying_occurrence(booking, window: Occurrence) -> Optional[Occurrence]:
    if booking.status != STATUS_CONFIRMED:
        return None
    for occurrence in Recurrence.for_booking(booking).between(window.start, window.end):
        return occurrence
    return None


def room_availability(
    rooms: Iterable,
    bookings_by_room: Dict[int, Sequence],
    start: datetime,
    end: Optional[datetime] = None,
) -> List[RoomAvailability]:
    window = query_window(start, end)
    result = []
    for room in rooms:
        hit = None
        for booking in bookings_by_room.get(room.id, ()):
            occurrence = occupying_occurrence(booking, window)
            if occurrence is not None and (hit is None or occurrence.start < hit[1].start):
                hit = (booking, occurrence)
        if hit is None:
            result.append(RoomAvailability(room.id, room.name, True))
        else:
            booking, occurrence = hit
            result.append(
                RoomAvailability(
                    room.id,
                    room.name,
                    False,
                    booking_id=booking.id,
                    organizer_id=booking.user_id,
                    busy_until=occurrence.end,
                )
            )
    return result


def free_slots(
    busy: Iterable[Occurrence], day_start: datetime, day_end: datetime, duration: timedelta
) -> List[Dict[str, datetime]]:
    """Consecutive ``duration`` slots between the busy occurrences of one day."""
    slots = []
    current_time = day_start
    for occurrence in sorted(busy):
        while current_time + duration <= occurrence.start:
            slot_end = current_time + duration
            slots.append({"start_time": current_time, "end_time": slot_end})
            current_time = slot_end
        current_time = max(current_time, occurrence.end)

    while current_time + duration <= day_end:
        slot_end = current_time + duration
        slots.append({"start_time": current_time, "end_time": slot_end})
        current_time = slot_end
    return slots
