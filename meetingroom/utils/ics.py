import uuid
from datetime import datetime
from typing import Iterable, Optional

from meetingroom.utils.recurrence import (
    REPEAT_CUSTOM,
    REPEAT_DAILY,
    REPEAT_NONE,
    REPEAT_WEEKLY,
    Recurrence,
)

ICS_WEEKDAYS = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")


def format_ics_datetime(value: datetime) -> str:
    return value.strftime("%Y%m%dT%H%M%SZ")


def escape_text(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def recurrence_rule(repeat_type, repeat_config, custom_days) -> Optional[str]:
    """RRULE matching the repeat settings, or None for single bookings."""
    if not repeat_type or repeat_type == REPEAT_NONE:
        return None
    config = repeat_config or {}
    interval = config.get("interval") or 1
    if repeat_type == REPEAT_DAILY:
        parts = ["FREQ=DAILY", f"INTERVAL={interval}"]
    elif repeat_type == REPEAT_WEEKLY:
        parts = ["FREQ=WEEKLY", f"INTERVAL={interval}"]
    elif repeat_type == REPEAT_CUSTOM:
        days = ",".join(ICS_WEEKDAYS[d] for d in sorted(custom_days or []))
        parts = ["FREQ=WEEKLY", f"BYDAY={days}"]
    else:
        return None
    if config.get("occurrences"):
        parts.append(f"COUNT={config['occurrences']}")
    if config.get("end_date"):
        parts.append(f"UNTIL={str(config['end_date'])[:10].replace('-', '')}T235959Z")
    return "RRULE:" + ";".join(parts)


def generate_ics(
    title: str,
    start: datetime,
    end: datetime,
    description: Optional[str] = None,
    location: Optional[str] = None,
    organizer_name: Optional[str] = None,
    organizer_email: Optional[str] = None,
    attendees: Iterable[str] = (),
    rrule: Optional[str] = None,
    uid: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Calendar invite (iCalendar) for one booking; times are UTC."""
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Meeting Room Booker//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        f"UID:{uid or uuid.uuid4()}",
        f"DTSTAMP:{format_ics_datetime(now or datetime.utcnow())}",
        f"DTSTART:{format_ics_datetime(start)}",
        f"DTEND:{format_ics_datetime(end)}",
        f"SUMMARY:{escape_text(title)}",
    ]
    if rrule:
        lines.append(rrule)
    if description:
        lines.append(f"DESCRIPTION:{escape_text(description)}")
    if location:
        lines.append(f"LOCATION:{escape_text(location)}")
    if organizer_email:
        name = organizer_name or organizer_email
        lines.append(f"ORGANIZER;CN={escape_text(name)}:mailto:{organizer_email}")
    for attendee in attendees:
        lines.append(f"ATTENDEE;ROLE=REQ-PARTICIPANT;PARTSTAT=NEEDS-ACTION;RSVP=TRUE:mailto:{attendee}")
    lines.extend(["STATUS:CONFIRMED", "SEQUENCE:0", "END:VEVENT", "END:VCALENDAR"])
    return "\r\n".join(lines)


def booking_ics(booking, room_name: str, organizer_name: str, organizer_email: str) -> str:
    # a custom series may skip the base date; DTSTART must be a real occurrence
    first = next(iter(Recurrence.for_booking(booking)))
    return generate_ics(
        title=booking.title,
        start=first.start,
        end=first.end,
        description=booking.description,
        location=room_name,
        organizer_name=organizer_name,
        organizer_email=organizer_email,
        attendees=booking.participants or [],
        rrule=recurrence_rule(booking.repeat_type, booking.repeat_config, booking.custom_days),
        uid=f"booking-{booking.id}@meetingroom",
    )
