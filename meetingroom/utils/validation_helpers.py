import re
from datetime import datetime, timezone

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def to_naive_utc(value):
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def validate_email(value):
    if value is not None and not EMAIL_PATTERN.match(value):
        raise ValueError(f"Invalid email address: {value}")
    return value.lower() if value is not None else value


def validate_emails(values):
    if values is None:
        return values
    seen = []
    for value in values:
        email = validate_email(value.strip())
        if email not in seen:
            seen.append(email)
    return seen


def validate_time_range(start: datetime, end: datetime):
    if start is not None and end is not None and end <= start:
        raise ValueError("End time must be after start time")
