"""Domain errors raised by the booking core and its collaborators."""


class RecurrenceError(ValueError):
    """A booking's time range or repeat settings are malformed."""


class BookingConflictError(Exception):
    """One or more occurrences clash with confirmed bookings in the same room."""

    def __init__(self, conflicts):
        self.conflicts = list(conflicts)
        super().__init__(f"{len(self.conflicts)} conflicting occurrence(s)")


class MailDeliveryError(Exception):
    """The SMTP server refused or could not be reached."""
