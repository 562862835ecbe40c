# pylint: disable=redefined-outer-name,unused-import
import asyncio
from contextlib import suppress
from datetime import datetime, timedelta

import pytest

from meetingroom import main
from meetingroom.exceptions import MailDeliveryError
from meetingroom.models.booking import Booking
from meetingroom.models.email_settings import EmailSettings
from meetingroom.utils.reminders import check_and_send_reminders, claim_reminder, time_until_text
from tests.conf_tests import clear_db, test_db, test_user, test_room

NOW = datetime(2030, 1, 7, 8, 50)


class RecordingMailer:
    def __init__(self, failures=0, error=None):
        self.sent = []
        self.failures = failures
        self.error = error or MailDeliveryError("SMTP server unavailable")

    def send(self, recipients, subject, html_body, ics=None, ics_filename="invite.ics"):
        if self.failures:
            self.failures -= 1
            raise self.error
        self.sent.append({"recipients": recipients, "subject": subject, "ics": ics})


@pytest.fixture
def email_settings(test_db):
    settings = EmailSettings(
        smtp_host="smtp.example.com",
        smtp_port=587,
        smtp_username="mailer",
        smtp_password="secret",
        from_email="rooms@example.com",
        from_name="Meeting Rooms",
    )
    test_db.add(settings)
    test_db.commit()
    return settings


def add_booking(db, user, room, start, **extra):
    fields = dict(
        title="Design review",
        room_id=room.id,
        user_id=user.id,
        start_date_time=start,
        end_date_time=start + timedelta(hours=1),
        series_end_date_time=start + timedelta(hours=1),
        remind_me=True,
        reminder_time=15,
    )
    fields.update(extra)
    booking = Booking(**fields)
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def test_due_reminder_is_sent_once(test_db, test_user, test_room, email_settings):
    booking = add_booking(test_db, test_user, test_room, datetime(2030, 1, 7, 9))
    mailer = RecordingMailer()

    assert check_and_send_reminders(test_db, mailer, now=NOW) == 1
    assert check_and_send_reminders(test_db, mailer, now=NOW) == 0

    assert len(mailer.sent) == 1
    assert mailer.sent[0]["recipients"] == [test_user.email]
    assert mailer.sent[0]["subject"] == "Reminder: Design review starts in 10 minutes"
    assert "BEGIN:VCALENDAR" in mailer.sent[0]["ics"]
    test_db.refresh(booking)
    assert booking.reminder_sent is True


def test_reminder_not_due_yet(test_db, test_user, test_room, email_settings):
    add_booking(test_db, test_user, test_room, datetime(2030, 1, 7, 10))
    mailer = RecordingMailer()
    assert check_and_send_reminders(test_db, mailer, now=NOW) == 0
    assert mailer.sent == []


def test_only_opted_in_confirmed_bookings(test_db, test_user, test_room, email_settings):
    start = datetime(2030, 1, 7, 9)
    add_booking(test_db, test_user, test_room, start, remind_me=False)
    add_booking(test_db, test_user, test_room, start, status="cancelled")
    add_booking(test_db, test_user, test_room, start, status="pending")
    assert check_and_send_reminders(test_db, RecordingMailer(), now=NOW) == 0


def test_started_meeting_gets_no_reminder(test_db, test_user, test_room, email_settings):
    add_booking(test_db, test_user, test_room, datetime(2030, 1, 7, 8, 30))
    assert check_and_send_reminders(test_db, RecordingMailer(), now=NOW) == 0


def test_failed_delivery_is_retried(test_db, test_user, test_room, email_settings):
    booking = add_booking(test_db, test_user, test_room, datetime(2030, 1, 7, 9))
    mailer = RecordingMailer(failures=1)

    assert check_and_send_reminders(test_db, mailer, now=NOW) == 0
    test_db.refresh(booking)
    assert booking.reminder_sent is False

    assert check_and_send_reminders(test_db, mailer, now=NOW) == 1
    assert len(mailer.sent) == 1


def test_unexpected_mail_error_does_not_stop_scan(test_db, test_user, test_room, email_settings):
    first = add_booking(test_db, test_user, test_room, datetime(2030, 1, 7, 9), title="First")
    second = add_booking(test_db, test_user, test_room, datetime(2030, 1, 7, 9, 5), title="Second")
    mailer = RecordingMailer(failures=1, error=UnicodeEncodeError("ascii", "p\xe4ss", 1, 2, "ordinal not in range"))

    assert check_and_send_reminders(test_db, mailer, now=NOW) == 1
    test_db.refresh(first)
    test_db.refresh(second)
    assert first.reminder_sent is False
    assert second.reminder_sent is True

    assert check_and_send_reminders(test_db, mailer, now=NOW) == 1
    assert [m["subject"] for m in mailer.sent] == [
        "Reminder: Second starts in 15 minutes",
        "Reminder: First starts in 10 minutes",
    ]


def test_reminders_disabled(test_db, test_user, test_room, email_settings):
    email_settings.enable_reminders = False
    test_db.commit()
    add_booking(test_db, test_user, test_room, datetime(2030, 1, 7, 9))
    assert check_and_send_reminders(test_db, RecordingMailer(), now=NOW) == 0


def test_no_email_settings(test_db, test_user, test_room):
    add_booking(test_db, test_user, test_room, datetime(2030, 1, 7, 9))
    assert check_and_send_reminders(test_db, RecordingMailer(), now=NOW) == 0


def test_claim_is_exclusive(test_db, test_user, test_room):
    booking = add_booking(test_db, test_user, test_room, datetime(2030, 1, 7, 9))
    assert claim_reminder(test_db, booking.id) is True
    assert claim_reminder(test_db, booking.id) is False


@pytest.mark.parametrize(
    "minutes, text",
    [(1, "1 minute"), (10, "10 minutes"), (60, "1 hour"), (125, "2 hours and 5 minutes"), (61, "1 hour and 1 minute")],
)
def test_time_until_text(minutes, text):
    assert time_until_text(minutes) == text


def test_reminder_loop_survives_failed_scan(monkeypatch):
    calls = []

    def scan():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("scan crashed")
        return 0

    monkeypatch.setattr(main, "run_reminder_scan", scan)

    async def drive():
        task = asyncio.create_task(main.reminder_loop(0))
        while len(calls) < 2:
            await asyncio.sleep(0.01)
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        return task

    task = asyncio.run(asyncio.wait_for(drive(), timeout=5))
    assert len(calls) >= 2
    assert task.cancelled()
