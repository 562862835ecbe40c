# pylint: disable=redefined-outer-name,unused-import
import pytest
from datetime import datetime, timedelta
from fastapi import status

from meetingroom.models.audit_log import AuditLog
from meetingroom.models.booking import Booking
from meetingroom.models.notification import Notification

from tests.conf_tests import (
    client,
    clear_db,
    test_db,
    test_user,
    admin_user,
    viewer_user,
    auth_headers,
    admin_headers,
    viewer_headers,
    test_room,
    make_user,
    headers_for,
)

# 2030-01-07 is a Monday
MONDAY_9 = datetime(2030, 1, 7, 9, 0)
MONDAY_10 = datetime(2030, 1, 7, 10, 0)


def booking_payload(room_id, start=MONDAY_9, end=MONDAY_10, **extra):
    payload = {
        "title": "Team Meeting",
        "room_id": room_id,
        "start_date_time": start.isoformat(),
        "end_date_time": end.isoformat(),
    }
    payload.update(extra)
    return payload


@pytest.fixture
def weekly_booking(test_db, test_room, test_user):
    booking = Booking(
        title="Weekly sync",
        room_id=test_room.id,
        user_id=test_user.id,
        start_date_time=MONDAY_9,
        end_date_time=MONDAY_10,
        series_end_date_time=MONDAY_10 + timedelta(days=14),
        repeat_type="weekly",
        repeat_config={"occurrences": 3},
        status="confirmed",
    )
    test_db.add(booking)
    test_db.commit()
    test_db.refresh(booking)
    return booking


def test_create_booking_success(auth_headers, test_room, test_user):
    response = client.post("/bookings/", json=booking_payload(test_room.id), headers=auth_headers)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["room_id"] == test_room.id
    assert data["user_id"] == test_user.id
    assert data["status"] == "confirmed"
    assert data["start_date_time"] == MONDAY_9.isoformat()
    assert data["series_end_date_time"] == MONDAY_10.isoformat()


def test_create_recurring_booking_stores_series_end(auth_headers, test_room):
    payload = booking_payload(test_room.id, repeat_type="weekly", repeat_config={"occurrences": 3})
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["series_end_date_time"] == datetime(2030, 1, 21, 10).isoformat()


def test_create_booking_unauthorized(test_room):
    response = client.post("/bookings/", json=booking_payload(test_room.id))
    assert response.status_code in [
        status.HTTP_401_UNAUTHORIZED,
        status.HTTP_403_FORBIDDEN,
    ]


def test_create_booking_end_before_start(auth_headers, test_room):
    payload = booking_payload(test_room.id, start=MONDAY_10, end=MONDAY_9)
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_create_booking_malformed_participant(auth_headers, test_room):
    payload = booking_payload(test_room.id, participants=["not-an-email"])
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_create_booking_room_not_found(auth_headers):
    response = client.post("/bookings/", json=booking_payload(999), headers=auth_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_create_booking_insufficient_capacity(auth_headers, test_room):
    participants = [f"guest{i}@example.com" for i in range(test_room.capacity)]
    payload = booking_payload(test_room.id, participants=participants)
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "capacity insufficient" in response.json()["detail"]


def test_viewer_cannot_create_booking(viewer_headers, test_room):
    response = client.post("/bookings/", json=booking_payload(test_room.id), headers=viewer_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_custom_repeat_without_weekdays_rejected(auth_headers, test_room, test_db):
    payload = booking_payload(
        test_room.id, repeat_type="custom", repeat_config={"occurrences": 3}, custom_days=[]
    )
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "weekday" in response.json()["detail"]
    assert test_db.query(Booking).count() == 0


def test_repeat_without_end_condition_rejected(auth_headers, test_room):
    payload = booking_payload(test_room.id, repeat_type="daily")
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_conflicting_occurrence_rejected_with_one_entry(auth_headers, test_room, weekly_booking, test_db):
    payload = booking_payload(
        test_room.id,
        start=datetime(2030, 1, 14, 9, 30),
        end=datetime(2030, 1, 14, 9, 45),
    )
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_409_CONFLICT
    conflicts = response.json()["detail"]["conflicts"]
    assert len(conflicts) == 1
    assert conflicts[0]["booking_id"] == weekly_booking.id
    assert conflicts[0]["existing_start"] == "2030-01-14T09:00:00"
    assert test_db.query(Booking).count() == 1


def test_recurring_series_rejected_as_a_whole(auth_headers, test_room, weekly_booking, test_db):
    # daily from Friday: only the Monday 14th clashes, nothing is stored
    payload = booking_payload(
        test_room.id,
        start=datetime(2030, 1, 11, 9),
        end=datetime(2030, 1, 11, 10),
        repeat_type="daily",
        repeat_config={"occurrences": 5},
    )
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert len(response.json()["detail"]["conflicts"]) == 1
    assert test_db.query(Booking).count() == 1


def test_touching_booking_accepted(auth_headers, test_room, weekly_booking):
    payload = booking_payload(test_room.id, start=MONDAY_10, end=MONDAY_10 + timedelta(hours=1))
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_201_CREATED


def test_other_room_not_blocked(auth_headers, test_room, weekly_booking, test_db):
    from meetingroom.models.room import Room

    other = Room(name="Room 102", capacity=4, equipment=[])
    test_db.add(other)
    test_db.commit()
    response = client.post("/bookings/", json=booking_payload(other.id), headers=auth_headers)
    assert response.status_code == status.HTTP_201_CREATED


@pytest.mark.parametrize("blocking_status", ["pending", "cancelled"])
def test_pending_and_cancelled_do_not_block(auth_headers, test_room, weekly_booking, test_db, blocking_status):
    weekly_booking.status = blocking_status
    test_db.commit()
    response = client.post("/bookings/", json=booking_payload(test_room.id), headers=auth_headers)
    assert response.status_code == status.HTTP_201_CREATED


def test_pending_booking_is_not_checked_until_confirmed(auth_headers, test_room, weekly_booking):
    response = client.post(
        "/bookings/", json=booking_payload(test_room.id, status="pending"), headers=auth_headers
    )
    assert response.status_code == status.HTTP_201_CREATED
    booking_id = response.json()["id"]

    response = client.put(f"/bookings/{booking_id}", json={"status": "confirmed"}, headers=auth_headers)
    assert response.status_code == status.HTTP_409_CONFLICT


def test_edit_without_moving_never_self_conflicts(auth_headers, weekly_booking):
    response = client.put(
        f"/bookings/{weekly_booking.id}",
        json={
            "title": "Renamed sync",
            "start_date_time": MONDAY_9.isoformat(),
            "end_date_time": MONDAY_10.isoformat(),
        },
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["title"] == "Renamed sync"


def test_update_into_conflict_leaves_booking_unchanged(auth_headers, test_room, weekly_booking, test_db):
    response = client.post(
        "/bookings/",
        json=booking_payload(test_room.id, start=MONDAY_10, end=MONDAY_10 + timedelta(hours=1)),
        headers=auth_headers,
    )
    later_id = response.json()["id"]

    response = client.put(
        f"/bookings/{later_id}",
        json={"start_date_time": datetime(2030, 1, 7, 9, 30).isoformat()},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    stored = test_db.query(Booking).filter(Booking.id == later_id).first()
    assert stored.start_date_time == MONDAY_10


def test_update_booking_unauthorized(weekly_booking):
    response = client.put(f"/bookings/{weekly_booking.id}", json={"title": "Should Fail"})
    assert response.status_code in [
        status.HTTP_401_UNAUTHORIZED,
        status.HTTP_403_FORBIDDEN,
    ]


def test_update_booking_of_another_user_forbidden(weekly_booking, test_db):
    intruder = make_user(test_db)
    response = client.put(
        f"/bookings/{weekly_booking.id}", json={"title": "Mine now"}, headers=headers_for(intruder)
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_admin_can_update_any_booking(admin_headers, weekly_booking):
    response = client.put(
        f"/bookings/{weekly_booking.id}", json={"title": "Admin edit"}, headers=admin_headers
    )
    assert response.status_code == status.HTTP_200_OK


def test_admin_override_commits_and_audits(admin_headers, admin_user, test_room, weekly_booking, test_db):
    payload = booking_payload(test_room.id, override=True)
    response = client.post("/bookings/", json=payload, headers=admin_headers)
    assert response.status_code == status.HTTP_201_CREATED

    entry = (
        test_db.query(AuditLog)
        .filter(AuditLog.resource_type == "booking", AuditLog.action == "create")
        .first()
    )
    assert entry.user_id == admin_user.id
    assert len(entry.details["overridden_conflicts"]) == 1


def test_override_ignored_for_regular_users(auth_headers, test_room, weekly_booking):
    payload = booking_payload(test_room.id, override=True)
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_409_CONFLICT


def test_admin_books_on_behalf_of_user(admin_headers, test_user, test_room):
    payload = booking_payload(test_room.id, user_id=test_user.id)
    response = client.post("/bookings/", json=payload, headers=admin_headers)
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["user_id"] == test_user.id


def test_user_cannot_book_on_behalf_of_others(auth_headers, admin_user, test_room):
    payload = booking_payload(test_room.id, user_id=admin_user.id)
    response = client.post("/bookings/", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_cancel_booking_keeps_record(auth_headers, weekly_booking, test_db):
    response = client.delete(f"/bookings/{weekly_booking.id}", headers=auth_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT

    test_db.refresh(weekly_booking)
    assert weekly_booking.status == "cancelled"
    actions = [a.action for a in test_db.query(AuditLog).all()]
    assert "cancel" in actions


def test_cancelled_slot_can_be_rebooked(auth_headers, test_room, weekly_booking):
    client.delete(f"/bookings/{weekly_booking.id}", headers=auth_headers)
    response = client.post("/bookings/", json=booking_payload(test_room.id), headers=auth_headers)
    assert response.status_code == status.HTTP_201_CREATED


def test_get_bookings_only_own_for_users(auth_headers, admin_headers, weekly_booking, test_db, test_room):
    other = make_user(test_db)
    test_db.add(
        Booking(
            title="Someone else",
            room_id=test_room.id,
            user_id=other.id,
            start_date_time=datetime(2030, 2, 1, 9),
            end_date_time=datetime(2030, 2, 1, 10),
            series_end_date_time=datetime(2030, 2, 1, 10),
        )
    )
    test_db.commit()

    own = client.get("/bookings/", headers=auth_headers).json()
    assert [b["id"] for b in own] == [weekly_booking.id]
    assert len(client.get("/bookings/", headers=admin_headers).json()) == 2
    assert len(client.get("/bookings/my", headers=auth_headers).json()) == 1


def test_get_booking(auth_headers, weekly_booking):
    response = client.get(f"/bookings/{weekly_booking.id}", headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["id"] == weekly_booking.id


def test_get_booking_not_found(auth_headers):
    response = client.get("/bookings/999", headers=auth_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_get_booking_occurrences(auth_headers, weekly_booking):
    response = client.get(f"/bookings/{weekly_booking.id}/occurrences", headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK
    assert [o["start_time"] for o in response.json()] == [
        "2030-01-07T09:00:00",
        "2030-01-14T09:00:00",
        "2030-01-21T09:00:00",
    ]


def test_get_booking_ics(auth_headers, weekly_booking):
    response = client.get(f"/bookings/{weekly_booking.id}/ics", headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/calendar")
    assert "RRULE:FREQ=WEEKLY;INTERVAL=1;COUNT=3" in response.text
    assert "LOCATION:Room 101" in response.text


def test_check_conflict_dry_run(auth_headers, test_room, weekly_booking, test_db):
    payload = {
        "room_id": test_room.id,
        "start_date_time": MONDAY_9.isoformat(),
        "end_date_time": MONDAY_10.isoformat(),
        "repeat_type": "daily",
        "repeat_config": {"occurrences": 8},
    }
    response = client.post("/bookings/check-conflict", json=payload, headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["has_conflict"] is True
    assert len(data["conflicts"]) == 2

    payload["exclude_booking_id"] = weekly_booking.id
    response = client.post("/bookings/check-conflict", json=payload, headers=auth_headers)
    assert response.json() == {"has_conflict": False, "conflicts": []}
    assert test_db.query(Booking).count() == 1


def test_booking_creates_notification_and_audit(auth_headers, test_room, test_user, test_db):
    response = client.post("/bookings/", json=booking_payload(test_room.id), headers=auth_headers)
    booking_id = str(response.json()["id"])

    notification = test_db.query(Notification).filter(Notification.user_id == test_user.id).one()
    assert notification.title == "Booking Confirmed"
    assert notification.related_id == booking_id
    audit = test_db.query(AuditLog).filter(AuditLog.action == "create").one()
    assert audit.resource_id == booking_id


def test_moving_booking_resets_reminder(auth_headers, weekly_booking, test_db):
    weekly_booking.remind_me = True
    weekly_booking.reminder_sent = True
    test_db.commit()

    response = client.put(
        f"/bookings/{weekly_booking.id}",
        json={
            "start_date_time": datetime(2030, 1, 7, 11).isoformat(),
            "end_date_time": datetime(2030, 1, 7, 12).isoformat(),
        },
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["reminder_sent"] is False


def test_get_available_slots(auth_headers, test_room, weekly_booking):
    response = client.get(
        f"/bookings/available_slots/?room_id={test_room.id}&date=2030-01-14",
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    slots = response.json()
    starts = [slot["start_time"] for slot in slots]
    assert "2030-01-14T08:00:00" in starts
    assert "2030-01-14T09:00:00" not in starts
    assert "2030-01-14T10:00:00" in starts
    assert len(slots) == 9


def test_get_available_slots_invalid_duration(auth_headers, test_room):
    response = client.get(
        f"/bookings/available_slots/?room_id={test_room.id}&date=2030-01-14&duration=0",
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
