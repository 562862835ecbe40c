# pylint: disable=redefined-outer-name,unused-import
import pytest
from fastapi import status

from meetingroom.models.notification import Notification
from tests.conf_tests import client, clear_db, test_db, test_user, admin_user, auth_headers, make_user


@pytest.fixture
def notifications(test_db, test_user):
    rows = [
        Notification(user_id=test_user.id, title=f"Note {i}", message="Hello", type="system")
        for i in range(3)
    ]
    test_db.add_all(rows)
    test_db.commit()
    return rows


def test_list_own_notifications(auth_headers, notifications, test_db):
    other = make_user(test_db)
    test_db.add(Notification(user_id=other.id, title="Not mine", message="Hi", type="system"))
    test_db.commit()

    response = client.get("/notifications/", headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK
    titles = [n["title"] for n in response.json()]
    assert sorted(titles) == ["Note 0", "Note 1", "Note 2"]


def test_unread_count_and_mark_read(auth_headers, notifications):
    assert client.get("/notifications/unread-count", headers=auth_headers).json() == {"count": 3}

    response = client.put(f"/notifications/{notifications[0].id}/read", headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["is_read"] is True
    assert client.get("/notifications/unread-count", headers=auth_headers).json() == {"count": 2}

    unread = client.get("/notifications/?unread_only=true", headers=auth_headers).json()
    assert len(unread) == 2


def test_mark_all_read(auth_headers, notifications):
    response = client.put("/notifications/read-all", headers=auth_headers)
    assert response.status_code == status.HTTP_200_OK
    assert client.get("/notifications/unread-count", headers=auth_headers).json() == {"count": 0}


def test_cannot_touch_other_users_notification(auth_headers, test_db):
    other = make_user(test_db)
    note = Notification(user_id=other.id, title="Private", message="Hi", type="system")
    test_db.add(note)
    test_db.commit()

    assert client.put(f"/notifications/{note.id}/read", headers=auth_headers).status_code == 404
    assert client.delete(f"/notifications/{note.id}", headers=auth_headers).status_code == 404


def test_delete_notification(auth_headers, notifications):
    response = client.delete(f"/notifications/{notifications[1].id}", headers=auth_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert len(client.get("/notifications/", headers=auth_headers).json()) == 2
