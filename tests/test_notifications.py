import pytest

from coursework.core.errors import NotFound, ValidationError
from coursework.models.message import Message
from coursework.models.notification import SYSTEM
from tests.conftest import auth_header


def test_unread_count_tracks_read_state(dispatcher, seed):
    first = dispatcher.notify(seed.student_id, SYSTEM, "Welcome", "Hello")
    dispatcher.notify(seed.student_id, SYSTEM, "Reminder", "Due soon")
    assert dispatcher.unread_count(seed.student_id)["notifications"] == 2

    dispatcher.mark_read(first.id, seed.student_id)
    assert dispatcher.unread_count(seed.student_id)["notifications"] == 1

    assert dispatcher.mark_all_read(seed.student_id) == 1
    counts = dispatcher.unread_count(seed.student_id)
    assert counts["notifications"] == 0
    assert counts["poll_interval_seconds"] == 30


def test_unread_count_includes_direct_messages(dispatcher, seed, db):
    db.add_all(
        [
            Message(sender_id=seed.instructor_id, receiver_id=seed.student_id, content="see me"),
            Message(sender_id=seed.instructor_id, receiver_id=seed.student_id, content="read", is_read=True),
        ]
    )
    db.commit()

    assert dispatcher.unread_count(seed.student_id)["messages"] == 1


def test_cannot_mark_someone_elses_notification(dispatcher, seed):
    n = dispatcher.notify(seed.student_id, SYSTEM, "Private", "for student one")

    with pytest.raises(NotFound):
        dispatcher.mark_read(n.id, seed.student2_id)


def test_notification_requires_title(dispatcher, seed):
    with pytest.raises(ValidationError):
        dispatcher.notify(seed.student_id, SYSTEM, " ", "no title")


def test_list_is_newest_first_and_limited(dispatcher, seed):
    for i in range(3):
        dispatcher.notify(seed.student_id, SYSTEM, f"n{i}", "body")

    titles = [n.title for n in dispatcher.list_for(seed.student_id, limit=2)]
    assert titles == ["n2", "n1"]


def test_course_broadcast_reaches_enrolled_students_only(dispatcher, seed):
    warnings = dispatcher.notify_course_students(seed.course_id, SYSTEM, "Class cancelled", "No lecture today")

    assert warnings == []
    assert len(dispatcher.list_for(seed.student_id)) == 1
    assert len(dispatcher.list_for(seed.student2_id)) == 1
    assert dispatcher.list_for(seed.outsider_id) == []


# ---------- HTTP ----------


def test_notification_endpoints(client, dispatcher, seed):
    n = dispatcher.notify(seed.student_id, SYSTEM, "Welcome", "Hello")
    headers = auth_header(seed.student_id)

    r = client.get("/notifications/unread-count", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"messages": 0, "notifications": 1, "poll_interval_seconds": 30}

    r = client.post(f"/notifications/{n.id}/read", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["is_read"] is True

    r = client.post("/notifications/read-all", headers=headers)
    assert r.json() == {"updated": 0}

    r = client.post(f"/notifications/{n.id}/read", headers=auth_header(seed.student2_id))
    assert r.status_code == 404
