from datetime import datetime, timedelta, timezone

from tests.conftest import auth_header


def test_assignment_round_trip(client, seed):
    instructor = auth_header(seed.instructor_id)
    student = auth_header(seed.student_id)

    # instructor creates and publishes
    due = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
    r = client.post(
        f"/courses/{seed.course_id}/assignments",
        headers=instructor,
        json={"title": "Final project", "due_date": due, "max_score": 10},
    )
    assert r.status_code == 201, r.text
    assignment_id = r.json()["id"]

    r = client.post(f"/assignments/{assignment_id}/status", headers=instructor, json={"status": "published"})
    assert r.status_code == 200, r.text
    assert r.json()["assignment"]["status"] == "published"

    # student submits with two files
    r = client.post(
        f"/assignments/{assignment_id}/submissions",
        headers=student,
        data={"content": "Report attached"},
        files=[
            ("files", ("report.pdf", b"%PDF-1.4 report", "application/pdf")),
            ("files", ("diagram.png", b"\x89PNG diagram", "image/png")),
        ],
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["submission"]["status"] == "submitted"
    assert body["failed_files"] == {}
    submission_id = body["submission"]["id"]

    # instructor sees it and grades
    r = client.get(f"/assignments/{assignment_id}/submissions", headers=instructor)
    assert r.status_code == 200, r.text
    rows = r.json()
    assert [(row["student_email"], row["file_count"]) for row in rows] == [("student1@example.com", 2)]

    r = client.patch(
        f"/submissions/{submission_id}/grade",
        headers=instructor,
        json={"score": 7.5, "feedback": "Solid"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["submission"]["grade"] == 7.5

    # student reads back the grade and both files
    r = client.get(f"/assignments/{assignment_id}/submissions/me", headers=student)
    assert r.status_code == 200, r.text
    mine = r.json()
    assert mine["status"] == "graded"
    assert mine["grade"] == 7.5
    contents = sorted(client.get(f["file_url"]).content for f in mine["files"])
    assert contents == [b"%PDF-1.4 report", b"\x89PNG diagram"]

    r = client.get("/notifications", headers=student)
    graded = [n for n in r.json() if n["type"] == "assignment_graded"]
    assert len(graded) == 1
    assert graded[0]["related_id"] == submission_id

    r = client.get("/stats/me", headers=student)
    assert r.json()["average_grade"] == "7.5"


def test_no_due_date_is_never_late(client, seed):
    instructor = auth_header(seed.instructor_id)

    r = client.post(f"/courses/{seed.course_id}/assignments", headers=instructor, json={"title": "Reading log"})
    assignment_id = r.json()["id"]
    client.post(f"/assignments/{assignment_id}/status", headers=instructor, json={"status": "active"})

    r = client.post(
        f"/assignments/{assignment_id}/submissions",
        headers=auth_header(seed.student_id),
        data={"content": "Chapter 1-4"},
    )
    assert r.status_code == 201, r.text
    assert r.json()["submission"]["status"] == "submitted"


def test_enrollment_notifies_instructor(client, seed):
    r = client.post("/enrollments", headers=auth_header(seed.outsider_id), json={"course_id": seed.course_id})
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "enrolled"

    r = client.post("/enrollments", headers=auth_header(seed.outsider_id), json={"course_id": seed.course_id})
    assert r.status_code == 409

    r = client.get("/notifications", headers=auth_header(seed.instructor_id))
    assert [n["type"] for n in r.json()] == ["course_enrolled"]


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
