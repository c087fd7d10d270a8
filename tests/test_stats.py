from datetime import datetime, timedelta, timezone

from coursework.models.course import Course
from coursework.models.course_document import CourseDocument
from coursework.services.stats import DUE_SOON, UPCOMING, URGENT, urgency
from tests.conftest import auth_header, pdf


def test_instructor_counts(stats, seed, db, repo):
    db.add(
        CourseDocument(
            course_id=seed.course_id,
            title="Syllabus",
            file_name="syllabus.pdf",
            file_path="courses/1/syllabus.pdf",
            uploaded_by=seed.instructor_id,
        )
    )
    db.commit()
    repo.create(seed.course_id, "Lab", seed.instructor_id)

    assert stats.instructor(seed.instructor_id) == {
        "courses": 1,
        "students": 2,
        "documents": 1,
        "assignments": 2,
    }


def test_instructor_without_courses_gets_zeros(stats, seed):
    assert stats.instructor(seed.student_id) == {
        "courses": 0,
        "students": 0,
        "documents": 0,
        "assignments": 0,
    }


def test_student_average_is_zero_before_grading(stats, workflow, seed):
    workflow.submit(seed.assignment_id, seed.student_id, "answer")

    assert stats.student(seed.student_id) == {
        "enrolled_courses": 1,
        "submissions": 1,
        "average_grade": "0.0",
    }


def test_student_average_scales_each_grade_to_ten(stats, workflow, grading, repo, seed):
    essay = repo.create(seed.course_id, "Essay", seed.instructor_id, max_score=50)
    repo.set_status(essay.id, "published")

    first = workflow.submit(seed.assignment_id, seed.student_id, "hw").submission
    second = workflow.submit(essay.id, seed.student_id, "essay").submission
    grading.grade(first.id, 7)
    grading.grade(second.id, 40)

    # 7/10 -> 7.0 and 40/50 -> 8.0
    assert stats.student(seed.student_id)["average_grade"] == "7.5"


def test_pending_slots_are_not_counted_as_submissions(stats, workflow, seed):
    workflow.attach(seed.assignment_id, seed.student_id, [pdf()])

    assert stats.student(seed.student_id)["submissions"] == 0


def test_stats_endpoint_is_role_scoped(client, seed):
    r = client.get("/stats/me", headers=auth_header(seed.instructor_id))
    assert r.status_code == 200, r.text
    assert set(r.json()) == {"courses", "students", "documents", "assignments"}

    r = client.get("/stats/me", headers=auth_header(seed.outsider_id))
    assert r.status_code == 200, r.text
    assert r.json() == {"enrolled_courses": 0, "submissions": 0, "average_grade": "0.0"}


def _published(repo, seed, title, due, max_score=None, course_id=None):
    a = repo.create(course_id or seed.course_id, title, seed.instructor_id, due_date=due, max_score=max_score)
    repo.set_status(a.id, "published")
    return a


def test_grades_list_each_handed_in_submission(stats, workflow, grading, repo, seed):
    now = datetime.now(timezone.utc)
    essay = _published(repo, seed, "Essay", now + timedelta(days=2), max_score=50)
    thesis = _published(repo, seed, "Thesis", now + timedelta(days=10))

    workflow.clock = lambda: now - timedelta(hours=2)
    hw = workflow.submit(seed.assignment_id, seed.student_id, "hw").submission
    workflow.clock = lambda: now - timedelta(hours=1)
    workflow.submit(essay.id, seed.student_id, "essay")
    workflow.attach(thesis.id, seed.student_id, [pdf()])
    grading.grade(hw.id, 7, "Check question 3")

    rows = stats.grades_for_student(seed.student_id)

    # newest submission first; the pending thesis slot is not listed
    assert [r["assignment_title"] for r in rows] == ["Essay", "HW1"]
    essay_row, hw_row = rows
    assert essay_row["grade"] is None
    assert essay_row["percentage"] is None
    assert essay_row["max_score"] == 50
    assert hw_row["status"] == "graded"
    assert hw_row["grade"] == 7
    assert hw_row["percentage"] == 70.0
    assert hw_row["feedback"] == "Check question 3"
    assert hw_row["course_title"] == "CS5004"


def test_grades_are_empty_without_submissions(stats, seed):
    assert stats.grades_for_student(seed.student_id) == []


def test_upcoming_lists_published_future_work_in_enrolled_courses(stats, repo, seed, db):
    now = datetime.now(timezone.utc)
    stats.clock = lambda: now

    _published(repo, seed, "Essay", now + timedelta(days=2))
    _published(repo, seed, "Thesis", now + timedelta(days=10))
    _published(repo, seed, "Already due", now - timedelta(days=1))
    _published(repo, seed, "Open ended", None)
    repo.create(seed.course_id, "Unpublished", seed.instructor_id, due_date=now + timedelta(hours=1))

    other = Course(title="Elsewhere", instructor_id=seed.instructor_id)
    db.add(other)
    db.commit()
    _published(repo, seed, "Not my course", now + timedelta(hours=2), course_id=other.id)

    rows = stats.upcoming_for_student(seed.student_id)

    assert [(r["title"], r["urgency_status"]) for r in rows] == [
        ("HW1", URGENT),
        ("Essay", DUE_SOON),
        ("Thesis", UPCOMING),
    ]
    assert rows[0]["course_title"] == "CS5004"
    assert [r["title"] for r in stats.upcoming_for_student(seed.student_id, limit=2)] == ["HW1", "Essay"]


def test_upcoming_is_capped_at_five_by_default(stats, repo, seed):
    now = datetime.now(timezone.utc)
    for i in range(6):
        _published(repo, seed, f"Quiz {i}", now + timedelta(days=5 + i))

    assert len(stats.upcoming_for_student(seed.student_id)) == 5


def test_urgency_buckets():
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    assert urgency(now + timedelta(hours=23), now) == URGENT
    assert urgency(now + timedelta(days=1), now) == URGENT
    assert urgency(now + timedelta(days=3), now) == DUE_SOON
    assert urgency(now + timedelta(days=3, seconds=1), now) == UPCOMING


def test_grades_and_upcoming_endpoints(client, seed, workflow, grading):
    sub = workflow.submit(seed.assignment_id, seed.student_id, "hw").submission
    grading.grade(sub.id, 9)

    r = client.get("/stats/me/grades", headers=auth_header(seed.student_id))
    assert r.status_code == 200, r.text
    assert [(g["assignment_title"], g["percentage"]) for g in r.json()] == [("HW1", 90.0)]

    r = client.get("/stats/me/upcoming", headers=auth_header(seed.student_id))
    assert r.status_code == 200, r.text
    assert [a["title"] for a in r.json()] == ["HW1"]

    r = client.get("/stats/me/grades", headers=auth_header(seed.instructor_id))
    assert r.status_code == 403
