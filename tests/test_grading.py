import pytest
from sqlalchemy.exc import SQLAlchemyError

from coursework.core.errors import InvalidState, NotFound, OutOfRange
from coursework.models.notification import ASSIGNMENT_GRADED, Notification
from coursework.models.submission import GRADED, SUBMITTED, Submission
from tests.conftest import auth_header, pdf


@pytest.fixture()
def submission(workflow, seed):
    return workflow.submit(seed.assignment_id, seed.student_id, "answer").submission


def test_grade_records_score_and_notifies_student(grading, submission, seed, db):
    result = grading.grade(submission.id, 7.5, "Nice work")

    sub = result.submission
    assert sub.status == GRADED
    assert sub.grade == 7.5
    assert sub.feedback == "Nice work"
    assert sub.graded_at is not None
    assert result.warnings == []

    sent = db.query(Notification).filter(Notification.user_id == seed.student_id).all()
    assert [n.type for n in sent] == [ASSIGNMENT_GRADED]
    assert "7.5/10" in sent[0].content


@pytest.mark.parametrize("score", [0, 10])
def test_bounds_are_inclusive(grading, submission, score):
    assert grading.grade(submission.id, score).submission.grade == score


@pytest.mark.parametrize("score", [-0.5, 10.01, 11, float("nan"), float("inf"), float("-inf")])
def test_out_of_range_score_leaves_submission_untouched(grading, submission, db, score):
    with pytest.raises(OutOfRange):
        grading.grade(submission.id, score)

    db.expire_all()
    sub = db.query(Submission).filter(Submission.id == submission.id).first()
    assert sub.status == SUBMITTED
    assert sub.grade is None


def test_pending_submission_cannot_be_graded(grading, workflow, seed):
    pending = workflow.attach(seed.assignment_id, seed.student_id, [pdf()]).submission

    with pytest.raises(InvalidState):
        grading.grade(pending.id, 5)


def test_regrade_overwrites_previous_grade(grading, submission):
    grading.grade(submission.id, 4, "first pass")
    result = grading.grade(submission.id, 9, "after appeal")

    assert result.submission.status == GRADED
    assert result.submission.grade == 9
    assert result.submission.feedback == "after appeal"


def test_missing_submission_is_not_found(grading):
    with pytest.raises(NotFound):
        grading.grade(999_999, 5)


def test_failed_notification_becomes_a_warning(grading, dispatcher, submission, db, monkeypatch):
    def boom(*args, **kwargs):
        raise SQLAlchemyError("notifications table locked")

    monkeypatch.setattr(dispatcher, "notify", boom)

    result = grading.grade(submission.id, 6)

    assert result.warnings == ["Notification 'assignment_graded' could not be delivered"]
    db.expire_all()
    assert db.query(Submission).filter(Submission.id == submission.id).first().grade == 6


def test_graded_iff_grade_present(grading, workflow, seed, submission, db):
    workflow.submit(seed.assignment_id, seed.student2_id, "other")
    grading.grade(submission.id, 3)

    db.expire_all()
    for sub in db.query(Submission).all():
        assert (sub.status == GRADED) == (sub.grade is not None)


# ---------- HTTP ----------


def test_grade_over_http(client, seed, submission):
    r = client.patch(
        f"/submissions/{submission.id}/grade",
        headers=auth_header(seed.instructor_id),
        json={"score": 8, "feedback": "good"},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["submission"]["status"] == "graded"
    assert body["submission"]["grade"] == 8
    assert body["warnings"] == []


def test_out_of_range_over_http(client, seed, submission):
    r = client.patch(
        f"/submissions/{submission.id}/grade",
        headers=auth_header(seed.instructor_id),
        json={"score": 11},
    )
    assert r.status_code == 422, r.text
    assert r.json()["code"] == "E_OUT_OF_RANGE"


def test_students_cannot_grade(client, seed, submission):
    r = client.patch(
        f"/submissions/{submission.id}/grade",
        headers=auth_header(seed.student_id),
        json={"score": 10},
    )
    assert r.status_code == 403, r.text
