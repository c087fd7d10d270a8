from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from coursework.core.config import settings
from coursework.models.assignment import PUBLISHED, Assignment
from coursework.models.course import Course
from coursework.models.course_document import CourseDocument
from coursework.models.enrollment import ENROLLED, Enrollment
from coursework.models.submission import PENDING, Submission
from coursework.services.submissions import as_utc, utcnow

# Urgency buckets for upcoming work, by time left until the due date
URGENT = "urgent"
DUE_SOON = "due_soon"
UPCOMING = "upcoming"


def urgency(due_date: datetime, now: datetime) -> str:
    left = as_utc(due_date) - as_utc(now)
    if left <= timedelta(days=1):
        return URGENT
    if left <= timedelta(days=3):
        return DUE_SOON
    return UPCOMING


class StatsAggregator:
    """Role-scoped dashboard reads. Read-only; every count falls back to 0."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def instructor(self, instructor_id: int) -> dict:
        owned = self.db.query(Course.id).filter(Course.instructor_id == instructor_id)

        courses = (
            self.db.query(func.count(Course.id))
            .filter(Course.instructor_id == instructor_id)
            .scalar()
        ) or 0

        students = (
            self.db.query(func.count(Enrollment.id))
            .filter(Enrollment.course_id.in_(owned.scalar_subquery()))
            .scalar()
        ) or 0

        documents = (
            self.db.query(func.count(CourseDocument.id))
            .filter(CourseDocument.course_id.in_(owned.scalar_subquery()))
            .scalar()
        ) or 0

        assignments = (
            self.db.query(func.count(Assignment.id))
            .filter(Assignment.created_by == instructor_id)
            .scalar()
        ) or 0

        return {
            "courses": int(courses),
            "students": int(students),
            "documents": int(documents),
            "assignments": int(assignments),
        }

    def student(self, student_id: int) -> dict:
        enrolled_courses = (
            self.db.query(func.count(Enrollment.id))
            .filter(Enrollment.student_id == student_id, Enrollment.status == ENROLLED)
            .scalar()
        ) or 0

        submissions = (
            self.db.query(func.count(Submission.id))
            .filter(Submission.student_id == student_id, Submission.status != PENDING)
            .scalar()
        ) or 0

        graded = (
            self.db.query(Submission.grade, Assignment.max_score)
            .join(Assignment, Assignment.id == Submission.assignment_id)
            .filter(Submission.student_id == student_id, Submission.grade.is_not(None))
            .all()
        )

        # each grade scaled to a 10-point scale before averaging
        scaled = [r.grade / r.max_score * 10 for r in graded if r.max_score]
        average = sum(scaled) / len(scaled) if scaled else 0.0

        return {
            "enrolled_courses": int(enrolled_courses),
            "submissions": int(submissions),
            "average_grade": f"{average:.1f}",
        }

    def grades_for_student(self, student_id: int) -> list[dict]:
        """Every handed-in submission of the student with its assignment and course."""
        rows = (
            self.db.query(
                Submission,
                Assignment.title.label("assignment_title"),
                Assignment.due_date.label("due_date"),
                Assignment.max_score.label("max_score"),
                Course.id.label("course_id"),
                Course.title.label("course_title"),
            )
            .join(Assignment, Assignment.id == Submission.assignment_id)
            .join(Course, Course.id == Assignment.course_id)
            .filter(Submission.student_id == student_id, Submission.status != PENDING)
            .order_by(Submission.submitted_at.desc(), Submission.id.desc())
            .all()
        )

        result = []
        for r in rows:
            sub = r[0]
            percentage = None
            if sub.grade is not None and r.max_score:
                percentage = round(sub.grade / r.max_score * 100, 1)
            result.append(
                {
                    "submission_id": sub.id,
                    "assignment_id": sub.assignment_id,
                    "assignment_title": r.assignment_title,
                    "due_date": r.due_date,
                    "course_id": r.course_id,
                    "course_title": r.course_title,
                    "status": sub.status,
                    "submitted_at": sub.submitted_at,
                    "grade": sub.grade,
                    "max_score": r.max_score,
                    "percentage": percentage,
                    "feedback": sub.feedback,
                    "graded_at": sub.graded_at,
                }
            )
        return result

    def upcoming_for_student(self, student_id: int, limit: Optional[int] = None) -> list[dict]:
        """Next published assignments due in the student's enrolled courses, soonest first."""
        now = self.clock()
        enrolled = self.db.query(Enrollment.course_id).filter(
            Enrollment.student_id == student_id, Enrollment.status == ENROLLED
        )

        rows = (
            self.db.query(Assignment, Course.title.label("course_title"))
            .join(Course, Course.id == Assignment.course_id)
            .filter(
                Assignment.course_id.in_(enrolled.scalar_subquery()),
                Assignment.status == PUBLISHED,
                Assignment.due_date.is_not(None),
                Assignment.due_date > now,
            )
            .order_by(Assignment.due_date.asc(), Assignment.id.asc())
            .limit(limit or settings.UPCOMING_LIMIT)
            .all()
        )

        return [
            {
                "id": r[0].id,
                "title": r[0].title,
                "due_date": r[0].due_date,
                "course_id": r[0].course_id,
                "course_title": r.course_title,
                "urgency_status": urgency(r[0].due_date, now),
            }
            for r in rows
        ]
