import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from coursework.core.errors import (
    Conflict,
    CourseworkError,
    InvalidState,
    NotFound,
    ValidationError,
)
from coursework.models.assignment import ARCHIVED, DRAFT, Assignment
from coursework.models.notification import ASSIGNMENT_SUBMITTED
from coursework.models.submission import GRADED, LATE, PENDING, SUBMITTED, Submission
from coursework.models.submission_file import SubmissionFile
from coursework.models.user import User
from coursework.services.attachments import AttachmentStore, IncomingFile

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite often returns naive datetimes; treat as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_late(assignment: Assignment, submitted_at: datetime) -> bool:
    if assignment.due_date is None:
        return False
    return as_utc(submitted_at) > as_utc(assignment.due_date)


@dataclass
class SubmitResult:
    submission: Submission
    files: list[SubmissionFile] = field(default_factory=list)
    failed_files: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


@dataclass
class SubmissionRow:
    """Instructor-side projection of a submission."""

    submission: Submission
    student_email: str
    student_name: Optional[str]
    file_count: int


class SubmissionWorkflow:
    """Student submissions: one overwritable row per (assignment, student)."""

    def __init__(
        self,
        db: Session,
        attachments: AttachmentStore,
        dispatcher=None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.attachments = attachments
        self.dispatcher = dispatcher
        self.clock = clock

    def _open_assignment(self, assignment_id: int) -> Assignment:
        a = self.db.query(Assignment).filter(Assignment.id == assignment_id).first()
        if not a:
            raise NotFound("Assignment not found")
        if a.status == ARCHIVED:
            raise InvalidState("Assignment is archived and no longer accepts submissions")
        if a.status == DRAFT:
            raise InvalidState("Assignment is not published yet")
        return a

    def _find(self, assignment_id: int, student_id: int) -> Optional[Submission]:
        return (
            self.db.query(Submission)
            .filter(
                and_(
                    Submission.assignment_id == assignment_id,
                    Submission.student_id == student_id,
                )
            )
            .first()
        )

    def _insert(self, submission: Submission) -> Submission:
        self.db.add(submission)
        try:
            self.db.commit()
        except IntegrityError:
            # another request created the row for this pair first
            self.db.rollback()
            raise Conflict("A submission for this assignment already exists")
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(submission)
        return submission

    def _store_files(self, submission: Submission, files: list[IncomingFile], result: SubmitResult) -> None:
        for file in files:
            try:
                result.files.append(self.attachments.store_submission_file(submission, file))
            except CourseworkError as e:
                logger.warning("File %s for submission %s not stored: %s", file.name, submission.id, e.detail)
                result.failed_files[file.name] = e.detail
            except SQLAlchemyError as e:
                logger.warning("File %s for submission %s not recorded: %s", file.name, submission.id, e)
                result.failed_files[file.name] = "File metadata could not be saved"

    def submit(
        self,
        assignment_id: int,
        student_id: int,
        content: str,
        files: Optional[list[IncomingFile]] = None,
    ) -> SubmitResult:
        if content is None or not content.strip():
            raise ValidationError("Submission content is required")

        assignment = self._open_assignment(assignment_id)

        now = self.clock()
        status = LATE if is_late(assignment, now) else SUBMITTED

        existing = self._find(assignment_id, student_id)
        if existing:
            if existing.status == GRADED:
                raise InvalidState("Submission has already been graded")

            existing.content = content
            existing.submitted_at = now
            existing.status = status
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(existing)
            submission = existing
        else:
            submission = self._insert(
                Submission(
                    assignment_id=assignment_id,
                    student_id=student_id,
                    content=content,
                    status=status,
                    submitted_at=now,
                )
            )

        logger.info(
            "Submission %s for assignment %s by student %s is %s",
            submission.id,
            assignment_id,
            student_id,
            status,
        )

        result = SubmitResult(submission=submission)
        self._store_files(submission, files or [], result)

        if self.dispatcher is not None:
            result.warnings.extend(
                self.dispatcher.try_notify(
                    assignment.created_by,
                    ASSIGNMENT_SUBMITTED,
                    "New submission",
                    f'A student submitted "{assignment.title}"',
                    related_id=submission.id,
                )
            )
        return result

    def attach(self, assignment_id: int, student_id: int, files: list[IncomingFile]) -> SubmitResult:
        """Upload files ahead of the final submit, opening a pending slot if needed."""
        if not files:
            raise ValidationError("No files provided")

        self._open_assignment(assignment_id)

        submission = self._find(assignment_id, student_id)
        if submission is None:
            submission = self._insert(
                Submission(assignment_id=assignment_id, student_id=student_id, status=PENDING)
            )
        elif submission.status == GRADED:
            raise InvalidState("Submission has already been graded")

        result = SubmitResult(submission=submission)
        self._store_files(submission, files, result)
        return result

    def remove_attachment(self, submission_id: int, file_id: int) -> None:
        submission = self.db.query(Submission).filter(Submission.id == submission_id).first()
        if not submission:
            raise NotFound("Submission not found")

        file = (
            self.db.query(SubmissionFile)
            .filter(SubmissionFile.id == file_id, SubmissionFile.submission_id == submission_id)
            .first()
        )
        if not file:
            raise NotFound("File not found for this submission")

        if submission.status == GRADED:
            raise InvalidState("Files of a graded submission cannot be removed")

        self.attachments.delete_submission_file(file)
        logger.info("File %s removed from submission %s", file_id, submission_id)

    def get(self, submission_id: int) -> Submission:
        s = self.db.query(Submission).filter(Submission.id == submission_id).first()
        if not s:
            raise NotFound("Submission not found")
        return s

    def get_for_student(self, assignment_id: int, student_id: int) -> Optional[Submission]:
        return self._find(assignment_id, student_id)

    def list_for_assignment(self, assignment_id: int) -> list[SubmissionRow]:
        rows = (
            self.db.query(
                Submission,
                User.email.label("student_email"),
                User.full_name.label("student_name"),
                func.count(SubmissionFile.id).label("file_count"),
            )
            .join(User, User.id == Submission.student_id)
            .outerjoin(SubmissionFile, SubmissionFile.submission_id == Submission.id)
            .filter(Submission.assignment_id == assignment_id)
            .group_by(Submission.id, User.email, User.full_name)
            .order_by(User.email.asc())
            .all()
        )

        return [
            SubmissionRow(
                submission=r[0],
                student_email=r.student_email,
                student_name=r.student_name,
                file_count=int(r.file_count or 0),
            )
            for r in rows
        ]
