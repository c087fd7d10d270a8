import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from coursework.core.config import settings
from coursework.core.errors import CascadeFailure, InvalidTransition, NotFound, ValidationError
from coursework.models.assignment import ARCHIVED, DRAFT, PUBLISHED, Assignment
from coursework.models.assignment_document import AssignmentDocument
from coursework.models.course import Course
from coursework.models.notification import ASSIGNMENT_CREATED
from coursework.models.submission import Submission
from coursework.models.submission_file import SubmissionFile
from coursework.services.blob_store import BlobStore, BlobStoreError

logger = logging.getLogger(__name__)

# Accepted names for each lifecycle status
STATUS_ALIASES = {
    "draft": DRAFT,
    "published": PUBLISHED,
    "active": PUBLISHED,
    "archived": ARCHIVED,
    "completed": ARCHIVED,
}

# Archival is terminal; a new assignment is needed to re-open work.
ALLOWED_TRANSITIONS = {
    (DRAFT, PUBLISHED),
    (PUBLISHED, ARCHIVED),
}

UPDATABLE_FIELDS = {"course_id", "title", "description", "due_date", "max_score"}

# Cascade steps, in dependency order
STEP_DOCUMENTS = "assignment_documents"
STEP_SUBMISSION_FILES = "assignment_submission_files"
STEP_SUBMISSIONS = "assignment_submissions"
STEP_ASSIGNMENT = "assignments"


@dataclass
class StatusChangeResult:
    assignment: Assignment
    warnings: list[str] = field(default_factory=list)


@dataclass
class DeleteResult:
    assignment_id: int
    documents: int = 0
    submission_files: int = 0
    submissions: int = 0
    warnings: list[str] = field(default_factory=list)


def _assignment_order_by():
    """
    Assignment ordering:
    - due_date NULLs last (SQLite-safe)
    - due_date ascending
    - assignment id ascending
    """
    return (
        Assignment.due_date.is_(None),
        Assignment.due_date.asc(),
        Assignment.id.asc(),
    )


def _validate_max_score(max_score: Any) -> float:
    try:
        value = float(max_score)
    except (TypeError, ValueError):
        raise ValidationError("max_score must be a number")
    if value <= 0:
        raise ValidationError("max_score must be greater than 0")
    return value


class AssignmentRepository:
    def __init__(self, db: Session, dispatcher=None, blobs: Optional[BlobStore] = None):
        self.db = db
        self.dispatcher = dispatcher
        self.blobs = blobs

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def get(self, assignment_id: int) -> Assignment:
        a = self.db.query(Assignment).filter(Assignment.id == assignment_id).first()
        if not a:
            raise NotFound("Assignment not found")
        return a

    def list_for_course(self, course_id: int) -> list[Assignment]:
        return (
            self.db.query(Assignment)
            .filter(Assignment.course_id == course_id)
            .order_by(*_assignment_order_by())
            .all()
        )

    def create(
        self,
        course_id: int,
        title: str,
        creator_id: int,
        description: Optional[str] = None,
        due_date: Optional[datetime] = None,
        max_score: Optional[float] = None,
    ) -> Assignment:
        if not title or not title.strip():
            raise ValidationError("title is required")

        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFound("Course not found")

        a = Assignment(
            course_id=course_id,
            title=title.strip(),
            description=description,
            due_date=due_date,
            created_by=creator_id,
            status=DRAFT,
            max_score=_validate_max_score(
                settings.DEFAULT_MAX_SCORE if max_score is None else max_score
            ),
        )
        self.db.add(a)
        self._commit()
        self.db.refresh(a)

        logger.info("Assignment %s created in course %s by %s", a.id, course_id, creator_id)
        return a

    def update(self, assignment_id: int, fields: dict[str, Any]) -> Assignment:
        a = self.get(assignment_id)

        if "created_by" in fields:
            raise ValidationError("created_by cannot be changed")
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        if "title" in fields:
            title = fields["title"]
            if not title or not title.strip():
                raise ValidationError("title is required")
            fields["title"] = title.strip()
        if "max_score" in fields:
            fields["max_score"] = _validate_max_score(fields["max_score"])
        if "course_id" in fields:
            if not self.db.query(Course).filter(Course.id == fields["course_id"]).first():
                raise NotFound("Course not found")

        for name, value in fields.items():
            setattr(a, name, value)
        a.updated_at = datetime.now(timezone.utc)

        self._commit()
        self.db.refresh(a)
        return a

    def set_status(self, assignment_id: int, status: str) -> StatusChangeResult:
        target = STATUS_ALIASES.get((status or "").lower())
        if target is None:
            raise ValidationError(f"Unknown assignment status: {status}")

        a = self.get(assignment_id)
        current = a.status
        if (current, target) not in ALLOWED_TRANSITIONS:
            raise InvalidTransition(f"Cannot change assignment status from {current} to {target}")

        a.status = target
        a.updated_at = datetime.now(timezone.utc)
        self._commit()
        self.db.refresh(a)
        logger.info("Assignment %s: %s -> %s", a.id, current, target)

        result = StatusChangeResult(assignment=a)
        if target == PUBLISHED and self.dispatcher is not None:
            result.warnings.extend(
                self.dispatcher.notify_course_students(
                    a.course_id,
                    ASSIGNMENT_CREATED,
                    "New assignment",
                    f'A new assignment "{a.title}" was published',
                    related_id=a.id,
                )
            )
        return result

    def delete(self, assignment_id: int) -> DeleteResult:
        """Remove an assignment and every row that exists only because of it.

        The four steps run in dependency order inside one transaction. If a
        step fails the transaction is rolled back and ``CascadeFailure``
        names the step. Each step is a filtered bulk delete, so re-running
        after a failure is safe.
        """
        self.get(assignment_id)

        submission_ids = select(Submission.id).where(Submission.assignment_id == assignment_id)
        blob_paths = [
            p
            for (p,) in self.db.query(AssignmentDocument.file_path)
            .filter(AssignmentDocument.assignment_id == assignment_id)
            .all()
        ] + [
            p
            for (p,) in self.db.query(SubmissionFile.file_path)
            .filter(SubmissionFile.submission_id.in_(submission_ids))
            .all()
        ]

        result = DeleteResult(assignment_id=assignment_id)
        steps = [
            (
                STEP_DOCUMENTS,
                "documents",
                lambda: self.db.query(AssignmentDocument)
                .filter(AssignmentDocument.assignment_id == assignment_id)
                .delete(synchronize_session=False),
            ),
            (
                STEP_SUBMISSION_FILES,
                "submission_files",
                lambda: self.db.query(SubmissionFile)
                .filter(SubmissionFile.submission_id.in_(submission_ids))
                .delete(synchronize_session=False),
            ),
            (
                STEP_SUBMISSIONS,
                "submissions",
                lambda: self.db.query(Submission)
                .filter(Submission.assignment_id == assignment_id)
                .delete(synchronize_session=False),
            ),
            (
                STEP_ASSIGNMENT,
                None,
                lambda: self.db.query(Assignment)
                .filter(Assignment.id == assignment_id)
                .delete(synchronize_session=False),
            ),
        ]

        for step, counter, run in steps:
            try:
                removed = run()
            except Exception as e:
                self.db.rollback()
                logger.error("Cascade delete of assignment %s failed at %s: %s", assignment_id, step, e)
                raise CascadeFailure(step, str(e)) from e
            if counter:
                setattr(result, counter, removed)

        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error("Cascade delete of assignment %s failed at commit: %s", assignment_id, e)
            raise CascadeFailure("commit", str(e)) from e

        logger.info(
            "Assignment %s deleted (%d documents, %d submissions, %d files)",
            assignment_id,
            result.documents,
            result.submissions,
            result.submission_files,
        )

        if self.blobs is not None:
            for path in blob_paths:
                try:
                    self.blobs.delete(settings.ASSIGNMENT_FILES_BUCKET, path)
                except BlobStoreError as e:
                    logger.warning("Blob %s left behind after deleting assignment %s: %s", path, assignment_id, e)
                    result.warnings.append(f"Stored file {path} could not be removed")

        return result
