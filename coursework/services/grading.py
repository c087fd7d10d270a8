import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from coursework.core.errors import InvalidState, NotFound, OutOfRange, ValidationError
from coursework.models.assignment import Assignment
from coursework.models.notification import ASSIGNMENT_GRADED
from coursework.models.submission import GRADED, LATE, SUBMITTED, Submission
from coursework.services.submissions import utcnow

logger = logging.getLogger(__name__)

# Graded submissions may be re-graded; pending slots were never handed in.
GRADABLE_STATUSES = {SUBMITTED, LATE, GRADED}


@dataclass
class GradeResult:
    submission: Submission
    warnings: list[str] = field(default_factory=list)


def _format_score(value: float) -> str:
    return f"{value:g}"


class GradingService:
    def __init__(self, db: Session, dispatcher=None, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.dispatcher = dispatcher
        self.clock = clock

    def grade(self, submission_id: int, score: float, feedback: Optional[str] = None) -> GradeResult:
        sub = self.db.query(Submission).filter(Submission.id == submission_id).first()
        if not sub:
            raise NotFound("Submission not found")

        assignment = self.db.query(Assignment).filter(Assignment.id == sub.assignment_id).first()
        if not assignment:
            raise NotFound("Assignment not found")

        try:
            score = float(score)
        except (TypeError, ValueError):
            raise ValidationError("score must be a number")

        if not math.isfinite(score) or score < 0 or score > assignment.max_score:
            raise OutOfRange(f"score must be between 0 and {_format_score(assignment.max_score)}")

        if sub.status not in GRADABLE_STATUSES:
            raise InvalidState(f"Cannot grade a submission in '{sub.status}' state")

        regrade = sub.status == GRADED
        sub.grade = score
        sub.feedback = feedback
        sub.graded_at = self.clock()
        sub.status = GRADED

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(sub)
        logger.info(
            "Submission %s %s: %s/%s",
            sub.id,
            "re-graded" if regrade else "graded",
            _format_score(score),
            _format_score(assignment.max_score),
        )

        result = GradeResult(submission=sub)
        if self.dispatcher is not None:
            result.warnings.extend(
                self.dispatcher.try_notify(
                    sub.student_id,
                    ASSIGNMENT_GRADED,
                    "Assignment graded",
                    f'Your submission for "{assignment.title}" was graded: '
                    f"{_format_score(score)}/{_format_score(assignment.max_score)}",
                    related_id=sub.id,
                )
            )
        return result
