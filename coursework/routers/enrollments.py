import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coursework.core.deps import get_db, get_dispatcher
from coursework.core.permissions import require_student
from coursework.models.course import Course
from coursework.models.enrollment import Enrollment
from coursework.models.notification import COURSE_ENROLLED
from coursework.models.user import User
from coursework.schemas.enrollment import EnrollmentCreate, EnrollmentOut
from coursework.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
def enroll_me(
    payload: EnrollmentCreate,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    me: User = Depends(require_student),
):
    course = db.query(Course).filter(Course.id == payload.course_id).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    enrollment = Enrollment(student_id=me.id, course_id=payload.course_id)
    db.add(enrollment)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Already enrolled")

    db.refresh(enrollment)

    warnings = dispatcher.try_notify(
        course.instructor_id,
        COURSE_ENROLLED,
        "New enrollment",
        f'A student joined "{course.title}"',
        related_id=course.id,
    )
    if warnings:
        logger.warning("Enrollment %s saved without instructor notification", enrollment.id)
    return enrollment


@router.get("/me", response_model=list[EnrollmentOut])
def my_enrollments(
    db: Session = Depends(get_db),
    me: User = Depends(require_student),
):
    return db.query(Enrollment).filter(Enrollment.student_id == me.id).all()
