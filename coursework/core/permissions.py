from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from coursework.core.current_user import get_current_user
from coursework.models.course import Course
from coursework.models.enrollment import ENROLLED, Enrollment
from coursework.models.user import User

INSTRUCTOR = "instructor"
STUDENT = "student"


def require_instructor(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != INSTRUCTOR:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Instructor role required",
        )
    return current_user


def require_student(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != STUDENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Student role required",
        )
    return current_user


def ensure_course_instructor(db: Session, course_id: int, user: User) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    if course.instructor_id != user.id:
        raise HTTPException(status_code=403, detail="Not course instructor")
    return course


def ensure_enrolled(db: Session, course_id: int, student_id: int) -> None:
    enrolled = (
        db.query(Enrollment)
        .filter(
            Enrollment.course_id == course_id,
            Enrollment.student_id == student_id,
            Enrollment.status == ENROLLED,
        )
        .first()
        is not None
    )
    if not enrolled:
        raise HTTPException(status_code=403, detail="Not enrolled in this course")
