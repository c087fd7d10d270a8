from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from coursework.core.current_user import get_current_user
from coursework.core.deps import get_db
from coursework.core.permissions import INSTRUCTOR, require_instructor
from coursework.models.course import Course
from coursework.models.enrollment import Enrollment
from coursework.models.user import User
from coursework.schemas.course import CourseCreate, CourseRead

router = APIRouter()


@router.get("/", response_model=list[CourseRead])
def list_courses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return db.query(Course).order_by(Course.id.asc()).all()


@router.post("/", response_model=CourseRead, status_code=status.HTTP_201_CREATED)
def create_course(
    payload: CourseCreate,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    course = Course(
        title=payload.title,
        description=payload.description,
        instructor_id=instructor.id,
    )
    db.add(course)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(course)
    return course


@router.get("/me", response_model=list[CourseRead])
def my_courses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if current_user.role == INSTRUCTOR:
        return db.query(Course).filter(Course.instructor_id == current_user.id).all()

    return (
        db.query(Course)
        .join(Enrollment, Enrollment.course_id == Course.id)
        .filter(Enrollment.student_id == current_user.id)
        .all()
    )
