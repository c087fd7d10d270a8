from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from coursework.core.current_user import get_current_user
from coursework.core.deps import get_assignments, get_db
from coursework.core.permissions import (
    INSTRUCTOR,
    ensure_course_instructor,
    ensure_enrolled,
    require_instructor,
)
from coursework.models.assignment import DRAFT, Assignment
from coursework.models.course import Course
from coursework.models.user import User
from coursework.schemas.assignment import (
    AssignmentCreate,
    AssignmentDeleteRead,
    AssignmentRead,
    AssignmentStatusRead,
    AssignmentStatusUpdate,
    AssignmentUpdate,
)
from coursework.services.assignments import AssignmentRepository

router = APIRouter()


def _ensure_course_exists(db: Session, course_id: int) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def _ensure_owner(repo: AssignmentRepository, assignment_id: int, user: User) -> Assignment:
    a = repo.get(assignment_id)
    if a.created_by != user.id:
        raise HTTPException(status_code=403, detail="Only the assignment creator can change it")
    return a


@router.get("/courses/{course_id}/assignments", response_model=list[AssignmentRead])
def list_assignments(
    course_id: int,
    db: Session = Depends(get_db),
    repo: AssignmentRepository = Depends(get_assignments),
    current_user: User = Depends(get_current_user),
):
    course = _ensure_course_exists(db, course_id)

    if current_user.role == INSTRUCTOR and course.instructor_id == current_user.id:
        return repo.list_for_course(course_id)

    # students only see assignments that left the draft state
    ensure_enrolled(db, course_id, current_user.id)
    return [a for a in repo.list_for_course(course_id) if a.status != DRAFT]


@router.post(
    "/courses/{course_id}/assignments",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_assignment(
    course_id: int,
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    repo: AssignmentRepository = Depends(get_assignments),
    instructor: User = Depends(require_instructor),
):
    ensure_course_instructor(db, course_id, instructor)

    return repo.create(
        course_id=course_id,
        title=payload.title,
        creator_id=instructor.id,
        description=payload.description,
        due_date=payload.due_date,
        max_score=payload.max_score,
    )


@router.get("/assignments/{assignment_id}", response_model=AssignmentRead)
def get_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    repo: AssignmentRepository = Depends(get_assignments),
    current_user: User = Depends(get_current_user),
):
    a = repo.get(assignment_id)
    if a.created_by != current_user.id:
        ensure_enrolled(db, a.course_id, current_user.id)
        if a.status == DRAFT:
            raise HTTPException(status_code=404, detail="Assignment not found")
    return a


@router.patch("/assignments/{assignment_id}", response_model=AssignmentRead)
def update_assignment(
    assignment_id: int,
    payload: AssignmentUpdate,
    db: Session = Depends(get_db),
    repo: AssignmentRepository = Depends(get_assignments),
    instructor: User = Depends(require_instructor),
):
    _ensure_owner(repo, assignment_id, instructor)

    fields = payload.model_dump(exclude_unset=True)
    if "course_id" in fields:
        ensure_course_instructor(db, fields["course_id"], instructor)

    return repo.update(assignment_id, fields)


@router.post("/assignments/{assignment_id}/status", response_model=AssignmentStatusRead)
def change_assignment_status(
    assignment_id: int,
    payload: AssignmentStatusUpdate,
    repo: AssignmentRepository = Depends(get_assignments),
    instructor: User = Depends(require_instructor),
):
    _ensure_owner(repo, assignment_id, instructor)
    result = repo.set_status(assignment_id, payload.status)
    return {"assignment": result.assignment, "warnings": result.warnings}


@router.delete("/assignments/{assignment_id}", response_model=AssignmentDeleteRead)
def delete_assignment(
    assignment_id: int,
    repo: AssignmentRepository = Depends(get_assignments),
    instructor: User = Depends(require_instructor),
):
    _ensure_owner(repo, assignment_id, instructor)
    result = repo.delete(assignment_id)
    return {
        "assignment_id": result.assignment_id,
        "documents": result.documents,
        "submission_files": result.submission_files,
        "submissions": result.submissions,
        "warnings": result.warnings,
    }
