from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from coursework.core.deps import get_assignments, get_attachments, get_db, get_grading, get_submissions
from coursework.core.permissions import (
    ensure_course_instructor,
    ensure_enrolled,
    require_instructor,
    require_student,
)
from coursework.models.submission_file import SubmissionFile
from coursework.models.user import User
from coursework.schemas.attachment import SubmissionFileRead
from coursework.schemas.submission import (
    GradeResponse,
    InstructorSubmissionRow,
    StudentSubmissionRead,
    SubmissionGradeUpdate,
    SubmissionRead,
    SubmitResponse,
)
from coursework.services.assignments import AssignmentRepository
from coursework.services.attachments import AttachmentStore, IncomingFile
from coursework.services.grading import GradingService
from coursework.services.submissions import SubmissionWorkflow, SubmitResult

router = APIRouter()


def _to_incoming(files: Optional[list[UploadFile]]) -> list[IncomingFile]:
    return [
        IncomingFile(name=f.filename or "", data=f.file.read(), content_type=f.content_type)
        for f in files or []
    ]


def _file_read(attachments: AttachmentStore, f: SubmissionFile) -> SubmissionFileRead:
    out = SubmissionFileRead.model_validate(f)
    out.file_url = attachments.url_for(f.file_path)
    return out


def _submit_response(attachments: AttachmentStore, result: SubmitResult) -> dict:
    return {
        "submission": result.submission,
        "files": [_file_read(attachments, f) for f in result.files],
        "failed_files": result.failed_files,
        "warnings": result.warnings,
    }


@router.post(
    "/assignments/{assignment_id}/submissions",
    response_model=SubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_assignment(
    assignment_id: int,
    content: str = Form(""),
    files: Optional[list[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    repo: AssignmentRepository = Depends(get_assignments),
    workflow: SubmissionWorkflow = Depends(get_submissions),
    attachments: AttachmentStore = Depends(get_attachments),
    me: User = Depends(require_student),
):
    assignment = repo.get(assignment_id)
    ensure_enrolled(db, assignment.course_id, me.id)

    result = workflow.submit(assignment_id, me.id, content, _to_incoming(files))
    return _submit_response(attachments, result)


@router.post(
    "/assignments/{assignment_id}/submissions/attachments",
    response_model=SubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
def attach_files(
    assignment_id: int,
    files: list[UploadFile] = File(...),
    db: Session = Depends(get_db),
    repo: AssignmentRepository = Depends(get_assignments),
    workflow: SubmissionWorkflow = Depends(get_submissions),
    attachments: AttachmentStore = Depends(get_attachments),
    me: User = Depends(require_student),
):
    assignment = repo.get(assignment_id)
    ensure_enrolled(db, assignment.course_id, me.id)

    result = workflow.attach(assignment_id, me.id, _to_incoming(files))
    return _submit_response(attachments, result)


@router.get(
    "/assignments/{assignment_id}/submissions",
    response_model=list[InstructorSubmissionRow],
)
def list_submissions_for_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    repo: AssignmentRepository = Depends(get_assignments),
    workflow: SubmissionWorkflow = Depends(get_submissions),
    instructor: User = Depends(require_instructor),
):
    assignment = repo.get(assignment_id)
    ensure_course_instructor(db, assignment.course_id, instructor)

    result = []
    for row in workflow.list_for_assignment(assignment_id):
        out = InstructorSubmissionRow.model_validate(
            {
                **SubmissionRead.model_validate(row.submission).model_dump(),
                "student_email": row.student_email,
                "student_name": row.student_name,
                "file_count": row.file_count,
            }
        )
        result.append(out)
    return result


@router.get(
    "/assignments/{assignment_id}/submissions/me",
    response_model=Optional[StudentSubmissionRead],
)
def my_submission(
    assignment_id: int,
    db: Session = Depends(get_db),
    repo: AssignmentRepository = Depends(get_assignments),
    workflow: SubmissionWorkflow = Depends(get_submissions),
    attachments: AttachmentStore = Depends(get_attachments),
    me: User = Depends(require_student),
):
    assignment = repo.get(assignment_id)
    ensure_enrolled(db, assignment.course_id, me.id)

    sub = workflow.get_for_student(assignment_id, me.id)
    if sub is None:
        return None

    out = StudentSubmissionRead.model_validate(sub)
    out.files = [_file_read(attachments, f) for f in attachments.list_submission_files(sub.id)]
    return out


@router.delete(
    "/submissions/{submission_id}/files/{file_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def remove_submission_file(
    submission_id: int,
    file_id: int,
    workflow: SubmissionWorkflow = Depends(get_submissions),
    me: User = Depends(require_student),
):
    sub = workflow.get(submission_id)
    if sub.student_id != me.id:
        raise HTTPException(status_code=403, detail="Not your submission")

    workflow.remove_attachment(submission_id, file_id)


@router.patch(
    "/submissions/{submission_id}/grade",
    response_model=GradeResponse,
)
def grade_submission(
    submission_id: int,
    payload: SubmissionGradeUpdate,
    db: Session = Depends(get_db),
    repo: AssignmentRepository = Depends(get_assignments),
    workflow: SubmissionWorkflow = Depends(get_submissions),
    grading: GradingService = Depends(get_grading),
    instructor: User = Depends(require_instructor),
):
    sub = workflow.get(submission_id)
    assignment = repo.get(sub.assignment_id)
    ensure_course_instructor(db, assignment.course_id, instructor)

    result = grading.grade(submission_id, payload.score, payload.feedback)
    return {"submission": result.submission, "warnings": result.warnings}
