from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from coursework.core.current_user import get_current_user
from coursework.core.deps import get_assignments, get_attachments, get_db
from coursework.core.permissions import ensure_enrolled, require_instructor
from coursework.models.assignment_document import AssignmentDocument
from coursework.models.user import User
from coursework.schemas.attachment import AssignmentDocumentRead, DocumentUploadRead
from coursework.services.assignments import AssignmentRepository
from coursework.services.attachments import AttachmentStore, IncomingFile

router = APIRouter()


def _document_read(attachments: AttachmentStore, d: AssignmentDocument) -> AssignmentDocumentRead:
    out = AssignmentDocumentRead.model_validate(d)
    out.file_url = attachments.url_for(d.file_path)
    return out


@router.post(
    "/assignments/{assignment_id}/documents",
    response_model=DocumentUploadRead,
    status_code=status.HTTP_201_CREATED,
)
def upload_document(
    assignment_id: int,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    repo: AssignmentRepository = Depends(get_assignments),
    attachments: AttachmentStore = Depends(get_attachments),
    instructor: User = Depends(require_instructor),
):
    a = repo.get(assignment_id)
    if a.created_by != instructor.id:
        raise HTTPException(status_code=403, detail="Only the assignment creator can upload documents")

    incoming = IncomingFile(name=file.filename or "", data=file.file.read(), content_type=file.content_type)
    result = attachments.upload_document(assignment_id, incoming, instructor.id, title=title)
    return {"document": _document_read(attachments, result.document), "warnings": result.warnings}


@router.get("/assignments/{assignment_id}/documents", response_model=list[AssignmentDocumentRead])
def list_documents(
    assignment_id: int,
    db: Session = Depends(get_db),
    repo: AssignmentRepository = Depends(get_assignments),
    attachments: AttachmentStore = Depends(get_attachments),
    current_user: User = Depends(get_current_user),
):
    a = repo.get(assignment_id)
    if a.created_by != current_user.id:
        ensure_enrolled(db, a.course_id, current_user.id)

    return [_document_read(attachments, d) for d in attachments.list_documents(assignment_id)]


@router.delete("/assignments/{assignment_id}/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    assignment_id: int,
    document_id: int,
    repo: AssignmentRepository = Depends(get_assignments),
    attachments: AttachmentStore = Depends(get_attachments),
    instructor: User = Depends(require_instructor),
):
    a = repo.get(assignment_id)
    if a.created_by != instructor.id:
        raise HTTPException(status_code=403, detail="Only the assignment creator can remove documents")

    attachments.remove_document(assignment_id, document_id)
