from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SubmissionFileRead(BaseModel):
    id: int
    submission_id: int
    file_name: str
    file_path: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    uploaded_at: datetime
    file_url: Optional[str] = None

    class Config:
        from_attributes = True


class AssignmentDocumentRead(BaseModel):
    id: int
    assignment_id: int
    title: str
    file_name: str
    file_path: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    uploaded_by: int
    created_at: datetime
    file_url: Optional[str] = None

    class Config:
        from_attributes = True


class DocumentUploadRead(BaseModel):
    document: AssignmentDocumentRead
    warnings: list[str] = []
