from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from coursework.schemas.attachment import SubmissionFileRead


class SubmissionRead(BaseModel):
    id: int
    assignment_id: int
    student_id: int
    content: Optional[str]
    status: str  # "pending" | "submitted" | "late" | "graded"
    submitted_at: Optional[datetime] = None
    grade: Optional[float] = None
    feedback: Optional[str] = None
    graded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StudentSubmissionRead(SubmissionRead):
    files: list[SubmissionFileRead] = []


class InstructorSubmissionRow(SubmissionRead):
    student_email: str
    student_name: Optional[str] = None
    file_count: int = 0


class SubmitResponse(BaseModel):
    submission: SubmissionRead
    files: list[SubmissionFileRead] = []
    failed_files: dict[str, str] = {}
    warnings: list[str] = []


class SubmissionGradeUpdate(BaseModel):
    score: float = Field(allow_inf_nan=False)
    feedback: Optional[str] = None


class GradeResponse(BaseModel):
    submission: SubmissionRead
    warnings: list[str] = []
