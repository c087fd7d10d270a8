from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class AssignmentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    max_score: Optional[float] = Field(default=None, gt=0)


class AssignmentUpdate(BaseModel):
    course_id: Optional[int] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    max_score: Optional[float] = Field(default=None, gt=0)


class AssignmentStatusUpdate(BaseModel):
    status: Literal["draft", "published", "active", "archived", "completed"]


class AssignmentRead(BaseModel):
    id: int
    course_id: int
    title: str
    description: Optional[str]
    due_date: Optional[datetime]
    created_by: int
    status: str
    max_score: float
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AssignmentStatusRead(BaseModel):
    assignment: AssignmentRead
    warnings: list[str] = []


class AssignmentDeleteRead(BaseModel):
    assignment_id: int
    documents: int
    submission_files: int
    submissions: int
    warnings: list[str] = []
