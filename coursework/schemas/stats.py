from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class InstructorStats(BaseModel):
    courses: int
    students: int
    documents: int
    assignments: int


class StudentStats(BaseModel):
    enrolled_courses: int
    submissions: int
    average_grade: str  # one decimal, "0.0" when nothing graded


class StudentGradeRow(BaseModel):
    submission_id: int
    assignment_id: int
    assignment_title: str
    due_date: Optional[datetime] = None
    course_id: int
    course_title: str

    status: str  # "submitted" | "late" | "graded"
    submitted_at: Optional[datetime] = None
    grade: Optional[float] = None
    max_score: float
    percentage: Optional[float] = None
    feedback: Optional[str] = None
    graded_at: Optional[datetime] = None


class UpcomingAssignment(BaseModel):
    id: int
    title: str
    due_date: datetime
    course_id: int
    course_title: str
    urgency_status: str  # "urgent" | "due_soon" | "upcoming"
