from fastapi import APIRouter, Depends

from coursework.core.current_user import get_current_user
from coursework.core.deps import get_stats
from coursework.core.permissions import INSTRUCTOR, require_student
from coursework.models.user import User
from coursework.schemas.stats import InstructorStats, StudentGradeRow, StudentStats, UpcomingAssignment
from coursework.services.stats import StatsAggregator

router = APIRouter()


@router.get("/me", response_model=InstructorStats | StudentStats)
def my_stats(
    stats: StatsAggregator = Depends(get_stats),
    me: User = Depends(get_current_user),
):
    if me.role == INSTRUCTOR:
        return InstructorStats(**stats.instructor(me.id))
    return StudentStats(**stats.student(me.id))


@router.get("/me/grades", response_model=list[StudentGradeRow])
def my_grades(
    stats: StatsAggregator = Depends(get_stats),
    me: User = Depends(require_student),
):
    return stats.grades_for_student(me.id)


@router.get("/me/upcoming", response_model=list[UpcomingAssignment])
def my_upcoming(
    limit: int | None = None,
    stats: StatsAggregator = Depends(get_stats),
    me: User = Depends(require_student),
):
    return stats.upcoming_for_student(me.id, limit=limit)
