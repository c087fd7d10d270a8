# Import every model so Base.metadata knows all tables (init_db, alembic).
from coursework.db.base_class import Base  # noqa: F401
from coursework.models import (  # noqa: F401
    assignment,
    assignment_document,
    course,
    course_document,
    enrollment,
    message,
    notification,
    submission,
    submission_file,
    user,
)
