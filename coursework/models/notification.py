from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func

from coursework.db.base_class import Base

# Notification types
ASSIGNMENT_CREATED = "assignment_created"
ASSIGNMENT_SUBMITTED = "assignment_submitted"
ASSIGNMENT_GRADED = "assignment_graded"
DOCUMENT_UPLOADED = "document_uploaded"
COURSE_ENROLLED = "course_enrolled"
MESSAGE = "message"
SYSTEM = "system"


class Notification(Base):
    # Independent lifecycle: never removed by assignment deletion.
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, default=SYSTEM)
    is_read = Column(Boolean, nullable=False, default=False)
    related_id = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
