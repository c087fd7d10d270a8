from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Text, func

from coursework.db.base_class import Base


class Message(Base):
    # Only read here (unread counts); messaging itself lives elsewhere.
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
