import logging
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from coursework.core.config import settings
from coursework.core.errors import NotFound, ValidationError
from coursework.models.enrollment import ENROLLED, Enrollment
from coursework.models.message import Message
from coursework.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Writes notification rows for domain events and tracks their read state.

    Every notification is a durable row; read state lives only in
    ``notifications.is_read``.
    """

    def __init__(self, db: Session):
        self.db = db

    def _build(
        self,
        recipient_id: int,
        type: str,
        title: str,
        content: str,
        related_id: Optional[int],
    ) -> Notification:
        if not type or not title or not title.strip():
            raise ValidationError("Notification type and title are required")
        return Notification(
            user_id=recipient_id,
            type=type,
            title=title,
            content=content,
            is_read=False,
            related_id=related_id,
        )

    def notify(
        self,
        recipient_id: int,
        type: str,
        title: str,
        content: str,
        related_id: Optional[int] = None,
    ) -> Notification:
        n = self._build(recipient_id, type, title, content, related_id)
        self.db.add(n)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(n)
        return n

    def notify_many(
        self,
        recipient_ids: Iterable[int],
        type: str,
        title: str,
        content: str,
        related_id: Optional[int] = None,
    ) -> list[Notification]:
        rows = [self._build(r, type, title, content, related_id) for r in recipient_ids]
        if not rows:
            return []
        self.db.add_all(rows)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return rows

    def try_notify(
        self,
        recipient_id: int,
        type: str,
        title: str,
        content: str,
        related_id: Optional[int] = None,
    ) -> list[str]:
        """Like ``notify`` but returns failures as warnings instead of raising.

        Used after a primary write has already been committed.
        """
        try:
            self.notify(recipient_id, type, title, content, related_id)
        except SQLAlchemyError as e:
            logger.warning("Notification %s to user %s failed: %s", type, recipient_id, e)
            return [f"Notification '{type}' could not be delivered"]
        return []

    def notify_course_students(
        self,
        course_id: int,
        type: str,
        title: str,
        content: str,
        related_id: Optional[int] = None,
    ) -> list[str]:
        try:
            student_ids = [
                row.student_id
                for row in self.db.query(Enrollment.student_id)
                .filter(Enrollment.course_id == course_id, Enrollment.status == ENROLLED)
                .all()
            ]
            self.notify_many(student_ids, type, title, content, related_id)
        except SQLAlchemyError as e:
            logger.warning("Notification %s to course %s failed: %s", type, course_id, e)
            return [f"Notification '{type}' could not be delivered"]
        return []

    def list_for(self, recipient_id: int, limit: Optional[int] = None) -> list[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == recipient_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit or settings.NOTIFICATION_LIST_LIMIT)
            .all()
        )

    def mark_read(self, notification_id: int, recipient_id: int) -> Notification:
        n = (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == recipient_id)
            .first()
        )
        if not n:
            raise NotFound("Notification not found")

        n.is_read = True
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(n)
        return n

    def mark_all_read(self, recipient_id: int) -> int:
        changed = (
            self.db.query(Notification)
            .filter(Notification.user_id == recipient_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return changed

    def unread_count(self, recipient_id: int) -> dict:
        messages = (
            self.db.query(func.count(Message.id))
            .filter(Message.receiver_id == recipient_id, Message.is_read.is_(False))
            .scalar()
        ) or 0

        notifications = (
            self.db.query(func.count(Notification.id))
            .filter(Notification.user_id == recipient_id, Notification.is_read.is_(False))
            .scalar()
        ) or 0

        return {
            "messages": int(messages),
            "notifications": int(notifications),
            "poll_interval_seconds": settings.UNREAD_POLL_SECONDS,
        }
