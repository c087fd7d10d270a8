from fastapi import APIRouter, Depends

from coursework.core.current_user import get_current_user
from coursework.core.deps import get_dispatcher
from coursework.models.user import User
from coursework.schemas.notification import MarkAllReadResult, NotificationRead, UnreadCounts
from coursework.services.notifications import NotificationDispatcher

router = APIRouter()


@router.get("", response_model=list[NotificationRead])
def my_notifications(
    limit: int | None = None,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    me: User = Depends(get_current_user),
):
    return dispatcher.list_for(me.id, limit=limit)


# Clients poll this every poll_interval_seconds; there is no push channel.
@router.get("/unread-count", response_model=UnreadCounts)
def unread_count(
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    me: User = Depends(get_current_user),
):
    return dispatcher.unread_count(me.id)


@router.post("/read-all", response_model=MarkAllReadResult)
def mark_all_read(
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    me: User = Depends(get_current_user),
):
    return {"updated": dispatcher.mark_all_read(me.id)}


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    me: User = Depends(get_current_user),
):
    return dispatcher.mark_read(notification_id, me.id)
