from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from coursework.db.session import SessionLocal
from coursework.services.assignments import AssignmentRepository
from coursework.services.attachments import AttachmentStore
from coursework.services.blob_store import BlobStore, LocalBlobStore
from coursework.services.grading import GradingService
from coursework.services.notifications import NotificationDispatcher
from coursework.services.stats import StatsAggregator
from coursework.services.submissions import SubmissionWorkflow


# every request that needs DB will get a fresh session, and it will always close.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache()
def get_blob_store() -> BlobStore:
    return LocalBlobStore()


# Services are built per request on top of the request's session.
def get_dispatcher(db: Session = Depends(get_db)) -> NotificationDispatcher:
    return NotificationDispatcher(db)


def get_attachments(
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AttachmentStore:
    return AttachmentStore(db, blobs, dispatcher)


def get_assignments(
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AssignmentRepository:
    return AssignmentRepository(db, dispatcher, blobs)


def get_submissions(
    db: Session = Depends(get_db),
    attachments: AttachmentStore = Depends(get_attachments),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> SubmissionWorkflow:
    return SubmissionWorkflow(db, attachments, dispatcher)


def get_grading(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> GradingService:
    return GradingService(db, dispatcher)


def get_stats(db: Session = Depends(get_db)) -> StatsAggregator:
    return StatsAggregator(db)
