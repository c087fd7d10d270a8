import logging
import mimetypes
import os
import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from coursework.core.config import settings
from coursework.core.errors import NotFound, StorageFailure, ValidationError
from coursework.models.assignment import Assignment
from coursework.models.assignment_document import AssignmentDocument
from coursework.models.notification import DOCUMENT_UPLOADED
from coursework.models.submission import Submission
from coursework.models.submission_file import SubmissionFile
from coursework.services.blob_store import BlobStore, BlobStoreError, safe_filename

logger = logging.getLogger(__name__)


@dataclass
class IncomingFile:
    """File bytes handed to the engine by the presentation layer."""

    name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class DocumentUploadResult:
    document: AssignmentDocument
    warnings: list[str] = field(default_factory=list)


def _extension(filename: str) -> str:
    return os.path.splitext(filename)[1].lower()


class AttachmentStore:
    """Puts file bytes into the blob store and records their metadata rows.

    Bytes never pass through the database. A metadata row is only written
    after the upload succeeded, so no row points at a missing blob.
    """

    def __init__(self, db: Session, blobs: BlobStore, dispatcher=None):
        self.db = db
        self.blobs = blobs
        self.dispatcher = dispatcher
        self.bucket = settings.ASSIGNMENT_FILES_BUCKET

    def validate(self, file: IncomingFile, max_bytes: int) -> None:
        if not file.name or not file.name.strip():
            raise ValidationError("File name is required")
        if _extension(file.name) not in settings.ALLOWED_FILE_EXTENSIONS:
            raise ValidationError(f"File type not allowed: {file.name}")
        if file.size == 0:
            raise ValidationError(f"File is empty: {file.name}")
        if file.size > max_bytes:
            raise ValidationError(
                f"File {file.name} exceeds {max_bytes // (1024 * 1024)}MB limit"
            )

    def url_for(self, path: str) -> str:
        return self.blobs.get_url(self.bucket, path)

    def _put(self, folder: str, file: IncomingFile) -> str:
        path = f"{folder}/{uuid.uuid4().hex}_{safe_filename(file.name)}"
        try:
            return self.blobs.upload(self.bucket, path, file.data)
        except BlobStoreError as e:
            raise StorageFailure(f"Upload of {file.name} failed: {e}") from e
        except Exception as e:
            logger.warning("Unexpected error uploading %s: %r", path, e)
            raise StorageFailure(f"Upload of {file.name} failed: {e}") from e

    def _discard(self, path: str) -> None:
        try:
            self.blobs.delete(self.bucket, path)
        except BlobStoreError as e:
            logger.warning("Could not remove orphan blob %s: %s", path, e)

    def _content_type(self, file: IncomingFile) -> Optional[str]:
        return file.content_type or mimetypes.guess_type(file.name)[0]

    # ---------- submission files ----------

    def store_submission_file(self, submission: Submission, file: IncomingFile) -> SubmissionFile:
        """Upload one file for an existing submission and record it."""
        self.validate(file, settings.SUBMISSION_FILE_MAX_BYTES)

        path = self._put(f"submissions/{submission.id}", file)

        row = SubmissionFile(
            submission_id=submission.id,
            file_name=file.name,
            file_path=path,
            file_type=self._content_type(file),
            file_size=file.size,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._discard(path)
            raise

        self.db.refresh(row)
        return row

    def list_submission_files(self, submission_id: int) -> list[SubmissionFile]:
        return (
            self.db.query(SubmissionFile)
            .filter(SubmissionFile.submission_id == submission_id)
            .order_by(SubmissionFile.uploaded_at.desc(), SubmissionFile.id.desc())
            .all()
        )

    def delete_submission_file(self, file: SubmissionFile) -> None:
        try:
            self.blobs.delete(self.bucket, file.file_path)
        except BlobStoreError as e:
            raise StorageFailure(f"Could not delete {file.file_name}: {e}") from e

        self.db.delete(file)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # ---------- assignment documents ----------

    def upload_document(
        self,
        assignment_id: int,
        file: IncomingFile,
        uploaded_by: int,
        title: Optional[str] = None,
    ) -> DocumentUploadResult:
        assignment = self.db.query(Assignment).filter(Assignment.id == assignment_id).first()
        if not assignment:
            raise NotFound("Assignment not found")

        self.validate(file, settings.DOCUMENT_FILE_MAX_BYTES)

        path = self._put(f"assignments/{assignment_id}", file)

        document = AssignmentDocument(
            assignment_id=assignment_id,
            title=(title or "").strip() or file.name,
            file_name=file.name,
            file_path=path,
            file_type=self._content_type(file),
            file_size=file.size,
            uploaded_by=uploaded_by,
        )
        self.db.add(document)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            self._discard(path)
            raise

        self.db.refresh(document)
        logger.info("Document %s uploaded to assignment %s", document.id, assignment_id)

        result = DocumentUploadResult(document=document)
        if self.dispatcher is not None:
            result.warnings.extend(
                self.dispatcher.notify_course_students(
                    assignment.course_id,
                    DOCUMENT_UPLOADED,
                    "New document uploaded",
                    f'A new document "{document.title}" was added to assignment "{assignment.title}"',
                    related_id=document.id,
                )
            )
        return result

    def list_documents(self, assignment_id: int) -> list[AssignmentDocument]:
        return (
            self.db.query(AssignmentDocument)
            .filter(AssignmentDocument.assignment_id == assignment_id)
            .order_by(AssignmentDocument.created_at.desc(), AssignmentDocument.id.desc())
            .all()
        )

    def remove_document(self, assignment_id: int, document_id: int) -> None:
        document = (
            self.db.query(AssignmentDocument)
            .filter(
                AssignmentDocument.id == document_id,
                AssignmentDocument.assignment_id == assignment_id,
            )
            .first()
        )
        if not document:
            raise NotFound("Document not found")

        try:
            self.blobs.delete(self.bucket, document.file_path)
        except BlobStoreError as e:
            raise StorageFailure(f"Could not delete {document.file_name}: {e}") from e

        self.db.delete(document)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
