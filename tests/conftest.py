import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

TEST_DB_FILE = "test_coursework.db"
TEST_BLOB_ROOT = tempfile.mkdtemp(prefix="coursework-blobs-")

# Settings are read once at import time, so the environment goes first.
os.environ["DATABASE_URL"] = f"sqlite:///./{TEST_DB_FILE}"
os.environ["BLOB_ROOT"] = TEST_BLOB_ROOT
os.environ["FILES_BASE_URL"] = "http://testserver/files"
os.environ["JWT_SECRET"] = "test-secret"

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from coursework.core.config import settings  # noqa: E402
from coursework.core.deps import get_blob_store, get_db  # noqa: E402
from coursework.db.base import Base  # noqa: E402
from coursework.db.session import SessionLocal as TestingSessionLocal  # noqa: E402
from coursework.db.session import engine  # noqa: E402
from coursework.main import app  # noqa: E402
from coursework.models.assignment import PUBLISHED, Assignment  # noqa: E402
from coursework.models.course import Course  # noqa: E402
from coursework.models.enrollment import Enrollment  # noqa: E402
from coursework.models.user import User  # noqa: E402
from coursework.services.assignments import AssignmentRepository  # noqa: E402
from coursework.services.attachments import AttachmentStore, IncomingFile  # noqa: E402
from coursework.services.blob_store import BlobStoreError, LocalBlobStore  # noqa: E402
from coursework.services.grading import GradingService  # noqa: E402
from coursework.services.notifications import NotificationDispatcher  # noqa: E402
from coursework.services.stats import StatsAggregator  # noqa: E402
from coursework.services.submissions import SubmissionWorkflow  # noqa: E402


class FlakyBlobStore(LocalBlobStore):
    """Fails uploads whose path mentions 'broken' (store error) or 'offline' (transport error)."""

    def upload(self, bucket: str, path: str, data: bytes) -> str:
        if "broken" in path:
            raise BlobStoreError("simulated outage")
        if "offline" in path:
            raise ConnectionError("object store unreachable")
        return super().upload(bucket, path, data)


@dataclass
class Seed:
    instructor_id: int
    student_id: int
    student2_id: int
    outsider_id: int
    course_id: int
    assignment_id: int


def pdf(name: str = "report.pdf", size: int = 128) -> IncomingFile:
    return IncomingFile(name=name, data=b"%PDF" + b"x" * (size - 4), content_type="application/pdf")


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)
    shutil.rmtree(TEST_BLOB_ROOT, ignore_errors=True)


@pytest.fixture(autouse=True)
def seed() -> Seed:
    """Seed a clean minimal dataset for each test."""
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()

        instructor = User(email="instructor1@example.com", full_name="Instructor One", role="instructor")
        student = User(email="student1@example.com", full_name="Student One", role="student")
        student2 = User(email="student2@example.com", full_name="Student Two", role="student")
        outsider = User(email="outsider@example.com", full_name="Not Enrolled", role="student")
        db.add_all([instructor, student, student2, outsider])
        db.commit()

        course = Course(title="CS5004", instructor_id=instructor.id)
        db.add(course)
        db.commit()

        db.add_all(
            [
                Enrollment(course_id=course.id, student_id=student.id),
                Enrollment(course_id=course.id, student_id=student2.id),
            ]
        )

        # Published, due tomorrow
        assignment = Assignment(
            course_id=course.id,
            title="HW1",
            due_date=datetime.now(timezone.utc) + timedelta(days=1),
            created_by=instructor.id,
            status=PUBLISHED,
            max_score=10,
        )
        db.add(assignment)
        db.commit()

        yield Seed(
            instructor_id=instructor.id,
            student_id=student.id,
            student2_id=student2.id,
            outsider_id=outsider.id,
            course_id=course.id,
            assignment_id=assignment.id,
        )
    finally:
        db.close()


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def blobs(tmp_path) -> FlakyBlobStore:
    return FlakyBlobStore(root=str(tmp_path / "blobs"))


@pytest.fixture()
def dispatcher(db) -> NotificationDispatcher:
    return NotificationDispatcher(db)


@pytest.fixture()
def attachments(db, blobs, dispatcher) -> AttachmentStore:
    return AttachmentStore(db, blobs, dispatcher)


@pytest.fixture()
def repo(db, blobs, dispatcher) -> AssignmentRepository:
    return AssignmentRepository(db, dispatcher, blobs)


@pytest.fixture()
def workflow(db, attachments, dispatcher) -> SubmissionWorkflow:
    return SubmissionWorkflow(db, attachments, dispatcher)


@pytest.fixture()
def grading(db, dispatcher) -> GradingService:
    return GradingService(db, dispatcher)


@pytest.fixture()
def stats(db) -> StatsAggregator:
    return StatsAggregator(db)


def make_token(user_id: int) -> str:
    payload = {
        "sub": str(user_id),
        "aud": settings.JWT_AUDIENCE,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_header(user_id: int) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture()
def client(blobs):
    """Test client that uses the test DB session and blob store via dependency overrides."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blobs
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
