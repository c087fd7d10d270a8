from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Database
    DATABASE_URL: str = "sqlite:///./coursework.db"

    # Tokens are issued by the identity provider; we only verify them.
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"

    # Blob storage
    BLOB_ROOT: str = "var/blobs"
    FILES_BASE_URL: str = "http://localhost:8000/files"
    SIGNED_URL_TTL_SECONDS: int = 60
    ASSIGNMENT_FILES_BUCKET: str = "assignment-files"

    # Upload limits
    SUBMISSION_FILE_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB
    DOCUMENT_FILE_MAX_BYTES: int = 20 * 1024 * 1024  # 20MB
    ALLOWED_FILE_EXTENSIONS: set[str] = {".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png", ".zip"}

    # Assignments
    DEFAULT_MAX_SCORE: float = 10.0
    UPCOMING_LIMIT: int = 5

    # Notifications
    UNREAD_POLL_SECONDS: int = 30
    NOTIFICATION_LIST_LIMIT: int = 20

    LOG_LEVEL: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
