import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from coursework.core.errors import CascadeFailure, CourseworkError
from coursework.core.logging_config import setup_logging
from coursework.core.logging_middleware import LoggingMiddleware
from coursework.db.init_db import init_db

from coursework.routers.assignments import router as assignments_router
from coursework.routers.courses import router as courses_router
from coursework.routers.documents import router as documents_router
from coursework.routers.enrollments import router as enrollments_router
from coursework.routers.files import router as files_router
from coursework.routers.notifications import router as notifications_router
from coursework.routers.stats import router as stats_router
from coursework.routers.submissions import router as submissions_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Coursework Engine")

# Middleware
app.add_middleware(LoggingMiddleware)


@app.exception_handler(CourseworkError)
def coursework_error_handler(request: Request, exc: CourseworkError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    else:
        logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.detail)

    body = {"detail": exc.detail, "code": exc.code}
    if isinstance(exc, CascadeFailure):
        body["step"] = exc.step
    return JSONResponse(status_code=exc.status_code, content=body)


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
app.include_router(courses_router, prefix="/courses", tags=["courses"])
app.include_router(enrollments_router, prefix="/enrollments", tags=["enrollments"])
app.include_router(assignments_router, tags=["assignments"])
app.include_router(documents_router, tags=["documents"])
app.include_router(submissions_router, tags=["submissions"])
app.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
app.include_router(stats_router, prefix="/stats", tags=["stats"])
app.include_router(files_router, prefix="/files", tags=["files"])
