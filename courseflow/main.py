"""FastAPI main application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from courseflow.config import settings
from courseflow.database import Base, engine
from courseflow.exceptions import PartialFailureError, UpstreamError
from courseflow.logging_config import configure_logging
from courseflow.routers import (
    assignments,
    branches,
    content,
    courses,
    groups,
    merge_requests,
    progress,
    versions,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    configure_logging(settings.LOG_LEVEL)
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
    logger.info("Course lifecycle service started")
    yield


app = FastAPI(
    title="Course Lifecycle Service",
    description="Versioning, branching and merge requests for course content",
    version="1.0.0",
    lifespan=lifespan,
)

# Add session middleware
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    max_age=86400 * 7,  # 7 days
)

# Include routers
app.include_router(courses.router)
app.include_router(versions.router)
app.include_router(branches.router)
app.include_router(merge_requests.router)
app.include_router(content.router)
app.include_router(assignments.router)
app.include_router(groups.router)
app.include_router(progress.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.exception_handler(PartialFailureError)
async def partial_failure_handler(request: Request, exc: PartialFailureError):
    """A multi-step operation failed midway and was rolled back."""
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Operation failed and was rolled back",
            "error": "partial_failure",
            "operation": exc.operation,
            "step": exc.step,
            "ids": exc.ids,
        },
    )


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    return JSONResponse(
        status_code=503,
        content={"detail": "Storage unavailable", "error": "upstream", "operation": exc.operation},
    )
