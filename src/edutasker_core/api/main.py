"""EduTasker Core FastAPI application."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from ..config import get_settings
from ..errors import OrderingError
from ..sibling_repository import is_retryable
from .routers import boards, projects, tasks, users

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("edutasker-core")

logger.info("Starting EduTasker Core API")

# Create FastAPI app
app = FastAPI(
    title="EduTasker Core API",
    description="Projects, ordered boards and ordered tasks",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError):
    """Map typed ordering failures to their HTTP status."""
    if exc.status_code >= 409:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(DBAPIError)
async def database_error_handler(request: Request, exc: DBAPIError):
    """Report a busy or deadlocked database as a conflict the client may retry."""
    if is_retryable(exc):
        logger.warning(f"{request.method} {request.url.path} -> 409: database busy ({exc.orig})")
        return JSONResponse(
            status_code=409,
            content={"detail": "Database is busy; retry the request", "code": "conflict"},
        )
    logger.error(f"{request.method} {request.url.path} -> 500: {exc.orig}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "code": "internal"},
    )


# Include all business logic routers with /api/v1 prefix
app.include_router(users.router, prefix="/api/v1/users")
app.include_router(projects.router, prefix="/api/v1/projects")
app.include_router(boards.router, prefix="/api/v1/projects/{project_id}/boards")
app.include_router(tasks.router, prefix="/api/v1/projects/{project_id}/tasks")


@app.get("/")
def root():
    """Root endpoint with server info."""
    return {
        "name": "EduTasker Core API",
        "version": "1.0.0",
        "docs": "/docs",
        "description": "Projects, ordered boards and ordered tasks",
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
