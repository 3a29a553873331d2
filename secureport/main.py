"""
main.py — secureport FastAPI application entry point.

Start with: uvicorn secureport.main:app --reload --port 8000
(run from the repository root, where alembic.ini lives)
"""
import logging
import os
import subprocess
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from secureport.config import settings
from secureport.errors import AppError, ErrorKind
from secureport.schemas import ErrorBody, ErrorDetail, ErrorResponse

# ---------------------------------------------------------------------------
# Logging — configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def run_migrations() -> None:
    """Apply pending Alembic migrations; raises RuntimeError on failure."""
    result = subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        capture_output=True,
        text=True,
        cwd=PROJECT_ROOT,
    )
    if result.returncode != 0:
        logger.error("Alembic migration failed:\n%s", result.stderr)
        raise RuntimeError(f"Alembic migration failed: {result.stderr}")
    logger.info("Alembic: %s", result.stdout.strip() or "No pending migrations")


# ---------------------------------------------------------------------------
# Lifespan — startup & shutdown hooks
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Run Alembic migrations (when AUTO_MIGRATE is on)
      2. Initialize Redis connection pool (session tokens)
      3. Initialize the evidence object store
    Shutdown:
      1. Close Redis pool
      2. Dispose the database engine
    """
    if settings.auto_migrate:
        run_migrations()

    from secureport.cache import create_redis_pool
    app.state.redis = await create_redis_pool()

    from secureport.evidence import LocalObjectStore
    app.state.object_store = LocalObjectStore(settings.evidence_root, settings.public_base_url)
    logger.info("Evidence store rooted at %s", os.path.abspath(settings.evidence_root))

    logger.info("secureport v%s starting up", settings.app_version)
    yield

    # --- Shutdown ---
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")

    from secureport.database import get_engine
    await get_engine().dispose()
    logger.info("secureport shutting down")


# ---------------------------------------------------------------------------
# FastAPI application instance
# ---------------------------------------------------------------------------
app = FastAPI(
    title="secureport API",
    version=settings.app_version,
    description=(
        "Security incident reporting for plantation estates. Staff submit "
        "incident reports with photo evidence; managers review them on a "
        "region-scoped dashboard; executives manage users."
    ),
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# ---------------------------------------------------------------------------
# CORS middleware — restricted to frontend origins from settings
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


# ---------------------------------------------------------------------------
# Error response helper
# ---------------------------------------------------------------------------
def _make_error_response(
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Build a standard {error: {code, message, details}} response."""
    body = ErrorResponse(
        error=ErrorBody(
            code=code,
            message=message,
            details=[ErrorDetail(**d) for d in details or []],
        )
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


ERROR_STATUS = {
    ErrorKind.validation: 422,
    ErrorKind.transport: 502,
    ErrorKind.authentication: 401,
    ErrorKind.authorization: 403,
    ErrorKind.not_found: 404,
    ErrorKind.conflict: 409,
}


# ---------------------------------------------------------------------------
# Global exception handlers — registered BEFORE routers
# ---------------------------------------------------------------------------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Converts Pydantic / FastAPI 422 validation errors to standard format.
    Returns ALL field violations in one response.
    """
    details = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        details.append({"field": field or None, "issue": error["msg"]})
    return _make_error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        details=details,
        status_code=422,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        413: "FILE_TOO_LARGE",
        422: "VALIDATION_ERROR",
    }
    code = code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
    return _make_error_response(
        code=code,
        message=str(exc.detail),
        status_code=exc.status_code,
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """
    Maps the error taxonomy to HTTP status codes. Messages are user-safe;
    transport errors keep the backend's own error text.
    """
    status_code = ERROR_STATUS.get(exc.kind, 500)
    if exc.kind is ErrorKind.transport:
        logger.warning("Backend failure on %s %s: %s", request.method, request.url.path, exc.message)
    return _make_error_response(
        code=exc.kind.value,
        message=exc.message,
        details=exc.details,
        status_code=status_code,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Catch-all for unexpected errors.
    DEBUG=true  → includes exception type & message in details (dev only).
    DEBUG=false → generic message; full traceback logged server-side only.
    """
    logger.error(
        "Unhandled exception on %s %s",
        request.method,
        request.url.path,
        exc_info=True,
    )
    if settings.debug:
        details = [{"issue": f"{type(exc).__name__}: {exc}"}]
        message = "An unexpected error occurred (debug details included)"
    else:
        details = []
        message = "An unexpected error occurred"
    return _make_error_response(
        code="INTERNAL_ERROR",
        message=message,
        details=details,
        status_code=500,
    )


# ---------------------------------------------------------------------------
# Health endpoint (no auth required)
# ---------------------------------------------------------------------------
@app.get("/api/health", tags=["System"])
async def health_check() -> dict:
    return {
        "status": "ok",
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from secureport.admin.routes import router as admin_router  # noqa: E402
from secureport.auth.routes import router as auth_router  # noqa: E402
from secureport.profiles.routes import router as profile_router  # noqa: E402
from secureport.reports.routes import router as report_router  # noqa: E402

app.include_router(auth_router)
app.include_router(profile_router)
app.include_router(report_router)
app.include_router(admin_router)

# Public evidence URLs: {public_base_url}/{bucket}/{key}
app.mount("/storage", StaticFiles(directory=settings.evidence_root, check_dir=False), name="storage")
