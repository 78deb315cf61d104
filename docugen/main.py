"""
Main FastAPI application for the DocuGen backend.
Handles CORS, request logging middleware, error mapping, lifespan events, and router registration.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docugen.config import settings
from docugen.database import close_db, init_db
from docugen.exceptions import (
    AuthError,
    DocuGenError,
    EditorStateError,
    ExportError,
    GenerationError,
    SectionNotFoundError,
    StoreError,
)
from docugen.routers import editor, health, projects, session
from docugen.services.shell import shell_registry

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _check_database() -> bool:
    """Create the tables and verify the connection. Never raises."""
    try:
        ready = await init_db()
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        return False
    if ready:
        logger.info("✓ Database connection OK")
    return ready


def _check_providers() -> None:
    """Warn about missing credentials; the affected features fail per request."""
    if settings.identity_configured:
        logger.info("✓ Identity provider: %s", settings.SUPABASE_URL)
    else:
        logger.warning(
            "⚠ SUPABASE_URL / SUPABASE_ANON_KEY not set — sign-in will fail"
        )

    if settings.generation_configured:
        logger.info("✓ Gemini model: %s", settings.GEMINI_MODEL)
    else:
        logger.warning(
            "⚠ GEMINI_API_KEY not set — outline suggestions fall back to fixed lists"
        )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting DocuGen backend …")
    logger.info("=" * 60)

    # 1. Database (optional; the store reports errors per request)
    await _check_database()

    # 2. Identity provider and Gemini (optional; logs warnings)
    _check_providers()

    logger.info("=" * 60)
    logger.info("  DocuGen backend ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down DocuGen backend …")
    await shell_registry.close_all()
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="DocuGen API",
    description=(
        "**DocuGen** — AI-assisted authoring of business documents and slide decks.\n\n"
        "Sign in, outline a Word report or PowerPoint deck from a topic, let "
        "Gemini draft each section, refine it with instructions, and download "
        "the result.\n\n"
        "Key endpoints:\n"
        "- `POST /api/session` — open a session (returns the X-Session-Id)\n"
        "- `POST /api/session/sign-in` — password sign-in\n"
        "- `POST /api/session/projects/outline` — suggest section titles\n"
        "- `POST /api/session/projects` — create a project\n"
        "- `POST /api/session/editor/sections/{id}/refine` — rewrite a section\n"
        "- `GET  /api/session/editor/export` — download .docx / .pptx\n"
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Process-Time"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    # Skip noisy health-check polling from the frontend
    if request.url.path not in ("/api/health", "/api/health/", "/"):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

_ERROR_STATUS = {
    AuthError: status.HTTP_401_UNAUTHORIZED,
    StoreError: status.HTTP_502_BAD_GATEWAY,
    GenerationError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ExportError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    EditorStateError: status.HTTP_409_CONFLICT,
    SectionNotFoundError: status.HTTP_404_NOT_FOUND,
}


def _error_body(request: Request, detail: str, error: str) -> dict:
    return {
        "detail": detail,
        "error": error,
        "path": str(request.url.path),
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.exception_handler(DocuGenError)
async def docugen_exception_handler(request: Request, exc: DocuGenError):
    """Map the package's error taxonomy onto HTTP status codes."""
    status_code = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    # export failures show a generic message; the cause is only logged
    detail = "Export failed. Please try again." if isinstance(exc, ExportError) else str(exc)
    logger.warning(
        "%s on %s %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc,
    )
    return JSONResponse(
        status_code=status_code,
        content=_error_body(request, detail, type(exc).__name__),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "Internal server error", str(exc)),
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,   prefix="/api/health",           tags=["Health"])
app.include_router(projects.router, prefix="/api/session/projects", tags=["Projects"])
app.include_router(editor.router,   prefix="/api/session/editor",   tags=["Editor"])
app.include_router(session.router,  prefix="/api/session",          tags=["Session"])


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root — returns basic service info."""
    return {
        "name": "DocuGen API",
        "version": "0.1.0",
        "description": "AI-assisted document and slide deck authoring backend",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "session": "/api/session",
            "projects": "/api/session/projects",
            "editor": "/api/session/editor",
            "export": "/api/session/editor/export",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "docugen.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
