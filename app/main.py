"""
Main FastAPI application for the Otro7a Manager backend.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.database import close_db, init_db
from app.routers import (
    chat,
    citations,
    collaboration,
    email,
    export,
    health,
    notifications,
    reviews,
    structure,
    theses,
    versions,
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Otro7a Manager backend …")
    logger.info("=" * 60)

    # 1. Database (required; raises on failure)
    try:
        await init_db()
        logger.info("✓ Database connection OK")
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        raise

    # 2. Figure upload directory
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    logger.info("✓ Upload directory: %s", os.path.abspath(settings.UPLOAD_DIR))

    # 3. Outbound services (optional; only warn)
    if not settings.EMAIL_API_KEY:
        logger.warning("⚠ EMAIL_API_KEY is not set; invitation emails will be rejected by the provider")
    if not settings.get_admin_emails():
        logger.info("  No ADMIN_EMAILS configured")

    logger.info("=" * 60)
    logger.info("  Otro7a Manager ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health/", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down Otro7a Manager backend …")
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Otro7a Manager API",
    description=(
        "**Otro7a Manager**: collaborative thesis writing.\n\n"
        "Create theses from language templates, edit chapters and sections, "
        "manage citations, invite collaborators and supervisors, review and "
        "chat, keep a version history, and export to Word or PDF.\n\n"
        "Key endpoints:\n"
        "- `POST /api/theses`: create a thesis\n"
        "- `PUT  /api/theses/{id}/content`: autosave the content tree\n"
        "- `POST /api/theses/{id}/invitations`: invite a collaborator\n"
        "- `POST /api/theses/{id}/versions`: snapshot a version\n"
        "- `GET  /api/theses/{id}/export/docx`: Word export\n"
    ),
    version="1.0.0",
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

    # Skip health-check and notification polling from the editor
    if request.url.path not in ("/api/health/", "/", "/api/notifications/unread-count"):
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
# Global exception handler
# ---------------------------------------------------------------------------

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
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "path": str(request.url.path),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,                   prefix="/api/health",        tags=["Health"])
app.include_router(theses.router,                   prefix="/api/theses",        tags=["Theses"])
app.include_router(structure.router,                prefix="/api/theses",        tags=["Structure"])
app.include_router(citations.router,                prefix="/api/theses",        tags=["Citations"])
app.include_router(collaboration.router,            prefix="/api/theses",        tags=["Collaboration"])
app.include_router(reviews.router,                  prefix="/api/theses",        tags=["Reviews"])
app.include_router(chat.router,                     prefix="/api/theses",        tags=["Chat"])
app.include_router(versions.router,                 prefix="/api/theses",        tags=["Versions"])
app.include_router(export.router,                   prefix="/api/theses",        tags=["Export"])
app.include_router(citations.search_router,         prefix="/api/citations",     tags=["Citations"])
app.include_router(collaboration.invitation_router, prefix="/api/invitations",   tags=["Collaboration"])
app.include_router(email.router,                    prefix="/api/email",         tags=["Email"])
app.include_router(notifications.router,            prefix="/api/notifications", tags=["Notifications"])
app.include_router(export.generate_router,          prefix="/api/export",        tags=["Export"])

# Uploaded figures
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root: returns basic service info."""
    return {
        "name": "Otro7a Manager API",
        "version": "1.0.0",
        "description": "Collaborative Thesis Writing Backend",
        "docs": "/docs",
        "health": "/api/health/",
        "endpoints": {
            "theses": "/api/theses",
            "citations": "/api/citations/search",
            "invitations": "/api/invitations",
            "email": "/api/email",
            "notifications": "/api/notifications",
            "export": "/api/export/generate-docx",
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
