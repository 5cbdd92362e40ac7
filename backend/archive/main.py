"""Alumni Archive Backend Application.

Main entry point for the archive service: a shared history of a team's
alumni, organised by decade, with photo / story contributions, reactions,
comments and classmate invitations.

Modules:
    - auth: Account sign-up / sign-in and the session registry
    - memories: Two-phase memory submission, timeline queries, reactions
    - uploads: Attachment validation, compression and upload orchestration
    - invites: Staged invite list and batch invitations
    - ui: Per-client view state, toasts and modals
    - backends: Identity, document and blob store adapters
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from archive.auth.router import router as auth_router
from archive.config import get_config
from archive.context import build_context, get_context, set_context
from archive.errors import ArchiveError
from archive.invites.router import router as invites_router
from archive.memories.router import router as memories_router
from archive.ui.router import router as ui_router
from archive.uploads.router import router as files_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# botocore.auth logs the full SigV4 canonical request, including the
# security token; urllib3/httpx/httpcore log every connection.
for _noisy in (
    "botocore",
    "boto3",
    "urllib3",
    "urllib3.connectionpool",
    "httpx",
    "httpcore",
    "PIL",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # `logging.level: "debug"` in archive.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    context = build_context(config)
    set_context(context)
    await context.start()

    if context.backends.demo_mode:
        logger.warning("Running in demo mode; unconfigured services answer 503")
    logger.info(
        f"Archive ready on http://{config.server.host}:{config.server.port}"
    )

    yield  # Application runs here

    # Shutdown
    await context.close()
    set_context(None)
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Alumni Archive API",
    description="Backend service for the alumni memory archive",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ArchiveError)
async def archive_error_handler(request: Request, exc: ArchiveError) -> JSONResponse:
    """Render archive errors as ``{"detail": ..., "title": ...}`` with their status."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "title": exc.title},
    )


# Register all routers
app.include_router(auth_router)
app.include_router(memories_router)
app.include_router(invites_router)
app.include_router(ui_router)
app.include_router(files_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object, plus whether any backend runs in demo mode.
    """
    try:
        demo_mode = get_context().backends.demo_mode
    except RuntimeError:
        demo_mode = None
    return {"status": "ok", "demo_mode": demo_mode}
