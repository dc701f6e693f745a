import logging
import sqlite3
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jellyfin_manager.api.deps import get_settings
from jellyfin_manager.app_shell.config import validate_ops_rules
from jellyfin_manager.app_shell.context import ServiceContext
from jellyfin_manager.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load rules, migrate and bootstrap before serving (fail-fast)."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    settings = get_settings()

    try:
        rules = load_rules(settings.rules_path)
        validate_ops_rules(rules, settings.data_dir)
        ctx = ServiceContext.create(settings, rules)
        applied = ctx.migrate()
        ctx.bootstrap()
        logger.info(
            "Rules loaded from %s, %d migration(s) applied", settings.rules_path, len(applied)
        )
    except Exception as e:
        logger.critical("Startup failed: %s", e)
        sys.exit(1)

    yield


app = FastAPI(
    title="Jellyfin User Manager API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(sqlite3.OperationalError)
async def database_error_handler(request: Request, exc: sqlite3.OperationalError) -> JSONResponse:
    """A writer that waited out the busy timeout gets a retryable 503."""
    message = str(exc)
    if "locked" in message or "busy" in message:
        logger.warning("Database busy during %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "The database is busy, please try again"},
            headers={"Retry-After": "1"},
        )

    logger.error(
        "Database error during %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# --- Routers ---
from jellyfin_manager.api.routes import (  # noqa: E402
    activity,
    auth,
    invites,
    jellyfin,
    profiles,
    roles,
    users,
)

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(invites.router, prefix="/api/invites", tags=["Invites"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(profiles.router, prefix="/api/profiles", tags=["Profiles"])
app.include_router(roles.router, prefix="/api/user-roles", tags=["Roles"])
app.include_router(activity.router, prefix="/api/activity", tags=["Activity"])
app.include_router(jellyfin.router, prefix="/api/jellyfin", tags=["Jellyfin"])


# CORS (Allow Frontend)
def _cors_origins() -> list[str]:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    try:
        public_url = load_rules(get_settings().rules_path).project.public_base_url
    except (FileNotFoundError, ValueError) as e:
        # Startup reports the rules problem; only the extra origin is lost here
        logger.warning("Could not read public_base_url for CORS: %s", e)
        return origins
    public_url = public_url.rstrip("/")
    if public_url not in origins:
        origins.append(public_url)
    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
