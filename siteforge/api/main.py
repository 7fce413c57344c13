import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from siteforge.adapters.sqlite.migrator import SQLiteMigrator
from siteforge.adapters.sqlite.repos import SQLiteRoleRepo
from siteforge.api.deps import (
    build_background_scheduler,
    get_notifier,
    get_registry,
    get_rules,
    get_settings,
)
from siteforge.app_shell.config import validate_ops_rules
from siteforge.components.roles import SeedRolesInput, run_seed
from siteforge.domain.errors import StorageError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    # Load rules and validate on startup (fail-fast)
    try:
        rules = get_rules(settings)
        validate_ops_rules(rules)
        logger.info("Rules loaded from %s", settings.rules_path)
    except Exception:
        logger.critical("Rules load failed", exc_info=True)
        raise

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    SQLiteMigrator(settings.db_path, str(settings.migrations_dir)).run_migrations()
    run_seed(SeedRolesInput(), registry=get_registry(settings), repo=SQLiteRoleRepo(settings.db_path))

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_background_scheduler(settings, get_notifier())
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.stop()


app = FastAPI(
    title="SiteForge API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"detail": {"message": "Storage error", "errors": [{"code": "STORAGE_ERROR"}]}},
    )


# --- Routers ---
from siteforge.api.routes import (  # noqa: E402
    admin,
    auth,
    posts,
    roles,
    sites,
    subscriptions,
    users,
)

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(roles.router, prefix="/api/roles", tags=["Roles"])
app.include_router(sites.router, prefix="/api/sites", tags=["Sites"])
app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["Subscriptions"])
app.include_router(posts.router, prefix="/api/posts", tags=["Posts"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
