import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from enrol_invitation.adapters.sqlite.migrator import SQLiteMigrator
from enrol_invitation.api.deps import get_settings
from enrol_invitation.app_shell.config import validate_ops_rules
from enrol_invitation.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules, validate and migrate on startup (fail-fast)
    try:
        rules = load_rules(settings.rules_path)
        validate_ops_rules(rules, settings.data_dir)
        applied = SQLiteMigrator(settings.db_path, settings.migrations_dir).run_migrations()
        logger.info(
            "Rules loaded from %s; %d migration(s) applied", settings.rules_path, len(applied)
        )
    except Exception as e:
        logger.critical("Startup failed: %s", e)
        sys.exit(1)

    yield


app = FastAPI(
    title="Enrol Invitation API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from enrol_invitation.api.routes import instances, invitations, redeem  # noqa: E402

app.include_router(redeem.router, prefix="/enrol/invitation", tags=["Redeem"])
app.include_router(invitations.router, prefix="/api/courses", tags=["Invitations"])
app.include_router(instances.router, prefix="/api/courses", tags=["Instance Actions"])


origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "enrol-invitation"}
