"""FastAPI application for AutoFlow API.

Provides the main application instance with routers, the AutoFlowError
exception handler, health endpoint, and a background sweep that archives
idle sessions.
"""

import asyncio
import logging
import os
import sys
import time as _time
from contextlib import asynccontextmanager
from importlib.metadata import version as _pkg_version

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
# Ensure our application loggers are captured
logging.getLogger("src").setLevel(logging.INFO)
from fastapi.responses import JSONResponse

from src.api.routes import namespace, sessions
from src.errors import (
    AutoFlowError,
    AutoFlowErrorInfo,
    CapacityError,
    ConcurrencyViolation,
    SessionNotFoundError,
)

logger = logging.getLogger(__name__)

# Seconds between idle-session sweeps
ARCHIVE_SWEEP_INTERVAL = 900.0

_startup_time: float = 0.0


async def _archive_idle_sessions_loop(app: FastAPI, interval: float) -> None:
    """Periodically archive sessions past their idle timeout."""
    while True:
        await asyncio.sleep(interval)
        stack = getattr(app.state, "stack", None)
        if stack is None:
            continue
        try:
            stack.orchestrator.archive_idle_sessions()
        except Exception as e:
            logger.error("Idle session sweep failed: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async lifespan: database setup, stack wiring, shutdown cleanup."""
    global _startup_time

    from src.cli.config import load_config
    from src.cli.factory import build_stack
    from src.db.connection import close_db, init_db
    from src.utils.paths import ensure_dirs_exist

    # --- Startup ---
    _startup_time = _time.time()
    ensure_dirs_exist()
    init_db()

    if getattr(app.state, "stack", None) is None:
        config = load_config(config_path=os.environ.get("AUTOFLOW_CONFIG_PATH"))
        app.state.stack = build_stack(config)
    sweep = asyncio.create_task(
        _archive_idle_sessions_loop(app, ARCHIVE_SWEEP_INTERVAL)
    )
    logger.info("AutoFlow API started")

    yield

    # --- Shutdown ---
    sweep.cancel()
    try:
        await sweep
    except asyncio.CancelledError:
        pass
    await app.state.stack.close()
    close_db()


app = FastAPI(
    title="AutoFlow API",
    description="Natural language interface for building and deploying automations",
    version="0.1.0",
    lifespan=lifespan,
)


def _status_for(exc: AutoFlowError) -> int:
    if isinstance(exc, SessionNotFoundError):
        return 404
    if isinstance(exc, CapacityError):
        return 503
    if isinstance(exc, ConcurrencyViolation):
        return 409
    return 400


@app.exception_handler(AutoFlowError)
async def autoflow_error_handler(
    request: Request, exc: AutoFlowError
) -> JSONResponse:
    """Handle AutoFlowError exceptions with consistent format.

    Args:
        request: The incoming request.
        exc: The AutoFlowError exception.

    Returns:
        JSONResponse with error details.
    """
    info = AutoFlowErrorInfo.from_exception(exc)
    return JSONResponse(
        status_code=_status_for(exc),
        content={
            "error_code": info.code,
            "message": info.message,
            "remediation": info.remediation,
            "details": exc.context if exc.context else None,
        },
    )


# Include routers
app.include_router(sessions.router, prefix="/api/v1")
app.include_router(namespace.router, prefix="/api/v1")


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint with system status.

    Returns:
        Dictionary with status, version and uptime.
    """
    uptime = int(_time.time() - _startup_time) if _startup_time else 0

    # Version from package metadata (matches pyproject.toml)
    try:
        version = _pkg_version("autoflow")
    except Exception:
        version = "unknown"

    return {
        "status": "healthy",
        "version": version,
        "uptime_seconds": uptime,
    }
