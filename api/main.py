import asyncio
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app_state import AppState
from config import DAEMON_VERSION, Settings
from errors import DaemonError
from logging_config import configure_logging
from middleware import RetrievalTokenGuard
from startup.manager import StartupManager
from routes.health import router as health_router
from routes.retrieval import router as retrieval_router
from routes.backfill import router as backfill_router
from routes.files import router as files_router

logger = logging.getLogger(__name__)


def create_app(state: AppState) -> FastAPI:
    """Build the control-plane app around an initialized AppState"""
    app = FastAPI(
        title="Retrieval Daemon",
        description="Local control plane for background retrieval and task files",
        version=DAEMON_VERSION,
    )

    # Store state in app for route access
    app.state.app_state = state

    app.middleware("http")(RetrievalTokenGuard(state.get_auth_token()))

    @app.exception_handler(DaemonError)
    async def daemon_error_handler(request: Request, exc: DaemonError):
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse({"error": message}, status_code=400)

    # Include route modules
    app.include_router(health_router, tags=["health"])
    app.include_router(retrieval_router, tags=["retrieval"])
    app.include_router(backfill_router, tags=["backfill"])
    app.include_router(files_router, tags=["files"])

    return app


async def serve(settings: Optional[Settings] = None):
    """Initialize, serve until the listener exits, then shut down

    Shutdown runs whether the listener ended cleanly or by error; the
    original error is re-raised after cleanup.
    """
    settings = settings or Settings.from_env()
    settings.paths.resolve()
    configure_logging(settings.server.log_level,
                      settings.paths.logs_directory / "retrievald.log")

    state = AppState()
    manager = StartupManager(state, settings)
    try:
        await manager.initialize()
    except BaseException:
        await _shutdown_quietly(manager)
        raise

    configuration = state.get_configuration()
    server = uvicorn.Server(uvicorn.Config(
        create_app(state),
        host=configuration.host,
        port=configuration.port,
        log_config=None,
    ))
    logger.info(f"Listening on {configuration.host}:{configuration.port}")

    try:
        await server.serve()
    except BaseException:
        await _shutdown_quietly(manager)
        raise
    await manager.shutdown()


async def _shutdown_quietly(manager: StartupManager):
    """Shutdown on an error path; the original error stays the one raised"""
    try:
        await manager.shutdown()
    except Exception as cleanup_error:
        logger.error(f"Shutdown after failure also failed: {cleanup_error}")


def run():
    """Console entry point"""
    asyncio.run(serve())


if __name__ == "__main__":
    run()
