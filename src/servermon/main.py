# File: src/servermon/main.py
"""FastAPI application factory and process entrypoint."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from servermon.core.config import Settings, get_settings
from servermon.core.logging import configure_logging, get_logger
from servermon.ws.connection_manager import ConnectionManager

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup and shutdown events."""
    logger.info("app.startup", timestamp=datetime.now().isoformat())

    runtime = getattr(app.state, "runtime", None)
    if runtime is not None:
        asyncio.get_running_loop().set_exception_handler(runtime.handle_loop_exception)

    yield

    await app.state.connection_manager.close_all()
    logger.info("app.shutdown", message="Server shutting down gracefully")


def _setup_middleware(app: FastAPI, settings: Settings) -> None:
    """
    Configure all middleware in correct order.

    Execution order (outermost first):
      request id, trust proxy, cookie session, parameter pollution,
      security headers, CORS, response handler, gzip, JSON cap,
      urlencoded cap, routes.
    """
    from servermon.middleware.body_limit import BodySizeLimitMiddleware
    from servermon.middleware.logging import RequestIDMiddleware
    from servermon.middleware.security import ParameterPollutionMiddleware, SecurityHeadersMiddleware
    from servermon.responses.responder import ResponseHandlerMiddleware

    # Add middleware in reverse order (last added = first executed)
    app.add_middleware(
        BodySizeLimitMiddleware,
        media_type="application/x-www-form-urlencoded",
        max_bytes=settings.body_limit_bytes,
    )
    app.add_middleware(
        BodySizeLimitMiddleware,
        media_type="application/json",
        max_bytes=settings.body_limit_bytes,
    )
    app.add_middleware(GZipMiddleware, minimum_size=settings.compression_min_size)
    app.add_middleware(ResponseHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ParameterPollutionMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret_key,
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age,
        https_only=settings.secure_cookies,
        same_site=settings.session_same_site,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.trusted_proxy_hosts)
    # RequestIDMiddleware LAST so it runs FIRST
    app.add_middleware(RequestIDMiddleware)


def _register_routers(app: FastAPI) -> None:
    """Register diagnostic and real-time routers."""
    from servermon.api.health import router as health_router
    from servermon.api.realtime import router as realtime_router

    app.include_router(health_router)
    app.include_router(realtime_router)


def create_app(
    settings: Settings | None = None,
    connection_manager: ConnectionManager | None = None,
) -> FastAPI:
    """Application factory for servermon."""
    settings = settings or get_settings()

    app = FastAPI(
        title="servermon",
        description="Server health, uptime, memory and CPU diagnostics",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.connection_manager = (
        connection_manager if connection_manager is not None else ConnectionManager()
    )

    from servermon.core.exception_handlers import register_exception_handlers

    register_exception_handlers(app)

    _setup_middleware(app, settings)
    _register_routers(app)

    logger.info("app.configured", client_url=settings.client_url, environment=settings.environment)

    return app


def run() -> None:
    """Console entrypoint: configure logging and error tracking, then serve until shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level)

    from servermon.core.sentry import init_sentry
    from servermon.runtime import ServerRuntime

    init_sentry(settings)
    ServerRuntime(settings).start()
