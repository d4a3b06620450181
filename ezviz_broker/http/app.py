"""
Litestar application setup for the EZVIZ broker.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from litestar import Litestar, get
from litestar.config.cors import CORSConfig
from litestar.di import Provide
from litestar.middleware import AbstractMiddleware
from litestar.types import Receive, Scope, Send

from ..credentials import CredentialManager
from ..forwarding import AuthenticatedForwarder
from ..upstream.api import VideoApi
from .errors import EXCEPTION_HANDLERS
from .routes import EzvizController, ProxyController

logger = logging.getLogger(__name__)
http_logger = logging.getLogger("http.requests")

# Paths to exclude from logging (health probes)
EXCLUDED_PATHS = {
    "/health",
    "/api/health",
}


class RequestLoggingMiddleware(AbstractMiddleware):
    """Middleware to log HTTP requests. Query strings are never logged."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")

        if path in EXCLUDED_PATHS:
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "?")
        start_time = time.time()

        # Capture response status
        status_code = 0

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = (time.time() - start_time) * 1000
            # Log format: METHOD /path STATUS DURATIONms
            http_logger.info(f"{method} {path} {status_code} {duration_ms:.1f}ms")


def create_app(
    credentials: CredentialManager,
    forwarder: AuthenticatedForwarder,
    video_api: VideoApi,
    cors_origins: Optional[list[str]] = None,
    environment: str = "production",
) -> Litestar:
    """
    Create and configure the Litestar application.

    Args:
        credentials: CredentialManager holding the process-wide token
        forwarder: AuthenticatedForwarder for the proxy routes
        video_api: VideoApi for the stream and recordings routes
        cors_origins: Allowed CORS origins (defaults to all)
        environment: Environment name reported by the health check

    Returns:
        Configured Litestar application
    """

    # Dependency providers
    async def provide_credentials() -> CredentialManager:
        return credentials

    async def provide_forwarder() -> AuthenticatedForwarder:
        return forwarder

    async def provide_video_api() -> VideoApi:
        return video_api

    @get(["/health", "/api/health"])
    async def health_check() -> dict:
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": environment,
        }

    cors_config = CORSConfig(
        allow_origins=cors_origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app = Litestar(
        route_handlers=[
            health_check,
            EzvizController,
            ProxyController,
        ],
        dependencies={
            "credentials": Provide(provide_credentials),
            "forwarder": Provide(provide_forwarder),
            "video_api": Provide(provide_video_api),
        },
        exception_handlers=EXCEPTION_HANDLERS,
        middleware=[RequestLoggingMiddleware],
        cors_config=cors_config,
        debug=False,
    )

    return app
