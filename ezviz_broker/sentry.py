"""
Sentry integration for the EZVIZ broker.

Provides error tracking and tracing for credential acquisition and proxied
upstream calls. Every helper is a no-op until init_sentry() succeeds.
"""

import functools
import logging
import os
from typing import Any, Callable, Optional

import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

# Global flag to track if Sentry is initialized
_sentry_initialized = False


def init_sentry(
    dsn: str,
    environment: str = "production",
    traces_sample_rate: float = 0.2,
    release: Optional[str] = None,
) -> bool:
    """
    Initialize Sentry SDK.

    Args:
        dsn: Sentry DSN
        environment: Environment name (production, staging, etc.)
        traces_sample_rate: Percentage of transactions to trace (0.0 to 1.0)
        release: Version/release identifier

    Returns:
        True if initialized successfully, False otherwise
    """
    global _sentry_initialized

    if not dsn:
        logger.info("Sentry DSN not provided, skipping initialization")
        return False

    if _sentry_initialized:
        logger.debug("Sentry already initialized")
        return True

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=release or os.getenv("VERSION", "unknown"),
            integrations=[
                # Capture ERROR logs automatically as events
                LoggingIntegration(
                    level=logging.INFO,
                    event_level=logging.ERROR,
                ),
                # Auto-instrument outbound aiohttp calls
                AioHttpIntegration(),
            ],
            traces_sample_rate=traces_sample_rate,
            # Tokens travel in query strings and bodies
            send_default_pii=False,
            attach_stacktrace=True,
        )
        sentry_sdk.set_tag("service", "ezviz-broker")

        _sentry_initialized = True
        logger.info(f"Sentry initialized (env={environment}, traces={traces_sample_rate})")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False


def capture_exception(exception: Exception, **extra_context) -> None:
    """
    Capture an exception with optional extra context.

    Args:
        exception: The exception to capture
        **extra_context: Additional context to attach
    """
    if not _sentry_initialized:
        return

    with sentry_sdk.new_scope() as scope:
        for key, value in extra_context.items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)


def traced(op: str = "function", name: Optional[str] = None) -> Callable:
    """
    Decorator to create a Sentry transaction for an async function.

    Args:
        op: Operation type (e.g., "credential", "http")
        name: Transaction name (defaults to function name)

    Example:
        @traced(op="credential", name="acquire_token")
        async def _acquire(self, reason: str) -> bool:
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            if not _sentry_initialized:
                return await func(*args, **kwargs)

            with sentry_sdk.start_transaction(op=op, name=name or func.__name__) as transaction:
                try:
                    result = await func(*args, **kwargs)
                    transaction.set_status("ok")
                    return result
                except Exception:
                    transaction.set_status("internal_error")
                    raise

        return wrapper
    return decorator


class TracingContext:
    """
    Context manager for manual span creation.

    Example:
        with TracingContext(op="http.client", description="proxy /api/lapp/device/list") as span:
            response = await client.request(...)
            span.set_data("status", response.status)
    """

    def __init__(self, op: str, description: str):
        self.op = op
        self.description = description
        self._span = None

    def __enter__(self):
        if _sentry_initialized:
            self._span = sentry_sdk.start_span(op=self.op, description=self.description)
            self._span.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._span:
            self._span.__exit__(exc_type, exc_val, exc_tb)
        return False

    def set_data(self, key: str, value: Any) -> None:
        """Set data on the span."""
        if self._span:
            self._span.set_data(key, value)

    def set_status(self, status: str) -> None:
        """Set status on the span (ok, internal_error, etc.)."""
        if self._span:
            self._span.set_status(status)
