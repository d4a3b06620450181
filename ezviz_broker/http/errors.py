"""
Exception handlers mapping broker errors to HTTP responses.
"""

import logging

from litestar import Request, Response

from ..errors import (
    CredentialUnavailable,
    NotForwardable,
    ProxyError,
    UpstreamError,
    UpstreamTimeout,
)
from ..sentry import capture_exception

logger = logging.getLogger(__name__)

# Upstream device error codes with a stable application meaning
DEVICE_ERRORS: dict[str, tuple[int, str, str]] = {
    "2003": (503, "DEVICE_OFFLINE", "Device is offline"),
    "2007": (400, "INVALID_DEVICE_SERIAL", "Invalid device serial number"),
    "2009": (408, "DEVICE_TIMEOUT", "Device request timeout"),
    "2030": (400, "DEVICE_NOT_SUPPORTED", "Device does not support this function"),
}


def upstream_error_response(exc: UpstreamError) -> tuple[int, dict]:
    """
    Map an UpstreamError to (status, body).

    Known device codes get their own status and code. Anything else keeps
    the upstream HTTP status when it is an error status, otherwise 500. The
    upstream code and message are always passed through verbatim.
    """
    if exc.code in DEVICE_ERRORS:
        status, code, error = DEVICE_ERRORS[exc.code]
    else:
        status = exc.status if exc.status and exc.status >= 400 else 500
        code, error = "EZVIZ_API_ERROR", "EZVIZ API error"

    return status, {
        "error": error,
        "code": code,
        "upstreamCode": exc.code,
        "details": exc.message,
    }


def handle_credential_unavailable(request: Request, exc: CredentialUnavailable) -> Response:
    logger.warning(f"{request.method} {request.url.path}: {exc}")
    return Response(
        content={"error": "No EZVIZ accessToken available", "code": "NO_ACCESS_TOKEN"},
        status_code=401,
    )


def handle_upstream_error(request: Request, exc: UpstreamError) -> Response:
    status, body = upstream_error_response(exc)
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return Response(content=body, status_code=status)


def handle_upstream_timeout(request: Request, exc: UpstreamTimeout) -> Response:
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return Response(
        content={"error": "EZVIZ request timed out", "code": "UPSTREAM_TIMEOUT"},
        status_code=504,
    )


def handle_proxy_error(request: Request, exc: ProxyError) -> Response:
    logger.error(f"{request.method} {request.url.path}: {exc}")
    capture_exception(exc, path=request.url.path)
    return Response(
        content={"error": "EZVIZ proxy error", "code": "PROXY_ERROR"},
        status_code=502,
    )


def handle_not_forwardable(request: Request, exc: NotForwardable) -> Response:
    return Response(
        content={"error": "Route not found", "code": "ROUTE_NOT_FOUND"},
        status_code=404,
    )


EXCEPTION_HANDLERS = {
    CredentialUnavailable: handle_credential_unavailable,
    UpstreamError: handle_upstream_error,
    UpstreamTimeout: handle_upstream_timeout,
    ProxyError: handle_proxy_error,
    NotForwardable: handle_not_forwardable,
}
