"""
HTTP client for the EZVIZ open API.

Thin wrapper around a shared aiohttp session. It knows nothing about
credential scheduling or proxy semantics and never retries; callers own
retry policy.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import aiohttp
from pydantic import ValidationError
from yarl import URL

from ..errors import ProxyError, UpstreamError, UpstreamTimeout
from .messages import LegacyEnvelope, MetaEnvelope

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass
class RawResponse:
    """Unparsed upstream response."""

    status: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        """Get the first header value matching name (case-insensitive)."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> Any:
        """Decode the body as JSON."""
        return json.loads(self.body.decode("utf-8"))


def unwrap_envelope(response: RawResponse) -> Any:
    """
    Extract the data payload from either upstream envelope convention.

    /api/lapp/* endpoints answer {code: "200", msg, data}; /api/v3/*
    endpoints answer {meta: {code: 200, message}, data}. Any other code is
    raised as UpstreamError so higher layers handle one error shape.

    Args:
        response: Raw upstream response

    Returns:
        The envelope's data member

    Raises:
        UpstreamError: On a failure envelope or an unreadable body
    """
    try:
        payload = response.json()
    except (UnicodeDecodeError, ValueError):
        raise UpstreamError(
            code=str(response.status),
            message=f"Non-JSON response (HTTP {response.status})",
            status=response.status,
        )

    if not isinstance(payload, dict):
        raise UpstreamError(str(response.status), "Unexpected response shape", response.status)

    try:
        if "meta" in payload:
            envelope = MetaEnvelope.model_validate(payload)
            if envelope.meta.code == 200:
                return envelope.data
            raise UpstreamError(
                code=str(envelope.meta.code),
                message=envelope.meta.message or "Unknown error",
                status=response.status,
            )

        legacy = LegacyEnvelope.model_validate(payload)
    except ValidationError as e:
        raise UpstreamError(str(response.status), f"Malformed envelope: {e.error_count()} errors", response.status)

    if str(legacy.code) == "200":
        return legacy.data
    raise UpstreamError(
        code=str(legacy.code),
        message=legacy.msg or "Unknown error",
        status=response.status,
    )


class UpstreamClient:
    """
    Shared HTTP client for EZVIZ calls.

    The session is created lazily on first use and must be released with
    close() on shutdown.
    """

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT):
        self.default_timeout = default_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(auto_decompress=True)
        return self._session

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def request(
        self,
        method: str,
        url: Union[str, URL],
        data: Optional[Union[bytes, dict, list]] = None,
        headers: Optional[list[tuple[str, str]]] = None,
        params: Optional[list[tuple[str, str]]] = None,
        timeout: Optional[float] = None,
    ) -> RawResponse:
        """
        Execute a request and read the whole body as bytes.

        Args:
            method: HTTP method
            url: Absolute URL (a pre-encoded yarl.URL is sent as-is)
            data: Body (bytes sent verbatim, dict/list form-encoded)
            headers: Outbound headers as (name, value) pairs
            params: Extra query parameters
            timeout: Total timeout in seconds (defaults to default_timeout)

        Returns:
            RawResponse with status, headers and body

        Raises:
            UpstreamTimeout: If the call exceeded the timeout
            ProxyError: On connection or protocol failure
        """
        total = timeout if timeout is not None else self.default_timeout
        session = self._get_session()

        try:
            async with session.request(
                method,
                url,
                data=data,
                headers=headers,
                params=params,
                timeout=aiohttp.ClientTimeout(total=total),
                allow_redirects=False,
            ) as resp:
                body = await resp.read()
                return RawResponse(
                    status=resp.status,
                    headers=list(resp.headers.items()),
                    body=body,
                )
        except asyncio.TimeoutError as e:
            logger.warning(f"Upstream {method} {URL(url).with_query(None)} timed out after {total}s")
            raise UpstreamTimeout(f"Upstream request timed out after {total}s", cause=e)
        except aiohttp.ClientError as e:
            logger.warning(f"Upstream {method} {URL(url).with_query(None)} failed: {e}")
            raise ProxyError("Failed to reach EZVIZ", cause=e)

    async def post(
        self,
        url: str,
        body: Optional[Union[bytes, dict, list]] = None,
        headers: Optional[list[tuple[str, str]]] = None,
        timeout: Optional[float] = None,
    ) -> RawResponse:
        """POST to url. A dict/list body is sent form-encoded."""
        if headers is None and isinstance(body, (dict, list)):
            headers = [("Content-Type", FORM_CONTENT_TYPE)]
        return await self.request("POST", url, data=body, headers=headers, timeout=timeout)

    async def get(
        self,
        url: str,
        params: Optional[list[tuple[str, str]]] = None,
        headers: Optional[list[tuple[str, str]]] = None,
        timeout: Optional[float] = None,
    ) -> RawResponse:
        """GET url with optional query parameters."""
        return await self.request("GET", url, headers=headers, params=params, timeout=timeout)
