"""
Catch-all proxy route for the EZVIZ open API.
"""

from pathlib import Path
from typing import Annotated, Any, Optional
from urllib.parse import quote

from litestar import Controller, HttpMethod, Request, Response, head, route
from litestar.params import Dependency, Parameter
from litestar.response.base import ASGIResponse

from ...forwarding import PROXY_PREFIX, AuthenticatedForwarder, ForwardRequest, ForwardResponse

PROXY_METHODS = [
    HttpMethod.GET,
    HttpMethod.POST,
    HttpMethod.PUT,
    HttpMethod.PATCH,
    HttpMethod.DELETE,
]

Forwarder = Annotated[AuthenticatedForwarder, Dependency(skip_validation=True)]
ProxyPath = Annotated[Path, Parameter(description="Upstream API path")]


class RelayResponse(Response):
    """
    Response carrying upstream headers as an ordered list.

    Repeated headers (Set-Cookie, Vary, ...) are written once per value
    instead of being merged into a mapping.
    """

    def __init__(self, content: Any, relayed_headers: list[tuple[str, str]], **kwargs):
        super().__init__(content, **kwargs)
        self.relayed_headers = relayed_headers

    def to_asgi_response(
        self,
        *args,
        encoded_headers: Optional[list[tuple[bytes, bytes]]] = None,
        **kwargs,
    ) -> ASGIResponse:
        relayed = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in self.relayed_headers
        ]
        return super().to_asgi_response(
            *args,
            encoded_headers=[*(encoded_headers or []), *relayed],
            **kwargs,
        )


def _raw_path(request: Request, path: Path) -> str:
    """Request path exactly as sent (still percent-encoded)."""
    raw = request.scope.get("raw_path")
    if raw:
        # Some servers include the query string in raw_path
        return raw.decode("latin-1").split("?", 1)[0]
    return f"{PROXY_PREFIX}/{quote(str(path).lstrip('/'))}"


def _to_response(forwarded: ForwardResponse, body: bool = True) -> RelayResponse:
    headers = [(name, value) for name, value in forwarded.headers if name.lower() != "content-type"]
    return RelayResponse(
        content=forwarded.body if body else b"",
        relayed_headers=headers,
        status_code=forwarded.status_code,
        media_type=forwarded.content_type or "application/octet-stream",
    )


async def _forward(request: Request, forwarder: AuthenticatedForwarder, path: Path) -> ForwardResponse:
    forward_request = ForwardRequest.from_inbound(
        method=request.method,
        raw_path=_raw_path(request, path),
        query_string=request.scope.get("query_string", b""),
        headers=[
            (name.decode("latin-1"), value.decode("latin-1"))
            for name, value in request.scope["headers"]
        ],
        body=await request.body(),
    )
    return await forwarder.forward(forward_request)


class ProxyController(Controller):
    """EZVIZ proxy endpoints (/api/lapp, /api/service, /api/v3)."""

    path = PROXY_PREFIX

    @route("/{path:path}", http_method=PROXY_METHODS)
    async def proxy(self, request: Request, forwarder: Forwarder, path: ProxyPath) -> Response:
        """
        Forward any method to the matching EZVIZ path with the token injected.

        The upstream status, headers (minus hop-by-hop) and raw body are
        relayed unchanged.
        """
        return _to_response(await _forward(request, forwarder, path))

    @head("/{path:path}")
    async def proxy_head(self, request: Request, forwarder: Forwarder, path: ProxyPath) -> Response[None]:
        """Forward a HEAD request; status and headers only."""
        return _to_response(await _forward(request, forwarder, path), body=False)
