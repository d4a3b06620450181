"""
Authenticated forwarder for the EZVIZ open API.

Takes an inbound request under the proxy prefix, injects an access token
where EZVIZ expects it, executes the call, and relays the raw response.
The response body is never decoded: playlists and media segments flow
through the same path as JSON.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from yarl import URL

from ..config import DEFAULT_AREA_DOMAIN, DEFAULT_CREDENTIAL_PARAM
from ..credentials import CredentialManager
from ..errors import NotForwardable
from ..sentry import TracingContext
from ..upstream.client import RawResponse, UpstreamClient
from .models import BodyKind, ForwardRequest, ForwardResponse, query_key

logger = logging.getLogger(__name__)

PROXY_PREFIX = "/api/ezviz/proxy"

# Upstream API namespaces reachable through the proxy
UPSTREAM_NAMESPACES = ("/api/lapp/", "/api/service/", "/api/v3/")

PROXY_TIMEOUT = 30.0

BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

# Request headers that describe the inbound hop or the original body framing
OUTBOUND_EXCLUDED_HEADERS = frozenset({
    "host",
    "content-length",
    "transfer-encoding",
    "connection",
    "keep-alive",
    "te",
    "upgrade",
    "proxy-connection",
})

# Response headers that describe the upstream hop. content-length is
# recomputed by the server for the relayed bytes.
RELAY_EXCLUDED_HEADERS = frozenset({
    "content-encoding",
    "transfer-encoding",
    "connection",
    "content-length",
})

SDK_USER_AGENT = "EZUIKit-JavaScript/8.1.12"


@dataclass(frozen=True)
class ResolvedCredential:
    """Token and host chosen for one forwarded call."""

    token: str
    domain: str
    source: str  # "request" or "manager"


@dataclass
class OutboundRequest:
    """Fully built upstream request. url is already percent-encoded."""

    method: str
    url: str
    headers: list[tuple[str, str]]
    body: Optional[bytes] = None


def relay(response: RawResponse) -> ForwardResponse:
    """Copy status, filtered headers, and raw bytes from an upstream response."""
    headers = [
        (name, value)
        for name, value in response.headers
        if name.lower() not in RELAY_EXCLUDED_HEADERS
    ]
    return ForwardResponse(status_code=response.status, headers=headers, body=response.body)


class AuthenticatedForwarder:
    """
    Forwards arbitrary EZVIZ API calls with an access token injected.

    A token supplied on the inbound request (body field, query parameter or
    header) wins over the manager's cached credential. Calls are never
    retried: upstream endpoints are not all idempotent.
    """

    def __init__(
        self,
        client: UpstreamClient,
        credentials: CredentialManager,
        default_domain: str = DEFAULT_AREA_DOMAIN,
        credential_param: str = DEFAULT_CREDENTIAL_PARAM,
        timeout: float = PROXY_TIMEOUT,
        prefix: str = PROXY_PREFIX,
        namespaces: tuple[str, ...] = UPSTREAM_NAMESPACES,
    ):
        """
        Initialize the forwarder.

        Args:
            client: UpstreamClient that executes outbound calls
            credentials: Source of the process-wide credential
            default_domain: Host used when the credential carries no area domain
            credential_param: Name of the token field/parameter/header
            timeout: Timeout for each forwarded call in seconds
            prefix: Inbound path prefix stripped before forwarding
            namespaces: Upstream path prefixes that may be forwarded
        """
        self._client = client
        self._credentials = credentials
        self.default_domain = default_domain.rstrip("/")
        self.credential_param = credential_param
        self.timeout = timeout
        self.prefix = prefix.rstrip("/")
        self.namespaces = namespaces

    def upstream_path(self, target_path: str) -> str:
        """
        Strip the proxy prefix, keeping the remainder verbatim.

        Raises:
            NotForwardable: If the remainder is outside the upstream namespaces
        """
        path = target_path
        if path.startswith(self.prefix):
            path = path[len(self.prefix):]
        if not path.startswith("/"):
            path = "/" + path

        if not path.startswith(self.namespaces):
            raise NotForwardable(f"Path not forwardable: {path}")
        return path

    def resolve_credential(self, request: ForwardRequest) -> ResolvedCredential:
        """
        Pick the token for this call.

        Priority: body field, query parameter, dedicated header, then the
        manager's credential.

        Raises:
            CredentialUnavailable: If no token is supplied and none is held
        """
        name = self.credential_param
        body = request.body
        token: Optional[str] = None

        if body.kind is BodyKind.FORM_ENCODED:
            token = next((v for k, v in body.form if k == name), None)
        elif body.kind is BodyKind.JSON and isinstance(body.value, dict):
            supplied = body.value.get(name)
            token = supplied if isinstance(supplied, str) else None

        token = token or request.query_param(name) or request.header(name)
        if token:
            return ResolvedCredential(token=token, domain=self.default_domain, source="request")

        credential = self._credentials.get_credential()
        return ResolvedCredential(
            token=credential.token,
            domain=credential.area_domain or self.default_domain,
            source="manager",
        )

    def build_outbound(
        self,
        request: ForwardRequest,
        resolved: ResolvedCredential,
        path: Optional[str] = None,
    ) -> OutboundRequest:
        """
        Build the upstream request with the token injected.

        - body-less methods and empty bodies: token appended to the query
        - form bodies: token first, existing token key dropped
        - JSON objects: token merged into the top level
        - anything else: bytes forwarded as-is, token appended to the query
        """
        if path is None:
            path = self.upstream_path(request.target_path)

        name = self.credential_param
        token = resolved.token
        body = request.body
        query = request.query_string
        data: Optional[bytes] = None

        if request.method in BODYLESS_METHODS or body.kind is BodyKind.EMPTY:
            query = self._with_query_token(query, token)
        elif body.kind is BodyKind.FORM_ENCODED:
            # Some endpoints read the token positionally
            pairs = [(name, token)] + [(k, v) for k, v in body.form if k != name]
            data = urlencode(pairs).encode("ascii")
        elif body.kind is BodyKind.JSON and isinstance(body.value, dict):
            merged = {**body.value, name: token}
            data = json.dumps(merged, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        else:
            query = self._with_query_token(query, token)
            data = body.raw

        url = resolved.domain.rstrip("/") + path
        if query:
            url = f"{url}?{query}"

        return OutboundRequest(
            method=request.method,
            url=url,
            headers=self._outbound_headers(request),
            body=data,
        )

    def _with_query_token(self, query: str, token: str) -> str:
        """Drop any existing token segment and append ours; other segments stay byte-for-byte."""
        name = self.credential_param
        kept = [s for s in query.split("&") if s and query_key(s) != name]
        return "&".join(kept + [urlencode([(name, token)])])

    def _outbound_headers(self, request: ForwardRequest) -> list[tuple[str, str]]:
        excluded = OUTBOUND_EXCLUDED_HEADERS | {self.credential_param.lower()}
        headers = [(k, v) for k, v in request.headers if k.lower() not in excluded]
        if request.header("user-agent") is None:
            headers.append(("User-Agent", SDK_USER_AGENT))
        return headers

    async def forward(self, request: ForwardRequest) -> ForwardResponse:
        """
        Forward one request upstream and relay the response.

        Raises:
            NotForwardable: Path outside the upstream namespaces
            CredentialUnavailable: No token supplied or held (no network call made)
            UpstreamTimeout: Upstream did not answer within the timeout
            ProxyError: Upstream could not be reached
        """
        path = self.upstream_path(request.target_path)
        resolved = self.resolve_credential(request)
        outbound = self.build_outbound(request, resolved, path)

        logger.info(
            f"Proxy {request.method} {path} -> {resolved.domain} "
            f"(token from {resolved.source}, body={request.body.kind.value})"
        )

        with TracingContext(op="http.client", description=f"proxy {request.method} {path}") as span:
            raw = await self._client.request(
                outbound.method,
                URL(outbound.url, encoded=True),
                data=outbound.body,
                headers=outbound.headers,
                timeout=self.timeout,
            )
            span.set_data("status", raw.status)
            span.set_data("bytes", len(raw.body))

        response = relay(raw)
        logger.info(
            f"Proxy response {request.method} {path}: {response.status_code} "
            f"({len(response.body)} bytes, {response.content_type or 'no content-type'})"
        )
        return response
