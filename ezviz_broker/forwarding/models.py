"""
Request and response models for the authenticated forwarder.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union
from urllib.parse import parse_qsl, unquote_plus

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"


class BodyKind(Enum):
    """Shape of an inbound request body."""

    EMPTY = "empty"
    FORM_ENCODED = "form"
    JSON = "json"
    RAW = "raw"


@dataclass(frozen=True)
class RequestBody:
    """
    Tagged request body.

    `raw` always holds the original bytes so any kind can be forwarded
    unmodified. `form` is set for FORM_ENCODED, `value` for JSON.
    """

    kind: BodyKind
    raw: bytes = b""
    form: tuple[tuple[str, str], ...] = ()
    value: Any = None

    @classmethod
    def empty(cls) -> "RequestBody":
        return cls(kind=BodyKind.EMPTY)

    @classmethod
    def form_encoded(cls, pairs, raw: bytes = b"") -> "RequestBody":
        return cls(kind=BodyKind.FORM_ENCODED, raw=raw, form=tuple((str(k), str(v)) for k, v in pairs))

    @classmethod
    def json_value(cls, value: Any, raw: bytes = b"") -> "RequestBody":
        return cls(kind=BodyKind.JSON, raw=raw, value=value)

    @classmethod
    def raw_bytes(cls, data: bytes) -> "RequestBody":
        return cls(kind=BodyKind.RAW, raw=data)

    @classmethod
    def parse(cls, content_type: Optional[str], data: bytes) -> "RequestBody":
        """
        Classify an inbound body by its Content-Type.

        Bodies that cannot be decoded as their declared type are kept RAW.
        """
        if not data:
            return cls.empty()

        media_type = (content_type or "").split(";", 1)[0].strip().lower()

        if media_type == FORM_CONTENT_TYPE:
            try:
                pairs = parse_qsl(data.decode("utf-8"), keep_blank_values=True)
            except UnicodeDecodeError:
                return cls.raw_bytes(data)
            return cls.form_encoded(pairs, raw=data)

        if media_type == JSON_CONTENT_TYPE or media_type.endswith("+json"):
            try:
                value = json.loads(data)
            except ValueError:
                return cls.raw_bytes(data)
            return cls.json_value(value, raw=data)

        return cls.raw_bytes(data)


Pairs = list[tuple[str, str]]


def _first(pairs: Pairs, name: str, case_sensitive: bool = True) -> Optional[str]:
    if not case_sensitive:
        name = name.lower()
    for key, value in pairs:
        if (key if case_sensitive else key.lower()) == name:
            return value
    return None


@dataclass
class ForwardRequest:
    """
    Inbound request to forward upstream.

    target_path is the raw (still percent-encoded) request path, including
    the proxy prefix. query_string is the raw query, never decoded or
    re-encoded.
    """

    method: str
    target_path: str
    query_string: str = ""
    headers: Pairs = field(default_factory=list)
    body: RequestBody = field(default_factory=RequestBody.empty)

    @classmethod
    def from_inbound(
        cls,
        method: str,
        raw_path: str,
        query_string: Union[str, bytes] = "",
        headers: Optional[Pairs] = None,
        body: bytes = b"",
    ) -> "ForwardRequest":
        """Build a ForwardRequest from the pieces of an ASGI request."""
        if isinstance(query_string, bytes):
            # latin-1: one code point per byte
            query_string = query_string.decode("latin-1")
        headers = list(headers or [])

        return cls(
            method=method.upper(),
            target_path=raw_path,
            query_string=query_string,
            headers=headers,
            body=RequestBody.parse(_first(headers, "content-type", case_sensitive=False), body),
        )

    def header(self, name: str) -> Optional[str]:
        """Get the first header value matching name (case-insensitive)."""
        return _first(self.headers, name, case_sensitive=False)

    @property
    def query_params(self) -> Pairs:
        """Decoded query pairs, for lookups only."""
        return parse_qsl(self.query_string, keep_blank_values=True, errors="replace")

    def query_param(self, name: str) -> Optional[str]:
        return _first(self.query_params, name)


@dataclass
class ForwardResponse:
    """Upstream response relayed to the caller. The body is never parsed."""

    status_code: int
    headers: Pairs = field(default_factory=list)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        return _first(self.headers, name, case_sensitive=False)

    @property
    def content_type(self) -> Optional[str]:
        return self.header("content-type")


def query_key(segment: str) -> str:
    """Decoded key of one raw `key=value` query segment."""
    return unquote_plus(segment.split("=", 1)[0], errors="replace")
