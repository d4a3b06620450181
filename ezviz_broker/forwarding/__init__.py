"""
Authenticated forwarding of EZVIZ API calls.
"""

from .forwarder import AuthenticatedForwarder, PROXY_PREFIX, UPSTREAM_NAMESPACES
from .models import BodyKind, ForwardRequest, ForwardResponse, RequestBody

__all__ = [
    "AuthenticatedForwarder",
    "PROXY_PREFIX",
    "UPSTREAM_NAMESPACES",
    "BodyKind",
    "ForwardRequest",
    "ForwardResponse",
    "RequestBody",
]
