"""
EZVIZ open API client and helpers.
"""

from .client import RawResponse, UpstreamClient, unwrap_envelope

__all__ = ["RawResponse", "UpstreamClient", "unwrap_envelope"]
