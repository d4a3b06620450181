"""
Message types for EZVIZ open API responses.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


# Envelopes

class LegacyEnvelope(BaseModel):
    """{code, msg, data} envelope used by /api/lapp/* endpoints."""
    code: Any  # "200" on success, sometimes numeric
    msg: Optional[str] = None
    data: Any = None


class Meta(BaseModel):
    code: int
    message: Optional[str] = None


class MetaEnvelope(BaseModel):
    """{meta: {code, message}, data} envelope used by /api/v3/* endpoints."""
    meta: Meta
    data: Any = None


# Payloads

class TokenData(BaseModel):
    accessToken: str
    expireTime: int  # epoch milliseconds
    areaDomain: Optional[str] = None


class StreamAddress(BaseModel):
    """Short-lived stream URL issued by /api/lapp/live/address/get."""
    model_config = ConfigDict(extra="allow")

    url: str
    id: Any = None
    expireTime: Any = None
