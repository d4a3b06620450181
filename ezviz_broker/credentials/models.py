"""
Credential data models.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class CredentialState(Enum):
    """Lifecycle state of the process-wide credential."""

    UNINITIALIZED = "uninitialized"
    ACQUIRING = "acquiring"
    VALID = "valid"
    FAILED = "failed"


@dataclass(frozen=True)
class Credential:
    """
    EZVIZ access token issued by the token endpoint.

    Immutable: renewal produces a new instance that replaces the old one.
    """

    token: str
    expires_at_ms: int
    area_domain: str

    def remaining_ms(self, now_ms: int) -> int:
        """Milliseconds until expiry (negative once expired)."""
        return self.expires_at_ms - now_ms

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at_ms / 1000, tz=timezone.utc)

    def __repr__(self) -> str:
        # Keep the token out of logs and tracebacks
        return f"Credential(token=***, expires_at={self.expires_at.isoformat()}, area_domain={self.area_domain!r})"
