"""
Exception types shared by the broker components.

Provides:
- BrokerError base class
- Configuration and credential lifecycle errors
- Upstream call failures (timeout, transport, semantic envelope errors)
"""

from typing import Optional


class BrokerError(Exception):
    """
    Base exception for all broker errors.

    Attributes:
        message: Human-readable error description
        cause: Original exception if wrapping
    """

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ConfigError(BrokerError):
    """Required settings are missing or malformed. Fatal at startup."""


class AcquisitionError(BrokerError):
    """Upstream rejected, timed out, or garbled a credential request."""


class CredentialUnavailable(BrokerError):
    """No valid credential is currently held."""

    def __init__(self, message: str = "EZVIZ access token not available"):
        super().__init__(message)


class UpstreamTimeout(BrokerError):
    """An outbound call exceeded its deadline."""


class ProxyError(BrokerError):
    """Transport-level failure reaching the upstream platform."""


class UpstreamError(BrokerError):
    """
    Upstream answered with a failure envelope.

    Both envelope conventions ({code, msg} and {meta: {code, message}})
    are normalised into this one shape.

    Attributes:
        code: Upstream error code, kept verbatim as a string (e.g. "2003")
        message: Upstream error message
        status: HTTP status of the upstream response, if any
    """

    def __init__(self, code: str, message: str, status: Optional[int] = None):
        self.code = str(code)
        self.status = status
        super().__init__(message)

    def __str__(self) -> str:
        return f"EZVIZ API error: {self.message} ({self.code})"


class NotForwardable(BrokerError):
    """Proxy path is outside the upstream API namespaces."""
