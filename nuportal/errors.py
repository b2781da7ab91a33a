"""Error taxonomy for the nuPortal client.

Hierarchy:
- NuPortalError
  - GatewayError (HTTP layer)
    - TransportError
    - HttpError
    - ApiError
  - AuthError
  - StoreError
"""

from typing import Optional


class NuPortalError(Exception):
    """Base class for all errors raised by this package."""


class GatewayError(NuPortalError):
    """A single HTTP request/response cycle failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(GatewayError):
    """Connection, DNS, TLS or timeout failure."""


class HttpError(GatewayError):
    """Non-2xx response whose body could not be decoded."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message, status_code)
        self.body = body


class ApiError(GatewayError):
    """The remote service reported an error.

    Covers in-band ``error_description`` fields (even on HTTP 200),
    non-JSON success bodies and malformed token responses.
    """

    def __init__(
        self,
        description: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(description, status_code)
        self.description = description
        self.body = body


class AuthError(NuPortalError):
    """Neither the refresh-token nor the client-credentials exchange succeeded."""

    def __init__(self, message: str = "authentication failed", cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class StoreError(NuPortalError):
    """The token store is unreachable or a read/write failed."""
