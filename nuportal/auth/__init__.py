"""Authentication for API access.

Supports:
- Store-backed access token cache
- OAuth2 refresh_token grant with client_credentials fallback
"""

from .authenticator import (
    TOKEN_VALID_SECONDS,
    AuthState,
    Authenticator,
    Credentials,
    ExchangeResult,
    GrantType,
    TokenPair,
)

__all__ = [
    "TOKEN_VALID_SECONDS",
    "AuthState",
    "Authenticator",
    "Credentials",
    "ExchangeResult",
    "GrantType",
    "TokenPair",
]
