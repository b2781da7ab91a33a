"""Bearer token lifecycle: cache lookup, refresh, re-authentication."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from nuportal.config import DEFAULT_FEDERATION, DEFAULT_SCOPE
from nuportal.errors import ApiError, AuthError, GatewayError, StoreError
from nuportal.storage.token_store import TokenKind, TokenStore

logger = logging.getLogger(__name__)

# How many seconds an access token is valid after it was stored.
TOKEN_VALID_SECONDS = 300

TOKEN_PATH = "/rs/auth/token"


class AuthState(Enum):
    """States of a ``get_bearer_token`` call."""

    NO_TOKEN = "no_token"
    HAVE_ACCESS_TOKEN = "have_access_token"
    REAUTHENTICATING = "reauthenticating"


class GrantType(Enum):
    """Supported OAuth2 grant types."""

    CLIENT_CREDENTIALS = "client_credentials"
    REFRESH_TOKEN = "refresh_token"


@dataclass(frozen=True)
class Credentials:
    """Static client credentials for the fixed federation."""

    client_id: str
    client_secret: str = field(repr=False)
    scope: str = DEFAULT_SCOPE
    federation_id: str = DEFAULT_FEDERATION


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh token returned by the token endpoint."""

    access_token: str
    refresh_token: str

    @classmethod
    def from_response(cls, payload) -> "TokenPair":
        """Validate a token endpoint response.

        Raises:
            ApiError: If either token is missing or empty
        """
        if not isinstance(payload, dict):
            raise ApiError("Token response is not an object")
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        if not access_token or not refresh_token:
            raise ApiError("Token response lacks access_token or refresh_token")
        return cls(access_token=str(access_token), refresh_token=str(refresh_token))


@dataclass(frozen=True)
class ExchangeResult:
    """Outcome of one token exchange: either tokens or the error."""

    grant: GrantType
    tokens: Optional[TokenPair] = None
    error: Optional[GatewayError] = None

    @property
    def ok(self) -> bool:
        return self.tokens is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Authenticator:
    """Provides a valid bearer token, backed by the shared token store.

    Lookup order:
    1. Stored access token younger than ``token_valid_seconds``
    2. Refresh-token grant with the newest stored refresh token
    3. Client-credentials grant

    Each step is attempted at most once per call. The store is the only
    cache; nothing is kept on the instance between calls.
    """

    def __init__(
        self,
        credentials: Credentials,
        store: TokenStore,
        gateway,
        base_url: str,
        token_valid_seconds: int = TOKEN_VALID_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
        on_store_error: Optional[Callable[[StoreError], None]] = None,
    ):
        """Initialize authenticator.

        Args:
            credentials: Client credentials
            store: Token store shared with other processes
            gateway: Gateway used for token exchanges
            base_url: API base URL; the token endpoint is appended
            token_valid_seconds: Access token validity window
            clock: Returns the current time (timezone-aware)
            on_store_error: Called when persisting fresh tokens fails
        """
        self.credentials = credentials
        self.store = store
        self.gateway = gateway
        self.token_url = base_url.rstrip("/") + TOKEN_PATH
        self.token_valid_seconds = token_valid_seconds
        self.clock = clock
        self.on_store_error = on_store_error

    @property
    def tenant(self) -> str:
        return self.credentials.federation_id

    def get_bearer_token(self) -> str:
        """Return a usable access token.

        Raises:
            StoreError: If the store cannot be read
            AuthError: If both token exchanges failed
        """
        state = AuthState.NO_TOKEN
        cutoff = self.clock() - timedelta(seconds=self.token_valid_seconds)

        cached = self.store.find_current(self.tenant, TokenKind.ACCESS, not_older_than=cutoff)
        if cached is not None and cached.value:
            self._transition(state, AuthState.HAVE_ACCESS_TOKEN)
            logger.debug("Using cached access token", extra={"tenant": self.tenant})
            return cached.value

        refresh = self.store.find_current(self.tenant, TokenKind.REFRESH)

        attempts: list[tuple[GrantType, Optional[str]]] = []
        if refresh is not None and refresh.value:
            attempts.append((GrantType.REFRESH_TOKEN, refresh.value))
        attempts.append((GrantType.CLIENT_CREDENTIALS, None))

        last_result: Optional[ExchangeResult] = None
        for grant, refresh_token in attempts:
            state = self._transition(state, AuthState.REAUTHENTICATING)
            last_result = self._exchange(grant, refresh_token)
            if last_result.ok:
                self._persist(last_result.tokens)
                self._transition(state, AuthState.HAVE_ACCESS_TOKEN)
                return last_result.tokens.access_token

            logger.warning(
                "Token exchange failed",
                extra={
                    "grant_type": grant.value,
                    "tenant": self.tenant,
                    "error": str(last_result.error),
                },
            )

        self._transition(state, AuthState.NO_TOKEN)
        logger.error("Authentication failed", extra={"tenant": self.tenant})
        cause = last_result.error if last_result else None
        raise AuthError("authentication failed", cause=cause) from cause

    def _transition(self, current: AuthState, new: AuthState) -> AuthState:
        if current is not new:
            logger.debug(
                "Authentication state change",
                extra={"from_state": current.value, "to_state": new.value},
            )
        return new

    def _exchange(self, grant: GrantType, refresh_token: Optional[str] = None) -> ExchangeResult:
        """Perform one token exchange and return a tagged result."""
        body = {
            "grant_type": grant.value,
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "scope": self.credentials.scope,
        }
        if grant is GrantType.REFRESH_TOKEN:
            body["refresh_token"] = refresh_token

        try:
            payload = self.gateway.send(
                self.token_url,
                method="POST",
                body=body,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            tokens = TokenPair.from_response(payload)
        except GatewayError as e:
            return ExchangeResult(grant=grant, error=e)

        logger.info(
            "Token obtained successfully",
            extra={"grant_type": grant.value, "tenant": self.tenant},
        )
        return ExchangeResult(grant=grant, tokens=tokens)

    def _persist(self, tokens: TokenPair) -> None:
        """Store both tokens; failures are reported, never raised."""
        now = self.clock()
        for kind, value in (
            (TokenKind.ACCESS, tokens.access_token),
            (TokenKind.REFRESH, tokens.refresh_token),
        ):
            try:
                self.store.upsert(self.tenant, kind, value, now)
            except StoreError as e:
                logger.error(
                    "Could not persist token; cached state may be stale",
                    extra={"tenant": self.tenant, "kind": kind.value, "error": str(e)},
                )
                if self.on_store_error is not None:
                    try:
                        self.on_store_error(e)
                    except Exception:
                        logger.exception("Store error handler failed")
