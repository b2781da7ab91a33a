"""Authenticated access to the nuPortal REST API."""

from typing import Any, Optional

from nuportal.auth.authenticator import Authenticator, Credentials
from nuportal.clients.gateway import HttpGateway
from nuportal.config import Settings
from nuportal.storage.token_store import TokenStore


class ApiClient:
    """Client for nuPortal resource endpoints.

    Features:
    - Bearer authentication with a store-backed token cache
    - Form-encoded request bodies
    - Fixed page size (``maxResults=250``) on every call

    Endpoint-specific wrappers build on ``call``.
    """

    def __init__(
        self,
        base_url: str,
        gateway: HttpGateway,
        authenticator: Authenticator,
    ):
        """Initialize API client.

        Args:
            base_url: API base URL
            gateway: Gateway performing the HTTP calls
            authenticator: Source of bearer tokens
        """
        self.base_url = base_url.rstrip("/")
        self.gateway = gateway
        self.authenticator = authenticator

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApiClient":
        """Wire gateway, store and authenticator from settings."""
        api = settings.api
        gateway = HttpGateway(timeout=api.timeout)
        store = TokenStore.from_settings(settings.store)
        authenticator = Authenticator(
            credentials=Credentials(
                client_id=api.client_id,
                client_secret=api.client_secret,
                scope=api.scope,
                federation_id=api.federation,
            ),
            store=store,
            gateway=gateway,
            base_url=api.base_url,
        )
        return cls(api.base_url, gateway, authenticator)

    def call(
        self,
        path: str,
        method: str = "GET",
        query: Optional[dict] = None,
        body: Optional[dict] = None,
        headers: Optional[dict] = None,
        authenticated: bool = True,
    ) -> Any:
        """Call an API endpoint.

        A bearer token is requested from the authenticator before every
        authenticated call.

        Args:
            path: Endpoint path, e.g. ``/rs/2014/federations``
            method: HTTP method
            query: Additional query parameters
            body: Form fields for POST, PUT and PATCH
            headers: Extra or overriding headers
            authenticated: Attach an ``Authorization`` header

        Returns:
            Decoded JSON response
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        token = self.authenticator.get_bearer_token() if authenticated else None
        return self.gateway.send(
            url,
            method=method,
            query=query,
            body=body,
            headers=headers,
            bearer_token=token,
        )

    def get(self, path: str, query: Optional[dict] = None, **kwargs) -> Any:
        """Make GET request and return JSON response."""
        return self.call(path, "GET", query=query, **kwargs)

    def post(self, path: str, body: Optional[dict] = None, **kwargs) -> Any:
        """Make POST request and return JSON response."""
        return self.call(path, "POST", body=body, **kwargs)

    def put(self, path: str, body: Optional[dict] = None, **kwargs) -> Any:
        return self.call(path, "PUT", body=body, **kwargs)

    def patch(self, path: str, body: Optional[dict] = None, **kwargs) -> Any:
        return self.call(path, "PATCH", body=body, **kwargs)

    def delete(self, path: str, **kwargs) -> Any:
        return self.call(path, "DELETE", **kwargs)

    def close(self) -> None:
        """Release the HTTP session and the token store."""
        self.gateway.close()
        self.authenticator.store.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
