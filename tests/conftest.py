"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
import requests

from nuportal.auth.authenticator import Authenticator, Credentials
from nuportal.clients.gateway import HttpGateway
from nuportal.storage.token_store import TokenStore

BASE_URL = "https://portal.example.com"


@pytest.fixture
def fixed_now():
    """Fixed datetime for testing."""
    return datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path):
    """Token store on a SQLite file."""
    token_store = TokenStore(f"sqlite:///{tmp_path / 'tokens.db'}")
    yield token_store
    token_store.close()


@pytest.fixture
def credentials():
    """Client credentials for the test federation."""
    return Credentials(
        client_id="client-1",
        client_secret="s3cret",
        scope="nuPortalRS_federation",
        federation_id="BDV",
    )


@pytest.fixture
def gateway():
    """Gateway double; configure ``send`` per test."""
    return Mock(spec=HttpGateway)


@pytest.fixture
def authenticator(credentials, store, gateway, fixed_now):
    """Authenticator wired to the SQLite store and the gateway double."""
    return Authenticator(
        credentials=credentials,
        store=store,
        gateway=gateway,
        base_url=BASE_URL,
        clock=lambda: fixed_now,
    )


@pytest.fixture
def make_response():
    """Factory for ``requests.Response`` objects with a given status and body."""
    def _make(status_code: int = 200, body: str = "{}") -> requests.Response:
        response = requests.Response()
        response.status_code = status_code
        response._content = body.encode("utf-8")
        response.encoding = "utf-8"
        response.url = BASE_URL
        return response

    return _make
