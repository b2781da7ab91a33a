"""Configuration loading.

Settings are read once from the environment (and an optional ``.env`` file)
and are immutable afterwards.
"""

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote_plus

from dotenv import find_dotenv, load_dotenv

DEFAULT_SCOPE = "nuPortalRS_federation"
DEFAULT_FEDERATION = "BDV"
DEFAULT_TIMEOUT = 30


@dataclass(frozen=True)
class ApiSettings:
    """Remote API access."""

    base_url: str
    client_id: str
    client_secret: str
    scope: str = DEFAULT_SCOPE
    federation: str = DEFAULT_FEDERATION
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self):
        if not self.base_url:
            raise ValueError("base_url is required")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))


@dataclass(frozen=True)
class StoreSettings:
    """Token store connection parameters."""

    url: str
    connect_timeout: float = 10
    query_timeout: float = 30
    create_schema: bool = True

    @classmethod
    def from_parts(
        cls,
        host: str,
        user: str,
        password: str,
        name: str,
        **kwargs,
    ) -> "StoreSettings":
        """Build MySQL settings from discrete connection parameters."""
        url = "mysql+pymysql://{user}:{password}@{host}/{name}".format(
            user=quote_plus(user),
            password=quote_plus(password),
            host=host,
            name=name,
        )
        return cls(url=url, **kwargs)


@dataclass(frozen=True)
class Settings:
    """Root settings object."""

    api: ApiSettings
    store: StoreSettings

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """Load settings from environment variables.

        Args:
            env_file: Optional path to a dotenv file (defaults to the
                nearest ``.env`` from the working directory)

        Returns:
            Settings instance

        Raises:
            ValueError: If a required variable is missing
        """
        load_dotenv(env_file or find_dotenv(usecwd=True))

        api = ApiSettings(
            base_url=_require("NUPORTAL_BASE_URL"),
            client_id=_require("NUPORTAL_CLIENT_ID"),
            client_secret=_require("NUPORTAL_CLIENT_SECRET"),
            scope=os.getenv("NUPORTAL_SCOPE", DEFAULT_SCOPE),
            federation=os.getenv("NUPORTAL_FEDERATION", DEFAULT_FEDERATION),
            timeout=float(os.getenv("NUPORTAL_TIMEOUT", DEFAULT_TIMEOUT)),
        )

        connect_timeout = float(os.getenv("NUPORTAL_DB_TIMEOUT", 10))
        query_timeout = float(os.getenv("NUPORTAL_DB_QUERY_TIMEOUT", 30))
        database_url = os.getenv("NUPORTAL_DATABASE_URL")
        if database_url:
            store = StoreSettings(
                url=database_url,
                connect_timeout=connect_timeout,
                query_timeout=query_timeout,
            )
        else:
            store = StoreSettings.from_parts(
                host=_require("NUPORTAL_DB_HOST"),
                user=_require("NUPORTAL_DB_USER"),
                password=os.getenv("NUPORTAL_DB_PASSWORD", ""),
                name=_require("NUPORTAL_DB_NAME"),
                connect_timeout=connect_timeout,
                query_timeout=query_timeout,
            )

        return cls(api=api, store=store)


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"{name} is required")
    return value
