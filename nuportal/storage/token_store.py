"""Persistent token store backed by SQLAlchemy.

One current row per (federation, type) pair. Writes are upserts
(last write wins), reads return the newest row for a key.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    select,
    update,
)
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from nuportal.errors import StoreError

logger = logging.getLogger(__name__)

metadata = MetaData()

token_table = Table(
    "token",
    metadata,
    Column("federation", String(64), primary_key=True),
    Column("type", String(16), primary_key=True),
    Column("value", Text, nullable=False),
    Column("last_update", DateTime, nullable=False),
)

DEFAULT_CONNECT_TIMEOUT = 10
DEFAULT_QUERY_TIMEOUT = 30


class TokenKind(Enum):
    """Kind of stored token."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenRecord:
    """A stored token row."""

    tenant: str
    kind: TokenKind
    value: str
    last_update: datetime


def _to_storage(ts: datetime) -> datetime:
    """Normalize to naive UTC for storage."""
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def _from_storage(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class TokenStore:
    """Keyed token persistence.

    The engine is created lazily on first use and reused until ``close()``.
    Can be used as a context manager to guarantee release.
    """

    def __init__(
        self,
        url: str,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT,
        create_schema: bool = True,
    ):
        """Initialize token store.

        Args:
            url: SQLAlchemy database URL
            connect_timeout: Seconds to wait when connecting
            query_timeout: Seconds a single read, write or statement may take
            create_schema: Create the ``token`` table on first use
        """
        self.url = url
        self.connect_timeout = connect_timeout
        self.query_timeout = query_timeout
        self.create_schema = create_schema
        self._engine: Optional[Engine] = None

    @classmethod
    def from_settings(cls, settings) -> "TokenStore":
        """Create a store from ``StoreSettings``."""
        return cls(
            url=settings.url,
            connect_timeout=settings.connect_timeout,
            query_timeout=settings.query_timeout,
            create_schema=settings.create_schema,
        )

    @property
    def engine(self) -> Engine:
        """Lazily created, pooled engine."""
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        try:
            backend = make_url(self.url).get_backend_name()
            engine = create_engine(
                self.url,
                connect_args=self._connect_args(backend),
                pool_pre_ping=True,
            )
            if self.create_schema:
                metadata.create_all(engine)
        except (SQLAlchemyError, ImportError) as e:
            raise StoreError(f"Could not open token store: {e}") from e

        logger.debug("Token store engine created", extra={"backend": backend})
        return engine

    def _connect_args(self, backend: str) -> dict:
        """Driver arguments bounding connect and per-query time."""
        if backend == "sqlite":
            # sqlite3 only waits on locks
            return {"timeout": self.connect_timeout}
        if backend in ("mysql", "mariadb"):
            return {
                "connect_timeout": self.connect_timeout,
                "read_timeout": self.query_timeout,
                "write_timeout": self.query_timeout,
            }
        if backend == "postgresql":
            return {
                "connect_timeout": int(self.connect_timeout),
                "options": f"-c statement_timeout={int(self.query_timeout * 1000)}",
            }
        return {}

    def ensure_schema(self) -> None:
        """Create the ``token`` table if it does not exist."""
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError(f"Could not create token table: {e}") from e

    def find_current(
        self,
        tenant: str,
        kind: TokenKind,
        not_older_than: Optional[datetime] = None,
    ) -> Optional[TokenRecord]:
        """Return the most recently updated record for (tenant, kind).

        Args:
            tenant: Federation identifier
            kind: Token kind
            not_older_than: When given, only a record with
                ``last_update >= not_older_than`` is returned

        Returns:
            The record, or None if absent (or too old)

        Raises:
            StoreError: If the store cannot be read
        """
        stmt = (
            select(token_table.c.value, token_table.c.last_update)
            .where(token_table.c.federation == tenant)
            .where(token_table.c.type == kind.value)
            .order_by(token_table.c.last_update.desc())
            .limit(1)
        )
        if not_older_than is not None:
            stmt = stmt.where(token_table.c.last_update >= _to_storage(not_older_than))

        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).first()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read {kind.value} token: {e}") from e

        if row is None:
            return None
        return TokenRecord(
            tenant=tenant,
            kind=kind,
            value=row.value,
            last_update=_from_storage(row.last_update),
        )

    def upsert(self, tenant: str, kind: TokenKind, value: str, now: datetime) -> None:
        """Write or overwrite the current record for (tenant, kind).

        Raises:
            StoreError: If the write fails; nothing is committed in that case
        """
        values = {
            "federation": tenant,
            "type": kind.value,
            "value": value,
            "last_update": _to_storage(now),
        }

        try:
            with self.engine.begin() as conn:
                stmt = self._native_upsert(conn.dialect.name, values)
                if stmt is not None:
                    conn.execute(stmt)
                else:
                    result = conn.execute(
                        update(token_table)
                        .where(token_table.c.federation == tenant)
                        .where(token_table.c.type == kind.value)
                        .values(value=value, last_update=values["last_update"])
                    )
                    if result.rowcount == 0:
                        conn.execute(token_table.insert().values(**values))
        except SQLAlchemyError as e:
            raise StoreError(f"Could not write {kind.value} token: {e}") from e

        logger.debug(
            "Token stored",
            extra={"tenant": tenant, "kind": kind.value},
        )

    @staticmethod
    def _native_upsert(dialect_name: str, values: dict):
        """Build the dialect's insert-or-update statement, if it has one."""
        if dialect_name in ("sqlite", "postgresql"):
            insert = sqlite.insert if dialect_name == "sqlite" else postgresql.insert
            stmt = insert(token_table).values(**values)
            return stmt.on_conflict_do_update(
                index_elements=["federation", "type"],
                set_={
                    "value": stmt.excluded.value,
                    "last_update": stmt.excluded.last_update,
                },
            )
        if dialect_name in ("mysql", "mariadb"):
            stmt = mysql.insert(token_table).values(**values)
            return stmt.on_duplicate_key_update(
                value=stmt.inserted.value,
                last_update=stmt.inserted.last_update,
            )
        return None

    def list_records(self, tenant: str) -> list[TokenRecord]:
        """Return every current record for a tenant, newest first."""
        stmt = (
            select(token_table.c.type, token_table.c.value, token_table.c.last_update)
            .where(token_table.c.federation == tenant)
            .order_by(token_table.c.last_update.desc())
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not list tokens: {e}") from e

        return [
            TokenRecord(
                tenant=tenant,
                kind=TokenKind(row.type),
                value=row.value,
                last_update=_from_storage(row.last_update),
            )
            for row in rows
        ]

    def close(self) -> None:
        """Release pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> "TokenStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
