"""Local database backend — one SQLite file, one table per collection.

Each call runs as a single transaction on a worker thread; an asyncio lock
serialises calls on the shared connection. The prompts table carries
``category`` and ``client`` columns with secondary indexes so equality
lookups do not need a full scan.

The schema version lives in ``PRAGMA user_version``. Upgrades only ever
create missing tables and indexes, so opening an older database never
destroys data.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from prompt_library.db.models import DOCUMENT_MODELS, Document, DocumentKind, Prompt
from prompt_library.errors import BackendConnectionError, BlockedError

logger = structlog.get_logger()

SCHEMA_VERSION = 2

MIGRATIONS: dict[int, list[str]] = {
    1: [
        """
        CREATE TABLE IF NOT EXISTS prompts (
            id TEXT PRIMARY KEY,
            category TEXT NOT NULL DEFAULT '',
            client TEXT NOT NULL DEFAULT '',
            data TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_prompts_category ON prompts(category)",
        "CREATE INDEX IF NOT EXISTS idx_prompts_client ON prompts(client)",
        """
        CREATE TABLE IF NOT EXISTS templates (
            id TEXT PRIMARY KEY,
            data TEXT NOT NULL
        )
        """,
    ],
    2: [
        """
        CREATE TABLE IF NOT EXISTS collections (
            id TEXT PRIMARY KEY,
            data TEXT NOT NULL
        )
        """,
    ],
}


def _is_locked(exc: sqlite3.Error) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


@contextmanager
def _transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """BEGIN IMMEDIATE ... COMMIT, rolling back on any failure."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
        conn.execute("COMMIT")
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise


class LocalDatabaseRepository:
    """SQLite implementation of the storage contract."""

    def __init__(self, path: Path | str, busy_timeout: float = 1.0) -> None:
        self.path = Path(path)
        self._busy_timeout = busy_timeout
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Connection / migration
    # -------------------------------------------------------------------------

    async def init(self) -> None:
        if self._conn is not None:
            return
        async with self._lock:
            self._conn = await asyncio.to_thread(self._open)
        logger.info("db.connected", path=str(self.path), schema_version=SCHEMA_VERSION)

    def _open(self) -> sqlite3.Connection:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.path),
                timeout=self._busy_timeout,
                check_same_thread=False,
                isolation_level=None,
            )
        except (OSError, sqlite3.Error) as e:
            raise BackendConnectionError(
                f"Cannot open database '{self.path}': {e}. "
                "Check that the directory exists and is writable."
            ) from e

        try:
            self._migrate(conn)
        except BackendConnectionError:
            conn.close()
            raise
        except sqlite3.OperationalError as e:
            conn.close()
            if _is_locked(e):
                raise BlockedError(str(self.path), str(e)) from e
            raise BackendConnectionError(f"Cannot open database '{self.path}': {e}") from e
        except sqlite3.DatabaseError as e:
            conn.close()
            raise BackendConnectionError(
                f"Database '{self.path}' is unreadable ({e}). "
                "Restore it from a backup or point database_path elsewhere."
            ) from e
        return conn

    def _migrate(self, conn: sqlite3.Connection) -> None:
        with _transaction(conn):
            current = conn.execute("PRAGMA user_version").fetchone()[0]
            if current > SCHEMA_VERSION:
                raise BackendConnectionError(
                    f"Database '{self.path}' has schema version {current}, newer than "
                    f"supported version {SCHEMA_VERSION}. Upgrade prompt-library."
                )
            for version in range(current + 1, SCHEMA_VERSION + 1):
                for statement in MIGRATIONS[version]:
                    conn.execute(statement)
            if current < SCHEMA_VERSION:
                conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
                logger.info("db.migrated", path=str(self.path), from_version=current, to_version=SCHEMA_VERSION)

    async def close(self) -> None:
        if self._conn is None:
            return
        async with self._lock:
            conn, self._conn = self._conn, None
            await asyncio.to_thread(conn.close)

    async def _run(self, fn: Any, *args: Any) -> Any:
        if self._conn is None:
            raise BackendConnectionError("Database not initialised; call init() first")
        async with self._lock:
            try:
                return await asyncio.to_thread(fn, self._conn, *args)
            except sqlite3.OperationalError as e:
                if _is_locked(e):
                    raise BlockedError(str(self.path), str(e)) from e
                raise BackendConnectionError(f"Database '{self.path}' failed: {e}") from e
            except sqlite3.DatabaseError as e:
                raise BackendConnectionError(f"Database '{self.path}' is unreadable: {e}") from e

    # -------------------------------------------------------------------------
    # Storage contract
    # -------------------------------------------------------------------------

    async def list(self, kind: DocumentKind) -> list[Document]:
        rows = await self._run(self._select, f"SELECT data FROM {kind.value} ORDER BY rowid", ())
        return self._parse_rows(kind, rows)

    async def upsert(self, kind: DocumentKind, doc: Document) -> Document:
        model = DOCUMENT_MODELS[kind]
        if not isinstance(doc, model):
            raise TypeError(f"Expected {model.__name__} for '{kind.value}', got {type(doc).__name__}")
        await self._run(self._write, kind, doc)
        logger.debug("db.upserted", kind=kind.value, id=doc.id)
        return doc

    async def remove(self, kind: DocumentKind, id: str) -> None:
        await self._run(self._delete, kind, id)
        logger.debug("db.removed", kind=kind.value, id=id)

    async def clear_all(self) -> None:
        await self._run(self._clear)
        logger.info("db.cleared", path=str(self.path))

    async def query_prompts(
        self,
        category: str | None = None,
        client: str | None = None,
    ) -> list[Prompt]:
        clauses: list[str] = []
        params: list[str] = []
        if category:
            clauses.append("category = ?")
            params.append(category)
        if client:
            clauses.append("client = ?")
            params.append(client)
        sql = "SELECT data FROM prompts"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        rows = await self._run(self._select, sql + " ORDER BY rowid", tuple(params))
        return self._parse_rows(DocumentKind.PROMPTS, rows)

    # -------------------------------------------------------------------------
    # Worker-thread helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _select(conn: sqlite3.Connection, sql: str, params: tuple) -> list[tuple[str]]:
        return conn.execute(sql, params).fetchall()

    @staticmethod
    def _write(conn: sqlite3.Connection, kind: DocumentKind, doc: Document) -> None:
        data = doc.model_dump_json()
        with _transaction(conn):
            if kind is DocumentKind.PROMPTS:
                conn.execute(
                    "INSERT OR REPLACE INTO prompts (id, category, client, data) VALUES (?, ?, ?, ?)",
                    (doc.id, doc.category, doc.client, data),
                )
            else:
                conn.execute(
                    f"INSERT OR REPLACE INTO {kind.value} (id, data) VALUES (?, ?)",
                    (doc.id, data),
                )

    @staticmethod
    def _delete(conn: sqlite3.Connection, kind: DocumentKind, id: str) -> None:
        with _transaction(conn):
            conn.execute(f"DELETE FROM {kind.value} WHERE id = ?", (id,))

    @staticmethod
    def _clear(conn: sqlite3.Connection) -> None:
        with _transaction(conn):
            for kind in DocumentKind:
                conn.execute(f"DELETE FROM {kind.value}")

    @staticmethod
    def _parse_rows(kind: DocumentKind, rows: list[tuple[str]]) -> list[Any]:
        model = DOCUMENT_MODELS[kind]
        docs = []
        for (data,) in rows:
            try:
                docs.append(model.model_validate_json(data))
            except ValidationError as e:
                logger.warning("db.row_skipped", kind=kind.value, error=str(e))
        return docs
