"""
SQLite Repository - Destination and push history storage.

Features:
- Async operations via aiosqlite
- Destination configs stored as JSON (credentials already encrypted)
- Append-only push history
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from integratepdf.config.errors import StorageError

logger = logging.getLogger(__name__)

__all__ = ["IntegrationRepository"]


class IntegrationRepository:
    """
    SQLite repository for configured destinations.

    Example:
        >>> repo = IntegrationRepository("data/integratepdf.db")
        >>> await repo.initialize()
        >>> integration_id = await repo.create_integration("notion", "Receipts", {...})
        >>> history = await repo.list_push_history(integration_id)
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: aiosqlite.Connection | None = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(str(self.db_path))
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def _write(self, sql: str, params: tuple[Any, ...]) -> aiosqlite.Cursor:
        """Execute a statement and commit."""
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(sql, params)
            await conn.commit()
        except aiosqlite.Error as e:
            await conn.rollback()
            raise StorageError(f"Database write failed: {e}") from e
        return cursor

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self._get_connection()

        await conn.executescript("""
            -- Configured destinations
            CREATE TABLE IF NOT EXISTS integrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT,
                integration_type TEXT NOT NULL,
                name TEXT NOT NULL,
                config TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                last_sync TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            -- One row per push attempt
            CREATE TABLE IF NOT EXISTS push_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                integration_id INTEGER NOT NULL,
                document_id TEXT NOT NULL,
                status TEXT NOT NULL,
                external_id TEXT,
                error TEXT,
                pushed_at TIMESTAMP NOT NULL
            );

            CREATE TRIGGER IF NOT EXISTS push_history_no_update BEFORE UPDATE ON push_history BEGIN
                SELECT RAISE(ABORT, 'push_history is append-only');
            END;

            CREATE TRIGGER IF NOT EXISTS push_history_no_delete BEFORE DELETE ON push_history BEGIN
                SELECT RAISE(ABORT, 'push_history is append-only');
            END;

            -- Indexes
            CREATE INDEX IF NOT EXISTS idx_integrations_user ON integrations(user_id);
            CREATE INDEX IF NOT EXISTS idx_integrations_type ON integrations(integration_type);
            CREATE INDEX IF NOT EXISTS idx_push_history_integration ON push_history(integration_id);
            CREATE INDEX IF NOT EXISTS idx_push_history_document ON push_history(document_id);
        """)

        await conn.commit()
        logger.info("Database initialized: %s", self.db_path)

    @staticmethod
    def _integration_row(row: aiosqlite.Row) -> dict[str, Any]:
        data = dict(row)
        data["config"] = json.loads(data["config"]) if data["config"] else {}
        data["is_active"] = bool(data["is_active"])
        return data

    async def create_integration(
        self,
        integration_type: str,
        name: str,
        config: dict[str, Any],
        user_id: str | None = None,
        is_active: bool = True,
    ) -> int:
        """
        Insert a destination.

        Args:
            integration_type: Destination type id, e.g. "notion"
            name: Display name
            config: Destination config with sensitive values already encrypted
            user_id: Owning user
            is_active: Whether pushes are allowed

        Returns:
            Integration ID
        """
        cursor = await self._write(
            """
            INSERT INTO integrations (user_id, integration_type, name, config, is_active)
            VALUES (?, ?, ?, ?, ?)
            """,
            (user_id, integration_type, name, json.dumps(config), int(is_active)),
        )
        logger.info("Integration created: id=%s type=%s", cursor.lastrowid, integration_type)
        return cursor.lastrowid

    async def get_integration(self, integration_id: int) -> dict[str, Any] | None:
        """Get integration by ID."""
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM integrations WHERE id = ?", (integration_id,))
        row = await cursor.fetchone()

        if row:
            return self._integration_row(row)
        return None

    async def list_integrations(
        self,
        user_id: str | None = None,
        integration_type: str | None = None,
        active_only: bool = False,
    ) -> list[dict[str, Any]]:
        """List integrations, newest first."""
        conn = await self._get_connection()

        clauses: list[str] = []
        params: list[Any] = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if integration_type is not None:
            clauses.append("integration_type = ?")
            params.append(integration_type)
        if active_only:
            clauses.append("is_active = 1")

        sql = "SELECT * FROM integrations"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, id DESC"

        cursor = await conn.execute(sql, tuple(params))
        rows = await cursor.fetchall()
        return [self._integration_row(row) for row in rows]

    async def update_config(self, integration_id: int, config: dict[str, Any]) -> None:
        """Replace an integration's config."""
        await self._write(
            "UPDATE integrations SET config = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (json.dumps(config), integration_id),
        )

    async def update_integration(
        self,
        integration_id: int,
        name: str | None = None,
        config: dict[str, Any] | None = None,
        is_active: bool | None = None,
    ) -> bool:
        """
        Update the given columns of an integration.

        Args:
            integration_id: Integration ID
            name: New display name
            config: Replacement config (secrets already encrypted)
            is_active: Enable or disable pushes

        Returns:
            True if the integration exists
        """
        assignments = ["updated_at = CURRENT_TIMESTAMP"]
        params: list[Any] = []
        if name is not None:
            assignments.append("name = ?")
            params.append(name)
        if config is not None:
            assignments.append("config = ?")
            params.append(json.dumps(config))
        if is_active is not None:
            assignments.append("is_active = ?")
            params.append(int(is_active))

        params.append(integration_id)
        cursor = await self._write(
            f"UPDATE integrations SET {', '.join(assignments)} WHERE id = ?",
            tuple(params),
        )
        return cursor.rowcount > 0

    async def touch_last_sync(self, integration_id: int, synced_at: str) -> None:
        """Record the time of the last successful push."""
        await self._write(
            "UPDATE integrations SET last_sync = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (synced_at, integration_id),
        )

    async def delete_integration(self, integration_id: int) -> bool:
        """
        Delete an integration. Push history is kept.

        Returns:
            True if a row was deleted
        """
        cursor = await self._write("DELETE FROM integrations WHERE id = ?", (integration_id,))
        return cursor.rowcount > 0

    async def record_push(
        self,
        integration_id: int,
        document_id: str,
        success: bool,
        pushed_at: str,
        external_id: str | None = None,
        error: dict[str, Any] | None = None,
    ) -> int:
        """
        Append a push outcome.

        Returns:
            History row ID
        """
        cursor = await self._write(
            """
            INSERT INTO push_history (integration_id, document_id, status, external_id, error, pushed_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                integration_id,
                document_id,
                "success" if success else "failed",
                external_id,
                json.dumps(error) if error else None,
                pushed_at,
            ),
        )
        return cursor.lastrowid

    async def list_push_history(
        self,
        integration_id: int | None = None,
        document_id: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Push history, newest first."""
        conn = await self._get_connection()

        clauses: list[str] = []
        params: list[Any] = []
        if integration_id is not None:
            clauses.append("integration_id = ?")
            params.append(integration_id)
        if document_id is not None:
            clauses.append("document_id = ?")
            params.append(document_id)

        sql = "SELECT * FROM push_history"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY pushed_at DESC, id DESC LIMIT ?"
        params.append(limit)

        cursor = await conn.execute(sql, tuple(params))
        rows = await cursor.fetchall()

        history = []
        for row in rows:
            data = dict(row)
            data["error"] = json.loads(data["error"]) if data["error"] else None
            history.append(data)
        return history

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
