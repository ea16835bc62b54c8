"""SQLite storage adapter.

Implements the core StoragePort using a simple SQLite database.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from core.errors import StoreUnavailable
from core.models import NotificationStatus, SpaceRecord


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _from_text(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_record(row: sqlite3.Row) -> SpaceRecord:
    return SpaceRecord(
        space_id=row["space_id"],
        creator_id=row["creator_id"],
        screen_name=row["screen_name"],
        title=row["title"],
        status=NotificationStatus(row["notification_status"]),
        scheduled_start=_from_text(row["scheduled_start"]),
        started_at=_from_text(row["started_at"]),
        created_at=_from_text(row["created_at"]),
        notified_at=_from_text(row["notified_at"]),
    )


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the StoragePort contract.

    Every public method opens its own connection, so concurrent dispatch
    tasks never share a cursor. Any sqlite3 failure surfaces as
    StoreUnavailable.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - spaces: one row per notified Space, holding the highest stage sent
        """

        try:
            with self._connect() as conn:
                # Fields:
                # - space_id: stable Space id (PRIMARY KEY, the dedup key)
                # - creator_id / screen_name / title: message context for audits
                # - notification_status: highest NotificationStatus delivered
                # - scheduled_start: set for schedule and reminder stages
                # - started_at: set for the start stage
                # - created_at: Space creation time from the API
                # - notified_at: when this row was last written
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS spaces (
                        space_id TEXT PRIMARY KEY,
                        creator_id TEXT NOT NULL,
                        screen_name TEXT,
                        title TEXT,
                        notification_status INTEGER NOT NULL,
                        scheduled_start TIMESTAMP,
                        started_at TIMESTAMP,
                        created_at TIMESTAMP,
                        notified_at TIMESTAMP
                    )
                    """
                )
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot initialize {self._db_path}: {exc}") from exc

    def get_status(self, space_id: str) -> NotificationStatus:
        """Return the highest stage notified for a Space, NONE if unknown."""

        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT notification_status FROM spaces WHERE space_id = ?",
                    (space_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot read space {space_id}: {exc}") from exc
        if row is None:
            return NotificationStatus.NONE
        return NotificationStatus(row["notification_status"])

    def should_notify(self, space_id: str, candidate: NotificationStatus) -> bool:
        """Return True only when ``candidate`` is later than the stored stage."""

        return candidate > self.get_status(space_id)

    def commit(self, record: SpaceRecord) -> None:
        """Upsert the record for a Space.

        The update clause only fires for a strictly higher stage, so the
        stored status can never move backwards even if two commits race.
        """

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO spaces (
                        space_id,
                        creator_id,
                        screen_name,
                        title,
                        notification_status,
                        scheduled_start,
                        started_at,
                        created_at,
                        notified_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(space_id) DO UPDATE SET
                        creator_id = excluded.creator_id,
                        screen_name = excluded.screen_name,
                        title = excluded.title,
                        notification_status = excluded.notification_status,
                        scheduled_start = excluded.scheduled_start,
                        started_at = excluded.started_at,
                        created_at = excluded.created_at,
                        notified_at = excluded.notified_at
                    WHERE excluded.notification_status > spaces.notification_status
                    """,
                    (
                        record.space_id,
                        record.creator_id,
                        record.screen_name,
                        record.title,
                        int(record.status),
                        _to_text(record.scheduled_start),
                        _to_text(record.started_at),
                        _to_text(record.created_at),
                        _to_text(record.notified_at),
                    ),
                )
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot commit space {record.space_id}: {exc}") from exc

    def get_record(self, space_id: str) -> Optional[SpaceRecord]:
        """Return the full stored record for a Space, if any."""

        try:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM spaces WHERE space_id = ?", (space_id,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot read space {space_id}: {exc}") from exc
        return _row_to_record(row) if row else None

    def list_records(self, limit: int = 20) -> list[SpaceRecord]:
        """Return the most recently notified records, newest first."""

        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM spaces ORDER BY notified_at DESC LIMIT ?",
                    (limit,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot list spaces: {exc}") from exc
        return [_row_to_record(row) for row in rows]
