"""SQLite implementation of the checkpoint repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .models import CheckpointRecord
from .repository import CheckpointRepository


class SQLiteCheckpointRepository(CheckpointRepository):
    """Persist checkpoints using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS termination_checkpoints (
                subject_id TEXT PRIMARY KEY,
                stage_key TEXT,
                snapshot TEXT NOT NULL,
                status TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    @staticmethod
    def _to_record(row: sqlite3.Row) -> CheckpointRecord:
        return CheckpointRecord(
            subject_id=row["subject_id"],
            stage_key=row["stage_key"],
            snapshot=json.loads(row["snapshot"]) if row["snapshot"] else {},
            status=row["status"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Repository API
    async def save_checkpoint(
        self, subject_id: str, stage_key: str, snapshot: dict
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO termination_checkpoints (subject_id, stage_key, snapshot, status, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(subject_id) DO UPDATE SET
                stage_key = excluded.stage_key,
                snapshot = excluded.snapshot,
                status = excluded.status,
                updated_at = excluded.updated_at
            """,
            subject_id,
            stage_key,
            json.dumps(snapshot, sort_keys=True),
            "in_progress",
            datetime.now(timezone.utc).isoformat(),
        )

    async def get_checkpoint(self, subject_id: str) -> CheckpointRecord | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT subject_id, stage_key, snapshot, status, updated_at FROM termination_checkpoints WHERE subject_id = ?",
            subject_id,
        )
        if not row:
            return None
        return self._to_record(row)

    async def mark_committed(self, subject_id: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "UPDATE termination_checkpoints SET status = ?, updated_at = ? WHERE subject_id = ?",
            "committed",
            datetime.now(timezone.utc).isoformat(),
            subject_id,
        )

    async def delete_checkpoint(self, subject_id: str) -> bool:
        deleted = await asyncio.to_thread(
            self._execute,
            "DELETE FROM termination_checkpoints WHERE subject_id = ?",
            subject_id,
        )
        return deleted > 0

    async def list_checkpoints(self) -> list[CheckpointRecord]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT subject_id, stage_key, snapshot, status, updated_at FROM termination_checkpoints ORDER BY updated_at",
        )
        return [self._to_record(row) for row in rows]
