"""PostgreSQL implementation of the checkpoint repository."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import asyncpg

from .models import CheckpointRecord
from .repository import CheckpointRepository


def _load_json(value: Any) -> dict:
    # asyncpg hands back JSONB as text unless a codec is registered
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)


class PostgresCheckpointRepository(CheckpointRepository):
    """Persist checkpoints using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS termination_checkpoints (
                subject_id TEXT PRIMARY KEY,
                stage_key TEXT,
                snapshot JSONB NOT NULL,
                status TEXT NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )

    @staticmethod
    def _to_record(row: asyncpg.Record) -> CheckpointRecord:
        return CheckpointRecord(
            subject_id=row["subject_id"],
            stage_key=row["stage_key"],
            snapshot=_load_json(row["snapshot"]),
            status=row["status"],
            updated_at=row["updated_at"],
        )

    # ------------------------------------------------------------------
    async def save_checkpoint(
        self, subject_id: str, stage_key: str, snapshot: dict
    ) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO termination_checkpoints (subject_id, stage_key, snapshot, status, updated_at)
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (subject_id) DO UPDATE SET
                    stage_key = EXCLUDED.stage_key,
                    snapshot = EXCLUDED.snapshot,
                    status = EXCLUDED.status,
                    updated_at = EXCLUDED.updated_at
                """,
                subject_id,
                stage_key,
                json.dumps(snapshot),
                "in_progress",
                datetime.now(timezone.utc),
            )
        finally:
            await conn.close()

    async def get_checkpoint(self, subject_id: str) -> CheckpointRecord | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT subject_id, stage_key, snapshot, status, updated_at FROM termination_checkpoints WHERE subject_id = $1",
                subject_id,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return self._to_record(row)

    async def mark_committed(self, subject_id: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "UPDATE termination_checkpoints SET status = $1, updated_at = $2 WHERE subject_id = $3",
                "committed",
                datetime.now(timezone.utc),
                subject_id,
            )
        finally:
            await conn.close()

    async def delete_checkpoint(self, subject_id: str) -> bool:
        conn = await self._connect()
        try:
            result = await conn.execute(
                "DELETE FROM termination_checkpoints WHERE subject_id = $1",
                subject_id,
            )
        finally:
            await conn.close()
        # asyncpg returns the command tag, e.g. "DELETE 1"
        return result.split()[-1] != "0"

    async def list_checkpoints(self) -> list[CheckpointRecord]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT subject_id, stage_key, snapshot, status, updated_at FROM termination_checkpoints ORDER BY updated_at"
            )
        finally:
            await conn.close()
        return [self._to_record(r) for r in rows]
