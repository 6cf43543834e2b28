"""In-memory implementation of the checkpoint repository."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Dict

from .models import CheckpointRecord
from .repository import CheckpointRepository


class InMemoryCheckpointRepository(CheckpointRepository):
    """Store checkpoints in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._checkpoints: Dict[str, CheckpointRecord] = {}

    async def save_checkpoint(
        self, subject_id: str, stage_key: str, snapshot: dict
    ) -> None:
        self._checkpoints[subject_id] = CheckpointRecord(
            subject_id=subject_id,
            stage_key=stage_key,
            snapshot=copy.deepcopy(snapshot),
            status="in_progress",
        )

    async def get_checkpoint(self, subject_id: str) -> CheckpointRecord | None:
        record = self._checkpoints.get(subject_id)
        return record.model_copy(deep=True) if record else None

    async def mark_committed(self, subject_id: str) -> None:
        record = self._checkpoints.get(subject_id)
        if record:
            record.status = "committed"
            record.updated_at = datetime.now(timezone.utc)

    async def delete_checkpoint(self, subject_id: str) -> bool:
        return self._checkpoints.pop(subject_id, None) is not None

    async def list_checkpoints(self) -> list[CheckpointRecord]:
        return [r.model_copy(deep=True) for r in self._checkpoints.values()]
