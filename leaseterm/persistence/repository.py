"""Repository abstraction for checkpoint persistence."""

from __future__ import annotations

from typing import Protocol

from .models import CheckpointRecord


class CheckpointRepository(Protocol):
    """Protocol for checkpoint persistence backends."""

    async def save_checkpoint(
        self, subject_id: str, stage_key: str, snapshot: dict
    ) -> None:
        """Insert or replace the checkpoint for ``subject_id``."""

    async def get_checkpoint(self, subject_id: str) -> CheckpointRecord | None:
        """Retrieve the checkpoint for ``subject_id``."""

    async def mark_committed(self, subject_id: str) -> None:
        """Record that the termination was committed."""

    async def delete_checkpoint(self, subject_id: str) -> bool:
        """Remove a checkpoint; return whether one existed."""

    async def list_checkpoints(self) -> list[CheckpointRecord]:
        """Return all persisted checkpoints."""
