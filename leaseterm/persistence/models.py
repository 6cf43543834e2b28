"""Data models for persisted checkpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from ..contracts import Checkpoint

CheckpointStatus = Literal["in_progress", "committed"]


class CheckpointRecord(BaseModel):
    """Stored progress for one subject."""

    subject_id: str
    stage_key: Optional[str] = None
    snapshot: dict[str, Any] = Field(default_factory=dict)
    status: CheckpointStatus = "in_progress"
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_checkpoint(self) -> Checkpoint | None:
        """Rebuild the checkpoint from the stored wire payload."""
        payload = dict(self.snapshot)
        if not payload and self.stage_key is None:
            return None
        payload["stage"] = self.stage_key
        return Checkpoint.from_wire(self.subject_id, payload)
