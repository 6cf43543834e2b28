"""Checkpoint gateways: load and save resumable workflow progress."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from .clients.protocol import LeaseApi
from .contracts import Checkpoint, WorkflowSnapshot
from .errors import CheckpointNotFound, LeaseTermError, TransientIOError
from .persistence import CheckpointRepository

logger = logging.getLogger(__name__)


class CheckpointGateway(Protocol):
    """Stateless request/response access to saved progress."""

    async def load(self, subject_id: str) -> Optional[Checkpoint]:
        """Return saved progress, or ``None`` on a first run."""

    async def save(
        self, subject_id: str, stage_key: str, snapshot: WorkflowSnapshot
    ) -> None:
        """Persist ``snapshot`` tagged with ``stage_key``."""

    async def complete(self, subject_id: str) -> None:
        """Note that the workflow reached its terminal commit."""


class HttpCheckpointGateway(CheckpointGateway):
    """Gateway backed by the backend's progress endpoint."""

    def __init__(self, api: LeaseApi) -> None:
        self._api = api

    async def load(self, subject_id: str) -> Optional[Checkpoint]:
        try:
            return await self._api.get_checkpoint(subject_id)
        except CheckpointNotFound:
            logger.info(f"No saved progress for subject {subject_id}")
            return None

    async def save(
        self, subject_id: str, stage_key: str, snapshot: WorkflowSnapshot
    ) -> None:
        await self._api.save_checkpoint(subject_id, stage_key, snapshot)
        logger.debug(f"Saved checkpoint for subject {subject_id} at stage {stage_key}")

    async def complete(self, subject_id: str) -> None:
        # the backend closes out progress as part of the terminal commit
        pass


class RepositoryCheckpointGateway(CheckpointGateway):
    """Gateway backed by a local checkpoint repository."""

    def __init__(self, repository: CheckpointRepository) -> None:
        self._repository = repository

    async def load(self, subject_id: str) -> Optional[Checkpoint]:
        try:
            record = await self._repository.get_checkpoint(subject_id)
        except LeaseTermError:
            raise
        except Exception as e:
            logger.error(f"Failed to load checkpoint for subject {subject_id}: {e}")
            raise TransientIOError(f"Failed to load progress: {e}") from e
        if record is None or record.status == "committed":
            return None
        return record.to_checkpoint()

    async def save(
        self, subject_id: str, stage_key: str, snapshot: WorkflowSnapshot
    ) -> None:
        try:
            await self._repository.save_checkpoint(
                subject_id, stage_key, snapshot.to_wire()
            )
        except LeaseTermError:
            raise
        except Exception as e:
            logger.error(f"Failed to save checkpoint for subject {subject_id}: {e}")
            raise TransientIOError(f"Failed to save progress: {e}") from e

    async def complete(self, subject_id: str) -> None:
        try:
            await self._repository.mark_committed(subject_id)
        except Exception as e:
            raise TransientIOError(f"Failed to close out progress: {e}") from e
