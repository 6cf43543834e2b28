"""Persistence layer for termination checkpoints."""

from __future__ import annotations

from typing import Optional

from ..config import LeaseTermConfig, load_config
from .inmemory import InMemoryCheckpointRepository
from .models import CheckpointRecord
from .postgres import PostgresCheckpointRepository
from .repository import CheckpointRepository
from .sqlite import SQLiteCheckpointRepository

_repository_instance: CheckpointRepository | None = None


def _open(database_url: str) -> CheckpointRepository:
    scheme, sep, location = database_url.partition("://")
    if not sep:
        raise ValueError(f"Unsupported database backend: {database_url}")
    if scheme == "sqlite":
        return SQLiteCheckpointRepository(location)
    if scheme in ("postgres", "postgresql"):
        return PostgresCheckpointRepository(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


def get_repository(
    database_url: Optional[str] = None, config: Optional[LeaseTermConfig] = None
) -> CheckpointRepository:
    """Return the checkpoint repository for local progress.

    ``database_url`` wins over configuration; ``load_config`` already folds in
    ``LEASETERM_DATABASE_URL`` and ``DATABASE_URL``. Supported schemes are
    ``sqlite://PATH`` and ``postgres(ql)://``. Without a URL progress lives in
    memory for the life of the process.

    The result is cached; passing either argument replaces the cached
    instance.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    database_url = database_url or (config or load_config()).database_url
    if database_url:
        _repository_instance = _open(database_url)
    else:
        _repository_instance = InMemoryCheckpointRepository()
    return _repository_instance


__all__ = [
    "CheckpointRecord",
    "CheckpointRepository",
    "InMemoryCheckpointRepository",
    "SQLiteCheckpointRepository",
    "PostgresCheckpointRepository",
    "get_repository",
]
