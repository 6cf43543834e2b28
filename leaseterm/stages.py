"""Stage registry for the lease-termination workflow."""

from __future__ import annotations

from typing import Iterable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator


class StageDescriptor(BaseModel):
    """One named step of a fixed workflow sequence."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    ordinal: int = 0

    @field_validator("key")
    @classmethod
    def ensure_key(cls, v: str) -> str:
        if not v:
            raise ValueError("stage key must be a non-empty string")
        return v


class StageRegistry:
    """Fixed total order of stages.

    Stage keys are what gets persisted, so lookups go through the key rather
    than a stored index. Unknown keys resolve to the first stage so that
    checkpoints written by older layouts still load.
    """

    def __init__(self, stages: Iterable[Tuple[str, str]]) -> None:
        descriptors: List[StageDescriptor] = []
        seen: set[str] = set()
        for ordinal, (key, label) in enumerate(stages):
            if key in seen:
                raise ValueError(f"Duplicate stage key: {key}")
            seen.add(key)
            descriptors.append(StageDescriptor(key=key, label=label, ordinal=ordinal))
        if not descriptors:
            raise ValueError("A stage registry needs at least one stage")
        self._stages: Tuple[StageDescriptor, ...] = tuple(descriptors)
        self._index = {stage.key: stage.ordinal for stage in self._stages}

    def index_for_key(self, key: Optional[str]) -> int:
        """Return the index of ``key`` or ``0`` when it is not registered."""
        if key is None:
            return 0
        return self._index.get(key, 0)

    def key_for_index(self, index: int) -> str:
        if not 0 <= index < len(self._stages):
            raise IndexError(f"Stage index out of range: {index}")
        return self._stages[index].key

    def count(self) -> int:
        return len(self._stages)

    @property
    def last_index(self) -> int:
        return len(self._stages) - 1

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self) -> Iterator[StageDescriptor]:
        return iter(self._stages)

    def __getitem__(self, index: int) -> StageDescriptor:
        return self._stages[index]


TERMINATION_STAGES = StageRegistry(
    [
        ("DETAILS", "Termination Details"),
        ("MEDIA", "Media Upload"),
        ("DAMAGES", "Record Damages"),
        ("INVOICES", "Create Invoices"),
        ("VACATED", "Mark Vacated"),
    ]
)

__all__ = ["StageDescriptor", "StageRegistry", "TERMINATION_STAGES"]
