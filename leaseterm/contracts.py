"""Data contracts for the lease-termination workflow.

Python attributes are snake_case; the backend speaks camelCase, so every model
that crosses the wire declares aliases and accepts either spelling.
"""

from __future__ import annotations

import mimetypes
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_date(value: Any) -> Any:
    # the progress endpoint stores full ISO timestamps; only the day matters
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


class MediaKind(str, Enum):
    """Kind of uploaded evidence."""

    PHOTO = "photo"
    VIDEO = "video"

    @classmethod
    def from_content_type(cls, content_type: Optional[str]) -> "MediaKind":
        if content_type and content_type.startswith("image"):
            return cls.PHOTO
        return cls.VIDEO


class MediaAsset(BaseModel):
    """A photo or video that has been stored by the media service."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    kind: MediaKind = Field(alias="type")


class UploadFile(BaseModel):
    """A local file selected for upload."""

    filename: str
    content_type: str = "application/octet-stream"
    content: bytes = b""

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "UploadFile":
        path = Path(path)
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content_type=guessed or "application/octet-stream",
            content=path.read_bytes(),
        )


class DamageRecord(BaseModel):
    """A recorded damage with optional supporting media."""

    description: str
    notes: str = ""
    media: List[MediaAsset] = Field(default_factory=list)


class InvoiceLineItem(BaseModel):
    """A single billable line charged against the deposit."""

    description: str
    amount: float = Field(gt=0)
    quantity: int = Field(default=1, ge=1)

    @property
    def total(self) -> float:
        return self.amount * self.quantity


class DetailsFields(BaseModel):
    """Fields collected on the Termination Details stage."""

    termination_date: Optional[date] = None
    reason: str = ""
    notes: str = ""

    @field_validator("termination_date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _coerce_date(v)


class DamageDraft(BaseModel):
    """Transient damage sub-form."""

    description: str = ""
    notes: str = ""
    media: List[MediaAsset] = Field(default_factory=list)


class InvoiceDraft(BaseModel):
    """Transient invoice line sub-form holding raw user input."""

    description: str = ""
    amount: Optional[Union[float, str]] = None
    quantity: Optional[Union[int, str]] = 1


class WorkflowSnapshot(BaseModel):
    """Serializable view of everything accumulated so far."""

    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(alias="customerId")
    termination_date: Optional[date] = Field(default=None, alias="terminationDate")
    reason: str = ""
    notes: str = ""
    media: List[MediaAsset] = Field(default_factory=list)
    damages: List[DamageRecord] = Field(default_factory=list)
    invoice_items: List[InvoiceLineItem] = Field(default_factory=list, alias="invoices")

    @field_validator("termination_date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return _coerce_date(v)

    @field_validator("reason", "notes", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("media", "damages", "invoice_items", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_wire(self) -> Dict[str, Any]:
        """Serialize using the backend's field names."""
        return self.model_dump(mode="json", by_alias=True)


class Checkpoint(BaseModel):
    """Persisted ``(stage_key, snapshot)`` pair for one subject."""

    stage_key: Optional[str] = None
    snapshot: WorkflowSnapshot

    def to_wire(self) -> Dict[str, Any]:
        payload = self.snapshot.to_wire()
        payload["stage"] = self.stage_key
        return payload

    @classmethod
    def from_wire(
        cls, subject_id: str, payload: Optional[Dict[str, Any]]
    ) -> Optional["Checkpoint"]:
        """Build a checkpoint from a progress payload.

        An empty or missing payload means no progress has been saved yet and
        yields ``None``.
        """
        if not payload:
            return None
        data = {k: v for k, v in payload.items() if k != "stage"}
        data["customerId"] = subject_id
        return cls(
            stage_key=payload.get("stage"),
            snapshot=WorkflowSnapshot.model_validate(data),
        )


class SubjectDetails(BaseModel):
    """Read-only customer lookup used for display."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[Union[str, int]] = None
    full_name: Optional[str] = Field(default=None, alias="fullName")

    @property
    def label(self) -> str:
        return self.full_name or str(self.id or "")


class WorkflowState(BaseModel):
    """Mutable state owned by a single workflow controller."""

    subject_id: str = Field(frozen=True)
    details: DetailsFields = Field(default_factory=DetailsFields)
    media: List[MediaAsset] = Field(default_factory=list)
    damages: List[DamageRecord] = Field(default_factory=list)
    invoice_items: List[InvoiceLineItem] = Field(default_factory=list)
    active_stage_index: int = 0

    def snapshot(self) -> WorkflowSnapshot:
        """Return a deep copy of the accumulated data."""
        return WorkflowSnapshot(
            subject_id=self.subject_id,
            termination_date=self.details.termination_date,
            reason=self.details.reason,
            notes=self.details.notes,
            media=[m.model_copy(deep=True) for m in self.media],
            damages=[d.model_copy(deep=True) for d in self.damages],
            invoice_items=[i.model_copy(deep=True) for i in self.invoice_items],
        )

    @classmethod
    def from_snapshot(
        cls, snapshot: WorkflowSnapshot, active_stage_index: int = 0
    ) -> "WorkflowState":
        return cls(
            subject_id=snapshot.subject_id,
            details=DetailsFields(
                termination_date=snapshot.termination_date,
                reason=snapshot.reason,
                notes=snapshot.notes,
            ),
            media=list(snapshot.media),
            damages=list(snapshot.damages),
            invoice_items=list(snapshot.invoice_items),
            active_stage_index=active_stage_index,
        )
