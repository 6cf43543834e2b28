"""Collaborator interfaces consumed by the workflow."""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from ..contracts import (
    Checkpoint,
    InvoiceLineItem,
    MediaAsset,
    SubjectDetails,
    UploadFile,
    WorkflowSnapshot,
)


class MediaUploader(Protocol):
    """Stores one file and returns where it lives."""

    async def upload_media(self, file: UploadFile) -> MediaAsset:
        """Upload a single file."""


class InvoiceCreator(Protocol):
    """Durably records a batch of invoice line items."""

    async def create_invoice(
        self, subject_id: str, items: Sequence[InvoiceLineItem]
    ) -> dict[str, Any]:
        """Create an invoice for ``subject_id``."""


class LeaseApi(MediaUploader, InvoiceCreator, Protocol):
    """Every backend endpoint the termination workflow talks to."""

    async def get_subject(self, subject_id: str) -> SubjectDetails:
        """Look up display details for a subject."""

    async def get_checkpoint(self, subject_id: str) -> Checkpoint:
        """Return saved progress; raise ``CheckpointNotFound`` when there is none."""

    async def save_checkpoint(
        self, subject_id: str, stage_key: str, snapshot: WorkflowSnapshot
    ) -> None:
        """Persist progress tagged with ``stage_key``."""

    async def commit_termination(
        self, subject_id: str, snapshot: WorkflowSnapshot
    ) -> dict[str, Any]:
        """Irreversibly terminate the lease."""
