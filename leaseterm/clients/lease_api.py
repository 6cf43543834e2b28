"""HTTP client for the lending backend's lease-termination endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from ..contracts import (
    Checkpoint,
    InvoiceLineItem,
    MediaAsset,
    MediaKind,
    SubjectDetails,
    UploadFile,
    WorkflowSnapshot,
)
from ..errors import CheckpointNotFound, TransientIOError
from ..session import Session
from .base import BaseApiClient

logger = logging.getLogger(__name__)


class LeaseApiClient(BaseApiClient):
    """Async HTTP client for the endpoints behind the terminate-lease screen.

    Usage:
        client = LeaseApiClient(base_url="http://localhost:5000/api", session=session)
        checkpoint = await client.get_checkpoint("C1")
    """

    def __init__(
        self,
        base_url: str,
        session: Session,
        timeout: float = 30.0,
        max_retries: int = 0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url,
            session=session,
            timeout=timeout,
            max_retries=max_retries,
            transport=transport,
        )

    async def get_subject(self, subject_id: str) -> SubjectDetails:
        """Get customer details for display.

        Raises:
            TransientIOError: If the customer could not be fetched
        """
        response = await self._request(
            "GET", f"/customer-details/{subject_id}", idempotent=True
        )
        data = self._json_object(response)
        return self._decode(response, lambda: SubjectDetails.model_validate(data))

    async def get_checkpoint(self, subject_id: str) -> Checkpoint:
        """Get saved termination progress.

        Raises:
            CheckpointNotFound: If nothing has been saved yet (404 or an empty
                body)
        """
        response = await self._request(
            "GET",
            f"/lease-termination-progress/{subject_id}",
            idempotent=True,
            allow_not_found=True,
        )
        checkpoint = None
        if response is not None:
            payload = self._json_object(response)
            checkpoint = self._decode(
                response, lambda: Checkpoint.from_wire(subject_id, payload)
            )
        if checkpoint is None:
            raise CheckpointNotFound(subject_id)
        return checkpoint

    async def save_checkpoint(
        self, subject_id: str, stage_key: str, snapshot: WorkflowSnapshot
    ) -> None:
        """Persist progress. Repeating a save with the same content is harmless."""
        checkpoint = Checkpoint(stage_key=stage_key, snapshot=snapshot)
        await self._request(
            "POST",
            f"/lease-termination-progress/{subject_id}",
            idempotent=True,
            json=checkpoint.to_wire(),
        )

    async def upload_media(self, file: UploadFile) -> MediaAsset:
        """Upload a single photo or video.

        The server may report the stored kind as ``contentKind``; otherwise it
        is derived from the file's content type.
        """
        response = await self._request(
            "POST",
            "/upload-media",
            files={"file": (file.filename, file.content, file.content_type)},
        )
        data = self._json_object(response)
        url = data.get("url")
        if not url:
            raise TransientIOError(f"Upload of {file.filename} returned no URL")
        kind = data.get("contentKind") or data.get("type")
        if not isinstance(kind, str):
            kind = None
        try:
            media_kind = MediaKind(kind)
        except ValueError:
            # servers may echo a MIME type instead of the kind
            media_kind = MediaKind.from_content_type(kind or file.content_type)
        return self._decode(response, lambda: MediaAsset(url=url, kind=media_kind))

    async def create_invoice(
        self, subject_id: str, items: Sequence[InvoiceLineItem]
    ) -> Dict[str, Any]:
        """Create one invoice from a batch of line items. Never retried."""
        response = await self._request(
            "POST",
            "/lease-terminate-invoice",
            json={
                "customerId": subject_id,
                "invoiceItems": [item.model_dump(mode="json") for item in items],
            },
        )
        return self._json(response) or {}

    async def commit_termination(
        self, subject_id: str, snapshot: WorkflowSnapshot
    ) -> Dict[str, Any]:
        """Finalize the termination. Never retried."""
        logger.info(f"Committing lease termination for subject {subject_id}")
        response = await self._request(
            "POST", f"/terminate-lease/{subject_id}", json=snapshot.to_wire()
        )
        return self._json(response) or {}
