"""Draft-plus-committed-list builders for termination sub-records.

Each aggregator appends to a list owned by the workflow state. Nothing is
appended until its gating step (upload, validation or invoice creation)
succeeds, and a failed step leaves every list exactly as it was.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Generic, List, Optional, Sequence, Tuple, TypeVar

from .clients.protocol import InvoiceCreator, MediaUploader
from .contracts import (
    DamageDraft,
    DamageRecord,
    InvoiceDraft,
    InvoiceLineItem,
    MediaAsset,
    UploadFile,
)
from .errors import AuthError, IllegalTransition, TransientIOError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _remove_at(items: List[T], index: int) -> Optional[T]:
    if 0 <= index < len(items):
        return items.pop(index)
    return None


class ListAggregator(Generic[T]):
    """Ordered committed list with UI-safe removal.

    Once frozen (the workflow committed or closed) edits raise
    :class:`IllegalTransition` and removals are ignored.
    """

    def __init__(self, items: List[T]) -> None:
        self._items = items
        self._detached = False
        self._frozen: Optional[Tuple[int, str]] = None

    def freeze(self, stage_index: int, reason: str) -> None:
        """Refuse further edits; ``stage_index`` and ``reason`` go into the error."""
        self._frozen = (stage_index, reason)

    def detach(self, stage_index: int = -1) -> None:
        """Stop applying results of calls that finish after the workflow closed."""
        self._detached = True
        if self._frozen is None:
            self.freeze(stage_index, "workflow closed")

    @property
    def frozen(self) -> bool:
        return self._frozen is not None

    def _ensure_editable(self, operation: str) -> None:
        if self._frozen is not None:
            raise IllegalTransition(operation, *self._frozen)

    @property
    def items(self) -> Tuple[T, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def remove_committed(self, index: int) -> Optional[T]:
        """Remove the item at ``index``; out-of-range indices are ignored.

        Does nothing once the aggregator is frozen.
        """
        if self._frozen is not None:
            return None
        return _remove_at(self._items, index)


class MediaAggregator(ListAggregator[MediaAsset]):
    """Uploads photo/video batches and appends them atomically."""

    def __init__(self, items: List[MediaAsset], uploader: MediaUploader) -> None:
        super().__init__(items)
        self._uploader = uploader

    async def add_files(self, files: Sequence[UploadFile]) -> List[MediaAsset]:
        """Upload ``files`` concurrently and append the results.

        The whole batch is joined before the list changes. If any upload
        fails nothing from the batch is appended and a single error is
        raised, so the user can retry the same selection.

        Raises:
            AuthError: If the session was rejected for any file
            TransientIOError: If any other upload failed
        """
        self._ensure_editable("add_files")
        if not files:
            return []

        results = await asyncio.gather(
            *(self._uploader.upload_media(f) for f in files),
            return_exceptions=True,
        )
        failures = [
            (f, r) for f, r in zip(files, results) if isinstance(r, BaseException)
        ]
        if failures:
            for file, error in failures:
                logger.error(f"Upload of {file.filename} failed: {error}")
            auth_failure = next(
                (err for _, err in failures if isinstance(err, AuthError)), None
            )
            if auth_failure is not None:
                raise auth_failure
            names = ", ".join(f.filename for f, _ in failures)
            raise TransientIOError(
                f"Failed to upload {len(failures)} of {len(files)} file(s): {names}"
            ) from failures[0][1]

        if self._detached:
            logger.info(f"Discarding {len(files)} upload(s) finished after close")
            return []

        uploaded = list(results)
        self._items.extend(uploaded)
        logger.info(f"Appended {len(uploaded)} media asset(s)")
        return uploaded


class DamageAggregator(ListAggregator[DamageRecord]):
    """Builds damage records in a sub-form before appending them."""

    def __init__(self, items: List[DamageRecord], uploader: MediaUploader) -> None:
        super().__init__(items)
        self._uploader = uploader
        self._reset_draft()

    def _reset_draft(self) -> None:
        self.draft = DamageDraft()
        self.draft_media = MediaAggregator(self.draft.media, self._uploader)

    def freeze(self, stage_index: int, reason: str) -> None:
        super().freeze(stage_index, reason)
        self.draft_media.freeze(stage_index, reason)

    def detach(self, stage_index: int = -1) -> None:
        super().detach(stage_index)
        self.draft_media.detach(stage_index)

    def update_draft(
        self, description: Optional[str] = None, notes: Optional[str] = None
    ) -> None:
        self._ensure_editable("update_draft")
        if description is not None:
            self.draft.description = description
        if notes is not None:
            self.draft.notes = notes

    def stage_for_draft(self) -> DamageRecord:
        """Validate the draft and return the record it would produce."""
        if not self.draft.description.strip():
            raise ValidationError("description", "Damage description is required")
        return DamageRecord(
            description=self.draft.description,
            notes=self.draft.notes,
            media=[m.model_copy() for m in self.draft.media],
        )

    def commit_draft(self) -> DamageRecord:
        self._ensure_editable("commit_draft")
        record = self.stage_for_draft()
        self._items.append(record)
        self._reset_draft()
        return record


def _parse_amount(raw: object) -> float:
    if raw is None or isinstance(raw, bool):
        raise ValueError("missing amount")
    value = float(str(raw).strip()) if isinstance(raw, str) else float(raw)
    if not math.isfinite(value) or value <= 0:
        raise ValueError("amount must be positive")
    return value


def _parse_quantity(raw: object) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return 1
    if isinstance(raw, bool):
        raise ValueError("invalid quantity")
    if isinstance(raw, str):
        value = float(raw.strip())
    else:
        value = float(raw)
    if not value.is_integer() or value < 1:
        raise ValueError("quantity must be a whole number of at least 1")
    return int(value)


class InvoiceAggregator(ListAggregator[InvoiceLineItem]):
    """Collects invoice lines locally, then commits them as one invoice.

    Lines wait in ``pending`` until :meth:`commit_pending` succeeds against
    the invoicing service; only then do they join the committed list.
    """

    def __init__(
        self,
        items: List[InvoiceLineItem],
        creator: InvoiceCreator,
        subject_id: str,
    ) -> None:
        super().__init__(items)
        self._creator = creator
        self._subject_id = subject_id
        self.pending: List[InvoiceLineItem] = []
        self.draft = InvoiceDraft()

    def update_draft(
        self,
        description: Optional[str] = None,
        amount: Optional[object] = None,
        quantity: Optional[object] = None,
    ) -> None:
        self._ensure_editable("update_draft")
        if description is not None:
            self.draft.description = description
        if amount is not None:
            self.draft.amount = amount
        if quantity is not None:
            self.draft.quantity = quantity

    def stage_for_draft(self) -> InvoiceLineItem:
        """Validate the draft; the first invalid field is reported."""
        if not self.draft.description.strip():
            raise ValidationError("description", "Invoice description is required")
        try:
            amount = _parse_amount(self.draft.amount)
        except ValueError:
            raise ValidationError("amount", "Valid amount is required") from None
        try:
            quantity = _parse_quantity(self.draft.quantity)
        except ValueError:
            raise ValidationError("quantity", "Valid quantity is required") from None
        return InvoiceLineItem(
            description=self.draft.description, amount=amount, quantity=quantity
        )

    def commit_draft(self) -> InvoiceLineItem:
        """Move the validated draft into the pending buffer."""
        self._ensure_editable("commit_draft")
        item = self.stage_for_draft()
        self.pending.append(item)
        self.draft = InvoiceDraft()
        return item

    def remove_pending(self, index: int) -> Optional[InvoiceLineItem]:
        self._ensure_editable("remove_pending")
        return _remove_at(self.pending, index)

    async def commit_pending(self) -> List[InvoiceLineItem]:
        """Create an invoice from the pending lines.

        Raises:
            ValidationError: If there is nothing pending (no call is made)
            TransientIOError: If the invoicing service failed; pending lines
                are kept for a retry
        """
        self._ensure_editable("commit_pending")
        if not self.pending:
            raise ValidationError(
                "invoice_items", "At least one invoice item is required"
            )
        batch = list(self.pending)
        await self._creator.create_invoice(self._subject_id, batch)
        if self._detached:
            logger.info("Discarding invoice result finished after close")
            return []
        self._items.extend(batch)
        self.pending.clear()
        logger.info(
            f"Created invoice with {len(batch)} item(s) for subject {self._subject_id}"
        )
        return batch
