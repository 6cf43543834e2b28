"""Lease-termination workflow controller."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncIterator, Callable, List, Optional, Sequence

from .aggregators import DamageAggregator, InvoiceAggregator, MediaAggregator
from .clients.protocol import LeaseApi
from .config import CheckpointPolicy
from .contracts import (
    DamageRecord,
    InvoiceLineItem,
    MediaAsset,
    SubjectDetails,
    UploadFile,
    WorkflowState,
)
from .errors import (
    AuthError,
    IllegalTransition,
    TransientIOError,
    ValidationError,
    WorkflowBusy,
)
from .gateway import CheckpointGateway, HttpCheckpointGateway
from .session import Session
from .shell import Notice
from .stages import TERMINATION_STAGES, StageDescriptor, StageRegistry

logger = logging.getLogger(__name__)

Notifier = Callable[[Notice], None]

_UNSET = object()


class TerminationWorkflow:
    """Resumable staged controller for terminating a lease.

    The controller is the only writer of its :class:`WorkflowState`. Every
    transition validates, asks the checkpoint gateway to persist progress
    tagged with the destination stage, and only then moves. ``submit`` is
    the single irreversible step and is only legal from the last stage.

    Operations are serialized: starting one while another is awaiting the
    network raises :class:`WorkflowBusy`. After :meth:`close` the results of
    calls still in flight are discarded.
    """

    def __init__(
        self,
        subject_id: str,
        session: Session,
        api: LeaseApi,
        gateway: Optional[CheckpointGateway] = None,
        registry: StageRegistry = TERMINATION_STAGES,
        checkpoint_policy: CheckpointPolicy = "blocking",
        notifier: Optional[Notifier] = None,
    ) -> None:
        if not subject_id:
            raise ValueError("subject_id is required")
        self._subject_id = subject_id
        self._session = session
        self._api = api
        self._gateway = gateway or HttpCheckpointGateway(api)
        self._registry = registry
        self._checkpoint_policy = checkpoint_policy
        self._notifier = notifier
        self._busy = asyncio.Lock()
        self._committed = False
        self._closed = False
        self.subject: Optional[SubjectDetails] = None
        self._bind(WorkflowState(subject_id=subject_id))

    # ------------------------------------------------------------------
    # State
    def _bind(self, state: WorkflowState) -> None:
        self._state = state
        self.media = MediaAggregator(state.media, self._api)
        self.damages = DamageAggregator(state.damages, self._api)
        self.invoices = InvoiceAggregator(
            state.invoice_items, self._api, self._subject_id
        )

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def subject_id(self) -> str:
        return self._subject_id

    @property
    def registry(self) -> StageRegistry:
        return self._registry

    @property
    def active_stage_index(self) -> int:
        return self._state.active_stage_index

    @property
    def active_stage(self) -> StageDescriptor:
        return self._registry[self._state.active_stage_index]

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def closed(self) -> bool:
        return self._closed

    def _freeze(self, reason: str) -> None:
        for aggregator in (self.media, self.damages, self.invoices):
            aggregator.freeze(self.active_stage_index, reason)

    def _notify(self, level: str, message: str) -> None:
        if self._notifier is not None:
            self._notifier(Notice(level=level, message=message))

    # ------------------------------------------------------------------
    # Legality
    @property
    def _idle(self) -> bool:
        return not (self.busy or self._committed or self._closed)

    @property
    def can_previous(self) -> bool:
        return self._idle and self.active_stage_index > 0

    @property
    def can_next(self) -> bool:
        return self._idle and self.active_stage_index < self._registry.last_index

    @property
    def can_skip(self) -> bool:
        return self.can_next

    @property
    def can_submit(self) -> bool:
        return self._idle and self.active_stage_index == self._registry.last_index

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise IllegalTransition(operation, self.active_stage_index, "workflow closed")
        if self._committed:
            raise IllegalTransition(
                operation, self.active_stage_index, "termination already committed"
            )

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        self._ensure_open(name)
        if self._busy.locked():
            raise WorkflowBusy(f"Cannot {name} while another operation is running")
        async with self._busy:
            yield

    # ------------------------------------------------------------------
    # Loading
    async def load(self) -> Optional[SubjectDetails]:
        """Fetch subject details and resume from any saved checkpoint.

        Raises:
            AuthError: If the session is not authenticated
            TransientIOError: If either lookup failed
        """
        if not self._session.is_authenticated:
            raise AuthError("User not authenticated.")

        async with self._operation("load"):
            loaded = await self._discard_after_close(
                asyncio.gather(
                    self._api.get_subject(self._subject_id),
                    self._gateway.load(self._subject_id),
                ),
                None,
            )
            if loaded is None or self._closed:
                return None
            subject, checkpoint = loaded

            self.subject = subject
            if checkpoint is None:
                logger.info(f"Starting fresh termination for subject {self._subject_id}")
                self._bind(WorkflowState(subject_id=self._subject_id))
            else:
                index = self._registry.index_for_key(checkpoint.stage_key)
                logger.info(
                    f"Resuming termination for subject {self._subject_id} "
                    f"at stage {self._registry[index].key}"
                )
                self._bind(WorkflowState.from_snapshot(checkpoint.snapshot, index))
            return subject

    # ------------------------------------------------------------------
    # Stage 0 fields
    def update_details(
        self,
        termination_date: object = _UNSET,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        """Edit the termination details; pass ``termination_date=None`` to clear it."""
        self._ensure_open("update_details")
        details = self._state.details
        if termination_date is not _UNSET:
            if isinstance(termination_date, datetime):
                termination_date = termination_date.date()
            elif termination_date is not None and not isinstance(termination_date, date):
                raise ValidationError("termination_date", "Termination date must be a date")
            details.termination_date = termination_date
        if reason is not None:
            details.reason = reason
        if notes is not None:
            details.notes = notes

    def validate_stage(self) -> None:
        """Run the mandatory checks for leaving the active stage."""
        if self.active_stage_index == 0:
            details = self._state.details
            if details.termination_date is not None and not details.reason.strip():
                raise ValidationError(
                    "reason", "Reason is required if termination date is provided"
                )

    # ------------------------------------------------------------------
    # Transitions
    async def _checkpoint(self, target_index: int) -> bool:
        """Persist progress tagged with ``target_index``'s key.

        Returns ``False`` when a best-effort save failed and the caller should
        still move.
        """
        stage_key = self._registry.key_for_index(target_index)
        try:
            await self._gateway.save(
                self._subject_id, stage_key, self._state.snapshot()
            )
        except TransientIOError as e:
            if self._checkpoint_policy == "best_effort":
                logger.warning(
                    f"Checkpoint save failed for subject {self._subject_id}, "
                    f"continuing to {stage_key}: {e}"
                )
                self._notify("warning", "Failed to save progress.")
                return False
            logger.error(f"Checkpoint save failed for subject {self._subject_id}: {e}")
            raise
        return True

    async def _move(self, operation: str, step: int) -> int:
        async with self._operation(operation):
            target = self.active_stage_index + step
            try:
                await self._checkpoint(target)
            except Exception:
                if self._closed:
                    logger.info(f"Discarding failed {operation} after close")
                    return self.active_stage_index
                raise
            if self._closed:
                return self.active_stage_index
            self._state.active_stage_index = target
            logger.info(
                f"Subject {self._subject_id}: {operation} to stage "
                f"{self._registry[target].key}"
            )
            return target

    async def next(self) -> int:
        """Validate the active stage, checkpoint, and advance one stage."""
        if not self.can_next:
            self._ensure_open("next")
            self._reject_move("next")
        self.validate_stage()
        return await self._move("next", 1)

    async def skip(self) -> int:
        """Advance one stage without the active stage's optional checks.

        The Details cross-field rule is mandatory and still applies.
        """
        if not self.can_skip:
            self._ensure_open("skip")
            self._reject_move("skip")
        if self.active_stage_index == 0:
            self.validate_stage()
        return await self._move("skip", 1)

    async def previous(self) -> int:
        """Checkpoint and move back one stage. Never validated."""
        if not self.can_previous:
            self._ensure_open("previous")
            self._reject_move("previous")
        return await self._move("previous", -1)

    def _reject_move(self, operation: str) -> None:
        if self.busy:
            raise WorkflowBusy(f"Cannot {operation} while another operation is running")
        raise IllegalTransition(operation, self.active_stage_index)

    async def submit(self) -> dict:
        """Commit the termination. Only legal from the last stage.

        On failure the workflow stays on the last stage so the user can
        retry.
        """
        if not self.can_submit:
            self._ensure_open("submit")
            self._reject_move("submit")

        async with self._operation("submit"):
            snapshot = self._state.snapshot()
            try:
                ack = await self._api.commit_termination(self._subject_id, snapshot)
            except Exception:
                if self._closed:
                    logger.info("Discarding failed submit after close")
                    return {}
                raise
            self._committed = True
            self._freeze("termination already committed")
            logger.info(f"Lease termination committed for subject {self._subject_id}")
            self._notify("success", "Lease terminated successfully")

            try:
                await self._gateway.complete(self._subject_id)
            except TransientIOError as e:
                # the commit itself succeeded; stale progress is only cosmetic
                logger.warning(f"Could not close out progress for {self._subject_id}: {e}")
                self._notify("warning", "Lease terminated, but saved progress was not cleared.")
            return ack

    # ------------------------------------------------------------------
    # Sub-entity actions that talk to the network
    async def upload_media(self, files: Sequence[UploadFile]) -> List[MediaAsset]:
        async with self._operation("upload_media"):
            assets = await self._discard_after_close(self.media.add_files(files), [])
        if assets:
            self._notify("success", "Media uploaded successfully")
        return assets

    async def upload_damage_media(self, files: Sequence[UploadFile]) -> List[MediaAsset]:
        async with self._operation("upload_damage_media"):
            assets = await self._discard_after_close(
                self.damages.draft_media.add_files(files), []
            )
        if assets:
            self._notify("success", "Media uploaded successfully")
        return assets

    def add_damage(self) -> DamageRecord:
        """Validate the damage draft and append it to the damage list."""
        self._ensure_open("add_damage")
        record = self.damages.commit_draft()
        logger.info(f"Recorded damage for subject {self._subject_id}")
        self._notify("success", "Damage recorded successfully")
        return record

    async def create_invoice(self) -> List[InvoiceLineItem]:
        async with self._operation("create_invoice"):
            items = await self._discard_after_close(self.invoices.commit_pending(), [])
        if items:
            self._notify("success", "Invoice created successfully")
        return items

    async def _discard_after_close(self, awaitable, default):
        try:
            return await awaitable
        except Exception:
            if self._closed:
                logger.info("Discarding failed operation after close")
                return default
            raise

    def close(self) -> None:
        """Abandon the workflow; in-flight results are discarded."""
        if self._closed:
            return
        self._closed = True
        for aggregator in (self.media, self.damages, self.invoices):
            aggregator.detach(self.active_stage_index)
        logger.info(f"Closed termination workflow for subject {self._subject_id}")
