import asyncio
from typing import List, Optional, Set

import pytest

import leaseterm.persistence as persistence
from leaseterm import TerminationWorkflow
from leaseterm.contracts import (
    Checkpoint,
    MediaAsset,
    MediaKind,
    SubjectDetails,
    UploadFile,
)
from leaseterm.errors import CheckpointNotFound, TransientIOError
from leaseterm.session import Session


class FakeLeaseApi:
    """In-process stand-in for the lending backend."""

    def __init__(self, checkpoint: Optional[Checkpoint] = None):
        self.subject = SubjectDetails(id="C1", full_name="Jane Tenant")
        self.checkpoint = checkpoint
        self.calls: List[str] = []
        self.saved: list = []
        self.invoices: list = []
        self.commits: list = []
        self.failing_uploads: Set[str] = set()
        self.fail_save: Optional[Exception] = None
        self.fail_invoice: Optional[Exception] = None
        self.fail_commit: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    async def get_subject(self, subject_id):
        self.calls.append("get_subject")
        return self.subject

    async def get_checkpoint(self, subject_id):
        self.calls.append("get_checkpoint")
        if self.checkpoint is None:
            raise CheckpointNotFound(subject_id)
        return self.checkpoint

    async def save_checkpoint(self, subject_id, stage_key, snapshot):
        self.calls.append("save_checkpoint")
        await self._wait()
        if self.fail_save is not None:
            raise self.fail_save
        self.saved.append((subject_id, stage_key, snapshot))
        self.checkpoint = Checkpoint(stage_key=stage_key, snapshot=snapshot)

    async def upload_media(self, file: UploadFile) -> MediaAsset:
        self.calls.append("upload_media")
        await self._wait()
        if file.filename in self.failing_uploads:
            raise TransientIOError(f"upload of {file.filename} failed", status_code=500)
        return MediaAsset(
            url=f"https://media.example/{file.filename}",
            kind=MediaKind.from_content_type(file.content_type),
        )

    async def create_invoice(self, subject_id, items):
        self.calls.append("create_invoice")
        await self._wait()
        if self.fail_invoice is not None:
            raise self.fail_invoice
        self.invoices.append((subject_id, list(items)))
        return {"id": f"INV-{len(self.invoices)}"}

    async def commit_termination(self, subject_id, snapshot):
        self.calls.append("commit_termination")
        await self._wait()
        if self.fail_commit is not None:
            raise self.fail_commit
        self.commits.append((subject_id, snapshot))
        return {"status": "terminated"}


@pytest.fixture
def make_photo():
    def _make(name: str = "kitchen.jpg") -> UploadFile:
        return UploadFile(filename=name, content_type="image/jpeg", content=b"jpeg")

    return _make


@pytest.fixture
def api() -> FakeLeaseApi:
    return FakeLeaseApi()


@pytest.fixture
def session() -> Session:
    return Session(token="test-token", user_id="agent-7")


@pytest.fixture
def workflow(api, session) -> TerminationWorkflow:
    return TerminationWorkflow("C1", session, api)


@pytest.fixture(autouse=True)
def reset_repository():
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None
