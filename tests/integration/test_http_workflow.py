"""Drive the workflow through the real HTTP client against a mock backend."""

import json
from datetime import date

import httpx
import pytest

from leaseterm import TerminationWorkflow
from leaseterm.clients import LeaseApiClient
from leaseterm.contracts import UploadFile
from leaseterm.errors import TransientIOError
from leaseterm.session import Session
from leaseterm.shell import ShellNotifier


class LendingBackend:
    """Minimal stand-in for the lending API routes."""

    def __init__(self):
        self.progress = {}
        self.invoices = []
        self.terminated = []
        self.progress_down = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        if path.startswith("/customer-details/"):
            return httpx.Response(200, json={"id": path.rsplit("/", 1)[1], "fullName": "Jane Tenant"})
        if path.startswith("/lease-termination-progress/"):
            customer_id = path.rsplit("/", 1)[1]
            if request.method == "GET":
                return httpx.Response(200, json=self.progress.get(customer_id, {}))
            if self.progress_down:
                return httpx.Response(503, json={"error": "progress store unavailable"})
            self.progress[customer_id] = json.loads(request.content)
            return httpx.Response(200, json={"saved": True})
        if path == "/upload-media":
            return httpx.Response(200, json={"url": "https://cdn.test/unit-photo.jpg"})
        if path == "/lease-terminate-invoice":
            self.invoices.append(json.loads(request.content))
            return httpx.Response(201, json={"id": "INV-1"})
        if path.startswith("/terminate-lease/"):
            self.terminated.append(json.loads(request.content))
            return httpx.Response(200, json={"message": "Lease terminated"})
        return httpx.Response(404)


def _workflow(backend, **kwargs) -> TerminationWorkflow:
    session = Session(token="t0k", user_id="agent-7")
    api = LeaseApiClient(
        "http://backend.test/api", session, transport=httpx.MockTransport(backend)
    )
    return TerminationWorkflow("C1", session, api, **kwargs)


@pytest.mark.asyncio
async def test_workflow_over_http_saves_and_commits():
    backend = LendingBackend()
    workflow = _workflow(backend)

    subject = await workflow.load()
    assert subject.label == "Jane Tenant"

    workflow.update_details(termination_date=date(2024, 6, 30), reason="Relocation")
    await workflow.next()
    assert backend.progress["C1"]["stage"] == "MEDIA"
    assert backend.progress["C1"]["terminationDate"] == "2024-06-30"

    await workflow.upload_media(
        [UploadFile(filename="unit.jpg", content_type="image/jpeg", content=b"x")]
    )
    await workflow.next()
    await workflow.next()
    workflow.invoices.update_draft(description="Broken tile", amount="500", quantity="1")
    workflow.invoices.commit_draft()
    await workflow.create_invoice()
    await workflow.next()
    await workflow.submit()

    assert backend.invoices == [
        {
            "customerId": "C1",
            "invoiceItems": [{"description": "Broken tile", "amount": 500.0, "quantity": 1}],
        }
    ]
    committed = backend.terminated[0]
    assert committed["customerId"] == "C1"
    assert committed["media"] == [{"url": "https://cdn.test/unit-photo.jpg", "type": "photo"}]
    assert committed["invoices"][0]["description"] == "Broken tile"


@pytest.mark.asyncio
async def test_workflow_over_http_resumes_saved_stage():
    backend = LendingBackend()
    first = _workflow(backend)
    await first.load()
    await first.next()
    await first.next()

    second = _workflow(backend)
    await second.load()
    assert second.active_stage.key == "DAMAGES"


@pytest.mark.asyncio
async def test_progress_outage_blocks_or_warns_by_policy():
    backend = LendingBackend()
    backend.progress_down = True

    blocking = _workflow(backend)
    await blocking.load()
    with pytest.raises(TransientIOError, match="progress store unavailable"):
        await blocking.next()
    assert blocking.active_stage_index == 0

    notifier = ShellNotifier()
    lenient = _workflow(backend, checkpoint_policy="best_effort", notifier=notifier)
    await lenient.load()
    await lenient.next()
    assert lenient.active_stage_index == 1
    assert [n.message for n in notifier.drain()] == ["Failed to save progress."]


@pytest.mark.asyncio
async def test_malformed_saved_progress_fails_load_with_transient_error():
    backend = LendingBackend()
    backend.progress["C1"] = {"stage": "MEDIA", "media": [{"url": "u", "type": "document"}]}
    workflow = _workflow(backend)

    with pytest.raises(TransientIOError, match="Invalid payload"):
        await workflow.load()
    assert workflow.active_stage_index == 0
