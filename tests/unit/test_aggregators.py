import asyncio

import pytest

from leaseterm.aggregators import DamageAggregator, InvoiceAggregator, MediaAggregator
from leaseterm.errors import AuthError, IllegalTransition, TransientIOError, ValidationError


@pytest.mark.asyncio
async def test_media_batch_appends_in_order(api, make_photo):
    items = []
    media = MediaAggregator(items, api)
    uploaded = await media.add_files([make_photo("a.jpg"), make_photo("b.jpg")])
    assert [a.url for a in uploaded] == [
        "https://media.example/a.jpg",
        "https://media.example/b.jpg",
    ]
    assert items == uploaded
    assert len(media) == 2


@pytest.mark.asyncio
async def test_media_batch_with_one_failure_appends_nothing(api, make_photo):
    items = []
    media = MediaAggregator(items, api)
    api.failing_uploads = {"b.jpg"}

    with pytest.raises(TransientIOError) as exc_info:
        await media.add_files([make_photo("a.jpg"), make_photo("b.jpg"), make_photo("c.jpg")])

    assert "1 of 3" in str(exc_info.value)
    assert "b.jpg" in str(exc_info.value)
    assert items == []
    assert api.calls.count("upload_media") == 3


@pytest.mark.asyncio
async def test_media_batch_auth_failure_wins(api, make_photo):
    async def reject(file):
        if file.filename == "b.jpg":
            raise AuthError("expired")
        raise TransientIOError("boom")

    api.upload_media = reject
    media = MediaAggregator([], api)
    with pytest.raises(AuthError):
        await media.add_files([make_photo("a.jpg"), make_photo("b.jpg")])


@pytest.mark.asyncio
async def test_detached_media_discards_late_results(api, make_photo):
    items = []
    media = MediaAggregator(items, api)
    api.gate = asyncio.Event()
    upload = asyncio.create_task(media.add_files([make_photo()]))
    await asyncio.sleep(0)

    media.detach()
    api.gate.set()

    assert await upload == []
    assert items == []
    with pytest.raises(IllegalTransition):
        await media.add_files([make_photo()])


def test_remove_committed_ignores_bad_index(api):
    media = MediaAggregator([], api)
    assert media.remove_committed(0) is None
    assert media.remove_committed(-1) is None


@pytest.mark.asyncio
async def test_damage_draft_requires_description(api):
    items = []
    damages = DamageAggregator(items, api)
    damages.update_draft(description="   ", notes="near the window")
    with pytest.raises(ValidationError) as exc_info:
        damages.commit_draft()
    assert exc_info.value.field == "description"
    assert items == []
    assert damages.draft.notes == "near the window"


@pytest.mark.asyncio
async def test_damage_commit_carries_media_and_resets_draft(api, make_photo):
    items = []
    damages = DamageAggregator(items, api)
    damages.update_draft(description="Cracked mirror")
    await damages.draft_media.add_files([make_photo("mirror.jpg")])

    record = damages.commit_draft()

    assert record.description == "Cracked mirror"
    assert [m.url for m in record.media] == ["https://media.example/mirror.jpg"]
    assert items == [record]
    assert damages.draft.description == ""
    assert damages.draft.media == []
    assert len(damages.draft_media) == 0


def test_invoice_draft_validation_order(api):
    invoices = InvoiceAggregator([], api, "C1")

    with pytest.raises(ValidationError) as exc_info:
        invoices.commit_draft()
    assert exc_info.value.field == "description"

    invoices.update_draft(description="Broken tile", amount="abc")
    with pytest.raises(ValidationError) as exc_info:
        invoices.commit_draft()
    assert exc_info.value.message == "Valid amount is required"

    invoices.update_draft(amount="-5")
    with pytest.raises(ValidationError):
        invoices.commit_draft()

    invoices.update_draft(amount="500", quantity="1.5")
    with pytest.raises(ValidationError) as exc_info:
        invoices.commit_draft()
    assert exc_info.value.message == "Valid quantity is required"
    assert invoices.pending == []


def test_invoice_blank_quantity_defaults_to_one(api):
    invoices = InvoiceAggregator([], api, "C1")
    invoices.update_draft(description="Cleaning", amount="80", quantity="")
    item = invoices.commit_draft()
    assert item.quantity == 1
    assert item.amount == 80.0
    assert invoices.draft.description == ""


@pytest.mark.asyncio
async def test_commit_pending_creates_invoice_then_appends(api):
    items = []
    invoices = InvoiceAggregator(items, api, "C1")
    invoices.update_draft(description="Broken tile", amount=500, quantity=1)
    invoices.commit_draft()

    created = await invoices.commit_pending()

    assert [i.description for i in created] == ["Broken tile"]
    assert items == created
    assert invoices.pending == []
    subject_id, sent = api.invoices[0]
    assert subject_id == "C1"
    assert sent[0].amount == 500


@pytest.mark.asyncio
async def test_commit_pending_failure_keeps_pending(api):
    items = []
    invoices = InvoiceAggregator(items, api, "C1")
    invoices.update_draft(description="Paint", amount="40", quantity="2")
    invoices.commit_draft()
    api.fail_invoice = TransientIOError("invoice service down", status_code=503)

    with pytest.raises(TransientIOError):
        await invoices.commit_pending()

    assert items == []
    assert len(invoices.pending) == 1


@pytest.mark.asyncio
async def test_commit_pending_with_nothing_pending_makes_no_call(api):
    invoices = InvoiceAggregator([], api, "C1")
    with pytest.raises(ValidationError):
        await invoices.commit_pending()
    assert "create_invoice" not in api.calls


def test_remove_pending(api):
    invoices = InvoiceAggregator([], api, "C1")
    invoices.update_draft(description="Keys", amount="15")
    invoices.commit_draft()
    assert invoices.remove_pending(3) is None
    assert invoices.remove_pending(0).description == "Keys"
    assert invoices.pending == []


@pytest.mark.asyncio
async def test_frozen_aggregators_refuse_edits(api, make_photo):
    damages = DamageAggregator([], api)
    damages.update_draft(description="Cracked tile")
    damages.commit_draft()
    invoices = InvoiceAggregator([], api, "C1")
    invoices.update_draft(description="Keys", amount="15")
    invoices.commit_draft()

    damages.freeze(4, "termination already committed")
    invoices.freeze(4, "termination already committed")

    with pytest.raises(IllegalTransition, match="already committed") as exc_info:
        damages.commit_draft()
    assert exc_info.value.operation == "commit_draft"
    assert exc_info.value.index == 4
    with pytest.raises(IllegalTransition):
        damages.update_draft(description="Another")
    with pytest.raises(IllegalTransition):
        await damages.draft_media.add_files([make_photo()])
    with pytest.raises(IllegalTransition):
        invoices.update_draft(description="Paint")
    with pytest.raises(IllegalTransition):
        invoices.remove_pending(0)
    with pytest.raises(IllegalTransition):
        await invoices.commit_pending()

    assert damages.remove_committed(0) is None
    assert len(damages) == 1
    assert len(invoices.pending) == 1
    assert "upload_media" not in api.calls
    assert "create_invoice" not in api.calls
