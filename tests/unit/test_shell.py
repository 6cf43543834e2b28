from datetime import date

import pytest

from leaseterm import TerminationWorkflow
from leaseterm.contracts import InvoiceLineItem, WorkflowSnapshot
from leaseterm.errors import ValidationError
from leaseterm.shell import (
    Notice,
    ShellNotifier,
    dispatch_command,
    render_stage,
    render_stepper,
    render_summary,
)


def test_stepper_brackets_active_stage(workflow):
    line = render_stepper(workflow)
    assert line.startswith("[1. Termination Details]")
    assert "5. Mark Vacated" in line


def test_summary_totals_amount_times_quantity():
    snapshot = WorkflowSnapshot(
        subject_id="C1",
        termination_date=date(2024, 3, 31),
        invoice_items=[
            InvoiceLineItem(description="Broken tile", amount=500),
            InvoiceLineItem(description="Paint", amount=40, quantity=2),
        ],
    )
    summary = render_summary(snapshot)
    assert "Termination Date: 2024-03-31" in summary
    assert "Reason: N/A" in summary
    assert "Invoices Created: 2 (Total: 580)" in summary


def test_notifier_drain_empties_queue():
    notifier = ShellNotifier()
    notifier(Notice(level="success", message="Saved"))
    assert len(notifier.drain()) == 1
    assert notifier.drain() == []


@pytest.mark.asyncio
async def test_details_commands(workflow):
    assert await dispatch_command(workflow, "date 2024-03-31") == "continue"
    await dispatch_command(workflow, "reason Moving for work")
    await dispatch_command(workflow, "notes Keys returned to office")

    details = workflow.state.details
    assert details.termination_date == date(2024, 3, 31)
    assert details.reason == "Moving for work"
    assert details.notes == "Keys returned to office"
    assert "Reason: Moving for work" in render_stage(workflow)

    with pytest.raises(ValidationError):
        await dispatch_command(workflow, "date 31/03/2024")
    await dispatch_command(workflow, "date clear")
    assert workflow.state.details.termination_date is None


@pytest.mark.asyncio
async def test_navigation_and_unknown_commands(workflow, api):
    await dispatch_command(workflow, "next")
    assert workflow.active_stage.key == "MEDIA"
    await dispatch_command(workflow, "b")
    assert workflow.active_stage.key == "DETAILS"

    with pytest.raises(ValueError, match="Unknown command"):
        await dispatch_command(workflow, "add photo.jpg")
    assert await dispatch_command(workflow, "quit") == "quit"


@pytest.mark.asyncio
async def test_media_and_damage_commands(workflow, tmp_path):
    photo = tmp_path / "bathroom.jpg"
    photo.write_bytes(b"jpeg")

    await dispatch_command(workflow, "skip")
    await dispatch_command(workflow, f"add {photo}")
    assert [m.url for m in workflow.media.items] == ["https://media.example/bathroom.jpg"]
    await dispatch_command(workflow, "rm 0")
    assert workflow.media.items == ()

    await dispatch_command(workflow, "next")
    await dispatch_command(workflow, "desc Cracked tile")
    await dispatch_command(workflow, f"media {photo}")
    await dispatch_command(workflow, "add")
    damage = workflow.damages.items[0]
    assert damage.description == "Cracked tile"
    assert len(damage.media) == 1


@pytest.mark.asyncio
async def test_invoice_and_submit_commands(workflow, api):
    for _ in range(3):
        await dispatch_command(workflow, "next")

    await dispatch_command(workflow, "item Broken tile;500;1")
    await dispatch_command(workflow, "item Paint;40")
    await dispatch_command(workflow, "drop 1")
    assert [i.description for i in workflow.invoices.pending] == ["Broken tile"]
    await dispatch_command(workflow, "invoice")
    assert [i.description for i in workflow.invoices.items] == ["Broken tile"]

    await dispatch_command(workflow, "next")
    assert "Invoices Created: 1 (Total: 500)" in render_stage(workflow)
    assert await dispatch_command(workflow, "submit") == "done"
    assert workflow.committed


@pytest.mark.asyncio
async def test_damage_add_command_confirms(api, session):
    notifier = ShellNotifier()
    workflow = TerminationWorkflow("C1", session, api, notifier=notifier)
    await dispatch_command(workflow, "skip")
    await dispatch_command(workflow, "skip")

    await dispatch_command(workflow, "desc Scratched floor")
    await dispatch_command(workflow, "add")

    assert [d.description for d in workflow.damages.items] == ["Scratched floor"]
    assert [n.message for n in notifier.drain()] == ["Damage recorded successfully"]
