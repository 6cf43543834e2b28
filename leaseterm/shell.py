"""Text presentation for the termination workflow."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, List, Literal

from pydantic import BaseModel

from .contracts import UploadFile, WorkflowSnapshot
from .errors import ValidationError

if TYPE_CHECKING:
    from .controller import TerminationWorkflow

NoticeLevel = Literal["info", "success", "warning", "error"]


class Notice(BaseModel):
    """A transient, dismissible message for the user."""

    level: NoticeLevel = "info"
    message: str


class ShellNotifier:
    """Collects notices until the shell displays them."""

    def __init__(self) -> None:
        self.notices: List[Notice] = []

    def __call__(self, notice: Notice) -> None:
        self.notices.append(notice)

    def drain(self) -> List[Notice]:
        notices, self.notices = self.notices, []
        return notices


def render_stepper(workflow: "TerminationWorkflow") -> str:
    """One line showing every stage, with the active one bracketed."""
    parts = []
    for stage in workflow.registry:
        label = f"{stage.ordinal + 1}. {stage.label}"
        if stage.ordinal == workflow.active_stage_index:
            label = f"[{label}]"
        parts.append(label)
    return " > ".join(parts)


def render_summary(snapshot: WorkflowSnapshot) -> str:
    total = sum(item.total for item in snapshot.invoice_items)
    termination_date = (
        snapshot.termination_date.isoformat() if snapshot.termination_date else "N/A"
    )
    return "\n".join(
        [
            "Summary:",
            f"  Termination Date: {termination_date}",
            f"  Reason: {snapshot.reason or 'N/A'}",
            f"  Media Files: {len(snapshot.media)}",
            f"  Damages Recorded: {len(snapshot.damages)}",
            f"  Invoices Created: {len(snapshot.invoice_items)} (Total: {total:g})",
        ]
    )


def render_stage(workflow: "TerminationWorkflow") -> str:
    """Render the body of the active stage."""
    state = workflow.state
    key = workflow.active_stage.key
    lines: List[str] = [workflow.active_stage.label, ""]

    if key == "DETAILS":
        details = state.details
        lines.append(
            "Termination Date: "
            + (details.termination_date.isoformat() if details.termination_date else "(not set)")
        )
        lines.append(f"Reason: {details.reason or '(empty)'}")
        lines.append(f"Notes: {details.notes or '(empty)'}")
    elif key == "MEDIA":
        lines.append("Upload photos or videos to document the condition of the unit.")
        for i, asset in enumerate(workflow.media.items):
            lines.append(f"  {i}. {asset.kind.value}: {asset.url}")
    elif key == "DAMAGES":
        lines.append("Record any damages to the unit.")
        draft = workflow.damages.draft
        lines.append(
            f"Draft: {draft.description or '(no description)'}"
            f" ({len(draft.media)} media files)"
        )
        for i, damage in enumerate(workflow.damages.items):
            detail = damage.notes or f"{len(damage.media)} media files"
            lines.append(f"  {i}. {damage.description} - {detail}")
    elif key == "INVOICES":
        lines.append("Create invoices for damages, to be paid against the deposit.")
        if workflow.invoices.pending:
            lines.append("Invoice items to create:")
            for i, item in enumerate(workflow.invoices.pending):
                lines.append(
                    f"  {i}. {item.description} | Amount: {item.amount:g} | Quantity: {item.quantity}"
                )
        if workflow.invoices.items:
            lines.append("Created invoice items:")
            for i, item in enumerate(workflow.invoices.items):
                lines.append(
                    f"  {i}. {item.description} | Amount: {item.amount:g} | Quantity: {item.quantity}"
                )
    else:
        lines.append(
            "Confirm that the customer has vacated the unit. "
            "This will finalize the lease termination."
        )
        lines.append(render_summary(state.snapshot()))
    return "\n".join(lines)


HELP = {
    "DETAILS": "date YYYY-MM-DD | date clear | reason TEXT | notes TEXT",
    "MEDIA": "add PATH [PATH ...] | rm INDEX",
    "DAMAGES": "desc TEXT | notes TEXT | media PATH [PATH ...] | add | rm INDEX",
    "INVOICES": "item DESCRIPTION;AMOUNT[;QUANTITY] | drop INDEX | invoice | rm INDEX",
    "VACATED": "submit",
}
NAVIGATION = "next | skip | back | quit"


def _index(arg: str) -> int:
    try:
        return int(arg)
    except ValueError:
        return -1


async def dispatch_command(workflow: "TerminationWorkflow", line: str) -> str:
    """Apply one line of user input to the workflow.

    Returns ``"quit"`` when the user leaves, ``"done"`` after a successful
    submit and ``"continue"`` otherwise. Workflow errors propagate so the
    caller can show them next to the prompt.
    """
    command, _, arg = line.strip().partition(" ")
    command = command.lower()
    arg = arg.strip()
    key = workflow.active_stage.key

    if command in ("quit", "q"):
        return "quit"
    if command in ("next", "n"):
        await workflow.next()
    elif command in ("skip", "s"):
        await workflow.skip()
    elif command in ("back", "b", "previous"):
        await workflow.previous()
    elif command == "submit":
        await workflow.submit()
        return "done"
    elif key == "DETAILS" and command == "date":
        if arg.lower() in ("", "clear", "none"):
            workflow.update_details(termination_date=None)
        else:
            try:
                parsed = date.fromisoformat(arg)
            except ValueError:
                raise ValidationError("termination_date", "Use the YYYY-MM-DD format") from None
            workflow.update_details(termination_date=parsed)
    elif key == "DETAILS" and command == "reason":
        workflow.update_details(reason=arg)
    elif key == "DETAILS" and command == "notes":
        workflow.update_details(notes=arg)
    elif key == "MEDIA" and command == "add":
        await workflow.upload_media([UploadFile.from_path(p) for p in arg.split()])
    elif key == "MEDIA" and command == "rm":
        workflow.media.remove_committed(_index(arg))
    elif key == "DAMAGES" and command == "desc":
        workflow.damages.update_draft(description=arg)
    elif key == "DAMAGES" and command == "notes":
        workflow.damages.update_draft(notes=arg)
    elif key == "DAMAGES" and command == "media":
        await workflow.upload_damage_media([UploadFile.from_path(p) for p in arg.split()])
    elif key == "DAMAGES" and command == "add":
        workflow.add_damage()
    elif key == "DAMAGES" and command == "rm":
        workflow.damages.remove_committed(_index(arg))
    elif key == "INVOICES" and command == "item":
        parts = [p.strip() for p in arg.split(";")]
        workflow.invoices.update_draft(
            description=parts[0] if parts else "",
            amount=parts[1] if len(parts) > 1 else "",
            quantity=parts[2] if len(parts) > 2 else "",
        )
        workflow.invoices.commit_draft()
    elif key == "INVOICES" and command == "drop":
        workflow.invoices.remove_pending(_index(arg))
    elif key == "INVOICES" and command == "invoice":
        await workflow.create_invoice()
    elif key == "INVOICES" and command == "rm":
        workflow.invoices.remove_committed(_index(arg))
    else:
        raise ValueError(f"Unknown command: {line.strip()}")
    return "continue"
