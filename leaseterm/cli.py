"""Command line interface for lease-termination workflows."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer

from leaseterm import TerminationWorkflow, get_repository
from leaseterm.clients import LeaseApiClient
from leaseterm.config import load_config
from leaseterm.errors import (
    AuthError,
    IllegalTransition,
    TransientIOError,
    ValidationError,
    WorkflowBusy,
)
from leaseterm.gateway import RepositoryCheckpointGateway
from leaseterm.session import Session
from leaseterm.shell import (
    HELP,
    NAVIGATION,
    ShellNotifier,
    dispatch_command,
    render_stage,
    render_stepper,
    render_summary,
)
from leaseterm.stages import TERMINATION_STAGES

app = typer.Typer(help="CLI for lease-termination workflows")

# Command groups
terminate_app = typer.Typer(help="Commands for running terminations")
checkpoint_app = typer.Typer(help="Commands for inspecting saved progress")

app.add_typer(terminate_app, name="terminate")
app.add_typer(checkpoint_app, name="checkpoint")

_NOTICE_COLORS = {
    "success": typer.colors.GREEN,
    "warning": typer.colors.YELLOW,
    "error": typer.colors.RED,
    "info": None,
}


@app.callback()
def main() -> None:
    """leaseterm CLI entry point."""
    pass


@app.command("stages")
def stages() -> None:
    """List the stages of the termination workflow in order."""
    for stage in TERMINATION_STAGES:
        typer.echo(f"{stage.ordinal}\t{stage.key}\t{stage.label}")


def _flush(notifier: ShellNotifier) -> None:
    for notice in notifier.drain():
        typer.secho(notice.message, fg=_NOTICE_COLORS.get(notice.level))


async def _interactive(workflow: TerminationWorkflow, notifier: ShellNotifier) -> int:
    try:
        subject = await workflow.load()
    except (AuthError, TransientIOError) as exc:
        typer.secho(f"Failed to load data: {exc}", fg=typer.colors.RED)
        return 1

    label = subject.label if subject else ""
    typer.echo(f"Terminate Lease{f' for {label}' if label else ''}")

    while True:
        typer.echo("")
        typer.echo(render_stepper(workflow))
        typer.echo(render_stage(workflow))
        commands = HELP.get(workflow.active_stage.key, "")
        typer.echo(f"Commands: {commands} | {NAVIGATION}" if commands else f"Commands: {NAVIGATION}")
        line = typer.prompt(">", default="", show_default=False)
        try:
            outcome = await dispatch_command(workflow, line)
        except ValidationError as exc:
            typer.secho(f"{exc.field}: {exc.message}", fg=typer.colors.RED)
        except AuthError as exc:
            _flush(notifier)
            typer.secho(f"Session rejected: {exc}", fg=typer.colors.RED)
            workflow.close()
            return 1
        except (TransientIOError, IllegalTransition, WorkflowBusy) as exc:
            typer.secho(str(exc), fg=typer.colors.YELLOW)
        except (ValueError, OSError) as exc:
            typer.secho(str(exc), fg=typer.colors.YELLOW)
        else:
            if outcome == "quit":
                workflow.close()
                typer.echo("Leaving; progress is kept from the last stage change.")
                return 0
            if outcome == "done":
                _flush(notifier)
                return 0
        _flush(notifier)


@terminate_app.command("run")
def terminate_run(
    subject_id: str,
    token: Optional[str] = typer.Option(None, envvar="LEASETERM_TOKEN", help="Bearer token"),
    user_id: Optional[str] = typer.Option(None, help="Acting user id"),
    local: bool = typer.Option(
        False, help="Save progress to the configured local repository"
    ),
) -> None:
    """
    Run the terminate-lease workflow for a customer interactively.

    Loads any saved progress, then walks through Details, Media, Damages,
    Invoices and Vacated. Each stage change saves progress.

    Example:
        leaseterm terminate run C1 --token $TOKEN
        leaseterm terminate run C1 --local
    """
    config = load_config()
    logging.basicConfig(level=config.log_level.upper())

    session = Session(token=token, user_id=user_id)
    api = LeaseApiClient(
        config.api.base_url,
        session,
        timeout=config.api.timeout,
        max_retries=config.api.max_retries,
    )
    gateway = RepositoryCheckpointGateway(get_repository()) if local else None
    notifier = ShellNotifier()
    workflow = TerminationWorkflow(
        subject_id,
        session,
        api,
        gateway=gateway,
        checkpoint_policy=config.workflow.checkpoint_policy,
        notifier=notifier,
    )
    code = asyncio.run(_interactive(workflow, notifier))
    if code:
        raise typer.Exit(code=code)


@checkpoint_app.command("list")
def checkpoint_list() -> None:
    """
    List saved termination progress.

    Example:
        leaseterm checkpoint list
        # Output: C1    DAMAGES    in_progress
    """
    repo = get_repository()
    records = asyncio.run(repo.list_checkpoints())
    if not records:
        typer.echo("No checkpoints found")
        return
    for record in records:
        typer.echo(f"{record.subject_id}\t{record.stage_key}\t{record.status}")


@checkpoint_app.command("show")
def checkpoint_show(subject_id: str) -> None:
    """Show the saved stage and accumulated data for one customer."""
    repo = get_repository()
    record = asyncio.run(repo.get_checkpoint(subject_id))
    if record is None:
        typer.echo("Checkpoint not found")
        raise typer.Exit(code=1)
    typer.echo(f"Checkpoint {record.subject_id}: {record.stage_key} ({record.status})")
    typer.echo(f"Updated: {record.updated_at.isoformat()}")
    checkpoint = record.to_checkpoint()
    if checkpoint is not None:
        typer.echo(render_summary(checkpoint.snapshot))


@checkpoint_app.command("clear")
def checkpoint_clear(subject_id: str) -> None:
    """Delete saved progress so the next run starts fresh."""
    repo = get_repository()
    if not asyncio.run(repo.delete_checkpoint(subject_id)):
        typer.echo("Checkpoint not found")
        raise typer.Exit(code=1)
    typer.echo(f"Cleared checkpoint for {subject_id}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
