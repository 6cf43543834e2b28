"""Terminate a lease programmatically, keeping progress in a local SQLite file."""

import asyncio
import os
from datetime import date

from leaseterm import RepositoryCheckpointGateway, Session, TerminationWorkflow
from leaseterm.clients import LeaseApiClient
from leaseterm.config import load_config
from leaseterm.contracts import UploadFile
from leaseterm.persistence import get_repository
from leaseterm.shell import ShellNotifier, render_summary


async def main(customer_id: str) -> None:
    config = load_config()
    session = Session(token=os.environ["LEASETERM_TOKEN"], user_id="guide-script")
    api = LeaseApiClient(
        config.api.base_url,
        session,
        timeout=config.api.timeout,
        max_retries=config.api.max_retries,
    )
    gateway = RepositoryCheckpointGateway(
        get_repository(database_url="sqlite://termination-progress.db")
    )
    notifier = ShellNotifier()
    workflow = TerminationWorkflow(
        customer_id, session, api, gateway=gateway, notifier=notifier
    )

    subject = await workflow.load()
    print(f"Terminating lease for {subject.label if subject else customer_id}")
    print(f"Resuming at stage: {workflow.active_stage.label}")

    if workflow.active_stage.key == "DETAILS":
        workflow.update_details(
            termination_date=date.today(), reason="Relocation", notes="Keys returned"
        )
        await workflow.next()

    if workflow.active_stage.key == "MEDIA":
        await workflow.upload_media(
            [UploadFile(filename="entry.jpg", content_type="image/jpeg", content=b"...")]
        )
        await workflow.next()

    if workflow.active_stage.key == "DAMAGES":
        workflow.damages.update_draft(description="Scuffed hallway wall")
        workflow.add_damage()
        await workflow.next()

    if workflow.active_stage.key == "INVOICES":
        workflow.invoices.update_draft(description="Wall repaint", amount="120", quantity="1")
        workflow.invoices.commit_draft()
        await workflow.create_invoice()
        await workflow.next()

    print(render_summary(workflow.state.snapshot()))
    await workflow.submit()

    for notice in notifier.drain():
        print(f"[{notice.level}] {notice.message}")


if __name__ == "__main__":
    asyncio.run(main(os.getenv("CUSTOMER_ID", "C1")))
