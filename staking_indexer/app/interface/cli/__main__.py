import asyncio
import inspect
import json
import logging
from typing import Optional

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from staking_indexer.app.interface.tasks import TASKS
from staking_indexer.app.interface.tasks.backfill_staking_events_task import backfill_staking_events_task
from staking_indexer.app.interface.tasks.domain.apply_staking_events_task import apply_staking_events_task
from staking_indexer.app.interface.tasks.indexer_status_task import indexer_status_task
from staking_indexer.app.interface.tasks.serve_staking_indexer_task import serve_staking_indexer_task
from staking_indexer.app.interface.tasks.staging.fetch_staking_events_task import fetch_staking_events_task
from staking_indexer.app.interface.tasks.sync_staking_indexer_task import sync_staking_indexer_task


load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

app = typer.Typer()
indexer_app = typer.Typer(help="cli for indexing staking contract events.")
app.add_typer(indexer_app, name="indexer")


@indexer_app.command("run")
def run() -> None:
    """Pick a task interactively."""
    task_name = inquirer.select(
        message="Select task:",
        choices=list(TASKS.keys()),
        pointer="❯",
        instruction="Use ↑/↓ to move, Enter to select",
    ).execute()

    task = TASKS[task_name]
    kwargs: dict[str, object] = {}
    params = inspect.signature(task).parameters

    if "from_block" in params:
        kwargs["from_block"] = inquirer.text(
            message="From block (inclusive, 'cursor' = continue from stored cursor):",
            default="cursor",
        ).execute()
    if "to_block" in params:
        kwargs["to_block"] = inquirer.text(
            message="To block (inclusive):",
            default="latest",
        ).execute()
    if "limit" in params:
        limit_str = inquirer.text(
            message="Limit (optional, empty = drain backlog):",
            default="",
        ).execute()
        kwargs["limit"] = int(limit_str) if limit_str.strip() else None

    result = asyncio.run(task(**kwargs))  # type: ignore
    if result is not None and hasattr(result, "to_dict"):
        typer.echo(json.dumps(result.to_dict(), indent=2))


@indexer_app.command("serve")
def serve() -> None:
    """Bootstrap, then run the fetch and apply loops until SIGINT/SIGTERM."""
    asyncio.run(serve_staking_indexer_task())


@indexer_app.command("sync")
def sync() -> None:
    """One fetch chunk plus a full apply drain."""
    asyncio.run(sync_staking_indexer_task())


@indexer_app.command("backfill")
def backfill() -> None:
    """Historical catch-up (first run only) plus a full apply drain."""
    asyncio.run(backfill_staking_events_task())


@indexer_app.command("fetch")
def fetch(
    from_block: str = typer.Option("cursor", help="'cursor', 'earliest' or a block number."),
    to_block: str = typer.Option("latest", help="'latest' or a block number."),
) -> None:
    asyncio.run(fetch_staking_events_task(from_block=from_block, to_block=to_block))


@indexer_app.command("apply")
def apply(
    limit: Optional[int] = typer.Option(None, help="Apply one batch of at most LIMIT events; default drains."),
) -> None:
    asyncio.run(apply_staking_events_task(limit=limit))


@indexer_app.command("status")
def status() -> None:
    result = asyncio.run(indexer_status_task())
    typer.echo(json.dumps(result.to_dict(), indent=2))


if __name__ == "__main__":
    typer.echo("--- Staking Indexer CLI ---")
    app()
