"""Command line interface for inspecting sessions and schedules."""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime
from typing import Optional

import typer

from vestry.civil_time import SystemClock, wall_clock_fields
from vestry.config import load_config
from vestry.records import InMemoryRecordSource
from vestry.scheduling import RelativeOffsetRule, Scheduler
from vestry.scheduling.rules import describe
from vestry.store import InMemoryStateStore, open_store
from vestry.transports import InMemoryTransport
from vestry.utils.logs import configure_logging
from vestry.workflow.session import SessionStore

app = typer.Typer(help="CLI for the vestry admin bot")

# Command groups
state_app = typer.Typer(help="Commands for conversation sessions")
schedule_app = typer.Typer(help="Commands for scheduled jobs")

app.add_typer(state_app, name="state")
app.add_typer(schedule_app, name="schedule")


@app.callback()
def main() -> None:
    """vestry CLI entry point."""
    configure_logging(load_config().logging)


def _parse_now(now: Optional[str]) -> datetime:
    value = now or os.getenv("SCHEDULER_NOW_ISO")
    if value:
        return datetime.fromisoformat(value)
    return SystemClock().now()


@state_app.command("show")
def state_show(subject_id: str, kind: str) -> None:
    """Print the persisted session of SUBJECT_ID for workflow KIND."""

    async def _find():
        sessions = SessionStore(await open_store())
        return await sessions.find(kind, subject_id)

    state = asyncio.run(_find())
    if state is None:
        typer.echo("Session not found")
        raise typer.Exit(code=1)
    typer.echo(f"Kind: {state.kind}")
    typer.echo(f"Step: {state.step}")
    typer.echo(f"Waiting for text: {state.waiting_for_free_text}")
    typer.echo("Data:")
    typer.echo(json.dumps(state.data, indent=2, ensure_ascii=False, default=str))
    if state.streams:
        typer.echo("Parked streams:")
        typer.echo(json.dumps(state.streams, indent=2, ensure_ascii=False, default=str))


@state_app.command("cancel")
def state_cancel(subject_id: str, kind: str) -> None:
    """Delete the session of SUBJECT_ID for KIND. Missing sessions are fine."""

    async def _cancel() -> None:
        sessions = SessionStore(await open_store())
        await sessions.cancel(kind, subject_id)

    asyncio.run(_cancel())
    typer.echo(f"Cancelled {kind} for {subject_id}")


@schedule_app.command("due")
def schedule_due(
    now: Optional[str] = typer.Option(None, help="ISO instant to evaluate instead of the clock"),
) -> None:
    """List the calendar jobs and whether each is due."""

    config = load_config()
    instant = _parse_now(now)
    scheduler = Scheduler(
        InMemoryStateStore(), InMemoryTransport(), InMemoryRecordSource(), config=config
    )
    local = wall_clock_fields(instant, config.schedule.timezone)
    typer.echo(f"Local time: {local.as_naive().isoformat()} ({config.schedule.timezone})")
    for job in scheduler.jobs:
        typer.echo(f"{job.name}: {describe(job.rule, instant)}")


@schedule_app.command("window")
def schedule_window(
    event: str,
    offset_hours: float = typer.Option(24.0, help="Hours before the event"),
    grace_minutes: int = typer.Option(15, help="Width of the send window"),
) -> None:
    """Print the send window of an action fired OFFSET_HOURS before EVENT."""

    try:
        event_at = datetime.fromisoformat(event)
    except ValueError:
        typer.echo(f"Invalid ISO timestamp: {event}")
        raise typer.Exit(code=1)
    if event_at.tzinfo is None:
        typer.echo("Event time needs a UTC offset, e.g. 2025-01-20T19:00:00+03:00")
        raise typer.Exit(code=1)
    rule = RelativeOffsetRule(
        event_at=event_at, offset_hours=offset_hours, grace_minutes=grace_minutes
    )
    start, end = rule.window()
    typer.echo(f"Window: {start.isoformat()} .. {end.isoformat()}")


if __name__ == "__main__":
    app()
