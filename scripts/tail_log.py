#!/usr/bin/env python3
"""
View recent compilation job events from compile_events.log.

Provides filtered access to the event log with options to filter by
job id and event type, plus a per-job lifecycle timeline.
"""

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

from quill.utils.event_logging import COMPILE_EVENTS_FILE, JOB_EVENT_TYPES, get_recent_events
from quill.utils.text_processing import truncate_display
from quill.utils.timestamp import format_timestamp

load_dotenv()

app = typer.Typer(
    add_completion=False,
    help="View recent compilation job events",
)


@app.command()
def main(
    n: int = typer.Option(10, "--num", "-n", help="Number of recent events to show"),
    job_id: Optional[str] = typer.Option(None, "--job", "-j", help="Filter to events for this job"),
    event_type: Optional[str] = typer.Option(
        None, "--event-type", "-e", help="Filter to events of this type"
    ),
    compact: bool = typer.Option(
        False, "--compact", "-c", help="Print one event per line (no pretty formatting)"
    ),
    events_file: Optional[Path] = typer.Option(
        None, "--file", "-f", help=f"Events file (default: {COMPILE_EVENTS_FILE})"
    ),
):
    """
    Show the last n events from the compile event log.

    Examples:\n

        $ python scripts/tail_log.py                        # Last 10 events

        $ python scripts/tail_log.py --num 20               # Last 20 events

        $ python scripts/tail_log.py -e job_finished        # Last 10 finished jobs

        $ python scripts/tail_log.py -n 20 --compact        # Compact output (one line per event)
    """
    if event_type and event_type not in JOB_EVENT_TYPES:
        typer.secho(
            f"Unknown event type '{event_type}' (expected one of: {', '.join(sorted(JOB_EVENT_TYPES))})",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    events = get_recent_events(n=n, job_id=job_id, event_type=event_type, events_file=events_file)

    if not events:
        typer.secho("No events found", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1)

    if not compact:
        filters = []
        if job_id:
            filters.append(f"job={job_id}")
        if event_type:
            filters.append(f"type={event_type}")

        suffix = f" [{', '.join(filters)}]" if filters else ""
        typer.secho(f"\nShowing last {len(events)} event(s){suffix}:", fg=typer.colors.BLUE)
        typer.echo("")

    for event in events:
        if compact:
            typer.echo(json.dumps(event))
        else:
            typer.echo(json.dumps(event, indent=2))
            typer.echo("")


@app.command()
def track(
    job_id: str = typer.Argument(..., help="Job id to track"),
    relative: bool = typer.Option(
        False, "--relative", "-r", help="Show relative timestamps (e.g., '2 hours ago')"
    ),
    events_file: Optional[Path] = typer.Option(None, "--file", "-f", help="Events file"),
):
    """
    Show the lifecycle timeline of one job (queued -> started -> finished).

    Examples:\n

        $ python scripts/tail_log.py track 5f2c0d9e...              # Timeline

        $ python scripts/tail_log.py track 5f2c0d9e... --relative   # With relative timestamps
    """
    events = get_recent_events(n=9999, job_id=job_id, events_file=events_file)

    if not events:
        typer.secho(f"No events found for job {job_id}", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)

    typer.secho(f"\nLifecycle of job {job_id}", fg=typer.colors.BLUE, bold=True)
    typer.echo("")

    for event in events:
        when = format_timestamp(event["timestamp"], relative=relative)
        typer.echo(f"  {when:22} {event['event_type']}")

    final = events[-1]
    if final["event_type"] != "job_finished":
        typer.secho("\n  (still queued or running)", fg=typer.colors.YELLOW)
    elif final.get("state") == "succeeded":
        typer.secho(f"\n  succeeded in {final.get('elapsed_s')}s", fg=typer.colors.GREEN)
    else:
        typer.secho(
            f"\n  {final.get('state')}: {final.get('failure_kind')} after {final.get('elapsed_s')}s",
            fg=typer.colors.RED,
        )
        if final.get("message"):
            typer.echo(f"  {truncate_display(final['message'], 80)}")
    typer.echo("")


if __name__ == "__main__":
    # Default to 'main' command if no command specified
    if len(sys.argv) == 1 or (len(sys.argv) > 1 and sys.argv[1].startswith("-")):
        sys.argv.insert(1, "main")
    app()
