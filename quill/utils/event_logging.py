"""
Compilation event logging utilities for QUILL (Tier 2 logging).

Provides uniform interfaces for logging job lifecycle events to compile_events.log.
Events are JSON Lines (one JSON object per line) so they can be tailed, streamed
and filtered by job_id or event_type.

For detailed within-context logging (Tier 1), use quill.utils.logger instead.

Usage:
    from quill.utils.event_logging import log_job_event, get_recent_events

    log_job_event(
        event_type="job_finished",
        job_id="5f2c0d...",
        source="rendering",
        state="succeeded",
        elapsed_s=3.21,
    )

    events = get_recent_events(n=20, event_type="job_finished")
"""

import json
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from quill.utils.timestamp import now_exact

load_dotenv()
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))
COMPILE_EVENTS_FILE = Path(os.getenv("COMPILE_EVENTS_FILE", str(LOGS_PATH / "compile_events.log")))

# Event types emitted by the rendering context
JOB_EVENT_TYPES = {"job_queued", "job_started", "job_finished", "job_rejected", "cache_cleared"}


def log_job_event(
    event_type: str,
    job_id: Optional[str],
    source: str,
    events_file: Optional[Path] = None,
    **extra_fields,
) -> None:
    """
    Append an event to the compile event log.

    Args:
        event_type: Type of event (e.g., "job_queued", "job_finished", "cache_cleared")
        job_id: Job identifier (None for service-level events such as cache clears)
        source: Event source (e.g., "rendering", "cli")
        events_file: Override the events file (default: COMPILE_EVENTS_FILE)
        **extra_fields: Additional event-specific fields

    Example:
        log_job_event(
            event_type="job_finished",
            job_id=job.job_id,
            source="rendering",
            state="failed",
            failure_kind="compiler_error",
        )
    """
    events_file = Path(events_file or COMPILE_EVENTS_FILE)
    events_file.parent.mkdir(parents=True, exist_ok=True)

    event = {
        "timestamp": now_exact(),
        "event_type": event_type,
        "job_id": job_id,
        "source": source,
        **extra_fields,
    }

    with open(events_file, "a", encoding="utf-8") as f:
        f.write(json.dumps(event, default=str) + "\n")


def get_recent_events(
    n: int = 10,
    job_id: Optional[str] = None,
    event_type: Optional[str] = None,
    events_file: Optional[Path] = None,
) -> List[dict]:
    """
    Get the last n events from the compile event log, optionally filtered.

    Args:
        n: Number of recent events to return (default: 10)
        job_id: Filter to only events for this job (optional)
        event_type: Filter to only events of this type (optional)
        events_file: Override the events file (default: COMPILE_EVENTS_FILE)

    Returns:
        List of event dicts (most recent last)

    Example:
        # Last 20 finished jobs
        events = get_recent_events(20, event_type="job_finished")

        # Full lifecycle of one job
        events = get_recent_events(10, job_id="5f2c0d...")
    """
    events_file = Path(events_file or COMPILE_EVENTS_FILE)
    if not events_file.exists():
        return []

    events = []
    with open(events_file, "r", encoding="utf-8") as f:
        for line in f:
            try:
                events.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                # Skip malformed lines
                continue

    if job_id:
        events = [e for e in events if e.get("job_id") == job_id]

    if event_type:
        events = [e for e in events if e.get("event_type") == event_type]

    return events[-n:] if len(events) > n else events
