from __future__ import annotations

from typing import Any


def add_trace_event(
    trace: list[dict[str, Any]],
    event: str,
    data: dict[str, Any] | None = None,
    *,
    level: str = "info",
) -> dict[str, Any]:
    """
    Append one pipeline-stage record (counts and sizes, never rasters).
    `seq` is the record's position in the trace.
    """
    entry = {"seq": len(trace), "event": str(event), "level": str(level), "data": dict(data or {})}
    trace.append(entry)
    return entry


def find_events(trace: list[dict[str, Any]], event: str) -> list[dict[str, Any]]:
    return [e for e in trace if e.get("event") == event]
