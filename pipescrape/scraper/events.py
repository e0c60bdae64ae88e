"""Progress events reported by the scrape loop."""

from __future__ import annotations

import logging
from typing import Any, Callable, Coroutine, Literal, get_args

logger = logging.getLogger(__name__)

ScrapeEvent = Literal["started", "resource_scraped", "resource_failed", "completed"]
SCRAPE_EVENTS: frozenset[str] = frozenset(get_args(ScrapeEvent))

# Receives the event name and its JSON-serializable payload.
EventCallback = Callable[[ScrapeEvent, dict[str, Any]], Coroutine[Any, Any, None]]


async def emit_event(
    on_event: EventCallback | None,
    event: ScrapeEvent,
    data: dict[str, Any] | None = None,
) -> None:
    """Report ``event`` for the current project, if anyone listens.

    ``started`` and ``completed`` carry ``project_id``; per-resource events
    carry ``resource_id`` and ``url``.
    """
    if event not in SCRAPE_EVENTS:
        raise ValueError(f"unknown scrape event: {event}")
    if on_event is None:
        return
    data = data or {}
    logger.debug(
        "scrape event",
        extra={"event": event, "project_id": data.get("project_id"), "resource_id": data.get("resource_id")},
    )
    await on_event(event, data)
