"""Service layer — orchestrates scrape jobs for the API routes."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncGenerator

from pipescrape.api.schemas import ProjectSummary, ResourcePage, ScrapeRequest
from pipescrape.browser.playwright import PlaywrightRenderer
from pipescrape.config import Settings
from pipescrape.plugins.registry import PluginRegistry
from pipescrape.scraper.context import ScrapeContext
from pipescrape.scraper.definition import ScrapeDefinition, decode_definition
from pipescrape.scraper.engine import Scraper
from pipescrape.scraper.events import EventCallback
from pipescrape.scraper.scenarios import resolve_plugin_configs
from pipescrape.scraper.tasks import run_background_scrape
from pipescrape.storage.base import Storage
from pipescrape.storage.models import Project

logger = logging.getLogger(__name__)

# Strong references to fire-and-forget jobs so they are not garbage collected
_background_jobs: set[asyncio.Task] = set()


def resolve_definition(body: ScrapeRequest, settings: Settings) -> ScrapeDefinition:
    """Build the job definition from an encoded hash or from the explicit fields."""
    if body.hash:
        return decode_definition(body.hash)
    return ScrapeDefinition(
        url=body.url,
        scenario=body.scenario or settings.default_scenario,
        plugin_configs=body.plugin_configs,
    )


async def create_job(
    storage: Storage,
    registry: PluginRegistry,
    settings: Settings,
    definition: ScrapeDefinition,
    on_event: EventCallback | None = None,
) -> tuple[Scraper, Project]:
    """Persist the project and build a scraper with its own renderer when needed.

    Storage and registry are shared between jobs; a renderer is closed at the
    end of each scrape, so every job gets a fresh one.
    """
    configs = resolve_plugin_configs(definition.scenario, definition.plugin_configs)
    renderer = None
    if registry.requires_renderer(configs):
        renderer = PlaywrightRenderer(
            headless=settings.browser_headless,
            timeout_ms=settings.browser_timeout_ms,
        )
    scraper = Scraper(
        ScrapeContext(storage=storage, renderer=renderer, registry=registry),
        on_event=on_event,
    )
    project = await scraper.init_project(definition)
    return scraper, project


async def start_background_scrape(
    storage: Storage,
    registry: PluginRegistry,
    settings: Settings,
    definition: ScrapeDefinition,
    callback_url: str | None = None,
) -> dict[str, Any]:
    """Launch a background scrape and return the acceptance payload with the project id."""
    scraper, project = await create_job(storage, registry, settings, definition)
    logger.info(
        "background scrape started",
        extra={"project_id": project.id, "url": project.url, "scenario": definition.scenario},
    )

    task = asyncio.create_task(run_background_scrape(scraper, project, callback_url=callback_url))
    _background_jobs.add(task)
    task.add_done_callback(_background_jobs.discard)

    return {
        "status": "accepted",
        "project_id": project.id,
        "message": "Scrape started. Progress can be polled on the project URL.",
    }


async def start_streaming_scrape(
    storage: Storage,
    registry: PluginRegistry,
    settings: Settings,
    definition: ScrapeDefinition,
    callback_url: str | None = None,
) -> AsyncGenerator[dict[str, str], None]:
    """Create the job, then return a generator of SSE-formatted events.

    The job is created before streaming starts so configuration errors still
    surface as a regular HTTP error. If the client disconnects, the scrape
    continues in the background.
    """
    queue: asyncio.Queue[tuple[str, dict[str, Any]] | None] = asyncio.Queue()

    async def on_event(event: str, data: dict[str, Any]) -> None:
        await queue.put((event, data))

    scraper, project = await create_job(storage, registry, settings, definition, on_event=on_event)
    logger.info("streaming scrape started", extra={"project_id": project.id, "url": project.url})

    async def run_and_signal_done() -> None:
        try:
            await run_background_scrape(scraper, project, callback_url=callback_url)
        finally:
            await queue.put(None)  # sentinel

    task = asyncio.create_task(run_and_signal_done())
    _background_jobs.add(task)
    task.add_done_callback(_background_jobs.discard)

    async def event_generator() -> AsyncGenerator[dict[str, str], None]:
        yield {"event": "project", "data": json.dumps({"project_id": project.id})}
        while True:
            item = await queue.get()
            if item is None:
                break
            event, data = item
            yield {"event": event, "data": json.dumps(data)}

    return event_generator()


async def get_project_summary(storage: Storage, project_id: int) -> ProjectSummary | None:
    project = await storage.get_project(project_id)
    if project is None:
        return None
    return ProjectSummary(
        id=project.id,
        name=project.name,
        url=project.url,
        plugin_configs=[c.to_dict() for c in project.plugin_configs],
        resource_count=await storage.count_resources(project_id),
    )


async def get_resource_page(storage: Storage, project_id: int, offset: int, limit: int) -> ResourcePage:
    resources = await storage.get_resources(project_id, offset=offset, limit=limit)
    return ResourcePage(
        project_id=project_id,
        offset=offset,
        limit=limit,
        resources=[r.snapshot() for r in resources],
    )
