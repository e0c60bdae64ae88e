"""Scrape engine: resource scheduling loop and per-resource state machine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pipescrape.errors import PluginError
from pipescrape.storage.models import Project, Resource, merge_resource

from .context import ScrapeContext
from .definition import ScrapeDefinition, parse_definition
from .events import EventCallback, emit_event
from .export import EXPORTERS, ExportOptions
from .pipeline import PluginPipeline
from .scenarios import resolve_plugin_configs

logger = logging.getLogger(__name__)

ScrapeJob = Project | ScrapeDefinition | dict[str, Any] | str


class Scraper:
    """Runs a project's plugin chain over its resources until none are left.

    The scraper is storage and renderer agnostic: both are provided through
    the context, connected / launched lazily by :meth:`pre_scrape`.
    """

    def __init__(self, context: ScrapeContext, on_event: EventCallback | None = None) -> None:
        self._context = context
        self._storage = context.storage
        self._renderer = context.renderer
        self._registry = context.registry
        self._pipeline = PluginPipeline(context)
        self._on_event = on_event
        self.project: Project | None = None

    # --- lifecycle ---

    async def pre_scrape(self) -> None:
        """Initialize the registry, connect storage, launch the renderer; each only once."""
        if len(self._registry) == 0:
            self._registry.init()

        if not self._storage.is_connected:
            await self._storage.connect()

        if self._renderer is not None and not self._renderer.is_launched:
            await self._renderer.launch()

    async def init_project(self, job: ScrapeJob) -> Project:
        """Resolve ``job`` into a persisted project."""
        if isinstance(job, Project) and job.id is not None:
            return job

        if isinstance(job, Project):
            project = job
            start_url = job.url
        else:
            definition = parse_definition(job)
            start_url = definition.url
            project = Project(
                name=urlparse(definition.url).hostname or definition.url,
                url=definition.url,
                plugin_configs=resolve_plugin_configs(definition.scenario, definition.plugin_configs),
            )

        project = await self._storage.save_project(project)
        await self._storage.add_resources(project.id, [Resource(url=start_url, depth=0)])
        logger.info(
            "new project saved",
            extra={
                "project_id": project.id,
                "project": project.name,
                "plugins": [c.name for c in project.plugin_configs],
            },
        )
        return project

    async def post_scrape(self) -> None:
        if self._renderer is not None and self._renderer.is_launched:
            await self._renderer.close()

    async def scrape(self, job: ScrapeJob) -> Project:
        """Scrape every resource reachable from ``job`` and return its project."""
        try:
            try:
                await self.pre_scrape()
                self.project = await self.init_project(job)
            except Exception:
                # no project > no scrape process > abort
                logger.exception("pre-scrape operations failed")
                raise

            project = self.project
            try:
                project.plugins = self._registry.instantiate(project.plugin_configs)
            except Exception:
                # no plugins > no scrape process > abort
                logger.exception("plugin instantiation failed", extra={"project": project.name})
                raise

            await emit_event(self._on_event, "started", {"project_id": project.id, "project": project.name})

            # Each iteration selects, through the plugin chain, a resource not
            # yet scraped; None means the project is exhausted.
            scraped = 0
            while await self.scrape_resource(project) is not None:
                scraped += 1

            logger.info("project scraped", extra={"project": project.name, "resources": scraped})
            await emit_event(
                self._on_event, "completed", {"project_id": project.id, "resources": scraped},
            )
        finally:
            await self.post_scrape()

        return project

    # --- per resource ---

    async def scrape_resource(self, project: Project, resource: Resource | None = None) -> Resource | None:
        """Run the plugin chain against ``resource`` (or a newly selected one).

        A pass whose plugins produce actions (scroll, click, ...) spawns a
        dynamic child resource that goes through the whole chain again.
        Returns ``None`` once no resource is left to scrape.
        """
        while True:
            resource, actions = await self._scrape_pass(project, resource)
            if resource is None or not actions:
                return resource

            resource = await self._storage.save_resource(
                Resource(
                    project_id=project.id,
                    url=resource.url,
                    depth=resource.depth,
                    content_type=resource.content_type,
                    parent=resource.parent,
                    actions=actions,
                    scrape_in_progress=True,
                ),
            )

    async def _scrape_pass(
        self, project: Project, resource: Resource | None,
    ) -> tuple[Resource | None, list[str] | None]:
        if resource is not None and resource.is_dynamic:
            logger.info(
                "re-scraping dynamic resource",
                extra={"project": project.name, "url": resource.url, "actions": resource.actions},
            )
        else:
            logger.info("scraping new resource", extra={"project": project.name})

        # only the first plugin reporting actions in a pass is honored
        actions: list[str] | None = None
        plugin = None
        try:
            for plugin in project.plugins:
                result = await self._pipeline.execute(project, resource, plugin)
                if result is None:
                    continue

                # a new resource selected for scraping
                if isinstance(result, Resource):
                    resource = result
                    continue

                # content to be merged with the current resource
                if not isinstance(result, dict):
                    raise PluginError(f"plugin {plugin.name} returned {type(result).__name__}")
                if resource is None:
                    raise PluginError(f"plugin {plugin.name} returned fields without a current resource")
                if result.get("actions"):
                    if actions is None:
                        actions = list(result["actions"])
                    else:
                        result = {k: v for k, v in result.items() if k != "actions"}
                resource = merge_resource(resource, result)

            if resource is not None:
                logger.info("resource scraped", extra={"project": project.name, "url": resource.url})
                await emit_event(
                    self._on_event, "resource_scraped", {"resource_id": resource.id, "url": resource.url},
                )
            else:
                logger.info("no scrapable resource found", extra={"project": project.name})
        except Exception as exc:
            logger.error(
                "scrape error",
                extra={
                    "project": project.name,
                    "plugin": plugin.name if plugin else None,
                    "url": resource.url if resource else None,
                },
                exc_info=True,
            )
            # Stamp scraped_at so the resource is never selected again; a
            # failing resource is attempted exactly once. Actions produced
            # before the failure still spawn their dynamic child.
            if resource is not None:
                resource = await self._finalize(project, resource)
            await emit_event(
                self._on_event,
                "resource_failed",
                {
                    "resource_id": resource.id if resource else None,
                    "url": resource.url if resource else None,
                    "plugin": plugin.name if plugin else None,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )

        return resource, actions

    async def _finalize(self, project: Project, resource: Resource) -> Resource:
        if resource.project_id is None:
            resource = resource.model_copy(update={"project_id": project.id})
        return await self._storage.update_resource(resource)

    # --- export ---

    async def export(self, path: str | Path, options: ExportOptions | dict[str, Any] | None) -> int | None:
        """Export the current project; unsupported types are reported, not raised."""
        if isinstance(options, dict):
            options = ExportOptions.model_validate(options)
        if options is None or not options.type:
            logger.error("specify an export type")
            return None

        exporter = EXPORTERS.get(options.type)
        if exporter is None:
            logger.error("unsupported export type", extra={"type": options.type})
            return None
        if self.project is None:
            logger.error("nothing to export, no project scraped yet")
            return None

        return await exporter(self._storage, self.project, Path(path), options)
