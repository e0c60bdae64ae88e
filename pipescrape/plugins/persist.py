"""Storage plugins: queue discovered resources and save the scraped one."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pipescrape.storage.models import Project, Resource

from .base import Plugin

if TYPE_CHECKING:
    from pipescrape.scraper.context import ScrapeContext

logger = logging.getLogger(__name__)


class InsertResourcesPlugin(Plugin):
    """Persists ``resources_to_add`` as new, unscraped resources."""

    def test(self, project: Project, resource: Resource | None) -> bool:
        return resource is not None and bool(resource.resources_to_add)

    async def apply(self, project: Project, resource: Resource, context: ScrapeContext) -> None:
        candidates = [Resource.model_validate(item) for item in resource.resources_to_add]
        inserted = await context.storage.add_resources(project.id, candidates)
        logger.debug(
            "resources queued",
            extra={"url": resource.url, "found": len(candidates), "inserted": inserted},
        )


class UpsertResourcePlugin(Plugin):
    """Saves the current resource and stamps it as scraped."""

    def test(self, project: Project, resource: Resource | None) -> bool:
        return resource is not None

    async def apply(self, project: Project, resource: Resource, context: ScrapeContext) -> Resource:
        if resource.project_id is None:
            resource = resource.model_copy(update={"project_id": project.id})
        return await context.storage.update_resource(resource)
