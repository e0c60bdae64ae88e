"""Resource selection plugin."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pipescrape.storage.models import Project, Resource

from .base import Plugin

if TYPE_CHECKING:
    from pipescrape.scraper.context import ScrapeContext


class SelectResourcePlugin(Plugin):
    """Pulls the next unscraped resource of the project from storage.

    Only applies when no resource is being scraped yet; returning ``None``
    from :meth:`apply` ends the scrape loop.
    """

    def test(self, project: Project, resource: Resource | None) -> bool:
        return resource is None

    async def apply(
        self, project: Project, resource: Resource | None, context: ScrapeContext,
    ) -> Resource | None:
        return await context.storage.select_resource(project.id)
