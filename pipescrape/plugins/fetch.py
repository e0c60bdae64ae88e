"""Fetch plugins: plain HTTP via httpx, or navigation in the renderer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from pipescrape.errors import PluginError
from pipescrape.storage.models import PluginConfig, Project, Resource

from .base import Plugin

if TYPE_CHECKING:
    from pipescrape.scraper.context import ScrapeContext

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "pipescrape/0.1"


def _content_type(header: str | None) -> str | None:
    return (header or "").split(";")[0].strip().lower() or None


class HttpFetchPlugin(Plugin):
    """Downloads a static resource over HTTP.

    Options: ``timeout`` (seconds), ``headers``.
    """

    def __init__(self, config: PluginConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        super().__init__(config)
        self._transport = transport

    def test(self, project: Project, resource: Resource | None) -> bool:
        return resource is not None and resource.data is None and not resource.is_dynamic

    async def apply(
        self, project: Project, resource: Resource, context: ScrapeContext,
    ) -> dict[str, Any]:
        headers = {"User-Agent": DEFAULT_USER_AGENT, **self.options.get("headers", {})}
        async with httpx.AsyncClient(
            timeout=self.options.get("timeout", 20.0),
            headers=headers,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            response = await client.get(resource.url)

        fields: dict[str, Any] = {
            "status": response.status_code,
            "content_type": _content_type(response.headers.get("content-type")),
        }
        if response.is_error:
            logger.warning(
                "fetch returned an error status",
                extra={"url": resource.url, "status": response.status_code},
            )
            return fields
        fields["data"] = response.content
        return fields


class BrowserFetchPlugin(Plugin):
    """Loads a resource in the renderer and captures the rendered HTML.

    Dynamic resources are already displayed, their actions having mutated the
    current page, so only the DOM is captured again.
    """

    requires_renderer = True

    def test(self, project: Project, resource: Resource | None) -> bool:
        return resource is not None and resource.data is None

    async def apply(
        self, project: Project, resource: Resource, context: ScrapeContext,
    ) -> dict[str, Any]:
        renderer = context.renderer
        if renderer is None or not renderer.is_launched:
            raise PluginError("BrowserFetchPlugin requires a launched renderer")

        if resource.is_dynamic:
            html = await renderer.content()
            return {"content_type": "text/html", "data": html.encode("utf-8")}

        navigation = await renderer.goto(resource.url)
        content_type = _content_type(navigation.get("content_type"))
        fields: dict[str, Any] = {"status": navigation.get("status"), "content_type": content_type}
        if content_type in (None, "text/html"):
            html = await renderer.content()
            fields["data"] = html.encode("utf-8")
        return fields
