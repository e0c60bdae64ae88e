"""HTML extraction plugins built on BeautifulSoup."""

from __future__ import annotations

from itertools import zip_longest
from typing import TYPE_CHECKING, Any
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

from pipescrape.storage.models import Project, Resource

from .base import Plugin

if TYPE_CHECKING:
    from pipescrape.scraper.context import ScrapeContext

_HTML_TYPES = ("text/html", "application/xhtml+xml")


def _is_html(resource: Resource | None) -> bool:
    return (
        resource is not None
        and resource.data is not None
        and (resource.content_type is None or resource.content_type in _HTML_TYPES)
    )


class ExtractUrlsPlugin(Plugin):
    """Collects links to follow from an HTML resource.

    Options:
        max_depth: stop following links below this depth, ``-1`` for unlimited
        selectors: CSS selectors of elements carrying an ``href``
        allow_external: follow links to other hosts
    """

    def test(self, project: Project, resource: Resource | None) -> bool:
        if not _is_html(resource):
            return False
        max_depth = self.options.get("max_depth", -1)
        return max_depth < 0 or resource.depth < max_depth

    def apply(
        self, project: Project, resource: Resource, context: ScrapeContext,
    ) -> dict[str, Any] | None:
        soup = BeautifulSoup(resource.data, "lxml")
        host = urlparse(resource.url).hostname
        allow_external = self.options.get("allow_external", False)

        urls: list[str] = []
        seen = {urldefrag(resource.url).url}
        for selector in self.options.get("selectors", ["a[href]"]):
            for element in soup.select(selector):
                href = element.get("href")
                if not href:
                    continue
                url = urldefrag(urljoin(resource.url, href)).url
                parsed = urlparse(url)
                if parsed.scheme not in ("http", "https"):
                    continue
                if not allow_external and parsed.hostname != host:
                    continue
                if url in seen:
                    continue
                seen.add(url)
                urls.append(url)

        if not urls:
            return None
        return {
            "resources_to_add": [
                {"url": url, "depth": resource.depth + 1, "parent": resource.id} for url in urls
            ],
        }


class ExtractHtmlContentPlugin(Plugin):
    """Extracts text content as rows, one column per CSS selector."""

    def test(self, project: Project, resource: Resource | None) -> bool:
        return _is_html(resource)

    def apply(
        self, project: Project, resource: Resource, context: ScrapeContext,
    ) -> dict[str, Any] | None:
        soup = BeautifulSoup(resource.data, "lxml")
        selectors = self.options.get("selectors", ["h1, h2, h3, h4, h5, h6"])
        columns = [
            [el.get_text(" ", strip=True) for el in soup.select(selector)]
            for selector in selectors
        ]
        rows = [list(row) for row in zip_longest(*columns, fillvalue="")]
        if not rows:
            return None
        return {"content": rows}
