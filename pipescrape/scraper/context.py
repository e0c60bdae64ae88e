"""Process-wide collaborators shared by the scraper and its plugins."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pipescrape.browser.base import Renderer
    from pipescrape.plugins.registry import PluginRegistry
    from pipescrape.storage.base import Storage


@dataclass
class ScrapeContext:
    """Storage, renderer and plugin registry for one scrape job."""

    storage: Storage
    renderer: Renderer | None
    registry: PluginRegistry
