"""Pipeline plugins and the registry resolving them by name."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import Plugin, PluginResult
from .extract import ExtractHtmlContentPlugin, ExtractUrlsPlugin
from .fetch import BrowserFetchPlugin, HttpFetchPlugin
from .persist import InsertResourcesPlugin, UpsertResourcePlugin
from .registry import PluginRegistration, PluginRegistry
from .scroll import ScrollPlugin
from .select import SelectResourcePlugin

if TYPE_CHECKING:
    from pipescrape.config import Settings

__all__ = [
    "BUILTIN_PLUGINS",
    "BrowserFetchPlugin",
    "ExtractHtmlContentPlugin",
    "ExtractUrlsPlugin",
    "HttpFetchPlugin",
    "InsertResourcesPlugin",
    "Plugin",
    "PluginRegistration",
    "PluginRegistry",
    "PluginResult",
    "ScrollPlugin",
    "SelectResourcePlugin",
    "UpsertResourcePlugin",
    "build_default_registry",
]

BUILTIN_PLUGINS: tuple[type[Plugin], ...] = (
    SelectResourcePlugin,
    HttpFetchPlugin,
    BrowserFetchPlugin,
    ExtractUrlsPlugin,
    ExtractHtmlContentPlugin,
    InsertResourcesPlugin,
    UpsertResourcePlugin,
    ScrollPlugin,
)


def build_default_registry(settings: Settings) -> PluginRegistry:
    """Build an (uninitialized) registry that also loads the configured plugin modules."""
    return PluginRegistry(modules=settings.plugin_modules)
