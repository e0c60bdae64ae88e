"""Exception hierarchy shared by the scraper, plugins and storage."""

from __future__ import annotations

from typing import Any


class ScrapeError(Exception):
    """Base class for every error raised by pipescrape."""


class ConfigurationError(ScrapeError):
    """Invalid job definition, scenario or settings."""


class ScenarioError(ConfigurationError):
    """A plugin override references an anchor that is not in the plugin list."""


class UnknownPluginError(ConfigurationError):
    """No plugin is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unknown plugin: {name}")
        self.name = name


class PluginError(ScrapeError):
    """A plugin failed while testing or applying against a resource."""


class RemotePluginError(PluginError):
    """A plugin failed inside the renderer; ``fields`` holds the remote error properties."""

    def __init__(self, message: str, fields: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.fields: dict[str, Any] = dict(fields or {})
