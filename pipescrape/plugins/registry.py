"""Plugin registry mapping plugin names to constructors and page-side bundles."""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from pipescrape.errors import ConfigurationError, UnknownPluginError
from pipescrape.storage.models import PluginConfig

from .base import Plugin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginRegistration:
    """A named plugin constructor plus its optional JavaScript bundle."""

    name: str
    factory: Callable[[PluginConfig], Plugin]
    bundle: str | None = None


class PluginRegistry:
    """Registry of plugins available to scrape projects."""

    def __init__(self, modules: Iterable[str] = ()) -> None:
        self._registrations: dict[str, PluginRegistration] = {}
        self._modules = tuple(modules)

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, name: str) -> bool:
        return name in self._registrations

    def register(self, cls: type[Plugin], name: str | None = None) -> None:
        """Register a plugin class under ``name`` (defaults to the class name)."""
        name = name or cls.__name__
        self._registrations[name] = PluginRegistration(name=name, factory=cls, bundle=cls.bundle)

    def init(self) -> None:
        """Register the built-in plugins, then every configured plugin module.

        A plugin module exposes ``register(registry)``.
        """
        from . import BUILTIN_PLUGINS

        for cls in BUILTIN_PLUGINS:
            self.register(cls)

        for module_name in self._modules:
            try:
                module = importlib.import_module(module_name)
            except ImportError as exc:
                raise ConfigurationError(f"cannot import plugin module {module_name}") from exc
            register = getattr(module, "register", None)
            if register is None:
                raise ConfigurationError(f"plugin module {module_name} has no register(registry)")
            register(self)

        logger.info("plugin registry initialized", extra={"plugin_count": len(self)})

    def get(self, name: str) -> PluginRegistration:
        try:
            return self._registrations[name]
        except KeyError:
            raise UnknownPluginError(name) from None

    def instantiate(self, configs: Iterable[PluginConfig]) -> list[Plugin]:
        """Build one plugin instance per configuration, in order."""
        return [self.get(config.name).factory(config) for config in configs]

    def requires_renderer(self, configs: Iterable[PluginConfig]) -> bool:
        """Whether any configured plugin needs a launched renderer."""
        return any(
            plugin.runs_in_dom or plugin.requires_renderer
            for plugin in self.instantiate(configs)
        )
