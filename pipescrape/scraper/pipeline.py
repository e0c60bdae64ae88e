"""Applies one plugin to a (project, resource) pair."""

from __future__ import annotations

import inspect
import logging
from typing import Any

from pipescrape.plugins.base import Plugin, PluginResult
from pipescrape.storage.models import Project, Resource

from .bridge import RemoteBridge
from .context import ScrapeContext

logger = logging.getLogger(__name__)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class PluginPipeline:
    """Routes plugins either to local execution or to the remote bridge."""

    def __init__(self, context: ScrapeContext) -> None:
        self._context = context
        self._bridge = RemoteBridge(context.renderer, context.registry)

    async def execute(self, project: Project, resource: Resource | None, plugin: Plugin) -> PluginResult:
        logger.debug(
            "executing plugin",
            extra={
                "plugin": plugin.name,
                "options": plugin.options,
                "url": resource.url if resource else None,
            },
        )

        if plugin.runs_in_dom:
            return await self._bridge.execute(project, resource, plugin)

        if not await _resolve(plugin.test(project, resource)):
            return None
        return await _resolve(plugin.apply(project, resource, self._context))
