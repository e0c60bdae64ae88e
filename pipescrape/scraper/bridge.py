"""Remote bridge running DOM plugins inside the renderer."""

from __future__ import annotations

import logging
from typing import Any

from pipescrape.browser.base import Renderer
from pipescrape.errors import PluginError, RemotePluginError
from pipescrape.plugins.base import Plugin
from pipescrape.plugins.registry import PluginRegistry
from pipescrape.storage.models import Project, Resource

logger = logging.getLogger(__name__)

# Fixed page-side runtime. Requests are plain data; plugin instances live in a
# table keyed by renderer session, then plugin name, and are created once.
RUNTIME = """
async ({ session, name, bundle, options, project, resource }) => {
  const root = (window.__pipescrape = window.__pipescrape || {});
  const instances = (root[session] = root[session] || {});
  try {
    if (!instances[name]) {
      const PluginCls = new Function(`${bundle}\\nreturn ${name};`)();
      instances[name] = new PluginCls(options);
    }
    const plugin = instances[name];

    const isApplicable = await plugin.test(project, resource);
    if (!isApplicable) return { result: null };

    const result = await plugin.apply(project, resource);
    return { result: result === undefined ? null : result };
  }
  catch (err) {
    const fields = {};
    for (const key of Object.getOwnPropertyNames(err || {})) {
      try {
        fields[key] = JSON.parse(JSON.stringify(err[key]));
      }
      catch (serializationErr) {
        fields[key] = String(err[key]);
      }
    }
    fields.name = fields.name || (err && err.name) || 'Error';
    fields.message = fields.message || String(err);
    return { err: fields };
  }
}
"""


class RemoteBridge:
    """Executes DOM-flagged plugins through the renderer's evaluate channel."""

    def __init__(self, renderer: Renderer | None, registry: PluginRegistry) -> None:
        self._renderer = renderer
        self._registry = registry

    async def execute(
        self, project: Project, resource: Resource | None, plugin: Plugin,
    ) -> dict[str, Any] | None:
        # DOM plugins assume a resource has already been loaded in the page
        if resource is None:
            return None

        renderer = self._renderer
        if renderer is None or not renderer.is_launched:
            raise PluginError(f"plugin {plugin.name} runs in the DOM but no renderer is launched")

        bundle = self._registry.get(plugin.name).bundle
        if not bundle:
            raise PluginError(f"plugin {plugin.name} runs in the DOM but has no bundle")

        logger.debug("running plugin in renderer", extra={"plugin": plugin.name, "url": resource.url})
        envelope = await renderer.evaluate(
            RUNTIME,
            {
                "session": renderer.session_id,
                "name": plugin.name,
                "bundle": bundle,
                "options": plugin.remote_options(),
                "project": project.snapshot(),
                "resource": resource.snapshot(),
            },
        )

        if not isinstance(envelope, dict):
            raise PluginError(f"plugin {plugin.name} returned a malformed remote envelope")
        if envelope.get("err"):
            fields = envelope["err"]
            raise RemotePluginError(fields.get("message") or "remote plugin error", fields)

        result = envelope.get("result")
        if result is not None and not isinstance(result, dict):
            raise PluginError(f"plugin {plugin.name} returned {type(result).__name__}, expected an object")
        return result
