"""Infinite-scroll plugin, executed inside the renderer."""

from __future__ import annotations

from typing import Any

from pipescrape.errors import PluginError
from pipescrape.storage.models import Project, Resource

from .base import Plugin

SCROLL_BUNDLE = """
class ScrollPlugin {
  constructor(opts) {
    this.opts = Object.assign({ delay: 1000, max_actions: 3 }, opts);
    this.actionNo = 0;
  }

  test(project, resource) {
    if (!resource) return false;
    if (!resource.actions || resource.actions.length === 0) return true;
    return this.actionNo < this.opts.max_actions;
  }

  async apply(project, resource) {
    if (!resource.actions || resource.actions.length === 0) {
      this.actionNo = 0;
    }

    const previousHeight = document.body.scrollHeight;
    window.scrollTo(0, previousHeight);
    await new Promise(resolve => setTimeout(resolve, this.opts.delay));

    if (document.body.scrollHeight <= previousHeight) {
      this.actionNo = this.opts.max_actions;
      return null;
    }

    this.actionNo += 1;
    return { actions: [`scroll#${this.actionNo}`] };
  }
}
"""


class ScrollPlugin(Plugin):
    """Scrolls to the bottom of the page and reports a ``scroll#n`` action when new content loads.

    Options: ``delay`` (ms to wait for new content), ``max_actions``.
    """

    dom_write = True
    bundle = SCROLL_BUNDLE

    def test(self, project: Project, resource: Resource | None) -> Any:
        raise PluginError("ScrollPlugin only runs inside the renderer")
