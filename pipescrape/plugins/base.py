"""Plugin contract every pipeline step implements."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Union

from pipescrape.storage.models import PluginConfig, Project, Resource

if TYPE_CHECKING:
    from pipescrape.scraper.context import ScrapeContext

# None: nothing to do; Resource: replaces the working resource; dict: fields merged onto it
PluginResult = Union[None, Resource, dict[str, Any]]


class Plugin:
    """A stateless-per-invocation pipeline step bound to one configuration.

    Subclasses override :meth:`test` and :meth:`apply`; either may be a plain
    or a coroutine function. Plugins that run inside the renderer set
    ``dom_read`` / ``dom_write`` and ship their page-side implementation as a
    JavaScript ``bundle`` defining a class named like the plugin.
    """

    dom_read: ClassVar[bool] = False
    dom_write: ClassVar[bool] = False
    requires_renderer: ClassVar[bool] = False
    bundle: ClassVar[str | None] = None

    def __init__(self, config: PluginConfig) -> None:
        self.config = config
        self.options = config.options

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def reads_dom(self) -> bool:
        return self.config.dom_read if self.config.dom_read is not None else type(self).dom_read

    @property
    def writes_dom(self) -> bool:
        return self.config.dom_write if self.config.dom_write is not None else type(self).dom_write

    @property
    def runs_in_dom(self) -> bool:
        return self.reads_dom or self.writes_dom

    def remote_options(self) -> dict[str, Any]:
        """Options handed to the page-side constructor."""
        return {**self.options, "dom_read": self.reads_dom, "dom_write": self.writes_dom}

    def test(self, project: Project, resource: Resource | None) -> Any:
        raise NotImplementedError

    def apply(self, project: Project, resource: Resource | None, context: ScrapeContext) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.config.to_dict()!r})"
