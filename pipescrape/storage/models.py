"""Project, Resource and PluginConfig models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

ANCHOR_FIELDS = ("before", "after", "replace")


class PluginConfig(BaseModel):
    """A named plugin reference plus free-form options.

    Options are stored as extra fields. ``dom_read`` / ``dom_write`` route the
    plugin through the renderer and fall back to the plugin class defaults when
    unset; anchors only matter while merging a scenario.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str
    dom_read: bool | None = None
    dom_write: bool | None = None
    before: str | None = None
    after: str | None = None
    replace: str | None = None

    @model_validator(mode="after")
    def _single_anchor(self) -> PluginConfig:
        anchors = [a for a in ANCHOR_FIELDS if getattr(self, a) is not None]
        if len(anchors) > 1:
            raise ValueError(f"plugin {self.name} declares more than one anchor: {anchors}")
        return self

    @property
    def anchor(self) -> tuple[str, str] | None:
        """Return ``(kind, target)`` for an anchored entry."""
        for kind in ANCHOR_FIELDS:
            target = getattr(self, kind)
            if target is not None:
                return kind, target
        return None

    @property
    def options(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    def without_anchor(self) -> PluginConfig:
        data = self.model_dump(exclude_unset=True, exclude=set(ANCHOR_FIELDS))
        return PluginConfig.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class Project(BaseModel):
    """A named scrape job."""

    id: int | None = None
    name: str
    url: str
    plugin_configs: list[PluginConfig] = []
    plugins: list[Any] = Field(default_factory=list, exclude=True, repr=False)

    def snapshot(self) -> dict[str, Any]:
        """JSON-compatible view sent to plugins running in the renderer."""
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "plugin_configs": [c.to_dict() for c in self.plugin_configs],
        }


class Resource(BaseModel):
    """One unit of scrape work: a URL plus its scrape state."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    id: int | None = None
    project_id: int | None = None
    url: str
    depth: int = 0
    content_type: str | None = None
    parent: int | None = None
    data: bytes | None = None
    content: Any = None
    extracted: dict[str, Any] | None = None
    status: int | None = None
    scrape_in_progress: bool = False
    scraped_at: datetime | None = None
    actions: list[str] | None = None
    resources_to_add: list[dict[str, Any]] | None = Field(default=None, exclude=True)

    @property
    def is_dynamic(self) -> bool:
        return bool(self.actions)

    def snapshot(self) -> dict[str, Any]:
        """JSON-compatible view, without the binary payload."""
        return self.model_dump(mode="json", exclude={"data"})


def merge_resource(resource: Resource, fields: dict[str, Any]) -> Resource:
    """Shallow-merge ``fields`` onto ``resource`` and return the new value."""
    unknown = set(fields) - set(Resource.model_fields)
    if unknown:
        raise ValueError(f"unknown resource fields: {sorted(unknown)}")
    merged = {name: getattr(resource, name) for name in Resource.model_fields}
    merged.update(fields)
    return Resource.model_validate(merged)
