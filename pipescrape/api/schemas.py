"""Request/response Pydantic models."""

from typing import Any, Literal

from pydantic import BaseModel, model_validator

from pipescrape.storage.models import PluginConfig


class ScrapeRequest(BaseModel):
    """Either an encoded definition (``hash``) or an explicit ``url``."""

    mode: Literal["stream", "background"]
    url: str | None = None
    scenario: str | None = None
    plugin_configs: list[PluginConfig] = []
    hash: str | None = None
    callback_url: str | None = None

    @model_validator(mode="after")
    def _url_or_hash(self) -> "ScrapeRequest":
        if not (self.url or self.hash):
            raise ValueError("either url or hash is required")
        return self


class ProjectSummary(BaseModel):
    id: int
    name: str
    url: str
    plugin_configs: list[dict[str, Any]] = []
    resource_count: int = 0


class ResourcePage(BaseModel):
    project_id: int
    offset: int
    limit: int
    resources: list[dict[str, Any]] = []
