"""Declarative job definitions and their compact string encoding."""

from __future__ import annotations

import base64
import binascii
import json
import zlib
from typing import Any

from pydantic import BaseModel, ValidationError

from pipescrape.errors import ConfigurationError
from pipescrape.storage.models import PluginConfig


class ScrapeDefinition(BaseModel):
    """What to scrape: a start URL, a scenario and plugin overrides."""

    url: str
    scenario: str | None = None
    plugin_configs: list[PluginConfig] = []


def encode_definition(definition: ScrapeDefinition) -> str:
    """Serialize a definition into a URL-safe string."""
    payload = {
        "url": definition.url,
        "scenario": definition.scenario,
        "plugin_configs": [c.to_dict() for c in definition.plugin_configs],
    }
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(zlib.compress(raw, 9)).decode("ascii").rstrip("=")


def decode_definition(encoded: str) -> ScrapeDefinition:
    """Inverse of :func:`encode_definition`."""
    padded = encoded.strip() + "=" * (-len(encoded.strip()) % 4)
    try:
        raw = zlib.decompress(base64.urlsafe_b64decode(padded))
        return ScrapeDefinition.model_validate_json(raw)
    except (binascii.Error, zlib.error, ValueError, ValidationError) as exc:
        raise ConfigurationError(f"invalid scrape definition: {exc}") from exc


def parse_definition(value: ScrapeDefinition | dict[str, Any] | str) -> ScrapeDefinition:
    """Accept a definition model, a plain mapping or an encoded string."""
    if isinstance(value, ScrapeDefinition):
        return value
    if isinstance(value, str):
        return decode_definition(value)
    try:
        return ScrapeDefinition.model_validate(value)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid scrape definition: {exc}") from exc
