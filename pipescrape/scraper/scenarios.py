"""Scenario templates and the plugin configuration merge."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from pipescrape.errors import ScenarioError
from pipescrape.storage.models import PluginConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scenario:
    """A named, reusable default plugin list."""

    name: str
    description: str
    default_plugin_configs: tuple[PluginConfig, ...]


def _configs(*names: str) -> tuple[PluginConfig, ...]:
    return tuple(PluginConfig(name=name) for name in names)


SCENARIOS: dict[str, Scenario] = {
    "static-content": Scenario(
        name="static-content",
        description="Fetch pages over HTTP, follow links and extract headings.",
        default_plugin_configs=_configs(
            "SelectResourcePlugin",
            "HttpFetchPlugin",
            "ExtractUrlsPlugin",
            "ExtractHtmlContentPlugin",
            "InsertResourcesPlugin",
            "UpsertResourcePlugin",
        ),
    ),
    "browser-static-content": Scenario(
        name="browser-static-content",
        description="Render pages in the browser, follow links and extract headings.",
        default_plugin_configs=_configs(
            "SelectResourcePlugin",
            "BrowserFetchPlugin",
            "ExtractUrlsPlugin",
            "ExtractHtmlContentPlugin",
            "InsertResourcesPlugin",
            "UpsertResourcePlugin",
        ),
    ),
}


def _index_of(configs: list[PluginConfig], name: str) -> int | None:
    for idx, config in enumerate(configs):
        if config.name == name:
            return idx
    return None


def merge_plugin_configs(
    defaults: Iterable[PluginConfig],
    overrides: Iterable[PluginConfig],
) -> list[PluginConfig]:
    """Apply ``overrides`` one by one onto ``defaults``.

    Each override is placed against the list as already modified by the
    previous overrides:

    - no anchor, name already present: replaces that entry in place
    - ``replace: X``: replaces ``X`` in place
    - ``before: X`` / ``after: X``: inserted right before / after ``X``
    - no anchor, unknown name: appended

    Stacking on one anchor therefore gives ``[B1, B2, X]`` for two ``before``
    overrides and ``[X, A2, A1]`` for two ``after`` overrides. Anchors are
    dropped from the returned entries.
    """
    merged = list(defaults)

    for override in overrides:
        resolved = override.without_anchor()
        anchor = override.anchor

        if anchor is None:
            idx = _index_of(merged, override.name)
            if idx is None:
                merged.append(resolved)
            else:
                merged[idx] = resolved
            continue

        kind, target = anchor
        idx = _index_of(merged, target)
        if idx is None:
            raise ScenarioError(
                f"plugin {override.name}: {kind} anchor {target} not found in "
                f"{[c.name for c in merged]}"
            )

        if kind == "replace":
            merged[idx] = resolved
        elif kind == "before":
            merged.insert(idx, resolved)
        else:
            merged.insert(idx + 1, resolved)

    return merged


def resolve_plugin_configs(
    scenario_name: str | None,
    overrides: Iterable[PluginConfig],
) -> list[PluginConfig]:
    """Merge a scenario's defaults with caller overrides.

    Without a known scenario the overrides are merged onto an empty list.
    """
    scenario = SCENARIOS.get(scenario_name) if scenario_name else None
    if scenario_name and scenario is None:
        logger.warning("unknown scenario, using plugin overrides only", extra={"scenario": scenario_name})
    defaults = scenario.default_plugin_configs if scenario else ()
    return merge_plugin_configs(defaults, overrides)
