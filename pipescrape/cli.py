"""Command line entrypoint: scrape a site in process and optionally export it."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any

from pipescrape.browser.playwright import PlaywrightRenderer
from pipescrape.config import Settings, get_settings
from pipescrape.errors import ConfigurationError
from pipescrape.logging_config import setup_logging
from pipescrape.plugins import build_default_registry
from pipescrape.scraper.context import ScrapeContext
from pipescrape.scraper.definition import ScrapeDefinition, decode_definition, encode_definition
from pipescrape.scraper.engine import Scraper
from pipescrape.scraper.scenarios import resolve_plugin_configs
from pipescrape.storage.models import PluginConfig
from pipescrape.storage.redis import RedisStorage

logger = logging.getLogger(__name__)


def _load_plugin_configs(raw: str | None) -> list[PluginConfig]:
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"--plugins is not valid JSON: {exc}") from exc
    if not isinstance(items, list):
        raise ConfigurationError("--plugins must be a JSON list")
    return [PluginConfig.model_validate(item) for item in items]


def _build_definition(args: argparse.Namespace, settings: Settings) -> ScrapeDefinition:
    if args.hash:
        return decode_definition(args.hash)
    if not args.url:
        raise ConfigurationError("either --url or --hash is required")
    return ScrapeDefinition(
        url=args.url,
        scenario=args.scenario or settings.default_scenario,
        plugin_configs=_load_plugin_configs(args.plugins),
    )


async def run_scrape(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    definition = _build_definition(args, settings)

    registry = build_default_registry(settings)
    registry.init()

    renderer = None
    if registry.requires_renderer(resolve_plugin_configs(definition.scenario, definition.plugin_configs)):
        renderer = PlaywrightRenderer(
            headless=settings.browser_headless,
            timeout_ms=settings.browser_timeout_ms,
        )

    storage = RedisStorage(redis_url=settings.redis_url, prefix=settings.storage_prefix)
    scraper = Scraper(ScrapeContext(storage=storage, renderer=renderer, registry=registry))
    try:
        project = await scraper.scrape(definition)
        exported = None
        if args.export:
            exported = await scraper.export(args.export, {"type": args.export_type})
        return {
            "project_id": project.id,
            "project": project.name,
            "resources": await storage.count_resources(project.id),
            "exported": exported,
        }
    finally:
        await storage.close()


def main() -> None:
    parser = argparse.ArgumentParser(prog="pipescrape")
    sub = parser.add_subparsers(dest="command", required=True)

    scrape = sub.add_parser("scrape", help="Scrape a site until no resource is left")
    scrape.add_argument("--url", help="Start URL")
    scrape.add_argument("--scenario", help="Scenario name (default from settings)")
    scrape.add_argument("--plugins", help="JSON list of plugin configuration overrides")
    scrape.add_argument("--hash", help="Encoded scrape definition")
    scrape.add_argument("--export", help="Export destination path")
    scrape.add_argument("--export-type", default="csv", choices=["csv", "zip"], help="Export format")

    encode = sub.add_parser("encode", help="Print the encoded form of a scrape definition")
    encode.add_argument("--url", required=True, help="Start URL")
    encode.add_argument("--scenario", help="Scenario name")
    encode.add_argument("--plugins", help="JSON list of plugin configuration overrides")

    args = parser.parse_args()
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.command == "encode":
        definition = ScrapeDefinition(
            url=args.url, scenario=args.scenario, plugin_configs=_load_plugin_configs(args.plugins),
        )
        print(encode_definition(definition))
        return

    summary = asyncio.run(run_scrape(args, settings))
    print(json.dumps(summary))


if __name__ == "__main__":
    main()
