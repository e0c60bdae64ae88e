"""Fixtures — fake Redis storage and a fake renderer."""

from __future__ import annotations

import itertools
from typing import Any

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

from pipescrape.plugins.registry import PluginRegistry
from pipescrape.scraper.context import ScrapeContext
from pipescrape.scraper.engine import Scraper
from pipescrape.storage.redis import RedisStorage

_sessions = itertools.count(1)


class FakeRenderer:
    """In-process stand-in for the browser.

    ``remote_classes`` maps plugin names to Python classes playing the role of
    the page-side bundle. Instances are kept per session and plugin name, like
    the page runtime does, and raised errors come back as ``{"err": ...}``.
    """

    def __init__(self, remote_classes: dict[str, type] | None = None) -> None:
        self.remote_classes = remote_classes or {}
        self.instances: dict[str, dict[str, Any]] = {}
        self.created: list[tuple[str, str]] = []
        self.calls: list[dict[str, Any]] = []
        self.launch_count = 0
        self.close_count = 0
        self._session_id: str | None = None
        self.html = "<html><body></body></html>"

    @property
    def is_launched(self) -> bool:
        return self._session_id is not None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    async def launch(self) -> None:
        self.launch_count += 1
        self._session_id = f"session-{next(_sessions)}"

    async def close(self) -> None:
        self.close_count += 1
        self._session_id = None

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.calls.append(arg)
        instances = self.instances.setdefault(arg["session"], {})
        try:
            if arg["name"] not in instances:
                instances[arg["name"]] = self.remote_classes[arg["name"]](arg["options"])
                self.created.append((arg["session"], arg["name"]))
            plugin = instances[arg["name"]]
            if not plugin.test(arg["project"], arg["resource"]):
                return {"result": None}
            return {"result": plugin.apply(arg["project"], arg["resource"])}
        except Exception as exc:
            return {"err": {"name": type(exc).__name__, "message": str(exc), **vars(exc)}}

    async def goto(self, url: str) -> dict[str, Any]:
        return {"status": 200, "content_type": "text/html"}

    async def content(self) -> str:
        return self.html


@pytest_asyncio.fixture
async def redis_client():
    client = FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def storage(redis_client):
    """RedisStorage backed by an in-memory FakeRedis instance."""
    store = RedisStorage(redis_client, prefix="test:")
    await store.connect()
    return store


@pytest.fixture
def registry() -> PluginRegistry:
    reg = PluginRegistry()
    reg.init()
    return reg


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def make_scraper(storage, registry, renderer):
    def _make(on_event=None, **overrides) -> Scraper:
        context = ScrapeContext(
            storage=overrides.get("storage", storage),
            renderer=overrides.get("renderer", renderer),
            registry=overrides.get("registry", registry),
        )
        return Scraper(context, on_event=on_event)

    return _make
