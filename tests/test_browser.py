"""Playwright renderer tests.

Tests touching a real Chromium only run with ``PIPESCRAPE_BROWSER_TESTS=1``
(after ``playwright install chromium``); they execute the page-side runtime
the other suites emulate with ``FakeRenderer``.
"""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pipescrape.browser.playwright import PlaywrightRenderer
from pipescrape.errors import RemotePluginError
from pipescrape.plugins.base import Plugin
from pipescrape.plugins.registry import PluginRegistry
from pipescrape.scraper.bridge import RemoteBridge
from pipescrape.storage.models import PluginConfig, Project, Resource

pytestmark = pytest.mark.asyncio

requires_browser = pytest.mark.skipif(
    not os.environ.get("PIPESCRAPE_BROWSER_TESTS"),
    reason="set PIPESCRAPE_BROWSER_TESTS=1 to run against Chromium",
)

PROJECT = Project(id=1, name="example.com", url="https://example.com/")
RESOURCE = Resource(id=2, project_id=1, url="https://example.com/")


def _mock_playwright():
    page = MagicMock()
    page.close = AsyncMock()
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser)
    pw.stop = AsyncMock()
    factory = MagicMock()
    factory.return_value.start = AsyncMock(return_value=pw)
    return factory, pw, browser, context, page


async def test_launch_bypasses_content_security_policy():
    factory, pw, browser, context, page = _mock_playwright()

    with patch("pipescrape.browser.playwright.async_playwright", factory):
        renderer = PlaywrightRenderer(headless=True, timeout_ms=1234)
        await renderer.launch()

    pw.chromium.launch.assert_awaited_once_with(headless=True)
    browser.new_context.assert_awaited_once_with(bypass_csp=True)
    context.new_page.assert_awaited_once()
    page.set_default_timeout.assert_called_once_with(1234)
    assert renderer.is_launched
    assert renderer.session_id


async def test_close_releases_everything():
    factory, pw, browser, context, page = _mock_playwright()

    with patch("pipescrape.browser.playwright.async_playwright", factory):
        renderer = PlaywrightRenderer()
        await renderer.launch()
        await renderer.close()

    page.close.assert_awaited_once()
    context.close.assert_awaited_once()
    browser.close.assert_awaited_once()
    pw.stop.assert_awaited_once()
    assert not renderer.is_launched
    assert renderer.session_id is None


class CounterPlugin(Plugin):
    dom_read = True
    bundle = """
class CounterPlugin {
  constructor(opts) { this.step = opts.step || 1; this.count = 0; }
  test(project, resource) { return resource.url.startsWith(project.url); }
  apply(project, resource) {
    this.count += this.step;
    return { extracted: { count: this.count, title: document.title } };
  }
}
"""


class BrokenPlugin(Plugin):
    dom_read = True
    bundle = """
class BrokenPlugin {
  test() { return true; }
  apply() { const err = new Error('selector not found'); err.code = 42; throw err; }
}
"""


@pytest.fixture
def plugin_registry() -> PluginRegistry:
    registry = PluginRegistry()
    registry.register(CounterPlugin)
    registry.register(BrokenPlugin)
    return registry


@requires_browser
async def test_runtime_keeps_one_instance_per_session(plugin_registry):
    renderer = PlaywrightRenderer()
    await renderer.launch()
    try:
        await renderer.goto("data:text/html,<title>Shop</title><body></body>")
        bridge = RemoteBridge(renderer, plugin_registry)
        plugin = CounterPlugin(PluginConfig(name="CounterPlugin", step=2))

        first = await bridge.execute(PROJECT, RESOURCE, plugin)
        second = await bridge.execute(PROJECT, RESOURCE, plugin)

        assert first == {"extracted": {"count": 2, "title": "Shop"}}
        assert second == {"extracted": {"count": 4, "title": "Shop"}}
    finally:
        await renderer.close()


@requires_browser
async def test_runtime_returns_none_when_not_applicable(plugin_registry):
    renderer = PlaywrightRenderer()
    await renderer.launch()
    try:
        bridge = RemoteBridge(renderer, plugin_registry)
        other = Resource(id=3, project_id=1, url="https://elsewhere.org/")
        assert await bridge.execute(PROJECT, other, CounterPlugin(PluginConfig(name="CounterPlugin"))) is None
    finally:
        await renderer.close()


@requires_browser
async def test_runtime_error_envelope(plugin_registry):
    renderer = PlaywrightRenderer()
    await renderer.launch()
    try:
        bridge = RemoteBridge(renderer, plugin_registry)
        with pytest.raises(RemotePluginError) as exc_info:
            await bridge.execute(PROJECT, RESOURCE, BrokenPlugin(PluginConfig(name="BrokenPlugin")))
    finally:
        await renderer.close()

    assert str(exc_info.value) == "selector not found"
    assert exc_info.value.fields["code"] == 42
    assert exc_info.value.fields["name"] == "Error"
