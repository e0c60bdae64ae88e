"""Playwright renderer driving one headless Chromium page."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from playwright.async_api import async_playwright

logger = logging.getLogger(__name__)


class PlaywrightRenderer:
    """Runs plugin code and navigation inside a Chromium tab."""

    def __init__(self, headless: bool = True, timeout_ms: int = 30000) -> None:
        self._headless = headless
        self._timeout_ms = timeout_ms
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._session_id: str | None = None

    @property
    def is_launched(self) -> bool:
        return self._page is not None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    async def launch(self) -> None:
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self._headless)
        # bundles are compiled in the page with new Function(), which needs CSP bypassed
        self._context = await self._browser.new_context(bypass_csp=True)
        self._page = await self._context.new_page()
        self._page.set_default_timeout(self._timeout_ms)
        self._session_id = uuid.uuid4().hex
        logger.info("browser launched", extra={"session_id": self._session_id, "headless": self._headless})

    def _require_page(self):
        if self._page is None:
            raise RuntimeError("browser not launched")
        return self._page

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        return await self._require_page().evaluate(expression, arg)

    async def goto(self, url: str) -> dict[str, Any]:
        """Navigate to ``url`` and return the response status and content type."""
        response = await self._require_page().goto(url, wait_until="domcontentloaded")
        if response is None:
            return {"status": None, "content_type": None}
        headers = await response.all_headers()
        content_type = headers.get("content-type", "").split(";")[0].strip() or None
        return {"status": response.status, "content_type": content_type}

    async def content(self) -> str:
        return await self._require_page().content()

    async def close(self) -> None:
        if self._page:
            await self._page.close()
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
        logger.info("browser closed", extra={"session_id": self._session_id})
        self._session_id = None
