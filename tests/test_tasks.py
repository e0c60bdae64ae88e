"""Background scrape runner and callback tests."""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from pipescrape.scraper.tasks import (
    RetryConfig,
    post_callback,
    run_background_scrape,
    validate_callback_url,
)
from pipescrape.storage.models import Project

NO_DELAY = RetryConfig(max_retries=2, base_delay=0, max_delay=0)


# --- validate_callback_url (synchronous) ---


@pytest.mark.parametrize(
    ("url", "allowed", "expected"),
    [
        ("https://hooks.example.com/done", "hooks.example.com", True),
        ("http://HOOKS.example.com/done", "other.org, hooks.example.com", True),
        ("https://evil.org/done", "hooks.example.com", False),
        ("ftp://hooks.example.com/done", "hooks.example.com", False),
        ("https://user:pw@hooks.example.com/", "hooks.example.com", False),
        ("https://hooks.example.com/done", "", False),
        ("not a url", "hooks.example.com", False),
    ],
)
def test_validate_callback_url(url, allowed, expected):
    assert validate_callback_url(url, allowed) is expected


# --- post_callback ---


@pytest.mark.asyncio
async def test_post_callback_delivers_json():
    received = []

    def handler(request):
        received.append(json.loads(request.content))
        return httpx.Response(204)

    delivered = await post_callback(
        "https://hooks.example.com/done", {"project_id": 1}, NO_DELAY, transport=httpx.MockTransport(handler),
    )
    assert delivered is True
    assert received == [{"project_id": 1}]


@pytest.mark.asyncio
async def test_post_callback_retries_connection_errors():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200)

    delivered = await post_callback("https://hooks.example.com/done", {}, NO_DELAY, transport=httpx.MockTransport(handler))
    assert delivered is True
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_post_callback_gives_up_after_retries():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    delivered = await post_callback("https://hooks.example.com/done", {}, NO_DELAY, transport=httpx.MockTransport(handler))
    assert delivered is False


@pytest.mark.asyncio
async def test_post_callback_does_not_retry_server_errors():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(500)

    delivered = await post_callback("https://hooks.example.com/done", {}, NO_DELAY, transport=httpx.MockTransport(handler))
    assert delivered is False
    assert len(attempts) == 1


# --- run_background_scrape ---


@pytest.mark.asyncio
async def test_background_scrape_posts_completion():
    project = Project(id=9, name="example.com", url="https://example.com/")
    scraper = AsyncMock()

    with patch("pipescrape.scraper.tasks.post_callback", new_callable=AsyncMock) as mock_post:
        await run_background_scrape(scraper, project, callback_url="https://hooks.example.com/done")

    scraper.scrape.assert_awaited_once_with(project)
    mock_post.assert_awaited_once_with(
        "https://hooks.example.com/done",
        {"project_id": 9, "status": "completed", "result_url": "/projects/9"},
    )


@pytest.mark.asyncio
async def test_background_scrape_reports_failure():
    project = Project(id=9, name="example.com", url="https://example.com/")
    scraper = AsyncMock()
    scraper.scrape.side_effect = RuntimeError("boom")

    with patch("pipescrape.scraper.tasks.post_callback", new_callable=AsyncMock) as mock_post:
        await run_background_scrape(scraper, project, callback_url="https://hooks.example.com/done")

    assert mock_post.call_args.args[1]["status"] == "failed"


@pytest.mark.asyncio
async def test_background_scrape_without_callback():
    scraper = AsyncMock()
    with patch("pipescrape.scraper.tasks.post_callback", new_callable=AsyncMock) as mock_post:
        await run_background_scrape(scraper, Project(id=1, name="x", url="https://x.org/"))
    mock_post.assert_not_awaited()
