"""Background scrape runner and callback logic."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from pipescrape.storage.models import Project

from .engine import Scraper

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for exponential-backoff retry on callback POST."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0


_DEFAULT_RETRY = RetryConfig()

_VALID_SCHEMES = {"http", "https"}

_RETRYABLE = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
)


def validate_callback_url(url: str, allowed_hosts: str) -> bool:
    """Check that *url* is http(s), credential free, and its host is in the allow-list.

    ``allowed_hosts`` is comma separated and compared case-insensitively.
    """
    if not allowed_hosts:
        return False

    parsed = urlparse(url)
    if parsed.scheme not in _VALID_SCHEMES:
        return False
    if parsed.username or parsed.password:
        return False
    if not parsed.hostname:
        return False

    allowed = {h.strip().lower() for h in allowed_hosts.split(",") if h.strip()}
    return parsed.hostname.lower() in allowed


async def post_callback(
    url: str,
    payload: dict,
    retry_config: RetryConfig = _DEFAULT_RETRY,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """POST a JSON payload to the callback URL; network errors are retried with backoff.

    Server errors are not retried. Returns whether the callback was delivered.
    """
    for attempt in range(1 + retry_config.max_retries):
        try:
            async with httpx.AsyncClient(timeout=10, transport=transport) as client:
                resp = await client.post(url, json=payload)
                resp.raise_for_status()
                return True
        except _RETRYABLE as exc:
            if attempt >= retry_config.max_retries:
                logger.warning(
                    "callback POST to %s failed after %d attempts",
                    url, retry_config.max_retries + 1, exc_info=True,
                )
                return False
            delay = min(retry_config.base_delay * (2 ** attempt), retry_config.max_delay)
            logger.warning(
                "callback POST to %s failed (attempt %d/%d), retrying in %.1fs: %s",
                url, attempt + 1, retry_config.max_retries + 1, delay, exc,
            )
            await asyncio.sleep(delay)
        except httpx.HTTPError:
            logger.warning("callback POST to %s failed (non-retryable)", url, exc_info=True)
            return False
    return False


async def run_background_scrape(
    scraper: Scraper,
    project: Project,
    callback_url: str | None = None,
) -> None:
    """Scrape *project* to completion and optionally POST a completion callback."""
    status = "completed"
    try:
        await scraper.scrape(project)
    except Exception:
        status = "failed"
        logger.exception("background scrape failed", extra={"project_id": project.id})

    if callback_url:
        await post_callback(
            callback_url,
            {
                "project_id": project.id,
                "status": status,
                "result_url": f"/projects/{project.id}",
            },
        )
