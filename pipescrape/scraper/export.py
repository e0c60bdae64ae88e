"""Exporters writing a scraped project to disk."""

from __future__ import annotations

import csv
import logging
import re
import zipfile
from pathlib import Path
from typing import AsyncIterator

from pydantic import BaseModel

from pipescrape.storage.base import Storage
from pipescrape.storage.models import Project, Resource

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class ExportOptions(BaseModel):
    type: str | None = None
    page_size: int = PAGE_SIZE


async def _iter_resources(
    storage: Storage, project: Project, column: str, page_size: int,
    columns: list[str] | None = None,
) -> AsyncIterator[Resource]:
    offset = 0
    while True:
        page = await storage.get_resources(
            project.id, offset=offset, limit=page_size, where_not_null=[column], columns=columns,
        )
        for resource in page:
            yield resource
        if len(page) < page_size:
            return
        offset += page_size


async def export_csv(storage: Storage, project: Project, path: Path, options: ExportOptions) -> int:
    """Write one CSV row per content row, prefixed by the resource URL."""
    rows: list[list[str]] = []
    async for resource in _iter_resources(
        storage, project, "content", options.page_size, columns=["url", "content"],
    ):
        for content_row in resource.content:
            values = content_row if isinstance(content_row, list) else [content_row]
            rows.append([resource.url, *(str(v) for v in values)])

    if not rows:
        logger.warning("no content to export", extra={"project": project.name})
        return 0

    width = max(len(row) for row in rows)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8-sig", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["url", *(f"col{i}" for i in range(1, width))])
        writer.writerows(rows)

    logger.info("csv export done", extra={"project": project.name, "rows": len(rows), "path": str(path)})
    return len(rows)


def _entry_name(resource: Resource) -> str:
    slug = re.sub(r"[^A-Za-z0-9._-]+", "-", resource.url.split("://", 1)[-1]).strip("-")
    return f"{resource.id}-{slug[:100] or 'resource'}"


async def export_zip(storage: Storage, project: Project, path: Path, options: ExportOptions) -> int:
    """Archive the binary payload of every resource that has one."""
    count = 0
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        async for resource in _iter_resources(storage, project, "data", options.page_size):
            archive.writestr(_entry_name(resource), resource.data)
            count += 1

    logger.info("zip export done", extra={"project": project.name, "entries": count, "path": str(path)})
    return count


EXPORTERS = {
    "csv": export_csv,
    "zip": export_zip,
}
