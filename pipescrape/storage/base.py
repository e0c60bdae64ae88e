"""Persistence contract used by the scraper and the storage-bound plugins."""

from __future__ import annotations

from typing import Iterable, Protocol

from .models import Project, Resource


class Storage(Protocol):
    """Protocol for project/resource storage backends."""

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def save_project(self, project: Project) -> Project: ...

    async def get_project(self, project_id: int) -> Project | None: ...

    async def delete_project(self, project_id: int) -> None: ...

    async def save_resource(self, resource: Resource) -> Resource: ...

    async def add_resources(self, project_id: int, resources: Iterable[Resource]) -> int: ...

    async def get_resource(self, resource_id: int) -> Resource | None: ...

    async def select_resource(self, project_id: int) -> Resource | None: ...

    async def get_resources(
        self,
        project_id: int,
        *,
        offset: int = 0,
        limit: int | None = None,
        where_null: Iterable[str] = (),
        where_not_null: Iterable[str] = (),
        columns: Iterable[str] | None = None,
    ) -> list[Resource]: ...

    async def count_resources(self, project_id: int) -> int: ...

    async def update_resource(self, resource: Resource) -> Resource: ...

    async def delete_resource(self, resource_id: int) -> None: ...

    async def delete_all_resources(self, project_id: int) -> None: ...
