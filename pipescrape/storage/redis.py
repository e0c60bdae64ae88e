"""Redis storage backend storing projects and resources as JSON documents."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Iterable

import redis.asyncio as redis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry

from .models import Project, Resource

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "pipescrape:"


class RedisStorage:
    """Async Redis implementation of the :class:`~pipescrape.storage.base.Storage` protocol.

    Layout, relative to ``prefix``:

    - ``seq:project`` / ``seq:resource``: id sequences
    - ``project:{id}``: project document
    - ``project:{id}:resources``: sorted set of every resource id (score = id)
    - ``project:{id}:queue``: sorted set of resource ids waiting to be scraped
    - ``project:{id}:urls``: set of known URLs, used to skip duplicate inserts
    - ``resource:{id}``: resource document
    """

    def __init__(
        self,
        client: redis.Redis | None = None,
        redis_url: str = "redis://localhost:6379",
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self._client = client
        self._redis_url = redis_url
        self._prefix = prefix
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._client is None:
            self._client = await create_redis_client(self._redis_url)
        await self._client.ping()
        self._connected = True
        logger.info("storage connected", extra={"prefix": self._prefix})

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
        self._connected = False

    # --- keys ---

    def _project_key(self, project_id: int) -> str:
        return f"{self._prefix}project:{project_id}"

    def _resources_key(self, project_id: int) -> str:
        return f"{self._prefix}project:{project_id}:resources"

    def _queue_key(self, project_id: int) -> str:
        return f"{self._prefix}project:{project_id}:queue"

    def _urls_key(self, project_id: int) -> str:
        return f"{self._prefix}project:{project_id}:urls"

    def _resource_key(self, resource_id: int) -> str:
        return f"{self._prefix}resource:{resource_id}"

    # --- projects ---

    async def save_project(self, project: Project) -> Project:
        if project.id is None:
            project_id = await self._client.incr(f"{self._prefix}seq:project")
            project = project.model_copy(update={"id": project_id})
        await self._client.set(self._project_key(project.id), json.dumps(project.snapshot()))
        logger.debug("project saved", extra={"project_id": project.id, "project": project.name})
        return project

    async def get_project(self, project_id: int) -> Project | None:
        raw = await self._client.get(self._project_key(project_id))
        if raw is None:
            return None
        return Project.model_validate(json.loads(raw))

    async def delete_project(self, project_id: int) -> None:
        await self.delete_all_resources(project_id)
        await self._client.delete(self._project_key(project_id))

    # --- resources ---

    async def _write(self, resource: Resource) -> Resource:
        if resource.project_id is None:
            raise ValueError(f"resource {resource.url} is not linked to a project")
        if resource.id is None:
            resource_id = await self._client.incr(f"{self._prefix}seq:resource")
            resource = resource.model_copy(update={"id": resource_id})

        queued = resource.scraped_at is None and not resource.scrape_in_progress
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(self._resource_key(resource.id), resource.model_dump_json())
            pipe.zadd(self._resources_key(resource.project_id), {str(resource.id): resource.id})
            if queued:
                pipe.zadd(self._queue_key(resource.project_id), {str(resource.id): resource.id})
            else:
                pipe.zrem(self._queue_key(resource.project_id), str(resource.id))
            await pipe.execute()
        return resource

    async def save_resource(self, resource: Resource) -> Resource:
        resource = await self._write(resource)
        await self._client.sadd(self._urls_key(resource.project_id), resource.url)
        return resource

    async def add_resources(self, project_id: int, resources: Iterable[Resource]) -> int:
        """Insert resources whose URL is not yet known to the project."""
        inserted = 0
        for resource in resources:
            if not await self._client.sadd(self._urls_key(project_id), resource.url):
                continue
            await self._write(resource.model_copy(update={"project_id": project_id}))
            inserted += 1
        logger.debug("resources added", extra={"project_id": project_id, "inserted": inserted})
        return inserted

    async def get_resource(self, resource_id: int) -> Resource | None:
        raw = await self._client.get(self._resource_key(resource_id))
        if raw is None:
            return None
        return Resource.model_validate_json(raw)

    async def select_resource(self, project_id: int) -> Resource | None:
        """Pop the oldest queued resource and mark it in progress."""
        while True:
            popped = await self._client.zpopmin(self._queue_key(project_id))
            if not popped:
                return None
            member, _score = popped[0]
            resource = await self.get_resource(int(member))
            if resource is None or resource.scraped_at is not None:
                continue
            return await self._write(resource.model_copy(update={"scrape_in_progress": True}))

    async def get_resources(
        self,
        project_id: int,
        *,
        offset: int = 0,
        limit: int | None = None,
        where_null: Iterable[str] = (),
        where_not_null: Iterable[str] = (),
        columns: Iterable[str] | None = None,
    ) -> list[Resource]:
        """Page through a project's resources in insertion order.

        ``columns`` restricts the loaded fields (``id``, ``project_id`` and
        ``url`` are always kept); unloaded fields keep their defaults.
        """
        where_null = list(where_null)
        where_not_null = list(where_not_null)
        columns = None if columns is None else list(columns)
        unknown = set(where_null + where_not_null + (columns or [])) - set(Resource.model_fields)
        if unknown:
            raise ValueError(f"unknown resource columns: {sorted(unknown)}")

        ids = await self._client.zrange(self._resources_key(project_id), 0, -1)
        if not ids:
            return []
        raws = await self._client.mget([self._resource_key(int(i)) for i in ids])

        matches: list[tuple[str, dict]] = []
        for raw in raws:
            if raw is None:
                continue
            doc = json.loads(raw)
            if any(doc.get(col) is not None for col in where_null):
                continue
            if any(doc.get(col) is None for col in where_not_null):
                continue
            matches.append((raw, doc))

        end = None if limit is None else offset + limit
        page = matches[offset:end]
        if columns is None:
            return [Resource.model_validate_json(raw) for raw, _ in page]

        keep = set(columns) | {"id", "project_id", "url"}
        return [
            Resource.model_validate_json(json.dumps({k: v for k, v in doc.items() if k in keep}))
            for _, doc in page
        ]

    async def count_resources(self, project_id: int) -> int:
        return await self._client.zcard(self._resources_key(project_id))

    async def update_resource(self, resource: Resource) -> Resource:
        """Persist ``resource`` as scraped; it will never be selected again."""
        resource = resource.model_copy(
            update={"scraped_at": datetime.now(timezone.utc), "scrape_in_progress": False},
        )
        resource = await self.save_resource(resource)
        logger.debug("resource updated", extra={"resource_id": resource.id, "url": resource.url})
        return resource

    async def delete_resource(self, resource_id: int) -> None:
        resource = await self.get_resource(resource_id)
        if resource is None:
            return
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.delete(self._resource_key(resource_id))
            pipe.zrem(self._resources_key(resource.project_id), str(resource_id))
            pipe.zrem(self._queue_key(resource.project_id), str(resource_id))
            pipe.srem(self._urls_key(resource.project_id), resource.url)
            await pipe.execute()

    async def delete_all_resources(self, project_id: int) -> None:
        ids = await self._client.zrange(self._resources_key(project_id), 0, -1)
        keys = [self._resource_key(int(i)) for i in ids]
        keys += [
            self._resources_key(project_id),
            self._queue_key(project_id),
            self._urls_key(project_id),
        ]
        await self._client.delete(*keys)


async def create_redis_client(redis_url: str) -> redis.Redis:
    # Strip credentials for logging (everything before @ if present)
    safe_url = redis_url.split("@")[-1] if "@" in redis_url else redis_url
    logger.info("connecting to redis", extra={"redis_url": safe_url})
    retry = Retry(ExponentialBackoff(), retries=3)
    return redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        health_check_interval=30,
        retry=retry,
        retry_on_error=[redis.ConnectionError, redis.TimeoutError],
    )
