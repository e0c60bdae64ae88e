"""Redis storage tests."""

from datetime import datetime

import pytest

from pipescrape.storage.models import PluginConfig, Project, Resource
from pipescrape.storage.redis import RedisStorage

pytestmark = pytest.mark.asyncio


async def _project(storage: RedisStorage, name: str = "projA") -> Project:
    return await storage.save_project(
        Project(
            name=name,
            url="https://example.com",
            plugin_configs=[PluginConfig(name="SelectResourcePlugin"), PluginConfig(name="ScrollPlugin", delay=50)],
        ),
    )


async def test_project_round_trip(storage: RedisStorage):
    project = await _project(storage)
    assert project.id is not None

    loaded = await storage.get_project(project.id)
    assert loaded.name == "projA"
    assert [c.to_dict() for c in loaded.plugin_configs] == [
        {"name": "SelectResourcePlugin"},
        {"name": "ScrollPlugin", "delay": 50},
    ]
    # unset DOM flags stay unset so plugin class defaults still apply
    assert loaded.plugin_configs[1].dom_write is None


async def test_get_missing_project(storage: RedisStorage):
    assert await storage.get_project(404) is None


async def test_resource_get(storage: RedisStorage):
    project = await _project(storage)
    saved = await storage.save_resource(Resource(project_id=project.id, url="urlA", depth=1, data=b"\x00\xffraw"))

    loaded = await storage.get_resource(saved.id)
    assert loaded == saved
    assert loaded.data == b"\x00\xffraw"
    assert loaded.content is None
    assert loaded.actions is None


async def test_save_requires_project(storage: RedisStorage):
    with pytest.raises(ValueError):
        await storage.save_resource(Resource(url="urlA"))


async def test_transient_fields_are_not_persisted(storage: RedisStorage):
    project = await _project(storage)
    saved = await storage.save_resource(
        Resource(project_id=project.id, url="urlA", resources_to_add=[{"url": "urlB"}]),
    )
    loaded = await storage.get_resource(saved.id)
    assert loaded.resources_to_add is None


async def test_add_resources_skips_known_urls(storage: RedisStorage):
    project = await _project(storage)
    inserted = await storage.add_resources(project.id, [Resource(url="urlA"), Resource(url="urlB")])
    assert inserted == 2

    inserted = await storage.add_resources(project.id, [Resource(url="urlB"), Resource(url="urlC")])
    assert inserted == 1
    assert await storage.count_resources(project.id) == 3


async def test_select_resource_in_insertion_order(storage: RedisStorage):
    project = await _project(storage)
    await storage.add_resources(project.id, [Resource(url=f"url{i}") for i in range(3)])

    first = await storage.select_resource(project.id)
    assert first.url == "url0"
    assert first.scrape_in_progress is True
    assert (await storage.get_resource(first.id)).scrape_in_progress is True

    second = await storage.select_resource(project.id)
    assert second.url == "url1"


async def test_select_returns_none_when_exhausted(storage: RedisStorage):
    project = await _project(storage)
    await storage.add_resources(project.id, [Resource(url="urlA")])
    assert await storage.select_resource(project.id) is not None
    assert await storage.select_resource(project.id) is None


async def test_update_stamps_scraped_at_and_is_never_reselected(storage: RedisStorage):
    project = await _project(storage)
    await storage.add_resources(project.id, [Resource(url="urlA")])
    selected = await storage.select_resource(project.id)

    updated = await storage.update_resource(selected)
    assert isinstance(updated.scraped_at, datetime)
    assert updated.scrape_in_progress is False

    loaded = await storage.get_resource(selected.id)
    assert loaded.scraped_at == updated.scraped_at
    assert await storage.select_resource(project.id) is None


async def test_in_progress_resources_are_not_queued(storage: RedisStorage):
    project = await _project(storage)
    await storage.save_resource(Resource(project_id=project.id, url="urlA", scrape_in_progress=True))
    assert await storage.select_resource(project.id) is None


async def test_get_resources_offset_limit(storage: RedisStorage):
    project = await _project(storage)
    for i in range(1, 4):
        await storage.save_resource(Resource(project_id=project.id, url=f"urlA{i}", content=[[f"title{i}"]]))

    page1 = await storage.get_resources(project.id, offset=0, limit=2)
    assert [r.url for r in page1] == ["urlA1", "urlA2"]
    assert [r.content for r in page1] == [[["title1"]], [["title2"]]]

    page2 = await storage.get_resources(project.id, offset=2, limit=2)
    assert [r.url for r in page2] == ["urlA3"]


async def test_get_resources_where_null_and_not_null(storage: RedisStorage):
    project = await _project(storage)
    for i in range(1, 5):
        if i % 2 == 0:
            resource = Resource(project_id=project.id, url=f"urlA{i}", content=[[f"title{i}"]])
        else:
            resource = Resource(project_id=project.id, url=f"urlA{i}", data=f"data{i}".encode())
        await storage.save_resource(resource)

    text = await storage.get_resources(project.id, where_not_null=["content"])
    assert [r.url for r in text] == ["urlA2", "urlA4"]

    binary = await storage.get_resources(project.id, where_not_null=["data"])
    assert [r.data.decode() for r in binary] == ["data1", "data3"]

    without_content = await storage.get_resources(project.id, where_null=["content"])
    assert [r.url for r in without_content] == ["urlA1", "urlA3"]


async def test_get_resources_projects_columns(storage: RedisStorage):
    project = await _project(storage)
    await storage.save_resource(
        Resource(project_id=project.id, url="urlA1", depth=2, status=200, content=[["title1"]], data=b"%PDF"),
    )

    [resource] = await storage.get_resources(project.id, columns=["content"])
    assert resource.url == "urlA1"
    assert resource.project_id == project.id
    assert resource.id is not None
    assert resource.content == [["title1"]]
    assert resource.data is None
    assert resource.status is None
    assert resource.depth == 0

    [binary] = await storage.get_resources(project.id, where_not_null=["data"], columns=["data"])
    assert binary.data == b"%PDF"
    assert binary.content is None


async def test_get_resources_rejects_unknown_columns(storage: RedisStorage):
    project = await _project(storage)
    with pytest.raises(ValueError):
        await storage.get_resources(project.id, where_null=["nope"])
    with pytest.raises(ValueError):
        await storage.get_resources(project.id, columns=["url", "nope"])


async def test_delete_resource(storage: RedisStorage):
    project = await _project(storage)
    saved = await storage.save_resource(Resource(project_id=project.id, url="urlA"))

    await storage.delete_resource(saved.id)
    assert await storage.get_resource(saved.id) is None
    assert await storage.count_resources(project.id) == 0
    assert await storage.select_resource(project.id) is None


async def test_delete_all_resources(storage: RedisStorage):
    project = await _project(storage)
    saved = await storage.save_resource(Resource(project_id=project.id, url="urlA"))

    await storage.delete_all_resources(project.id)
    assert await storage.get_resource(saved.id) is None
    assert await storage.get_resources(project.id) == []


async def test_delete_project_removes_resources(storage: RedisStorage):
    project = await _project(storage)
    saved = await storage.save_resource(Resource(project_id=project.id, url="urlA"))

    await storage.delete_project(project.id)
    assert await storage.get_project(project.id) is None
    assert await storage.get_resource(saved.id) is None


async def test_close_disconnects(redis_client):
    storage = RedisStorage(redis_client)
    await storage.connect()
    assert storage.is_connected
    await storage.close()
    assert not storage.is_connected
