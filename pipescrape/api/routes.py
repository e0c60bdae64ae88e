"""POST /scrape, GET /projects/{id}, GET /projects/{id}/resources endpoint handlers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sse_starlette.sse import EventSourceResponse

from pipescrape.api import service
from pipescrape.api.schemas import ProjectSummary, ResourcePage, ScrapeRequest
from pipescrape.auth.dependencies import require_api_key
from pipescrape.config import Settings
from pipescrape.errors import ConfigurationError
from pipescrape.plugins.registry import PluginRegistry
from pipescrape.scraper.tasks import validate_callback_url
from pipescrape.storage.base import Storage

router = APIRouter(dependencies=[Depends(require_api_key)])


def _get_storage(request: Request) -> Storage:
    return request.app.state.storage


def _get_registry(request: Request) -> PluginRegistry:
    return request.app.state.registry


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.post("/scrape")
async def create_scrape(
    body: ScrapeRequest,
    storage: Storage = Depends(_get_storage),
    registry: PluginRegistry = Depends(_get_registry),
    settings: Settings = Depends(_get_settings),
):
    if body.callback_url and not validate_callback_url(body.callback_url, settings.allowed_callback_hosts):
        raise HTTPException(
            status_code=422,
            detail="callback_url host not in ALLOWED_CALLBACK_HOSTS",
        )

    try:
        definition = service.resolve_definition(body, settings)
        if body.mode == "background":
            return await service.start_background_scrape(
                storage, registry, settings, definition, callback_url=body.callback_url,
            )
        events = await service.start_streaming_scrape(
            storage, registry, settings, definition, callback_url=body.callback_url,
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    return EventSourceResponse(events)


@router.get("/projects/{project_id}", response_model=ProjectSummary)
async def get_project(
    project_id: int,
    storage: Storage = Depends(_get_storage),
):
    summary = await service.get_project_summary(storage, project_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return summary


@router.get("/projects/{project_id}/resources", response_model=ResourcePage)
async def get_resources(
    project_id: int,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    storage: Storage = Depends(_get_storage),
):
    if await storage.get_project(project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return await service.get_resource_page(storage, project_id, offset, limit)
