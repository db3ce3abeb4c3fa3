"""Site listing, load trigger, connectivity and event stream handlers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sse_starlette.sse import EventSourceResponse

from listing_service.api.schemas import (
    ConnectivityBody,
    LoadBody,
    RecordPage,
    SiteSummary,
)
from listing_service.api.service import records_page, site_summary, stream_events
from listing_service.auth.dependencies import require_api_key
from listing_service.events.bus import EventBus
from listing_service.events.models import ConnectivityChanged, LoadNext
from listing_service.scrape.service import SiteService

router = APIRouter(dependencies=[Depends(require_api_key)])


def _get_bus(request: Request) -> EventBus:
    return request.app.state.bus


def _get_services(request: Request) -> dict[int, SiteService]:
    return request.app.state.services


def _get_service(
    site_id: int,
    services: dict[int, SiteService] = Depends(_get_services),
) -> SiteService:
    service = services.get(site_id)
    if service is None:
        raise HTTPException(status_code=404, detail="Unknown site")
    return service


@router.get("/sites", response_model=list[SiteSummary])
async def list_sites(services: dict[int, SiteService] = Depends(_get_services)):
    return [site_summary(s) for s in services.values()]


@router.get("/sites/{site_id}/records", response_model=RecordPage)
async def get_records(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
    service: SiteService = Depends(_get_service),
):
    return records_page(service, offset, limit)


@router.post("/sites/{site_id}/load", status_code=status.HTTP_202_ACCEPTED)
async def load_next(
    body: LoadBody,
    service: SiteService = Depends(_get_service),
    bus: EventBus = Depends(_get_bus),
):
    site_id = service.website.id
    bus.publish(LoadNext(site_id=site_id, start_offset=body.start_offset))
    return {
        "status": "accepted",
        "site_id": site_id,
        "page": service.resolve_page(body.start_offset),
        "end_reached": service.end_reached,
    }


@router.delete("/sites/{site_id}/records", status_code=status.HTTP_204_NO_CONTENT)
async def clear_records(service: SiteService = Depends(_get_service)):
    await service.clear_records()


@router.post("/connectivity", status_code=status.HTTP_202_ACCEPTED)
async def set_connectivity(body: ConnectivityBody, bus: EventBus = Depends(_get_bus)):
    bus.publish(ConnectivityChanged(body.state))
    return {"status": "accepted", "state": body.state.value}


@router.get("/events")
async def events(bus: EventBus = Depends(_get_bus)):
    return EventSourceResponse(stream_events(bus))
