"""Service layer: turns site services and bus events into API payloads."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncGenerator

from listing_service.api.schemas import RecordOut, RecordPage, RichContentOut, SiteSummary
from listing_service.events.bus import EventBus
from listing_service.events.models import RecordsLoaded, RequestFailed
from listing_service.scrape.models import Record
from listing_service.scrape.service import SiteService

logger = logging.getLogger(__name__)

STREAM_QUEUE_SIZE = 100


def site_summary(service: SiteService) -> SiteSummary:
    website = service.website
    return SiteSummary(
        id=website.id,
        name=website.name,
        items_per_page=website.items_per_page,
        record_count=len(service.records),
        pending_failures=service.pending_failures,
        end_reached=service.end_reached,
    )


def _record_out(record: Record) -> RecordOut:
    rich = None
    if record.rich_content is not None:
        rich = RichContentOut(type=record.rich_content.type, value=record.rich_content.value)
    return RecordOut(content=record.content, url=record.url, rich_content=rich)


def records_page(service: SiteService, offset: int, limit: int) -> RecordPage:
    records = service.records
    return RecordPage(
        site_id=service.website.id,
        total=len(records),
        offset=offset,
        end_reached=service.end_reached,
        records=[_record_out(r) for r in records[offset:offset + limit]],
    )


async def stream_events(
    bus: EventBus,
    max_queue: int = STREAM_QUEUE_SIZE,
) -> AsyncGenerator[dict[str, str], None]:
    """Yield SSE-formatted outcome events until the client goes away.

    Each client buffers at most *max_queue* events; while a slow client's
    buffer is full, newer events are dropped for that client only.
    """
    queue: asyncio.Queue[RecordsLoaded | RequestFailed] = asyncio.Queue(maxsize=max_queue)

    def on_event(event: RecordsLoaded | RequestFailed) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "event stream queue full, dropping event",
                extra={"event": event.name, "site_id": event.site_id, "max_queue": max_queue},
            )

    bus.subscribe(RecordsLoaded, on_event)
    bus.subscribe(RequestFailed, on_event)
    logger.debug("event stream opened")
    try:
        while True:
            event = await queue.get()
            yield {"event": event.name, "data": json.dumps(event.to_dict())}
    finally:
        bus.unsubscribe(RecordsLoaded, on_event)
        bus.unsubscribe(RequestFailed, on_event)
        logger.debug("event stream closed")
