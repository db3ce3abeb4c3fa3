"""Listing scrape engine: extraction, pagination, fetch orchestration, retry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .cursor import PaginationCursor
from .extractor import extract, parse
from .failures import FailureQueue
from .models import Extraction, LoadRequest, Record, RichContent
from .service import SiteService
from .transport import HttpxTransport, Transport, TransportResponse

if TYPE_CHECKING:
    from listing_service.config import Settings
    from listing_service.events.bus import EventBus
    from listing_service.sites.catalog import SiteCatalog

__all__ = [
    "Extraction",
    "FailureQueue",
    "HttpxTransport",
    "LoadRequest",
    "PaginationCursor",
    "Record",
    "RichContent",
    "SiteService",
    "Transport",
    "TransportResponse",
    "build_services",
    "extract",
    "parse",
]

logger = logging.getLogger(__name__)


def build_services(
    catalog: SiteCatalog,
    bus: EventBus,
    transport: Transport,
    settings: Settings,
) -> dict[int, SiteService]:
    """Create one attached :class:`SiteService` per catalog site."""
    services: dict[int, SiteService] = {}
    for website in catalog:
        service = SiteService(website, bus, transport, user_agent=settings.user_agent)
        service.attach()
        services[website.id] = service
        logger.debug("site service attached", extra={"site_id": website.id, "site": website.slug})
    return services
