"""FastAPI app entrypoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from listing_service.api.routes import router
from listing_service.config import get_settings
from listing_service.events import ConnectivityMonitor, EventBus
from listing_service.logging_config import setup_logging
from listing_service.scrape import HttpxTransport, build_services
from listing_service.sites import SiteCatalog

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # Initialize logging FIRST so all subsequent operations produce JSON logs
    setup_logging(settings.log_level)
    logger.info("starting listing service")

    catalog = SiteCatalog.from_file(settings.sites_file)

    bus = EventBus()
    await bus.start()

    transport = HttpxTransport(timeout=settings.request_timeout)
    services = build_services(catalog, bus, transport, settings)

    monitor = None
    if settings.connectivity_probe_url:
        monitor = ConnectivityMonitor(
            bus,
            transport,
            settings.connectivity_probe_url,
            interval=settings.connectivity_interval,
            user_agent=settings.user_agent,
        )
        monitor.start()

    app.state.settings = settings
    app.state.bus = bus
    app.state.services = services

    logger.info(
        "listing service ready",
        extra={
            "site_count": len(services),
            "connectivity_probe": bool(monitor),
        },
    )

    yield

    logger.info("shutting down listing service")
    if monitor is not None:
        await monitor.stop()
    for service in services.values():
        service.detach()
        await service.wait_idle()
    await bus.stop()
    await transport.aclose()


app = FastAPI(title="Listing Service", lifespan=lifespan)
app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok"}
