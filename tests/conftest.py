"""Fixtures: running event bus, scripted transport, example site."""

from __future__ import annotations

import asyncio
from typing import Mapping

import pytest
import pytest_asyncio

from listing_service.events.bus import EventBus
from listing_service.events.models import Event
from listing_service.scrape.transport import TransportResponse
from listing_service.sites.models import FieldRule, SiteDescriptor


class FakeTransport:
    """Transport answering from a url -> response (or exception) table.

    Unknown URLs get a 404. A URL with an entry in ``gates`` blocks until
    that event is set.
    """

    def __init__(self) -> None:
        self.responses: dict[str, TransportResponse | Exception] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[str, dict[str, str]]] = []

    def respond(self, url: str, body: str = "", status_code: int = 200) -> None:
        self.responses[url] = TransportResponse(status_code=status_code, body=body)

    def fail(self, url: str, exc: Exception) -> None:
        self.responses[url] = exc

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]

    async def send(self, url: str, headers: Mapping[str, str]) -> TransportResponse:
        self.calls.append((url, dict(headers)))
        gate = self.gates.get(url)
        if gate is not None:
            await gate.wait()
        result = self.responses.get(url)
        if result is None:
            return TransportResponse(status_code=404, body="")
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest_asyncio.fixture
async def bus():
    """A started EventBus, stopped after the test."""
    event_bus = EventBus()
    await event_bus.start()
    yield event_bus
    await event_bus.stop()


@pytest.fixture
def events(bus: EventBus) -> list[Event]:
    """Every event delivered on *bus*, in delivery order."""
    received: list[Event] = []
    bus.subscribe(Event, received.append)
    return received


@pytest.fixture
def site() -> SiteDescriptor:
    return SiteDescriptor(
        id=1,
        name="Example Site",
        page_url="https://example.com/list?page={page}&after={token}",
        selector="li.item",
        content=FieldRule(selector="a.title"),
        url=FieldRule(selector="a.title", attribute="href", prefix="https://example.com"),
        items_per_page=20,
        pagination=FieldRule(selector="a.next", attribute="data-token"),
    )
