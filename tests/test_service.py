"""Fetch orchestrator tests with a scripted transport and a live bus."""

import asyncio

import pytest

from listing_service.errors import FailureReason, TransportError
from listing_service.events.models import (
    ConnectivityChanged,
    ConnectivityState,
    LoadNext,
    RecordsLoaded,
    RequestFailed,
)
from listing_service.scrape.models import LoadRequest
from listing_service.scrape.service import SiteService

PAGE_1 = "https://example.com/list?page=1&after="
PAGE_2 = "https://example.com/list?page=2&after=tok-2"
PAGE_3 = "https://example.com/list?page=3&after=tok-3"


def _listing_html(count: int, token: str | None = None, start: int = 1) -> str:
    items = "".join(
        f'<li class="item"><a class="title" href="/a/{i}">Title {i}</a></li>'
        for i in range(start, start + count)
    )
    next_link = f'<a class="next" data-token="{token}">next</a>' if token else ""
    return f"<html><body><ul>{items}</ul>{next_link}</body></html>"


async def _settle(bus, service):
    """Let triggered loads run and their events reach subscribers."""
    await bus.join()
    await service.wait_idle()
    await bus.join()


@pytest.fixture
def service(site, bus, transport):
    svc = SiteService(site, bus, transport, user_agent="test-agent/1.0")
    svc.attach()
    return svc


def _of_type(events, event_type):
    return [e for e in events if isinstance(e, event_type)]


# --- page resolution ---


@pytest.mark.parametrize(
    ("start_offset", "page"),
    [(0, 1), (19, 1), (20, 2), (45, 3), (-5, 1)],
)
def test_resolve_page(site, transport, start_offset, page):
    svc = SiteService(site, bus=None, transport=transport)  # type: ignore[arg-type]
    assert svc.resolve_page(start_offset) == page


# --- successful loads ---


@pytest.mark.asyncio
async def test_load_next_publishes_records_loaded(service, bus, transport, events):
    transport.respond(PAGE_1, _listing_html(3, token="tok-2"))

    bus.publish(LoadNext(site_id=1, start_offset=0))
    await _settle(bus, service)

    assert _of_type(events, RecordsLoaded) == [RecordsLoaded(site_id=1, count=3, page=1)]
    assert len(service.records) == 3
    assert service.cursor.get(2) == "tok-2"
    assert transport.calls[0][1]["User-Agent"] == "test-agent/1.0"


@pytest.mark.asyncio
async def test_stored_token_used_for_next_page(service, bus, transport, events):
    transport.respond(PAGE_1, _listing_html(20, token="tok-2"))
    transport.respond(PAGE_2, _listing_html(20, token="tok-3", start=21))
    transport.respond(PAGE_3, _listing_html(5, start=41))

    for start in (0, 20, 40):
        bus.publish(LoadNext(site_id=1, start_offset=start))
        await _settle(bus, service)

    assert transport.urls == [PAGE_1, PAGE_2, PAGE_3]
    assert [e.page for e in _of_type(events, RecordsLoaded)] == [1, 2, 3]
    assert len(service.records) == 45
    assert service.cursor.get(3) == "tok-3"
    assert service.cursor.get(4) is None


@pytest.mark.asyncio
async def test_load_next_for_other_site_is_ignored(service, bus, transport, events):
    bus.publish(LoadNext(site_id=99, start_offset=0))
    await _settle(bus, service)

    assert transport.calls == []
    assert _of_type(events, RecordsLoaded) == []


# --- end of data ---


@pytest.mark.asyncio
async def test_empty_page_sets_end_flag_silently(service, bus, transport, events):
    transport.respond(PAGE_1, _listing_html(0))

    bus.publish(LoadNext(site_id=1, start_offset=0))
    await _settle(bus, service)

    assert service.end_reached is True
    assert _of_type(events, RecordsLoaded) == []
    assert _of_type(events, RequestFailed) == []


@pytest.mark.asyncio
async def test_end_flag_does_not_block_further_requests(service, bus, transport):
    transport.respond(PAGE_1, _listing_html(0))

    bus.publish(LoadNext(site_id=1, start_offset=0))
    await _settle(bus, service)
    bus.publish(LoadNext(site_id=1, start_offset=0))
    await _settle(bus, service)

    assert transport.urls == [PAGE_1, PAGE_1]


@pytest.mark.asyncio
async def test_clear_records_resets_state(service, bus, transport):
    transport.respond(PAGE_1, _listing_html(2, token="tok-2"))
    await service.load_page(LoadRequest(site_id=1, start_offset=0, page=1))

    await service.clear_records()

    assert service.records == ()
    assert service.cursor.get(2) is None
    assert service.end_reached is False


@pytest.mark.asyncio
async def test_clear_records_waits_for_load_in_flight(service, transport):
    transport.respond(PAGE_1, _listing_html(3, token="tok-2"))
    gate = asyncio.Event()
    transport.gates[PAGE_1] = gate

    load = service.submit(LoadRequest(site_id=1, start_offset=0, page=1))
    for _ in range(5):
        await asyncio.sleep(0)
    clear = asyncio.create_task(service.clear_records())
    await asyncio.sleep(0)
    assert not clear.done()

    gate.set()
    await asyncio.gather(load, clear)

    assert service.records == ()
    assert service.cursor.get(2) is None


# --- failures ---


@pytest.mark.asyncio
@pytest.mark.parametrize("template", ["https://example.com/{page.x}", "https://example.com/{page[0]}"])
async def test_bad_template_field_is_configuration_failure(site, bus, transport, events, template):
    svc = SiteService(site.model_copy(update={"page_url": template}), bus, transport)

    await svc.load_page(LoadRequest(site_id=1, start_offset=0, page=1))
    await bus.join()

    [failure] = _of_type(events, RequestFailed)
    assert failure.reason is FailureReason.CONFIGURATION
    assert svc.pending_failures == 1
    assert transport.calls == []


@pytest.mark.asyncio
async def test_url_configuration_error_is_queued_without_transport(site, bus, transport, events):
    site = site.model_copy(update={"page_url": "not a url {page}"})
    svc = SiteService(site, bus, transport)

    await svc.load_page(LoadRequest(site_id=1, start_offset=0, page=1))
    await svc.load_page(LoadRequest(site_id=1, start_offset=0, page=1))
    await bus.join()

    failures = _of_type(events, RequestFailed)
    assert len(failures) == 2
    assert all(f.reason is FailureReason.CONFIGURATION for f in failures)
    assert failures[0].message == "Website configuration is wrong: Example Site"
    assert transport.calls == []
    assert svc.pending_failures == 2


@pytest.mark.asyncio
async def test_selector_error_is_reported_but_not_queued(site, bus, transport, events):
    site = site.model_copy(update={"selector": "li.item["})
    svc = SiteService(site, bus, transport)
    transport.respond(PAGE_1, _listing_html(2))

    await svc.load_page(LoadRequest(site_id=1, start_offset=0, page=1))
    await bus.join()

    [failure] = _of_type(events, RequestFailed)
    assert failure.reason is FailureReason.PARSE
    assert failure.page == 1
    assert svc.pending_failures == 0


@pytest.mark.asyncio
async def test_transport_error_is_queued(service, bus, transport, events):
    exc = TransportError("connection refused")
    transport.fail(PAGE_1, exc)

    bus.publish(LoadNext(site_id=1, start_offset=0))
    await _settle(bus, service)

    [failure] = _of_type(events, RequestFailed)
    assert failure.reason is FailureReason.NETWORK
    assert failure.cause is exc
    assert failure.message == "Unable to load Example Site"
    assert service.pending_failures == 1


@pytest.mark.asyncio
async def test_unexpected_error_becomes_event(service, bus, transport, events):
    transport.fail(PAGE_1, RuntimeError("boom"))

    await service.load_page(LoadRequest(site_id=1, start_offset=0, page=1))
    await bus.join()

    [failure] = _of_type(events, RequestFailed)
    assert isinstance(failure.cause, RuntimeError)


@pytest.mark.asyncio
async def test_http_500_is_retried_on_reconnect(service, bus, transport, events):
    transport.respond(PAGE_1, _listing_html(20, token="tok-2"))
    transport.respond(PAGE_2, "oops", status_code=500)

    bus.publish(LoadNext(site_id=1, start_offset=0))
    await _settle(bus, service)
    bus.publish(LoadNext(site_id=1, start_offset=20))
    await _settle(bus, service)

    [failure] = _of_type(events, RequestFailed)
    assert failure.reason is FailureReason.NETWORK
    assert failure.page == 2
    assert failure.cause is None
    assert service.pending_failures == 1

    transport.respond(PAGE_2, _listing_html(4, start=21))
    bus.publish(ConnectivityChanged(ConnectivityState.CONNECTED))
    await _settle(bus, service)

    assert transport.urls == [PAGE_1, PAGE_2, PAGE_2]
    assert _of_type(events, RecordsLoaded)[-1] == RecordsLoaded(site_id=1, count=4, page=2)
    assert service.pending_failures == 0
    assert len(service.records) == 24


@pytest.mark.asyncio
async def test_disconnect_does_not_retry(service, bus, transport):
    transport.fail(PAGE_1, TransportError("offline"))
    bus.publish(LoadNext(site_id=1, start_offset=0))
    await _settle(bus, service)

    bus.publish(ConnectivityChanged(ConnectivityState.DISCONNECTED))
    await _settle(bus, service)

    assert transport.urls == [PAGE_1]
    assert service.pending_failures == 1


@pytest.mark.asyncio
async def test_each_queued_request_replayed_once_per_signal(service, bus, transport, events):
    transport.fail(PAGE_1, TransportError("offline"))
    bus.publish(LoadNext(site_id=1, start_offset=0))
    bus.publish(LoadNext(site_id=1, start_offset=5))
    await _settle(bus, service)
    assert service.pending_failures == 2

    # Still offline: both replays fail and wait for the next signal
    bus.publish(ConnectivityChanged(ConnectivityState.CONNECTED))
    await _settle(bus, service)

    assert transport.urls == [PAGE_1] * 4
    assert service.pending_failures == 2
    assert len(_of_type(events, RequestFailed)) == 4


# --- serialization ---


@pytest.mark.asyncio
async def test_fetches_for_one_site_are_serialized(service, bus, transport):
    transport.respond(PAGE_1, _listing_html(20, token="tok-2"))
    transport.respond(PAGE_2, _listing_html(3, start=21))
    gate = asyncio.Event()
    transport.gates[PAGE_1] = gate

    first = service.submit(LoadRequest(site_id=1, start_offset=0, page=1))
    second = service.submit(LoadRequest(site_id=1, start_offset=20, page=2))
    for _ in range(5):
        await asyncio.sleep(0)

    assert transport.urls == [PAGE_1]

    gate.set()
    await asyncio.gather(first, second)

    # page 2 was resolved after page 1 stored its token
    assert transport.urls == [PAGE_1, PAGE_2]
    assert [r.content for r in service.records][:2] == ["Title 1", "Title 2"]
    assert service.records[-1].content == "Title 23"
