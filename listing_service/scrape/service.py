"""Per-site fetch orchestration: page resolution, fetch, extraction, retry."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from listing_service.errors import (
    FailureReason,
    SelectorConfigurationError,
    TransportError,
    URLConfigurationError,
)
from listing_service.events.models import (
    ConnectivityChanged,
    ConnectivityState,
    LoadNext,
    RecordsLoaded,
    RequestFailed,
)

from .cursor import PaginationCursor
from .extractor import extract, parse
from .failures import FailureQueue
from .models import LoadRequest, Record

if TYPE_CHECKING:
    from listing_service.events.bus import EventBus
    from listing_service.sites.models import SiteDescriptor

    from .transport import Transport

logger = logging.getLogger(__name__)


class SiteService:
    """Loads one site's listing page by page and reports through the bus.

    Fetches for a site are serialized: at most one is in flight and later
    requests wait their turn in submission order, so record batches land in
    the store in the order they were requested.

    The end-of-data flag is informational. Requests made after the end was
    reached are still fetched; consumers decide whether to keep asking.
    """

    def __init__(
        self,
        website: SiteDescriptor,
        bus: EventBus,
        transport: Transport,
        *,
        user_agent: str = "listing-service/0.1.0",
    ) -> None:
        self._website = website
        self._bus = bus
        self._transport = transport
        self._headers = {"User-Agent": user_agent}

        self._records: list[Record] = []
        self._cursor = PaginationCursor()
        self._failures = FailureQueue()
        self._end = False

        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def website(self) -> SiteDescriptor:
        return self._website

    @property
    def records(self) -> tuple[Record, ...]:
        return tuple(self._records)

    @property
    def cursor(self) -> PaginationCursor:
        return self._cursor

    @property
    def end_reached(self) -> bool:
        return self._end

    @property
    def pending_failures(self) -> int:
        return len(self._failures)

    async def clear_records(self) -> None:
        """Forget loaded records, stored tokens and the end-of-data flag.

        Waits for the fetch in flight, if any, so its batch lands before the
        store is emptied rather than after.
        """
        async with self._lock:
            self._records.clear()
            self._cursor.clear()
            self._end = False

    def resolve_page(self, start_offset: int) -> int:
        return max(1, 1 + start_offset // self._website.items_per_page)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def submit(self, request: LoadRequest) -> asyncio.Task[None]:
        """Schedule *request* without waiting for it."""
        task = asyncio.create_task(
            self.load_page(request),
            name=f"load-{self._website.id}-{request.page}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def load_page(self, request: LoadRequest) -> None:
        """Fetch and extract one page. Every failure ends up as an event."""
        async with self._lock:
            try:
                await self._load(request)
            except Exception as exc:
                logger.exception("unexpected load failure", extra=self._extra(request.page))
                self._fail(
                    request,
                    "Something went wrong, try another website setting",
                    exc,
                    FailureReason.PARSE,
                    retry=False,
                )

    async def _load(self, request: LoadRequest) -> None:
        page = request.page
        name = self._website.name
        logger.debug("downloading page", extra=self._extra(page))

        try:
            url = self._website.page_url_for(page, self._cursor.get(page))
        except URLConfigurationError as exc:
            logger.warning("url configuration error", extra=self._extra(page), exc_info=True)
            self._fail(request, f"Website configuration is wrong: {name}", exc, FailureReason.CONFIGURATION)
            return

        try:
            resp = await self._transport.send(url, self._headers)
        except TransportError as exc:
            logger.warning("page fetch failed", extra={**self._extra(page), "url": url}, exc_info=True)
            self._fail(request, f"Unable to load {name}", exc, FailureReason.NETWORK)
            return

        if not resp.is_success:
            logger.warning(
                "page fetch unsuccessful",
                extra={**self._extra(page), "url": url, "status_code": resp.status_code},
            )
            self._fail(request, "Unable to load website", None, FailureReason.NETWORK)
            return

        try:
            extraction = extract(parse(resp.body), self._website)
        except SelectorConfigurationError as exc:
            logger.warning("selector configuration error", extra=self._extra(page), exc_info=True)
            self._fail(
                request,
                "Something went wrong, try another website setting",
                exc,
                FailureReason.PARSE,
                retry=False,
            )
            return

        if extraction.is_empty:
            logger.info("no elements on page, end of data", extra=self._extra(page))
            self._end = True
            return

        self._records.extend(extraction.records)
        if extraction.token is not None:
            self._cursor.put(page + 1, extraction.token)

        count = len(extraction.records)
        logger.info("page loaded", extra={**self._extra(page), "count": count})
        self._bus.publish(RecordsLoaded(site_id=self._website.id, count=count, page=page))

    def _fail(
        self,
        request: LoadRequest,
        message: str,
        cause: BaseException | None,
        reason: FailureReason,
        *,
        retry: bool = True,
    ) -> None:
        if retry:
            self._failures.enqueue(request)
        self._bus.publish(
            RequestFailed(
                site_id=self._website.id,
                message=message,
                cause=cause,
                page=request.page,
                reason=reason,
            )
        )

    def retry_failed(self) -> list[asyncio.Task[None]]:
        """Resubmit every queued failure once, in the order they failed."""
        requests = self._failures.drain()
        if requests:
            logger.info("retrying failed requests", extra={"site_id": self._website.id, "count": len(requests)})
        return [self.submit(request) for request in requests]

    async def wait_idle(self) -> None:
        """Wait for every submitted load, including ones submitted meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ------------------------------------------------------------------
    # Bus wiring
    # ------------------------------------------------------------------

    def on_load_next(self, event: LoadNext) -> None:
        if event.site_id != self._website.id:
            return
        page = self.resolve_page(event.start_offset)
        logger.debug(
            "load next requested",
            extra={**self._extra(page), "start_offset": event.start_offset},
        )
        self.submit(LoadRequest(site_id=event.site_id, start_offset=event.start_offset, page=page))

    def on_connectivity_changed(self, event: ConnectivityChanged) -> None:
        if event.state is not ConnectivityState.CONNECTED:
            return
        self.retry_failed()

    def attach(self) -> None:
        self._bus.subscribe(LoadNext, self.on_load_next)
        self._bus.subscribe(ConnectivityChanged, self.on_connectivity_changed)

    def detach(self) -> None:
        self._bus.unsubscribe(LoadNext, self.on_load_next)
        self._bus.unsubscribe(ConnectivityChanged, self.on_connectivity_changed)

    def _extra(self, page: int) -> dict[str, object]:
        return {"site_id": self._website.id, "site": self._website.slug, "page": page}
