"""Periodic reachability probe that publishes connectivity transitions."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from listing_service.errors import TransportError

from .models import ConnectivityChanged, ConnectivityState

if TYPE_CHECKING:
    from listing_service.scrape.transport import Transport

    from .bus import EventBus

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Publishes ``ConnectivityChanged`` whenever the probe result flips.

    The first observation is always published so subscribers learn the
    initial state.
    """

    def __init__(
        self,
        bus: EventBus,
        transport: Transport,
        probe_url: str,
        *,
        interval: float = 30.0,
        user_agent: str = "listing-service/0.1.0",
    ) -> None:
        self._bus = bus
        self._transport = transport
        self._probe_url = probe_url
        self._interval = interval
        self._headers = {"User-Agent": user_agent}
        self._state: ConnectivityState | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ConnectivityState | None:
        return self._state

    async def check(self) -> ConnectivityState:
        """Probe once and publish if the state changed."""
        try:
            resp = await self._transport.send(self._probe_url, self._headers)
            state = ConnectivityState.CONNECTED if resp.status_code < 500 else ConnectivityState.DISCONNECTED
        except TransportError:
            state = ConnectivityState.DISCONNECTED

        if state != self._state:
            logger.info(
                "connectivity changed",
                extra={"previous": self._state.value if self._state else None, "state": state.value},
            )
            self._state = state
            self._bus.publish(ConnectivityChanged(state))
        return state

    async def _run(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="connectivity-monitor")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
