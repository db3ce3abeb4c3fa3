"""In-process publish/subscribe bus with a single dispatch task.

Producers may call :meth:`EventBus.publish` from any thread or task; every
handler runs on the bus's event loop, one event at a time, in the order the
events reached the queue.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, TypeVar

from .models import Event

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Event)

Handler = Callable[[Any], Awaitable[None] | None]

_STOP = object()


class EventBus:
    """Explicitly constructed message broker; no module-level instance."""

    def __init__(self) -> None:
        self._handlers: dict[type[Event], list[Handler]] = {}
        self._lock = threading.Lock()
        self._pending: list[Event] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[Any] | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, event_type: type[E], handler: Callable[[E], Awaitable[None] | None]) -> None:
        """Register *handler* for *event_type* and its subclasses."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: type[E], handler: Callable[[E], Awaitable[None] | None]) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: Event) -> None:
        """Queue *event* for delivery. Safe to call from any thread."""
        with self._lock:
            loop, queue = self._loop, self._queue
            if loop is None or queue is None:
                self._pending.append(event)
                return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            queue.put_nowait(event)
        else:
            loop.call_soon_threadsafe(queue.put_nowait, event)

    async def start(self) -> None:
        """Bind to the running loop and start dispatching, flushing buffered events."""
        if self.running:
            return
        queue: asyncio.Queue[Any] = asyncio.Queue()
        with self._lock:
            for event in self._pending:
                queue.put_nowait(event)
            self._pending.clear()
            self._loop = asyncio.get_running_loop()
            self._queue = queue
        self._task = asyncio.create_task(self._dispatch(queue), name="event-bus")
        logger.debug("event bus started")

    async def stop(self) -> None:
        """Deliver everything already queued, then stop the dispatch task."""
        task, queue = self._task, self._queue
        if task is None or queue is None:
            return
        queue.put_nowait(_STOP)
        await task
        with self._lock:
            self._loop = None
            self._queue = None
        self._task = None
        logger.debug("event bus stopped")

    async def join(self) -> None:
        """Wait until every event published so far has been delivered."""
        if self._queue is not None:
            await self._queue.join()

    async def __aenter__(self) -> EventBus:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _dispatch(self, queue: asyncio.Queue[Any]) -> None:
        while True:
            item = await queue.get()
            try:
                if item is _STOP:
                    return
                await self._deliver(item)
            finally:
                queue.task_done()

    def _handlers_for(self, event: Event) -> list[Handler]:
        with self._lock:
            return [
                handler
                for event_type, handlers in self._handlers.items()
                if isinstance(event, event_type)
                for handler in handlers
            ]

    async def _deliver(self, event: Event) -> None:
        for handler in self._handlers_for(event):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "event handler failed",
                    extra={"event": event.name, "handler": getattr(handler, "__qualname__", repr(handler))},
                )
