"""Failed load requests awaiting a connectivity-restored signal."""

from __future__ import annotations

import threading
from collections import deque

from .models import LoadRequest


class FailureQueue:
    """Append-only queue drained as a whole.

    ``drain`` swaps the underlying deque under a lock, so a request enqueued
    while a drain is being replayed lands in the fresh queue and waits for
    the next drain instead of being lost or replayed twice.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: deque[LoadRequest] = deque()

    def enqueue(self, request: LoadRequest) -> None:
        with self._lock:
            self._requests.append(request)

    def drain(self) -> list[LoadRequest]:
        with self._lock:
            snapshot, self._requests = self._requests, deque()
        return list(snapshot)

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)
