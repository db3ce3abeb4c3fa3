"""Events exchanged over the bus."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from listing_service.errors import FailureReason


class Event:
    """Marker base class for everything published on the bus."""

    name = "event"


class ConnectivityState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class LoadNext(Event):
    """Consumer request for the page that follows *start_offset* items."""

    site_id: int
    start_offset: int = 0

    name = "load_next"


@dataclass(frozen=True)
class ConnectivityChanged(Event):
    state: ConnectivityState

    name = "connectivity_changed"


@dataclass(frozen=True)
class RecordsLoaded(Event):
    site_id: int
    count: int
    page: int

    name = "records_loaded"

    def to_dict(self) -> dict[str, Any]:
        return {"site_id": self.site_id, "count": self.count, "page": self.page}


@dataclass(frozen=True)
class RequestFailed(Event):
    """A load request failed; ``cause`` is absent for non-2xx responses."""

    site_id: int
    message: str
    cause: BaseException | None
    page: int
    reason: FailureReason

    name = "request_failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "site_id": self.site_id,
            "message": self.message,
            "cause": repr(self.cause) if self.cause is not None else None,
            "page": self.page,
            "reason": self.reason.value,
        }
