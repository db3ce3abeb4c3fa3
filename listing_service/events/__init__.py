"""Event types, the in-process bus, and the connectivity monitor."""

from .bus import EventBus
from .connectivity import ConnectivityMonitor
from .models import (
    ConnectivityChanged,
    ConnectivityState,
    Event,
    LoadNext,
    RecordsLoaded,
    RequestFailed,
)

__all__ = [
    "ConnectivityChanged",
    "ConnectivityMonitor",
    "ConnectivityState",
    "Event",
    "EventBus",
    "LoadNext",
    "RecordsLoaded",
    "RequestFailed",
]
