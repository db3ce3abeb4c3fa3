"""Data models for the scrape submodule."""

from __future__ import annotations

from dataclasses import dataclass, field

from listing_service.sites.models import RichContentType


@dataclass(frozen=True)
class RichContent:
    type: RichContentType
    value: str


@dataclass(frozen=True)
class Record:
    """One extracted listing item."""

    content: str
    url: str
    rich_content: RichContent | None = None


@dataclass(frozen=True)
class LoadRequest:
    """A consumer load trigger together with the page it resolved to."""

    site_id: int
    start_offset: int
    page: int


@dataclass(frozen=True)
class Extraction:
    """Result of extracting one page."""

    records: list[Record] = field(default_factory=list)
    token: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.records
