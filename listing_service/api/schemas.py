"""Request/response Pydantic models."""

from pydantic import BaseModel, Field

from listing_service.events.models import ConnectivityState
from listing_service.sites.models import RichContentType


class LoadBody(BaseModel):
    start_offset: int = Field(default=0, ge=0)


class ConnectivityBody(BaseModel):
    state: ConnectivityState


class SiteSummary(BaseModel):
    id: int
    name: str
    items_per_page: int
    record_count: int = 0
    pending_failures: int = 0
    end_reached: bool = False


class RichContentOut(BaseModel):
    type: RichContentType
    value: str


class RecordOut(BaseModel):
    content: str
    url: str
    rich_content: RichContentOut | None = None


class RecordPage(BaseModel):
    site_id: int
    total: int
    offset: int
    end_reached: bool = False
    records: list[RecordOut] = []
