"""Site catalog: descriptors loaded from a JSON file, looked up by id."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from listing_service.errors import SiteConfigurationError

from .models import SiteDescriptor

logger = logging.getLogger(__name__)

_SITES_ADAPTER = TypeAdapter(list[SiteDescriptor])


class SiteCatalog:
    """Read-only collection of site descriptors keyed by id."""

    def __init__(self, sites: Iterable[SiteDescriptor] = ()) -> None:
        self._sites: dict[int, SiteDescriptor] = {}
        for site in sites:
            if site.id in self._sites:
                raise SiteConfigurationError(f"duplicate site id {site.id}")
            self._sites[site.id] = site

    @classmethod
    def from_json(cls, raw: str | bytes) -> SiteCatalog:
        try:
            sites = _SITES_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            raise SiteConfigurationError(f"invalid site catalog: {exc}") from exc
        return cls(sites)

    @classmethod
    def from_file(cls, path: str | Path) -> SiteCatalog:
        """Load descriptors from a JSON list at *path*."""
        path = Path(path)
        try:
            raw = path.read_bytes()
        except OSError as exc:
            raise SiteConfigurationError(f"cannot read site catalog {path}") from exc
        catalog = cls.from_json(raw)
        logger.info("site catalog loaded", extra={"path": str(path), "site_count": len(catalog)})
        return catalog

    def get(self, site_id: int) -> SiteDescriptor | None:
        return self._sites.get(site_id)

    def __iter__(self) -> Iterator[SiteDescriptor]:
        return iter(self._sites.values())

    def __len__(self) -> int:
        return len(self._sites)

    def __contains__(self, site_id: object) -> bool:
        return site_id in self._sites
