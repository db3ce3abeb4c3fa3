"""Site descriptors and the catalog they are loaded into."""

from .catalog import SiteCatalog
from .models import (
    FieldRule,
    RichContentOption,
    RichContentRule,
    RichContentType,
    SiteDescriptor,
)

__all__ = [
    "FieldRule",
    "RichContentOption",
    "RichContentRule",
    "RichContentType",
    "SiteCatalog",
    "SiteDescriptor",
]
