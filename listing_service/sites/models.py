"""Site descriptors: how to fetch and parse one source's paginated listing."""

from __future__ import annotations

from enum import Enum
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field

from listing_service.errors import URLConfigurationError

_VALID_SCHEMES = {"http", "https"}


class FieldRule(BaseModel):
    """Extraction rule for one field of a listing item.

    ``selector`` is evaluated relative to the matched item element; an empty
    selector means the element itself.  ``attribute`` picks what to read:
    ``None`` for the text, ``"html"`` for the inner HTML, any other name for
    that attribute.  ``replace`` pairs are applied in order, then ``prefix``
    and ``suffix`` wrap the result.  ``from_previous`` evaluates the rule
    against the item matched just before the current one, for listings where
    one logical entry spans two sibling elements.
    """

    model_config = ConfigDict(frozen=True)

    selector: str = ""
    attribute: str | None = None
    prefix: str = ""
    suffix: str = ""
    replace: dict[str, str] = Field(default_factory=dict)
    from_previous: bool = False


class RichContentType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    LINK = "link"
    TEXT = "text"


class RichContentOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: RichContentType
    rule: FieldRule


class RichContentRule(BaseModel):
    """Ordered options; the first one yielding a value decides the type."""

    model_config = ConfigDict(frozen=True)

    options: tuple[RichContentOption, ...] = ()


class SiteDescriptor(BaseModel):
    """Static configuration for one listing source."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    page_url: str
    first_page_url: str | None = None
    first_page: int = 1
    selector: str
    content: FieldRule
    url: FieldRule
    rich_content: RichContentRule | None = None
    items_per_page: int = Field(ge=1)
    pagination: FieldRule | None = None

    @property
    def slug(self) -> str:
        return "".join(self.name.split())

    @property
    def has_rich_content(self) -> bool:
        return self.rich_content is not None and bool(self.rich_content.options)

    def page_url_for(self, page: int, token: str | None = None) -> str:
        """Build the URL of logical *page* (1-based).

        ``{page}`` is replaced by the site's own page number (``first_page``
        counts as page 1) and ``{token}`` by the continuation token stored
        for that page, or an empty string.  A token placed after the ``?``
        of the template is percent-encoded; elsewhere it is inserted as is,
        so a token may also be a whole URL or path.

        Raises:
            URLConfigurationError: If the template cannot be formatted or the
                result is not an absolute http(s) URL.
        """
        if page == 1 and token is None and self.first_page_url:
            template = self.first_page_url
        else:
            template = self.page_url

        token = token or ""
        query_start = template.find("?")
        if token and query_start != -1 and template.find("{token}", query_start) != -1:
            token = quote(token, safe="")

        try:
            url = template.format(page=self.first_page + page - 1, token=token)
        except (KeyError, IndexError, ValueError, AttributeError, TypeError) as exc:
            raise URLConfigurationError(f"bad url template for {self.name}: {template!r}") from exc

        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise URLConfigurationError(f"invalid url for {self.name}: {url!r}") from exc

        if parsed.scheme not in _VALID_SCHEMES or not parsed.host:
            raise URLConfigurationError(f"invalid url for {self.name}: {url!r}")
        return url
