"""Record extraction: turns a listing page into :class:`Record` objects."""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from listing_service.errors import SelectorConfigurationError
from listing_service.sites.models import FieldRule, RichContentRule, SiteDescriptor

from .models import Extraction, Record, RichContent

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _select(node: Tag, selector: str) -> list[Tag]:
    try:
        return node.select(selector)
    except SelectorSyntaxError as exc:
        raise SelectorConfigurationError(f"invalid selector {selector!r}: {exc}") from exc


def _select_one(node: Tag, selector: str) -> Tag | None:
    if not selector:
        return node
    try:
        return node.select_one(selector)
    except SelectorSyntaxError as exc:
        raise SelectorConfigurationError(f"invalid selector {selector!r}: {exc}") from exc


def _read(element: Tag, attribute: str | None) -> str:
    if attribute is None:
        return element.get_text(" ", strip=True)
    if attribute == "html":
        return element.decode_contents().strip()
    value = element.get(attribute)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return value.strip()


def _transform(rule: FieldRule, value: str) -> str:
    """Apply literal replacements, then prefix/suffix. Empty values stay empty."""
    for old, new in rule.replace.items():
        value = value.replace(old, new)
    if not value:
        return value
    return f"{rule.prefix}{value}{rule.suffix}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse(body: str) -> BeautifulSoup:
    return BeautifulSoup(body, "html.parser")


def extract_field(rule: FieldRule, element: Tag, previous: Tag | None = None) -> str:
    """Evaluate *rule* against *element* (or *previous* when the rule says so).

    Rules are shared descriptor state: this reads them and never stores
    anything on them, so one rule can be evaluated for any number of
    elements concurrently.
    """
    target = previous if rule.from_previous else element
    if target is None:
        return ""
    matched = _select_one(target, rule.selector)
    if matched is None:
        return ""
    return _transform(rule, _read(matched, rule.attribute))


def extract_rich(rule: RichContentRule, element: Tag, previous: Tag | None = None) -> RichContent | None:
    """Return the first option that yields a value, or ``None``."""
    for option in rule.options:
        value = extract_field(option.rule, element, previous)
        if value:
            return RichContent(type=option.type, value=value)
    return None


def extract_token(rule: FieldRule, document: BeautifulSoup) -> str | None:
    """Extract the continuation token for the next page from the whole document."""
    matched = _select_one(document, rule.selector)
    if matched is None:
        return None
    return _transform(rule, _read(matched, rule.attribute)) or None


def extract(document: BeautifulSoup, descriptor: SiteDescriptor) -> Extraction:
    """Extract every listing item of *document* in document order.

    An empty selection is the end-of-data signal and yields an empty
    :class:`Extraction`; the pagination rule is not evaluated in that case.

    Raises:
        SelectorConfigurationError: If any selector of *descriptor* has
            invalid syntax.
    """
    elements = _select(document, descriptor.selector)
    if not elements:
        logger.debug("no elements matched", extra={"site_id": descriptor.id, "selector": descriptor.selector})
        return Extraction()

    records: list[Record] = []
    previous: Tag | None = None
    for element in elements:
        rich_content = None
        if descriptor.has_rich_content:
            rich_content = extract_rich(descriptor.rich_content, element, previous)  # type: ignore[arg-type]
        records.append(
            Record(
                content=extract_field(descriptor.content, element, previous),
                url=extract_field(descriptor.url, element, previous),
                rich_content=rich_content,
            )
        )
        previous = element

    token = None
    if descriptor.pagination is not None:
        token = extract_token(descriptor.pagination, document)

    return Extraction(records=records, token=token)
