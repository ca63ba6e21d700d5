"""RSS/Atom feed parsing using feedparser."""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from time import struct_time
from xml.sax import SAXException

import feedparser
from bs4 import BeautifulSoup

from newsdeck.errors import ParseError

MAX_DESCRIPTION_LENGTH = 300

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class ParsedFeed:
    """Result of parsing an RSS/Atom document."""

    title: str
    description: str
    link: str | None
    items: list[dict]
    warnings: list[str]


def parse(raw_xml: str) -> ParsedFeed:
    """Parse raw RSS or Atom text into feed metadata and item dicts.

    Args:
        raw_xml: The document body as fetched from the remote.

    Returns:
        ParsedFeed with feed metadata and items in document order.

    Raises:
        ParseError: If the text is not well-formed XML or holds no feed.
    """
    if not raw_xml or not raw_xml.strip():
        raise ParseError("Empty feed document")

    parsed = feedparser.parse(raw_xml)

    if parsed.bozo and isinstance(parsed.get("bozo_exception"), SAXException):
        raise ParseError(f"Invalid XML format: {parsed.bozo_exception}")

    if not parsed.get("version"):
        raise ParseError("Invalid RSS feed format - no channel element found")

    warnings: list[str] = []
    if parsed.bozo:
        warnings.append(f"Feed has formatting issues: {parsed.bozo_exception}")

    return ParsedFeed(
        title=clean_text(parsed.feed.get("title")) or "Unknown Feed",
        description=clean_text(
            parsed.feed.get("description") or parsed.feed.get("subtitle")
        ),
        link=parsed.feed.get("link"),
        items=_extract_items(parsed.entries, warnings),
        warnings=warnings,
    )


def clean_text(value: str | None, limit: int | None = None) -> str:
    """Strip markup and collapse whitespace, optionally truncating."""
    if not value:
        return ""
    text = BeautifulSoup(value, "html.parser").get_text(" ")
    text = _WHITESPACE_RE.sub(" ", text).strip()
    if limit is not None:
        text = text[:limit].strip()
    return text


def _extract_items(entries: list, warnings: list[str]) -> list[dict]:
    """Extract normalized item dicts from feedparser entries."""
    items = []
    for entry in entries:
        try:
            title = clean_text(entry.get("title")) or "No title"
            link = entry.get("link") or ""
            guid = entry.get("id") or entry.get("guid") or link or None

            summary = entry.get("summary") or entry.get("description")
            if not summary and entry.get("content"):
                summary = entry.content[0].get("value")

            items.append({
                "guid": guid,
                "title": title,
                "link": link,
                "description": clean_text(summary, MAX_DESCRIPTION_LENGTH),
                "pub_date": _parse_date(entry),
                "image": _extract_image(entry),
                "author": entry.get("author") or None,
            })
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            warnings.append(f"Skipping malformed entry: {e}")
            continue

    return items


def _extract_image(entry: dict) -> str | None:
    """Pick an image URL from enclosures or Media RSS elements."""
    for enclosure in entry.get("enclosures", []):
        href = enclosure.get("href") or enclosure.get("url")
        if href and (enclosure.get("type") or "").startswith("image"):
            return href

    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            if media.get("url"):
                return media["url"]
    return None


def _parse_date(entry: dict) -> datetime | None:
    """Parse publication date from a feedparser entry as aware UTC."""
    for field in ("published_parsed", "updated_parsed"):
        time_struct = entry.get(field)
        if isinstance(time_struct, struct_time):
            try:
                return datetime(*time_struct[:6], tzinfo=timezone.utc)
            except (ValueError, OverflowError):
                continue
    return None
