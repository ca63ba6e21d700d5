"""Feed source registry: the configured list of feed descriptors."""

import json
import re
from pathlib import Path
from urllib.parse import urlparse

from newsdeck.errors import ValidationError
from newsdeck.models import FeedDescriptor

# Substrings that usually mark a feed endpoint in a host, path or query.
_FEED_HINTS = ("rss", "feed", "atom", "xml")

_SLUG_RE = re.compile(r"[^a-z0-9]+")

DEFAULT_FEEDS: tuple[FeedDescriptor, ...] = (
    FeedDescriptor("1", "https://www.fanatik.ro/feed", "Fanatik", "Sport", "⚽", "Sport news"),
    FeedDescriptor("2", "https://www.prosport.ro/feed", "Prosport", "Sport", "🏆", "Sport news"),
    FeedDescriptor("3", "https://www.digisport.ro/rss", "Digisport", "Sport", "🎾", "Sport news"),
    FeedDescriptor("4", "https://liga2.prosport.ro/feed", "Liga 2", "Sport", "⚽", "Liga 2 news"),
    FeedDescriptor("5", "https://www.antena3.ro/rss", "Antena 3", "Stiri TV", "📺", "TV news"),
    FeedDescriptor("6", "https://rss.stirileprotv.ro/", "ProTV", "Stiri TV", "📺", "TV news"),
    FeedDescriptor("7", "https://www.digi24.ro/rss", "Digi24", "Stiri TV", "📺", "TV news"),
    FeedDescriptor("8", "https://hotnews.ro/feed", "HotNews", "Stiri", "📰", "General news"),
    FeedDescriptor("9", "https://www.biziday.ro/feed/", "Biziday", "Stiri", "💼", "Business news"),
    FeedDescriptor("10", "https://recorder.ro/feed/", "Recorder", "Investigatii", "🔍", "Investigative journalism"),
    FeedDescriptor("11", "https://snoop.ro/feed/", "Snoop", "Investigatii", "🔍", "Investigative journalism"),
)


def validate_url(url: str) -> None:
    """Check that a URL is absolute http(s) and plausibly a feed endpoint.

    Raises:
        ValidationError: If the URL is malformed or does not look like a feed.
    """
    try:
        result = urlparse(url)
    except ValueError:
        raise ValidationError("Invalid URL format")
    if not result.scheme or not result.netloc:
        raise ValidationError("Invalid URL format")
    if result.scheme not in ("http", "https"):
        raise ValidationError("Invalid URL format: only http and https are supported")

    haystack = f"{result.netloc}{result.path}?{result.query}".lower()
    if not any(hint in haystack for hint in _FEED_HINTS):
        raise ValidationError(
            "URL does not look like an RSS endpoint (expected e.g. /feed, /rss or .xml)"
        )


def make_descriptor(
    url: str,
    title: str,
    category: str | None = None,
    favicon: str = "📰",
    description: str = "",
    existing: dict[str, FeedDescriptor] | None = None,
) -> FeedDescriptor:
    """Build a validated descriptor for a user-added feed.

    The id is derived from the title so it stays stable for the session.
    """
    validate_url(url)
    title = title.strip()
    if not title:
        raise ValidationError("Feed title is required")

    existing = existing or {}
    if any(d.url == url for d in existing.values()):
        raise ValidationError("Already subscribed to this feed")

    base = _SLUG_RE.sub("-", title.lower()).strip("-") or "feed"
    feed_id = base
    suffix = 2
    while feed_id in existing:
        feed_id = f"{base}-{suffix}"
        suffix += 1

    return FeedDescriptor(
        id=feed_id,
        url=url,
        title=title,
        category=category or None,
        favicon=favicon,
        description=description or f"Latest news from {title}",
    )


def load_registry(path: str | Path | None = None) -> list[FeedDescriptor]:
    """Load descriptors from a JSON file, or return the built-in defaults.

    The file holds a list of objects with id, url and title, plus optional
    category, favicon and description.

    Raises:
        ValidationError: On duplicate ids or entries missing required keys.
    """
    if path is None:
        return list(DEFAULT_FEEDS)

    entries = json.loads(Path(path).read_text(encoding="utf-8"))
    descriptors = []
    seen: set[str] = set()
    for entry in entries:
        try:
            descriptor = FeedDescriptor(
                id=str(entry["id"]),
                url=entry["url"],
                title=entry["title"],
                category=entry.get("category"),
                favicon=entry.get("favicon", "📰"),
                description=entry.get("description", ""),
            )
        except KeyError as e:
            raise ValidationError(f"Feed entry missing required key {e}") from e
        if descriptor.id in seen:
            raise ValidationError(f"Duplicate feed id: {descriptor.id}")
        seen.add(descriptor.id)
        descriptors.append(descriptor)
    return descriptors
