"""Fetch-parse adapter: turns a feed descriptor into normalized models."""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Callable

from newsdeck import feed_parser
from newsdeck.errors import FeedError, ParseError
from newsdeck.models import Article, Feed, FeedDescriptor, FeedResult
from newsdeck.transport import Transport

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def article_id(feed_id: str, item: dict) -> str:
    """Derive a stable article id from the owning feed and item content.

    The same item fetched again yields the same id, even if the upstream
    feed reorders its entries between polls.
    """
    key = item.get("guid") or item.get("link") or f"{item.get('title')}|{item.get('pub_date')}"
    digest = hashlib.sha256(f"{feed_id}:{key}".encode()).hexdigest()[:16]
    return f"{feed_id}-{digest}"


class FeedAdapter:
    """Loads one feed through the transport and the parser."""

    def __init__(
        self,
        transport: Transport,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.transport = transport
        self.clock = clock

    async def load(self, descriptor: FeedDescriptor) -> FeedResult:
        """Fetch and parse a feed, rewriting every id to the descriptor's.

        Raises:
            FeedError: TransportError/HttpStatusError on fetch failure,
                ParseError when the document is not a usable feed.
        """
        raw = await self.transport.fetch_remote(descriptor.url)
        try:
            parsed = feed_parser.parse(raw)
        except FeedError:
            raise
        except Exception as e:
            raise ParseError(f"Failed to parse feed {descriptor.url}: {e}") from e

        return build_result(descriptor, parsed, self.clock())


def build_result(
    descriptor: FeedDescriptor,
    parsed: feed_parser.ParsedFeed,
    fetched_at: datetime,
) -> FeedResult:
    """Normalize a parsed document into a Feed plus its Articles."""
    feed = Feed.from_descriptor(descriptor)
    feed.description = parsed.description or descriptor.description
    feed.last_updated = fetched_at

    articles = [
        Article(
            id=article_id(descriptor.id, item),
            feed_id=descriptor.id,
            title=item["title"],
            description=item["description"],
            url=item["link"],
            pub_date=item["pub_date"] or fetched_at,
            image=item.get("image"),
            author=item.get("author"),
        )
        for item in parsed.items
    ]

    logger.debug("Parsed %d articles from %s", len(articles), descriptor.title)
    return FeedResult(feed=feed, articles=articles, warnings=parsed.warnings)
