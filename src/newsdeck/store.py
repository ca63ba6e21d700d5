"""Incremental merge store: the authoritative set of feeds and articles."""

import logging

from newsdeck.models import Article, Feed, FeedDescriptor, FeedResult

logger = logging.getLogger(__name__)


class MergeStore:
    """Owns every Feed and Article and merges fetch results into them.

    In append mode (the default) a result adds its feed, or updates it in
    place, and appends only articles whose id has not been seen. Between
    begin_replace() and end_replace() the dedup sets start empty and the first
    result for each feed replaces that feed's previous articles outright.

    Articles are kept newest-first by pub_date; ties keep insertion order.
    """

    def __init__(self):
        self._feeds: dict[str, Feed] = {}
        self._articles: list[Article] = []
        self._index: dict[str, Article] = {}
        self._seen_feed_ids: set[str] = set()
        self._seen_article_ids: set[str] = set()
        self._replacing = False
        self._replaced: set[str] = set()
        self.revision = 0

    # --- Reads ---

    @property
    def feeds(self) -> list[Feed]:
        return list(self._feeds.values())

    @property
    def articles(self) -> list[Article]:
        return list(self._articles)

    @property
    def replacing(self) -> bool:
        return self._replacing

    def get_feed(self, feed_id: str) -> Feed | None:
        return self._feeds.get(feed_id)

    def get_article(self, article_id: str) -> Article | None:
        return self._index.get(article_id)

    def has_data(self) -> bool:
        """True once any feed has been merged successfully."""
        return any(f.last_updated is not None for f in self._feeds.values())

    # --- Mutations ---

    def merge(self, result: FeedResult) -> int:
        """Merge one successful fetch result. Returns the count of new articles."""
        incoming = result.feed

        if self._replacing and incoming.id not in self._replaced:
            self._replaced.add(incoming.id)
            dropped = self._drop_articles(incoming.id)
            if dropped:
                logger.debug("Replacing %d articles of feed %s", dropped, incoming.id)

        existing = self._feeds.get(incoming.id)
        if existing is None:
            self._feeds[incoming.id] = incoming
        else:
            _update_feed(existing, incoming)
        self._seen_feed_ids.add(incoming.id)

        new_articles = []
        for article in result.articles:
            if article.feed_id != incoming.id:
                logger.warning(
                    "Skipping article %s: feed id %s does not match %s",
                    article.id, article.feed_id, incoming.id,
                )
                continue
            if article.id in self._seen_article_ids:
                continue
            self._seen_article_ids.add(article.id)
            self._index[article.id] = article
            new_articles.append(article)

        if new_articles:
            self._articles.extend(new_articles)
            self._articles.sort(key=lambda a: a.pub_date, reverse=True)

        self.revision += 1
        return len(new_articles)

    def record_failure(self, descriptor: FeedDescriptor, error: Exception) -> Feed:
        """Count a failed fetch against a feed, leaving its articles intact."""
        feed = self._feeds.get(descriptor.id)
        if feed is None:
            feed = Feed.from_descriptor(descriptor)
            self._feeds[descriptor.id] = feed
        feed.error_count += 1
        feed.last_error = str(error)
        self.revision += 1
        return feed

    def begin_replace(self) -> None:
        """Clear dedup tracking so the next results replace current state."""
        self._seen_feed_ids.clear()
        self._seen_article_ids.clear()
        self._replaced.clear()
        self._replacing = True

    def end_replace(self) -> None:
        """Return to append mode, tracking whatever the store now holds."""
        self._replacing = False
        self._replaced.clear()
        self._seen_feed_ids.update(self._feeds)
        self._seen_article_ids.update(self._index)

    def remove_feed(self, feed_id: str) -> bool:
        """Remove a feed and all of its articles. Returns True if it existed."""
        if self._feeds.pop(feed_id, None) is None:
            return False
        self._drop_articles(feed_id)
        self._seen_feed_ids.discard(feed_id)
        self._replaced.discard(feed_id)
        self.revision += 1
        return True

    def _drop_articles(self, feed_id: str) -> int:
        kept = []
        dropped = 0
        for article in self._articles:
            if article.feed_id == feed_id:
                del self._index[article.id]
                self._seen_article_ids.discard(article.id)
                dropped += 1
            else:
                kept.append(article)
        self._articles = kept
        return dropped


def _update_feed(existing: Feed, incoming: Feed) -> None:
    """Copy refreshed metadata onto the stored feed, keeping its error history."""
    existing.url = incoming.url
    existing.title = incoming.title
    existing.category = incoming.category
    existing.favicon = incoming.favicon
    existing.description = incoming.description or existing.description
    existing.last_updated = incoming.last_updated
