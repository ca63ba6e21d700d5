"""Agent tool implementations over the feed reader."""

import asyncio
import inspect
import json
from collections.abc import Callable, Coroutine
from typing import Any

from langchain_core.tools import tool

from newsdeck.errors import ValidationError
from newsdeck.models import Article, Feed, FeedDescriptor
from newsdeck.reader import FeedReader

TOOL_TIMEOUT = 120

# Module-level reader and loop, set during startup
_reader: FeedReader | None = None
_loop: asyncio.AbstractEventLoop | None = None


def set_reader(reader: FeedReader, loop: asyncio.AbstractEventLoop | None = None) -> None:
    """Set the reader used by all tools and the loop it runs on."""
    global _reader, _loop
    _reader = reader
    _loop = loop


def _get_reader() -> FeedReader:
    """Get the reader instance, raising if not set."""
    if _reader is None:
        raise RuntimeError("Reader not initialized. Call set_reader() first.")
    return _reader


def _run(coro: Coroutine):
    """Run a reader coroutine on the event loop from the agent's worker thread."""
    if _loop is None:
        coro.close()
        raise RuntimeError("Event loop not set. Pass a loop to set_reader().")
    return asyncio.run_coroutine_threadsafe(coro, _loop).result(TOOL_TIMEOUT)


def _on_loop(func: Callable[[FeedReader], Any]) -> Any:
    """Call func(reader) on the event loop thread and wait for the result.

    The store, flags and selection are only touched from the loop, so a tool
    never races the loader merging results. func may be a coroutine function.
    """
    reader = _get_reader()

    async def call():
        result = func(reader)
        if inspect.isawaitable(result):
            result = await result
        return result

    return _run(call())


def _find_feeds(reader: FeedReader, identifier: str) -> list[Feed | FeedDescriptor]:
    """Match feeds by exact id, then by case-insensitive title or URL."""
    feeds = reader.known_feeds()
    exact = [f for f in feeds if f.id == identifier]
    if exact:
        return exact
    needle = identifier.lower()
    return [f for f in feeds if needle in f.title.lower() or needle == f.url.lower()]


def _resolve_feed(reader: FeedReader, identifier: str) -> Feed | FeedDescriptor | str:
    """Return the single matching feed, or an error payload."""
    matches = _find_feeds(reader, identifier)
    if not matches:
        return json.dumps({
            "status": "error",
            "message": f"No feed found matching '{identifier}'",
        })
    if len(matches) > 1:
        exact = [f for f in matches if f.title.lower() == identifier.lower()]
        if len(exact) == 1:
            return exact[0]
        return json.dumps({
            "status": "error",
            "message": "Multiple feeds match. Please be more specific.",
            "matches": [f.title for f in matches],
        })
    return matches[0]


def _article_dict(reader: FeedReader, article: Article) -> dict:
    feed = reader.store.get_feed(article.feed_id)
    return {
        "id": article.id,
        "feed_title": feed.title if feed else None,
        "title": article.title,
        "link": article.url,
        "summary": article.description[:200],
        "published_at": article.pub_date.isoformat(),
        "author": article.author,
    }


def _articles_payload(reader: FeedReader) -> str:
    articles = reader.get_visible_articles()
    return json.dumps({
        "items": [_article_dict(reader, a) for a in articles],
        "shown": len(articles),
        "total": reader.total_available,
        "has_more": reader.has_more,
        "selected_feed": reader.selected_feed,
        "selected_category": reader.selected_category,
        "search": reader.search_query,
        "is_searching": reader.is_searching,
        "is_initial_loading": reader.is_initial_loading,
        "all_feeds_failed": reader.all_failed,
    })


@tool
def list_feeds() -> str:
    """List all feeds with their category, status and visibility.

    Returns each feed's id, title, url, category, enabled flag, status
    (active or erroring), last_updated, error_count, and last_error if any.
    """
    def apply(reader: FeedReader) -> str:
        feeds = reader.get_feeds()
        return json.dumps({
            "feeds": [
                {
                    "id": feed.id,
                    "title": feed.title,
                    "url": feed.url,
                    "category": feed.category_name,
                    "enabled": reader.is_feed_enabled(feed.id),
                    "status": "erroring" if feed.error_count > 0 else "active",
                    "last_updated": feed.last_updated.isoformat() if feed.last_updated else None,
                    "error_count": feed.error_count,
                    **({"last_error": feed.last_error} if feed.last_error else {}),
                }
                for feed in feeds
            ],
            "categories": {
                category: reader.is_category_enabled(category)
                for category in sorted({f.category_name for f in feeds})
            },
            "total": len(feeds),
            "is_fetching": reader.is_fetching,
        })

    return _on_loop(apply)


@tool
def get_articles() -> str:
    """Get the articles currently shown, newest first, for the active filters."""
    return _on_loop(_articles_payload)


@tool
def load_more_articles() -> str:
    """Show the next page of articles for the active filters."""
    async def apply(reader: FeedReader) -> str:
        await reader.load_more()
        return _articles_payload(reader)

    return _on_loop(apply)


@tool
def search_articles(query: str) -> str:
    """Search article titles and descriptions, ignoring case and accents.

    Args:
        query: The keyword or phrase to search for. Empty clears the search.
    """
    def apply(reader: FeedReader) -> str:
        reader.search(query, immediate=True)
        return _articles_payload(reader)

    return _on_loop(apply)


@tool
def select_feed(feed_identifier: str = "") -> str:
    """Show articles from a single feed only.

    Args:
        feed_identifier: Feed id, title or URL. Empty shows all feeds again.
    """
    def apply(reader: FeedReader) -> str:
        if not feed_identifier:
            reader.select_feed(None)
            return _articles_payload(reader)

        feed = _resolve_feed(reader, feed_identifier)
        if isinstance(feed, str):
            return feed
        reader.select_feed(feed.id)
        return _articles_payload(reader)

    return _on_loop(apply)


@tool
def select_category(category: str = "") -> str:
    """Show articles from a single category only.

    Args:
        category: Category name. Empty shows all categories again.
    """
    def apply(reader: FeedReader) -> str:
        reader.select_category(category or None)
        return _articles_payload(reader)

    return _on_loop(apply)


@tool
def toggle_feed(feed_identifier: str, enabled: bool) -> str:
    """Hide or show a feed's articles everywhere.

    Args:
        feed_identifier: Feed id, title or URL.
        enabled: True to show the feed, False to hide it.
    """
    def apply(reader: FeedReader) -> str:
        feed = _resolve_feed(reader, feed_identifier)
        if isinstance(feed, str):
            return feed
        reader.toggle_feed(feed.id, enabled)
        return json.dumps({"status": "success", "feed_title": feed.title, "enabled": enabled})

    return _on_loop(apply)


@tool
def toggle_category(category: str, enabled: bool) -> str:
    """Hide or show a whole category, including every feed in it.

    Args:
        category: Category name.
        enabled: True to show the category, False to hide it.
    """
    def apply(reader: FeedReader) -> str:
        reader.toggle_category(category, enabled)
        return json.dumps({"status": "success", "category": category, "enabled": enabled})

    return _on_loop(apply)


@tool
def refresh_feeds(feed_identifier: str = "") -> str:
    """Re-fetch feeds now. Refreshing all feeds replaces their articles.

    Args:
        feed_identifier: Optional feed id, title or URL to refresh just one feed.
    """
    async def apply(reader: FeedReader) -> str:
        if feed_identifier:
            feed = _resolve_feed(reader, feed_identifier)
            if isinstance(feed, str):
                return feed
            report = await reader.refresh_one(feed.id)
        else:
            report = await reader.refresh()

        return json.dumps({
            "status": "success" if report.ok else "partial",
            "refreshed": len(report.succeeded),
            "failed": report.failed,
            **({"hint": "You can retry the failed feeds"} if report.failed else {}),
        })

    return _on_loop(apply)


@tool
def add_feed(url: str, title: str, category: str = "") -> str:
    """Add an RSS feed by URL and load its articles.

    Args:
        url: The URL of the RSS or Atom feed.
        title: Display title for the feed.
        category: Optional category name.
    """
    async def apply(reader: FeedReader) -> str:
        try:
            descriptor, report = await reader.add_feed(url, title, category or None)
        except ValidationError as e:
            return json.dumps({"status": "error", "message": str(e)})

        feed = reader.store.get_feed(descriptor.id)
        return json.dumps({
            "status": "added" if report.ok else "added_with_errors",
            "feed": {
                "id": descriptor.id,
                "title": descriptor.title,
                "url": descriptor.url,
                "category": descriptor.category_name,
                "error_count": feed.error_count if feed else 0,
            },
            **({"message": report.failed[descriptor.id]} if descriptor.id in report.failed else {}),
        })

    return _on_loop(apply)


@tool
def remove_feed(feed_identifier: str) -> str:
    """Remove a feed and all of its articles.

    Args:
        feed_identifier: Feed id, title or URL.
    """
    def apply(reader: FeedReader) -> str:
        feed = _resolve_feed(reader, feed_identifier)
        if isinstance(feed, str):
            return feed
        reader.remove_feed(feed.id)
        return json.dumps({"status": "removed", "feed_title": feed.title})

    return _on_loop(apply)
