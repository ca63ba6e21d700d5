"""The reader facade: the read API and mutators the front end consumes."""

import logging
import time
from collections.abc import Iterable
from typing import Callable

from newsdeck.adapter import FeedAdapter
from newsdeck.enablement import EnablementState
from newsdeck.filters import SEARCH_DEBOUNCE, FilterEngine
from newsdeck.loader import MAX_ATTEMPTS, RETRY_BASE_DELAY, FeedLoader, RefreshReport
from newsdeck.models import Article, Feed, FeedDescriptor
from newsdeck.pagination import (
    ARTICLES_PER_PAGE,
    LOAD_MORE_DELAY,
    MAX_WINDOW_ARTICLES,
    PaginatedWindow,
)
from newsdeck.registry import make_descriptor
from newsdeck.store import MergeStore
from newsdeck.transport import Transport

logger = logging.getLogger(__name__)


class FeedReader:
    """Wires loader, store, enablement, filters and window together.

    The store and enablement flags are the only mutable shared state;
    everything visible is recomputed from them on read.
    """

    def __init__(
        self,
        descriptors: Iterable[FeedDescriptor],
        adapter: FeedAdapter | None = None,
        transport: Transport | None = None,
        page_size: int = ARTICLES_PER_PAGE,
        hard_cap: int = MAX_WINDOW_ARTICLES,
        debounce: float = SEARCH_DEBOUNCE,
        load_delay: float = LOAD_MORE_DELAY,
        max_attempts: int = MAX_ATTEMPTS,
        retry_base_delay: float = RETRY_BASE_DELAY,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._transport = None
        if adapter is None:
            self._transport = transport or Transport()
            adapter = FeedAdapter(self._transport)

        self.store = MergeStore()
        self.enablement = EnablementState()
        self.filters = FilterEngine(self.store, self.enablement, debounce=debounce, clock=clock)
        self.window = PaginatedWindow(page_size=page_size, hard_cap=hard_cap, load_delay=load_delay)
        self.loader = FeedLoader(
            adapter,
            self.store,
            descriptors,
            max_attempts=max_attempts,
            retry_base_delay=retry_base_delay,
            on_update=self._on_feed_update,
        )
        self.enablement.observe(self.loader.descriptors.values())

    # --- Lifecycle ---

    def start(self, poll: bool = True, interval: float | None = None) -> None:
        """Kick off the initial load and, optionally, background polling."""
        self.loader.start()
        if poll:
            self.loader.start_polling(interval)

    async def wait_idle(self) -> None:
        await self.loader.wait_idle()

    async def close(self) -> None:
        await self.loader.stop()
        if self._transport is not None:
            await self._transport.close()

    # --- Read API ---

    def get_feeds(self) -> list[Feed]:
        return self.store.feeds

    def get_visible_articles(self) -> list[Article]:
        return self.window.materialize(self._visible_ids(), self.store.get_article)

    @property
    def total_available(self) -> int:
        return len(self._visible_ids())

    @property
    def has_more(self) -> bool:
        return self.window.has_more(len(self._visible_ids()))

    @property
    def is_loading(self) -> bool:
        """True while a load_more() page is being committed."""
        return self.window.is_loading

    @property
    def is_initial_loading(self) -> bool:
        return self.loader.is_initial_loading

    @property
    def is_fetching(self) -> bool:
        return self.loader.is_fetching

    @property
    def is_searching(self) -> bool:
        return self.filters.is_searching

    @property
    def error_count(self) -> int:
        return self.loader.error_count

    @property
    def all_failed(self) -> bool:
        """Every feed is in error: the only failure worth a page-level state."""
        return self.loader.all_failed

    @property
    def selected_feed(self) -> str | None:
        return self.filters.selection.feed_id

    @property
    def selected_category(self) -> str | None:
        return self.filters.selection.category

    @property
    def search_query(self) -> str:
        return self.filters.search.raw

    def is_feed_enabled(self, feed_id: str) -> bool:
        return self.enablement.feed_enabled(feed_id)

    def is_category_enabled(self, category: str) -> bool:
        return self.enablement.category_enabled(category)

    def _visible_ids(self) -> list[str]:
        ids = self.filters.visible_ids()
        self.window.sync(self.filters.filter_key())
        return ids

    # --- Mutators ---

    def select_feed(self, feed_id: str | None) -> None:
        self.filters.selection.select_feed(feed_id)

    def select_category(self, category: str | None) -> None:
        self.filters.selection.select_category(category)

    def search(self, query: str, immediate: bool = False) -> None:
        """Set the search text; it applies after the debounce period."""
        self.filters.search.set(query)
        if immediate:
            self.filters.search.flush()

    def toggle_feed(self, feed_id: str, enabled: bool) -> None:
        self.enablement.toggle_feed(feed_id, enabled)

    def toggle_category(self, category: str, enabled: bool) -> None:
        self.enablement.toggle_category(category, enabled, self.known_feeds())

    async def load_more(self) -> bool:
        ids = self._visible_ids()
        return await self.window.load_more(
            self.filters.filter_key(), len(ids), is_searching=self.filters.is_searching
        )

    async def refresh(self) -> RefreshReport:
        """Re-fetch every feed, replacing stale articles. Keeps data on failure."""
        report = await self.loader.refetch_all()
        if report.failed:
            logger.warning(
                "Refresh failed for %d of %d feeds",
                len(report.failed), len(report.failed) + len(report.succeeded),
            )
        return report

    async def refresh_one(self, feed_id: str) -> RefreshReport:
        return await self.loader.refetch_one(feed_id)

    async def add_feed(
        self,
        url: str,
        title: str,
        category: str | None = None,
        favicon: str = "📰",
        description: str = "",
    ) -> tuple[FeedDescriptor, RefreshReport]:
        """Validate, register and fetch a new feed.

        Raises:
            ValidationError: If the URL or title is rejected.
        """
        descriptor = make_descriptor(
            url, title, category, favicon, description, existing=self.loader.descriptors
        )
        self.loader.add_descriptor(descriptor)
        self.enablement.observe([descriptor])
        logger.info("Added feed '%s' (%s)", descriptor.title, descriptor.url)
        return descriptor, await self.loader.refetch_one(descriptor.id)

    def remove_feed(self, feed_id: str) -> bool:
        """Remove a feed, its articles, its flags and any selection of it."""
        known = feed_id in self.loader.descriptors or self.store.get_feed(feed_id) is not None
        if not known:
            return False

        self.loader.remove_descriptor(feed_id)
        self.store.remove_feed(feed_id)
        remaining = self.known_feeds()
        self.enablement.forget_feed(feed_id, remaining)

        selection = self.filters.selection
        if selection.feed_id == feed_id:
            selection.clear()
        elif selection.category is not None and not any(
            f.category_name == selection.category for f in remaining
        ):
            selection.clear()

        logger.info("Removed feed %s", feed_id)
        return True

    def known_feeds(self) -> list[Feed | FeedDescriptor]:
        feeds: dict[str, Feed | FeedDescriptor] = dict(self.loader.descriptors)
        feeds.update((f.id, f) for f in self.store.feeds)
        return list(feeds.values())

    def _on_feed_update(self, feed_id: str) -> None:
        self.enablement.observe(self.store.feeds)
