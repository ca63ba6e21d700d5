"""Filtering and search over the merged article set."""

import time
import unicodedata
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Callable

from newsdeck.enablement import EnablementState, is_enabled
from newsdeck.models import UNCATEGORIZED, Article, Feed
from newsdeck.store import MergeStore

SEARCH_DEBOUNCE = 0.3

IDLE = "idle"
PENDING = "pending"
SETTLED = "settled"


def normalize_text(text: str) -> str:
    """Lowercase and strip diacritics so "Mașină" compares equal to "masina"."""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def filter_article_ids(
    articles: Iterable[Article],
    feeds: Mapping[str, Feed],
    enabled_feeds: Mapping[str, bool],
    enabled_categories: Mapping[str, bool],
    selected_feed: str | None = None,
    selected_category: str | None = None,
    query: str = "",
) -> list[str]:
    """Return the ids of matching articles, newest first.

    Checks run cheapest first: enablement, then selection, then search.
    """
    needle = normalize_text(query) if query else ""
    matched = []

    for article in articles:
        feed = feeds.get(article.feed_id)
        category = feed.category_name if feed else UNCATEGORIZED

        if not is_enabled(enabled_feeds, article.feed_id) or not is_enabled(
            enabled_categories, category
        ):
            continue

        if selected_feed is not None and article.feed_id != selected_feed:
            continue
        if selected_category is not None and category != selected_category:
            continue

        if needle and not (
            needle in normalize_text(article.title)
            or needle in normalize_text(article.description)
        ):
            continue

        matched.append(article)

    matched.sort(key=lambda a: a.pub_date, reverse=True)
    return [a.id for a in matched]


@dataclass
class Selection:
    """The single feed or category being viewed. Never both."""

    feed_id: str | None = None
    category: str | None = None

    def select_feed(self, feed_id: str | None) -> None:
        self.feed_id = feed_id
        self.category = None

    def select_category(self, category: str | None) -> None:
        self.category = category
        self.feed_id = None

    def clear(self) -> None:
        self.feed_id = None
        self.category = None


class DebouncedValue:
    """A raw value plus a settled copy that trails it by a quiet period.

    The value is idle until first changed, pending while the raw value
    differs from the settled one and the delay has not elapsed, and settled
    afterwards. Time comes from the injected clock, so tests can drive it.
    """

    def __init__(
        self,
        initial: str = "",
        delay: float = SEARCH_DEBOUNCE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.delay = delay
        self.clock = clock
        self.raw = initial
        self._settled = initial
        self._changed_at: float | None = None
        self._state = IDLE

    def set(self, value: str) -> None:
        self.raw = value
        if value == self._settled:
            self._changed_at = None
            self._state = SETTLED
        else:
            self._changed_at = self.clock()
            self._state = PENDING

    def flush(self) -> None:
        """Settle immediately, skipping the rest of the quiet period."""
        if self._changed_at is not None:
            self._settle()

    @property
    def settled(self) -> str:
        self._advance()
        return self._settled

    @property
    def pending(self) -> bool:
        self._advance()
        return self.raw != self._settled

    @property
    def state(self) -> str:
        self._advance()
        return self._state

    def _advance(self) -> None:
        if self._changed_at is not None and self.clock() - self._changed_at >= self.delay:
            self._settle()

    def _settle(self) -> None:
        self._settled = self.raw
        self._changed_at = None
        self._state = SETTLED


class FilterEngine:
    """Derives the visible article id sequence from the store and UI state.

    The engine owns no article state; it memoizes its last result keyed on
    every input that can change it.
    """

    def __init__(
        self,
        store: MergeStore,
        enablement: EnablementState,
        debounce: float = SEARCH_DEBOUNCE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.enablement = enablement
        self.selection = Selection()
        self.search = DebouncedValue(delay=debounce, clock=clock)
        self._memo_key: tuple | None = None
        self._memo: list[str] = []

    @property
    def is_searching(self) -> bool:
        return self.search.pending

    def filter_key(self) -> tuple:
        """Inputs that define the filtered sequence, excluding the data itself."""
        return (
            self.selection.feed_id,
            self.selection.category,
            self.search.settled,
            self.enablement.snapshot(),
        )

    def visible_ids(self) -> list[str]:
        key = (self.store.revision, self.enablement.revision) + self.filter_key()[:3]
        if key != self._memo_key:
            self._memo = filter_article_ids(
                self.store.articles,
                {feed.id: feed for feed in self.store.feeds},
                self.enablement.enabled_feeds,
                self.enablement.enabled_categories,
                selected_feed=self.selection.feed_id,
                selected_category=self.selection.category,
                query=self.search.settled,
            )
            self._memo_key = key
        return self._memo
