"""Bounded, incrementally growing window over the filtered articles."""

import asyncio
import logging
from collections.abc import Hashable, Sequence
from typing import Callable

from newsdeck.models import Article

logger = logging.getLogger(__name__)

ARTICLES_PER_PAGE = 15
MAX_WINDOW_ARTICLES = 300
LOAD_MORE_DELAY = 0.1


class PaginatedWindow:
    """Tracks how many of the filtered articles are currently materialized.

    The page index goes back to zero whenever the filter key changes, so a
    new filter always starts at the top of a fresh list.
    """

    def __init__(
        self,
        page_size: int = ARTICLES_PER_PAGE,
        hard_cap: int = MAX_WINDOW_ARTICLES,
        load_delay: float = LOAD_MORE_DELAY,
    ):
        if page_size < 1 or hard_cap < 1:
            raise ValueError("page_size and hard_cap must be positive")
        self.page_size = page_size
        self.hard_cap = hard_cap
        self.load_delay = load_delay
        self.page_index = 0
        self.is_loading = False
        self._filter_key: Hashable | None = None

    @property
    def limit(self) -> int:
        return min((self.page_index + 1) * self.page_size, self.hard_cap)

    def sync(self, filter_key: Hashable) -> None:
        """Reset to the first page if the filter inputs changed."""
        if filter_key != self._filter_key:
            if self._filter_key is not None:
                logger.debug("Filter changed, resetting window to first page")
            self._filter_key = filter_key
            self.page_index = 0

    def shown(self, total: int) -> int:
        return min(self.limit, total)

    def has_more(self, total: int) -> bool:
        shown = self.shown(total)
        return shown < total and shown < self.hard_cap

    def window(self, ids: Sequence[str]) -> list[str]:
        return list(ids[: self.limit])

    def materialize(
        self, ids: Sequence[str], lookup: Callable[[str], Article | None]
    ) -> list[Article]:
        """Resolve the windowed ids to articles at read time."""
        articles = []
        for article_id in self.window(ids):
            article = lookup(article_id)
            if article is not None:
                articles.append(article)
        return articles

    async def load_more(
        self, filter_key: Hashable, total: int, is_searching: bool = False
    ) -> bool:
        """Grow the window by one page. Returns True if a page was added."""
        self.sync(filter_key)
        if self.is_loading or is_searching or not self.has_more(total):
            return False

        self.is_loading = True
        try:
            await asyncio.sleep(self.load_delay)
            if self._filter_key != filter_key:
                return False
            self.page_index += 1
        finally:
            self.is_loading = False
        return True

    def reset(self) -> None:
        """Go back to the first page and drop any pending load."""
        self.page_index = 0
        self.is_loading = False
