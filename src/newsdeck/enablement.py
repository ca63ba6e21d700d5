"""Per-feed and per-category visibility toggles."""

from collections.abc import Iterable, Mapping

from newsdeck.models import Feed, FeedDescriptor


def is_enabled(flags: Mapping[str, bool], key: str) -> bool:
    """Resolve a visibility flag; keys never toggled count as enabled."""
    return flags.get(key, True)


class EnablementState:
    """Boolean visibility flags, independent of the filter selection."""

    def __init__(self):
        self.enabled_feeds: dict[str, bool] = {}
        self.enabled_categories: dict[str, bool] = {}
        self.revision = 0

    def feed_enabled(self, feed_id: str) -> bool:
        return is_enabled(self.enabled_feeds, feed_id)

    def category_enabled(self, category: str) -> bool:
        return is_enabled(self.enabled_categories, category)

    def observe(self, feeds: Iterable[Feed | FeedDescriptor]) -> None:
        """Register newly seen feeds and categories as enabled.

        Existing entries, including explicit False, are never overwritten.
        """
        changed = False
        for feed in feeds:
            if feed.id not in self.enabled_feeds:
                self.enabled_feeds[feed.id] = True
                changed = True
            if feed.category_name not in self.enabled_categories:
                self.enabled_categories[feed.category_name] = True
                changed = True
        if changed:
            self.revision += 1

    def toggle_feed(self, feed_id: str, enabled: bool) -> None:
        self.enabled_feeds[feed_id] = enabled
        self.revision += 1

    def toggle_category(
        self, category: str, enabled: bool, feeds: Iterable[Feed | FeedDescriptor]
    ) -> None:
        """Set a category flag and force every feed in it to the same value."""
        self.enabled_categories[category] = enabled
        for feed in feeds:
            if feed.category_name == category:
                self.enabled_feeds[feed.id] = enabled
        self.revision += 1

    def forget_feed(
        self, feed_id: str, remaining: Iterable[Feed | FeedDescriptor] = ()
    ) -> None:
        """Drop a removed feed's flag, and its category's if nothing else uses it."""
        self.enabled_feeds.pop(feed_id, None)
        in_use = {feed.category_name for feed in remaining}
        for category in list(self.enabled_categories):
            if category not in in_use:
                del self.enabled_categories[category]
        self.revision += 1

    def snapshot(self) -> tuple:
        """Hashable view of the flags, for change detection."""
        return (
            tuple(sorted(self.enabled_feeds.items())),
            tuple(sorted(self.enabled_categories.items())),
        )
