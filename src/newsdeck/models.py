"""Data models for newsdeck."""

from dataclasses import dataclass, field
from datetime import datetime

UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class FeedDescriptor:
    """Static configuration for one feed source."""

    id: str
    url: str
    title: str
    category: str | None = None
    favicon: str = "📰"
    description: str = ""

    @property
    def category_name(self) -> str:
        return self.category or UNCATEGORIZED


@dataclass
class Feed:
    """Runtime state of a feed, owned by the merge store."""

    id: str
    url: str
    title: str
    category: str | None = None
    favicon: str = "📰"
    description: str = ""
    last_updated: datetime | None = None
    error_count: int = 0
    last_error: str | None = None

    @classmethod
    def from_descriptor(cls, descriptor: FeedDescriptor) -> "Feed":
        return cls(
            id=descriptor.id,
            url=descriptor.url,
            title=descriptor.title,
            category=descriptor.category,
            favicon=descriptor.favicon,
            description=descriptor.description,
        )

    @property
    def category_name(self) -> str:
        return self.category or UNCATEGORIZED


@dataclass
class Article:
    """A single normalized entry from a feed."""

    id: str
    feed_id: str
    title: str
    pub_date: datetime
    description: str = ""
    url: str = ""
    image: str | None = None
    author: str | None = None


@dataclass
class FeedResult:
    """Successful outcome of fetching and parsing one feed."""

    feed: Feed
    articles: list[Article] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
