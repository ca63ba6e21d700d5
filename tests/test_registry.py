"""Tests for the feed registry and URL validation."""

import json

import pytest

from newsdeck.errors import ValidationError
from newsdeck.models import FeedDescriptor
from newsdeck.registry import DEFAULT_FEEDS, load_registry, make_descriptor, validate_url


@pytest.mark.parametrize("url", [
    "https://hnrss.org/frontpage",
    "https://techcrunch.com/feed/",
    "http://example.com/news.xml",
    "https://example.com/index.php?format=atom",
])
def test_validate_url_accepts_feed_like_urls(url):
    validate_url(url)


@pytest.mark.parametrize("url", [
    "ftp://example.com/feed",
    "not a url",
    "https://example.com/news",
    "/relative/feed",
])
def test_validate_url_rejects(url):
    with pytest.raises(ValidationError):
        validate_url(url)


class TestMakeDescriptor:
    def test_slug_id_and_defaults(self):
        descriptor = make_descriptor("https://hnrss.org/frontpage", "  Hacker News ")
        assert descriptor.id == "hacker-news"
        assert descriptor.title == "Hacker News"
        assert descriptor.category is None
        assert descriptor.category_name == "Uncategorized"
        assert descriptor.description == "Latest news from Hacker News"

    def test_id_collision_gets_suffix(self):
        existing = {
            "hacker-news": FeedDescriptor("hacker-news", "https://hnrss.org/newest", "Hacker News"),
            "hacker-news-2": FeedDescriptor("hacker-news-2", "https://hnrss.org/best", "Hacker News"),
        }
        descriptor = make_descriptor("https://hnrss.org/frontpage", "Hacker News", existing=existing)
        assert descriptor.id == "hacker-news-3"

    def test_duplicate_url_rejected(self):
        existing = {"x": FeedDescriptor("x", "https://hnrss.org/frontpage", "HN")}
        with pytest.raises(ValidationError, match="Already subscribed"):
            make_descriptor("https://hnrss.org/frontpage", "Other", existing=existing)

    def test_empty_title_rejected(self):
        with pytest.raises(ValidationError):
            make_descriptor("https://hnrss.org/frontpage", "   ")

    def test_empty_category_means_uncategorized(self):
        descriptor = make_descriptor("https://hnrss.org/frontpage", "HN", category="")
        assert descriptor.category is None


class TestLoadRegistry:
    def test_defaults(self):
        descriptors = load_registry()
        assert descriptors == list(DEFAULT_FEEDS)
        assert len(descriptors) == 11
        assert len({d.id for d in descriptors}) == 11
        assert {d.category for d in descriptors} == {"Sport", "Stiri TV", "Stiri", "Investigatii"}

    def test_from_file(self, tmp_path):
        path = tmp_path / "feeds.json"
        path.write_text(json.dumps([
            {"id": 1, "url": "https://a.example.com/feed", "title": "A", "category": "Tech"},
            {"id": "b", "url": "https://b.example.com/rss", "title": "B"},
        ]), encoding="utf-8")

        descriptors = load_registry(path)

        assert [d.id for d in descriptors] == ["1", "b"]
        assert descriptors[0].category == "Tech"
        assert descriptors[1].category_name == "Uncategorized"
        assert descriptors[1].favicon == "📰"

    def test_duplicate_ids_rejected(self, tmp_path):
        path = tmp_path / "feeds.json"
        path.write_text(json.dumps([
            {"id": "a", "url": "https://a.example.com/feed", "title": "A"},
            {"id": "a", "url": "https://b.example.com/feed", "title": "B"},
        ]), encoding="utf-8")
        with pytest.raises(ValidationError, match="Duplicate"):
            load_registry(path)

    def test_missing_key_rejected(self, tmp_path):
        path = tmp_path / "feeds.json"
        path.write_text(json.dumps([{"id": "a", "title": "A"}]), encoding="utf-8")
        with pytest.raises(ValidationError, match="url"):
            load_registry(path)
