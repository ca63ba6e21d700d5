"""Tests for filtering, selection and debounced search."""

from datetime import timedelta

import pytest

from newsdeck.enablement import EnablementState
from newsdeck.filters import (
    IDLE,
    PENDING,
    SETTLED,
    DebouncedValue,
    FilterEngine,
    Selection,
    filter_article_ids,
    normalize_text,
)
from newsdeck.models import Article, Feed, FeedResult
from newsdeck.store import MergeStore

from conftest import BASE_TIME, build_articles


def _feeds(descriptors):
    return {d.id: Feed.from_descriptor(d) for d in descriptors}


class TestNormalizeText:
    def test_strips_diacritics_and_case(self):
        assert normalize_text("Mașină Nouă") == "masina noua"

    def test_plain_text_untouched(self):
        assert normalize_text("hello") == "hello"


class TestFilterArticleIds:
    def test_diacritic_insensitive_search(self, descriptors):
        articles = [
            Article("a-1", "a", "Mașină nouă", BASE_TIME),
            Article("a-2", "a", "Altceva", BASE_TIME - timedelta(hours=1)),
        ]
        ids = filter_article_ids(articles, _feeds(descriptors), {}, {}, query="masina")
        assert ids == ["a-1"]

    def test_search_matches_description(self, descriptors):
        articles = [Article("a-1", "a", "Title", BASE_TIME, description="Știri din România")]
        ids = filter_article_ids(articles, _feeds(descriptors), {}, {}, query="ROMANIA")
        assert ids == ["a-1"]

    def test_enablement_gate_applies_under_selection(self, descriptors):
        articles = build_articles("a", 2)
        ids = filter_article_ids(
            articles, _feeds(descriptors), {"a": False}, {}, selected_feed="a"
        )
        assert ids == []

    def test_query_whitespace_is_significant(self, descriptors):
        articles = [Article("a-1", "a", "Mașină nouă", BASE_TIME)]
        feeds = _feeds(descriptors)
        assert filter_article_ids(articles, feeds, {}, {}, query=" nou") == ["a-1"]
        assert filter_article_ids(articles, feeds, {}, {}, query="noua ") == []

    def test_disabled_category_hides_feed(self, descriptors):
        articles = build_articles("a", 2) + build_articles("b", 2)
        ids = filter_article_ids(articles, _feeds(descriptors), {}, {"Sport": False})
        assert ids == ["b-0", "b-1"]

    def test_selected_category(self, descriptors):
        articles = build_articles("a", 2) + build_articles("c", 2)
        ids = filter_article_ids(
            articles, _feeds(descriptors), {}, {}, selected_category="Uncategorized"
        )
        assert ids == ["c-0", "c-1"]

    def test_orphan_article_uses_default_category(self):
        articles = build_articles("ghost", 1)
        assert filter_article_ids(articles, {}, {}, {"Uncategorized": False}) == []

    def test_result_is_newest_first(self, descriptors):
        articles = list(reversed(build_articles("a", 3)))
        ids = filter_article_ids(articles, _feeds(descriptors), {}, {})
        assert ids == ["a-0", "a-1", "a-2"]


class TestSelection:
    def test_feed_and_category_are_exclusive(self):
        selection = Selection()
        selection.select_category("Sport")
        selection.select_feed("a")
        assert selection.category is None
        assert selection.feed_id == "a"

        selection.select_category("Stiri")
        assert selection.feed_id is None
        assert selection.category == "Stiri"


class TestDebouncedValue:
    def test_state_machine(self, fake_clock):
        value = DebouncedValue(delay=0.3, clock=fake_clock)
        assert value.state == IDLE

        value.set("mas")
        assert value.state == PENDING
        assert value.pending
        assert value.settled == ""

        fake_clock.advance(0.2)
        value.set("masina")
        fake_clock.advance(0.2)
        assert value.pending
        assert value.settled == ""

        fake_clock.advance(0.15)
        assert not value.pending
        assert value.settled == "masina"
        assert value.state == SETTLED

    def test_reverting_to_settled_value_is_not_pending(self, fake_clock):
        value = DebouncedValue(delay=0.3, clock=fake_clock)
        value.set("x")
        value.set("")
        assert not value.pending

    def test_flush(self, fake_clock):
        value = DebouncedValue(delay=0.3, clock=fake_clock)
        value.set("now")
        value.flush()
        assert value.settled == "now"
        assert not value.pending


class TestFilterEngine:
    @pytest.fixture
    def engine(self, descriptors, fake_clock):
        store = MergeStore()
        for descriptor, count in zip(descriptors, (3, 2, 1)):
            feed = Feed.from_descriptor(descriptor)
            feed.last_updated = BASE_TIME
            store.merge(FeedResult(feed, build_articles(descriptor.id, count)))
        enablement = EnablementState()
        enablement.observe(store.feeds)
        return FilterEngine(store, enablement, debounce=0.3, clock=fake_clock)

    def test_search_applies_after_debounce(self, engine, fake_clock):
        engine.search.set("Article a1")
        assert engine.is_searching
        assert len(engine.visible_ids()) == 6

        fake_clock.advance(0.3)
        assert not engine.is_searching
        assert engine.visible_ids() == ["a-1"]

    def test_memoizes_until_inputs_change(self, engine):
        first = engine.visible_ids()
        assert engine.visible_ids() is first

        engine.enablement.toggle_feed("a", False)
        assert engine.visible_ids() is not first
        assert len(engine.visible_ids()) == 3

    def test_recomputes_on_store_change(self, engine, descriptors):
        before = len(engine.visible_ids())
        feed = Feed.from_descriptor(descriptors[0])
        engine.store.merge(FeedResult(feed, build_articles("a", 5)))
        assert len(engine.visible_ids()) == before + 2

    def test_filter_key_ignores_store_revision(self, engine, descriptors):
        key = engine.filter_key()
        engine.store.merge(FeedResult(Feed.from_descriptor(descriptors[0]), build_articles("a", 5)))
        assert engine.filter_key() == key
