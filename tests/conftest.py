"""Shared test fixtures for newsdeck tests."""

import asyncio
import dataclasses
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from newsdeck.models import Article, Feed, FeedDescriptor, FeedResult


SAMPLE_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Digisport</title>
    <link>https://www.digisport.ro</link>
    <description>Știri sportive</description>
    <item>
      <title>Mașină nouă pentru campioni</title>
      <link>https://www.digisport.ro/fotbal/masina-noua-1001</link>
      <guid>digi-1001</guid>
      <description><![CDATA[<p>Clubul le-a oferit <b>jucătorilor</b> o mașină nouă</p>]]></description>
      <pubDate>Fri, 13 Feb 2026 10:00:00 GMT</pubDate>
      <author>redactie@digisport.ro (Ana Popescu)</author>
      <enclosure url="https://cdn.digisport.ro/img/1001.jpg" type="image/jpeg" length="1000"/>
    </item>
    <item>
      <title>Derby la București</title>
      <link>https://www.digisport.ro/fotbal/derby-1002</link>
      <guid>digi-1002</guid>
      <description>Echipele intră pe teren la ora 20</description>
      <pubDate>Fri, 13 Feb 2026 09:00:00 GMT</pubDate>
      <media:content url="https://cdn.digisport.ro/img/1002.jpg" medium="image"/>
    </item>
    <item>
      <title>Rezultatele serii</title>
      <link>https://www.digisport.ro/fotbal/rezultate-1003</link>
      <description>Fără dată de publicare</description>
    </item>
  </channel>
</rss>"""

SAMPLE_ATOM_XML = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Recorder</title>
  <link href="https://recorder.ro"/>
  <subtitle>Jurnalism de investigație</subtitle>
  <entry>
    <title>Ancheta săptămânii</title>
    <link href="https://recorder.ro/ancheta-saptamanii"/>
    <id>tag:recorder.ro,2026:ancheta-1</id>
    <summary>Ce am aflat despre contractele publice</summary>
    <updated>2026-02-13T10:00:00Z</updated>
  </entry>
</feed>"""

SAMPLE_MALFORMED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Liga 2</title>
    <link>https://liga2.prosport.ro</link>
    <item>
      <title>Etapa 12</title>
      <guid>liga2-12</guid>
    </item>
    <item>
      <title>Etapa 13
      <guid>liga2-13
"""

SAMPLE_NOT_A_FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<html>
  <head><title>Pagina nu a fost găsită</title></head>
  <body>Nu există niciun flux RSS aici</body>
</html>"""

BASE_TIME = datetime(2026, 2, 13, 12, 0, tzinfo=timezone.utc)


class StubAdapter:
    """Adapter double: serves canned articles or raises canned errors per feed.

    Each payload is a list of articles, an exception, or a tuple of those to
    be consumed one call at a time (the last entry repeats).
    """

    def __init__(self, payloads: dict):
        self.payloads = payloads
        self.calls: Counter = Counter()

    async def load(self, descriptor: FeedDescriptor) -> FeedResult:
        self.calls[descriptor.id] += 1
        await asyncio.sleep(0)
        return self._respond(descriptor, self.payloads[descriptor.id])

    def _respond(self, descriptor: FeedDescriptor, payload) -> FeedResult:
        if isinstance(payload, tuple):
            index = min(self.calls[descriptor.id], len(payload)) - 1
            payload = payload[index]
        if isinstance(payload, Exception):
            raise payload

        feed = Feed.from_descriptor(descriptor)
        feed.last_updated = BASE_TIME
        return FeedResult(feed=feed, articles=[dataclasses.replace(a) for a in payload])


class GatedAdapter(StubAdapter):
    """StubAdapter whose chosen calls block until released.

    The payload is read when the call starts, like a request already on the
    wire, so replacing it afterwards only affects later calls.
    """

    def __init__(self, payloads: dict):
        super().__init__(payloads)
        self.gates: dict[tuple[str, int], asyncio.Event] = {}

    def gate(self, feed_id: str, call: int) -> asyncio.Event:
        """Hold call number `call` (1-based) for feed_id until the event is set."""
        event = asyncio.Event()
        self.gates[(feed_id, call)] = event
        return event

    async def load(self, descriptor: FeedDescriptor) -> FeedResult:
        self.calls[descriptor.id] += 1
        payload = self.payloads[descriptor.id]
        gate = self.gates.get((descriptor.id, self.calls[descriptor.id]))
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        return self._respond(descriptor, payload)


async def wait_for_calls(adapter: StubAdapter, feed_id: str, count: int) -> None:
    """Yield to the loop until the adapter has seen count calls for feed_id."""
    while adapter.calls[feed_id] < count:
        await asyncio.sleep(0)


def build_articles(feed_id: str, count: int, start: datetime = BASE_TIME, step_minutes: int = 60,
                   title: str = "Article") -> list[Article]:
    """Articles numbered 0..count-1, article 0 newest."""
    return [
        Article(
            id=f"{feed_id}-{i}",
            feed_id=feed_id,
            title=f"{title} {feed_id}{i}",
            description=f"Body of {feed_id}{i}",
            url=f"https://example.com/{feed_id}/{i}",
            pub_date=start - timedelta(minutes=step_minutes * i),
        )
        for i in range(count)
    ]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def sample_rss_xml():
    """RSS 2.0 channel with an enclosure image, a media image and an undated item."""
    return SAMPLE_RSS_XML


@pytest.fixture
def sample_atom_xml():
    """Atom feed with one entry."""
    return SAMPLE_ATOM_XML


@pytest.fixture
def sample_malformed_xml():
    """RSS cut off mid-item."""
    return SAMPLE_MALFORMED_XML


@pytest.fixture
def sample_not_a_feed_xml():
    """Well-formed XML that holds no feed."""
    return SAMPLE_NOT_A_FEED_XML


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def make_articles():
    return build_articles


@pytest.fixture
def stub_adapter():
    return StubAdapter


@pytest.fixture
def descriptors():
    """Three feeds across two categories, one uncategorized."""
    return [
        FeedDescriptor("a", "https://a.example.com/feed", "Feed A", "Sport"),
        FeedDescriptor("b", "https://b.example.com/rss", "Feed B", "Stiri"),
        FeedDescriptor("c", "https://c.example.com/feed.xml", "Feed C"),
    ]
