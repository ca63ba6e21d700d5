"""Concurrent feed loading with per-feed state, retries and background polling."""

import asyncio
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Callable

from newsdeck.adapter import FeedAdapter
from newsdeck.errors import FeedError
from newsdeck.models import FeedDescriptor, FeedResult
from newsdeck.store import MergeStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 900  # 15 minutes
MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 30.0

PENDING = "pending"
SUCCESS = "success"
ERROR = "error"


@dataclass
class FeedState:
    """Latest known outcome for one feed."""

    status: str = PENDING
    result: FeedResult | None = None
    error: Exception | None = None
    in_flight: int = 0

    @property
    def is_fetching(self) -> bool:
        return self.in_flight > 0


@dataclass
class RefreshReport:
    """Outcome of a refresh cycle, so callers can offer a retry."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def retry_delay(attempt: int, base: float = RETRY_BASE_DELAY, cap: float = RETRY_MAX_DELAY) -> float:
    """Exponential backoff delay before retry number attempt + 1."""
    return min(base * 2 ** attempt, cap)


class FeedLoader:
    """Runs one fetch-parse task per feed and merges each as it completes.

    Feeds never wait on each other: a slow or failing feed does not delay
    or cancel the rest, and the store is updated at every completion.
    """

    def __init__(
        self,
        adapter: FeedAdapter,
        store: MergeStore,
        descriptors: Iterable[FeedDescriptor] = (),
        max_attempts: int = MAX_ATTEMPTS,
        retry_base_delay: float = RETRY_BASE_DELAY,
        retry_max_delay: float = RETRY_MAX_DELAY,
        on_update: Callable[[str], None] | None = None,
    ):
        self.adapter = adapter
        self.store = store
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.on_update = on_update
        self.descriptors: dict[str, FeedDescriptor] = {}
        self.states: dict[str, FeedState] = {}
        self._tasks: set[asyncio.Task] = set()
        self._poll_task: asyncio.Task | None = None
        # Bumped by each forced refresh; results launched earlier are stale.
        self._generation = 0

        for descriptor in descriptors:
            self.add_descriptor(descriptor)

    # --- Registry ---

    def add_descriptor(self, descriptor: FeedDescriptor) -> None:
        if descriptor.id in self.descriptors:
            raise ValueError(f"Duplicate feed id: {descriptor.id}")
        self.descriptors[descriptor.id] = descriptor
        self.states[descriptor.id] = FeedState()

    def remove_descriptor(self, feed_id: str) -> None:
        self.descriptors.pop(feed_id, None)
        self.states.pop(feed_id, None)

    # --- Aggregate status ---

    @property
    def is_initial_loading(self) -> bool:
        """True until at least one feed has produced data."""
        states = self.states.values()
        if any(s.result is not None for s in states):
            return False
        return any(s.status == PENDING or s.is_fetching for s in states)

    @property
    def is_fetching(self) -> bool:
        return any(s.is_fetching for s in self.states.values())

    @property
    def error_count(self) -> int:
        return sum(1 for s in self.states.values() if s.status == ERROR)

    @property
    def is_error(self) -> bool:
        return self.error_count > 0

    @property
    def all_failed(self) -> bool:
        return bool(self.states) and all(s.status == ERROR for s in self.states.values())

    # --- Loading ---

    def start(self) -> list[asyncio.Task]:
        """Fire one task per feed without waiting for any of them."""
        return [self._launch(d) for d in list(self.descriptors.values())]

    async def poll_once(self) -> RefreshReport:
        """Fetch every feed in append mode and wait for all of them."""
        return await self._gather(self.start())

    async def refetch_all(self) -> RefreshReport:
        """Re-fetch every feed, replacing what the store held for each.

        Fetches already in flight when the refresh starts are superseded:
        their results are dropped so they cannot claim the replace or bring
        back articles the fresh fetch no longer lists.
        """
        self._generation += 1
        self.store.begin_replace()
        try:
            return await self._gather(self.start())
        finally:
            self.store.end_replace()

    async def refetch_one(self, feed_id: str) -> RefreshReport:
        """Re-fetch a single feed, leaving every other feed alone."""
        descriptor = self.descriptors.get(feed_id)
        if descriptor is None:
            raise KeyError(feed_id)
        return await self._gather([self._launch(descriptor)])

    async def wait_idle(self) -> None:
        """Wait until no fetch task is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _launch(self, descriptor: FeedDescriptor) -> asyncio.Task:
        task = asyncio.create_task(
            self._run(descriptor, self._generation), name=f"feed-{descriptor.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _gather(self, tasks: list[asyncio.Task]) -> RefreshReport:
        report = RefreshReport()
        for feed_id, error in await asyncio.gather(*tasks):
            if error is None:
                report.succeeded.append(feed_id)
            else:
                report.failed[feed_id] = str(error)
        return report

    async def _run(
        self, descriptor: FeedDescriptor, generation: int
    ) -> tuple[str, Exception | None]:
        state = self.states.get(descriptor.id) or FeedState()
        state.in_flight += 1
        try:
            result = await self._load_with_retry(descriptor)
        except FeedError as e:
            logger.warning("Feed '%s' error: %s", descriptor.title, e)
            return descriptor.id, self._fail(descriptor, state, e, generation)
        except Exception as e:
            logger.warning("Feed '%s' unexpected error: %s", descriptor.title, e)
            return descriptor.id, self._fail(descriptor, state, e, generation)
        finally:
            state.in_flight -= 1

        if generation != self._generation:
            logger.debug("Dropping superseded result for feed '%s'", descriptor.title)
            return descriptor.id, None
        if descriptor.id not in self.descriptors:
            logger.debug("Dropping result for removed feed '%s'", descriptor.title)
            return descriptor.id, None

        state.status = SUCCESS
        state.result = result
        state.error = None
        new_count = self.store.merge(result)
        for warning in result.warnings:
            logger.info("Feed '%s': %s", descriptor.title, warning)
        logger.info("Feed '%s': %d new articles", descriptor.title, new_count)
        self._notify(descriptor.id)
        return descriptor.id, None

    def _fail(
        self, descriptor: FeedDescriptor, state: FeedState, error: Exception, generation: int
    ) -> Exception:
        if generation == self._generation and descriptor.id in self.descriptors:
            state.status = ERROR
            state.error = error
            self.store.record_failure(descriptor, error)
            self._notify(descriptor.id)
        return error

    async def _load_with_retry(self, descriptor: FeedDescriptor) -> FeedResult:
        attempt = 0
        while True:
            try:
                return await self.adapter.load(descriptor)
            except FeedError as e:
                attempt += 1
                if not e.retryable or attempt >= self.max_attempts:
                    raise
                delay = retry_delay(attempt - 1, self.retry_base_delay, self.retry_max_delay)
                logger.debug(
                    "Feed '%s' attempt %d failed (%s), retrying in %.1fs",
                    descriptor.title, attempt, e, delay,
                )
                await asyncio.sleep(delay)

    def _notify(self, feed_id: str) -> None:
        if self.on_update is not None:
            self.on_update(feed_id)

    # --- Background polling ---

    async def poll_forever(self, interval: float | None = None) -> None:
        """Re-fetch all feeds on a fixed interval, indefinitely."""
        if interval is None:
            interval = int(os.environ.get("NEWSDECK_POLL_INTERVAL", DEFAULT_POLL_INTERVAL))
        logger.info("Poller started (interval: %ds)", interval)

        while True:
            await asyncio.sleep(interval)
            try:
                report = await asyncio.shield(self.poll_once())
                logger.info(
                    "Poll cycle complete: %d ok, %d failed",
                    len(report.succeeded), len(report.failed),
                )
            except Exception as e:
                logger.error("Poll cycle failed: %s", e)

    def start_polling(self, interval: float | None = None) -> asyncio.Task:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self.poll_forever(interval), name="feed-poller")
        return self._poll_task

    async def stop(self) -> None:
        """Stop issuing poll cycles. In-flight fetches are left to finish."""
        if self._poll_task is None:
            return
        self._poll_task.cancel()
        try:
            await self._poll_task
        except asyncio.CancelledError:
            pass
        self._poll_task = None
