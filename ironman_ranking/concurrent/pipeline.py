"""
Two-stage concurrent crawl pipeline.

URLDiscoveryStage fans out one task per listing page and funnels article
URLs into a ClosableQueue; a coordinator thread closes the queue once every
page task has finished. ArticleDetailStage drains that queue, fans out one
task per URL and appends each record to a lock-guarded list.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, Future, wait
from dataclasses import dataclass, field
from typing import List, Optional

from ironman_ranking.crawlers.base import BaseCrawler
from ironman_ranking.data.models import ArticleRecord, FetchOutcome, StageStats
from ironman_ranking.utils.errors import CrawlerError, EmptyReferenceError
from ironman_ranking.utils.logging import get_business_logger
from .thread_safe import ClosableQueue, ThreadSafeList


@dataclass
class DiscoveryRun:
    """Handle on a running discovery stage."""
    group: str
    stream: ClosableQueue
    stats: StageStats
    coordinator: threading.Thread

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the coordinator; True once the stream is closed."""
        self.coordinator.join(timeout)
        return not self.coordinator.is_alive()


@dataclass
class DetailResult:
    """What the detail stage produced for one group."""
    collection: ThreadSafeList
    outcomes: List[FetchOutcome]
    stats: StageStats = field(default_factory=StageStats)

    @property
    def records(self) -> List[ArticleRecord]:
        return self.collection.snapshot()

    @property
    def failures(self) -> List[FetchOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]


class URLDiscoveryStage:
    """Discover article URLs for a group across all of its listing pages."""

    def __init__(self, crawler: BaseCrawler, max_workers: int = 4,
                 shutdown_event: Optional[threading.Event] = None):
        """
        Initialize discovery stage.

        Args:
            crawler: Crawler providing page count and listing page fetches
            max_workers: Maximum concurrent listing page fetches
            shutdown_event: When set, page tasks that have not started are skipped
        """
        self.crawler = crawler
        self.max_workers = max_workers
        self.shutdown_event = shutdown_event or threading.Event()
        self.logger = get_business_logger('pipeline')

    def probe_page_count(self, group: str, stats: StageStats) -> int:
        """Page count for ``group``; a failed probe counts as one page."""
        try:
            return self.crawler.get_number_of_pages(group)
        except CrawlerError as e:
            stats.increment('pages_failed')
            stats.record_error(f"page count probe: {e}")
            self.logger.warning(f"Page count probe failed for group {group}, assuming 1 page: {e}")
            return 1

    def start(self, group: str) -> DiscoveryRun:
        """
        Probe the page count, launch one task per page and return immediately.

        The returned stream is closed by the coordinator thread after every
        page task has finished.
        """
        stats = StageStats()
        stream: ClosableQueue = ClosableQueue()

        n_pages = self.probe_page_count(group, stats)
        stats.pages_expected = n_pages
        self.logger.info(f"Discovering articles for group {group}: {n_pages} page(s)")

        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.max_workers, n_pages or 1)),
            thread_name_prefix=f"discovery-{group}"
        )
        futures = [
            executor.submit(self._fetch_page, group, page, stream, stats)
            for page in range(1, n_pages + 1)
        ]

        coordinator = threading.Thread(
            target=self._close_when_done,
            args=(group, executor, futures, stream, stats),
            name=f"discovery-coordinator-{group}",
            daemon=True
        )
        coordinator.start()

        return DiscoveryRun(group=group, stream=stream, stats=stats, coordinator=coordinator)

    def _fetch_page(self, group: str, page: int, stream: ClosableQueue, stats: StageStats) -> None:
        if self.shutdown_event.is_set():
            stats.record_error(f"page {page}: cancelled")
            return

        try:
            entries = self.crawler.fetch_listing_page(group, page)
        except CrawlerError as e:
            stats.increment('pages_failed')
            stats.record_error(f"page {page}: {e}")
            self.logger.warning(f"Listing page {page} failed for group {group}: {e}")
            return

        stats.increment('pages_fetched')
        for entry in entries:
            stats.increment('entries_seen')
            if entry.failed:
                stats.increment('entries_skipped_failed')
                continue
            stream.put(entry.url)
            stats.increment('references_published')

    def _close_when_done(self, group: str, executor: ThreadPoolExecutor,
                         futures: List[Future], stream: ClosableQueue, stats: StageStats) -> None:
        try:
            wait(futures)
            for future in futures:
                error = future.exception()
                if error is not None:
                    stats.increment('pages_failed')
                    stats.record_error(f"unexpected: {error}")
                    self.logger.error(f"Unexpected error in listing page task for group {group}: {error!r}")
        finally:
            executor.shutdown(wait=True)
            stream.close()
            self.logger.info(f"Discovery finished for group {group}: {stats.to_dict()}")


class ArticleDetailStage:
    """Fetch every discovered article and aggregate the records."""

    def __init__(self, crawler: BaseCrawler, max_workers: int = 8,
                 shutdown_event: Optional[threading.Event] = None):
        """
        Initialize detail stage.

        Args:
            crawler: Crawler providing article detail fetches
            max_workers: Maximum concurrent article fetches
            shutdown_event: When set, article tasks that have not started are skipped
        """
        self.crawler = crawler
        self.max_workers = max_workers
        self.shutdown_event = shutdown_event or threading.Event()
        self.logger = get_business_logger('pipeline')

    def run(self, stream: ClosableQueue) -> DetailResult:
        """
        Drain ``stream`` and block until every launched fetch has completed.

        Failed references never produce a record; they are returned as
        failed outcomes and counted in the stats.

        If draining is interrupted (e.g. KeyboardInterrupt), the shutdown
        event is set and queued fetches are cancelled before re-raising.
        """
        stats = StageStats()
        collection: ThreadSafeList = ThreadSafeList()
        futures: List[Future] = []

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="detail") as executor:
            try:
                for reference in stream:
                    stats.increment('references_consumed')
                    futures.append(executor.submit(self._fetch_one, reference, collection, stats))
                wait(futures)
            except BaseException:
                # Queued fetches must not start while the executor winds down
                self.shutdown_event.set()
                cancelled = sum(1 for future in futures if future.cancel())
                self.logger.warning(f"Detail stage interrupted, {cancelled} queued fetch(es) cancelled")
                raise

        outcomes = [future.result() for future in futures]
        self.logger.info(f"Detail stage finished: {stats.to_dict()}")
        return DetailResult(collection=collection, outcomes=outcomes, stats=stats)

    def _fetch_one(self, reference: str, collection: ThreadSafeList, stats: StageStats) -> FetchOutcome:
        if self.shutdown_event.is_set():
            stats.record_error(f"{reference}: cancelled")
            return FetchOutcome.failed(reference, CrawlerError("Cancelled before fetch", {"url": reference}))

        try:
            record = self.crawler.fetch_article(reference)
        except EmptyReferenceError as e:
            stats.increment('empty_references_skipped')
            stats.record_error(str(e))
            self.logger.warning("Skipping article reference with empty URL")
            return FetchOutcome.failed(reference, e)
        except CrawlerError as e:
            stats.increment('articles_failed')
            stats.record_error(f"{reference}: {e}")
            self.logger.warning(f"Article fetch failed for {reference}: {e} {e.details}")
            return FetchOutcome.failed(reference, e)
        except Exception as e:
            stats.increment('articles_failed')
            stats.record_error(f"{reference}: unexpected {e!r}")
            self.logger.error(f"Unexpected error fetching {reference}: {e!r}")
            return FetchOutcome.failed(
                reference,
                CrawlerError("Unexpected error during article fetch", {"url": reference, "error": repr(e)})
            )

        collection.append(record)
        stats.increment('articles_fetched')
        return FetchOutcome.succeeded(reference, record)
