"""
Property-based tests for the article detail stage.

After draining, the collection holds one record per successfully fetched
reference; failures are reported as outcomes and never as zero-subscriber
records.
"""

import threading
import time

import pytest
from hypothesis import given, strategies as st

from ironman_ranking.concurrent.pipeline import URLDiscoveryStage, ArticleDetailStage
from ironman_ranking.concurrent.thread_safe import ClosableQueue
from ironman_ranking.crawlers.ironman_crawler import IronmanCrawler
from ironman_ranking.data.models import ArticleRecord
from ironman_ranking.utils.errors import EmptyReferenceError, FetchError, ParseError

from site_fixtures import FakeDocumentFetcher, build_site, article_html


def closed_stream(references):
    stream = ClosableQueue()
    for reference in references:
        stream.put(reference)
    stream.close()
    return stream


class TestArticleDetailStage:

    def test_record_is_built_from_detail_page(self):
        url = "https://example.com/foo"
        fetcher = FakeDocumentFetcher(articles={url: article_html(" Foo 系列 ", "42")})
        stage = ArticleDetailStage(IronmanCrawler(fetcher=fetcher))

        result = stage.run(closed_stream([url]))

        assert result.records == [ArticleRecord(title="Foo", url=url, subscriber_count=42)]
        assert result.failures == []
        assert result.stats.articles_fetched == 1

    def test_parse_failure_is_skipped_not_zeroed(self):
        good, bad = "https://example.com/good", "https://example.com/bad"
        fetcher = FakeDocumentFetcher(articles={
            good: article_html("Good", "12"),
            bad: article_html("Bad", "n/a"),
        })
        stage = ArticleDetailStage(IronmanCrawler(fetcher=fetcher))

        result = stage.run(closed_stream([good, bad]))

        assert [record.url for record in result.records] == [good]
        assert len(result.failures) == 1
        assert result.failures[0].reference == bad
        assert isinstance(result.failures[0].error, ParseError)
        assert result.stats.articles_failed == 1

    def test_fetch_failure_does_not_stop_other_tasks(self):
        urls = [f"https://example.com/{i}" for i in range(6)]
        fetcher = FakeDocumentFetcher(articles={url: article_html(url, "20") for url in urls})
        fetcher.failing.update(urls[:3])
        stage = ArticleDetailStage(IronmanCrawler(fetcher=fetcher), max_workers=3)

        result = stage.run(closed_stream(urls))

        assert sorted(record.url for record in result.records) == urls[3:]
        assert all(isinstance(outcome.error, FetchError) for outcome in result.failures)
        assert result.stats.references_consumed == 6

    def test_empty_reference_is_skipped_without_fetching(self):
        url = "https://example.com/a"
        fetcher = FakeDocumentFetcher(articles={url: article_html("A", "11")})
        stage = ArticleDetailStage(IronmanCrawler(fetcher=fetcher))

        result = stage.run(closed_stream(["", url]))

        assert [record.url for record in result.records] == [url]
        assert isinstance(result.failures[0].error, EmptyReferenceError)
        assert result.stats.empty_references_skipped == 1
        assert fetcher.article_requests() == [url]

    def test_unexpected_error_becomes_failed_outcome(self):
        class BrokenCrawler(IronmanCrawler):
            def fetch_article(self, url):
                raise RuntimeError("boom")

        stage = ArticleDetailStage(BrokenCrawler(fetcher=FakeDocumentFetcher()))

        result = stage.run(closed_stream(["https://example.com/a"]))

        assert result.records == []
        assert result.stats.articles_failed == 1

    def test_consumes_while_stream_is_still_open(self):
        url = "https://example.com/a"
        fetcher = FakeDocumentFetcher(articles={url: article_html("A", "11")})
        stage = ArticleDetailStage(IronmanCrawler(fetcher=fetcher))
        stream = ClosableQueue()
        fetched = threading.Event()
        original = fetcher.get_document

        def tracking_get_document(u, params=None):
            document = original(u, params)
            fetched.set()
            return document

        fetcher.get_document = tracking_get_document

        def producer():
            stream.put(url)
            # the fetch must start before the stream is closed
            fetched.wait(5)
            time.sleep(0.05)
            stream.close()

        thread = threading.Thread(target=producer)
        thread.start()
        result = stage.run(stream)
        thread.join()

        assert fetched.is_set()
        assert len(result.records) == 1

    def test_shutdown_event_skips_fetches(self):
        fetcher = FakeDocumentFetcher(articles={"https://example.com/a": article_html("A", "11")})
        shutdown = threading.Event()
        shutdown.set()
        stage = ArticleDetailStage(IronmanCrawler(fetcher=fetcher), shutdown_event=shutdown)

        result = stage.run(closed_stream(["https://example.com/a"]))

        assert result.records == []
        assert fetcher.article_requests() == []


class TestPipelineCompleteness:

    @given(
        pages=st.lists(
            st.lists(st.tuples(st.integers(min_value=0, max_value=1000), st.booleans()), max_size=6),
            min_size=1,
            max_size=5
        ),
        workers=st.integers(min_value=1, max_value=6)
    )
    def test_one_record_per_non_failed_entry(self, pages, workers):
        fetcher = build_site("web", pages)
        crawler = IronmanCrawler(fetcher=fetcher)

        run = URLDiscoveryStage(crawler, max_workers=workers).start("web")
        result = ArticleDetailStage(crawler, max_workers=workers).run(run.stream)
        assert run.join(timeout=10)

        expected = sorted(
            count
            for entries in pages
            for count, failed in entries
            if not failed
        )
        assert len(result.records) == len(expected)
        assert sorted(record.subscriber_count for record in result.records) == expected
        assert len({record.url for record in result.records}) == len(expected)
        assert all(record.title.startswith("Article ") and not record.title.endswith("系列")
                   for record in result.records)


class SlowFetcher(FakeDocumentFetcher):
    def get_document(self, url, params=None):
        time.sleep(0.1)
        return super().get_document(url, params)


class TestInterruptedDetailStage:

    def test_interrupt_cancels_queued_fetches(self):
        urls = [f"https://example.com/{i}" for i in range(10)]
        fetcher = SlowFetcher(articles={url: article_html(url, "20") for url in urls})
        shutdown = threading.Event()
        stage = ArticleDetailStage(IronmanCrawler(fetcher=fetcher), max_workers=1,
                                   shutdown_event=shutdown)

        def interrupted_stream():
            yield from urls
            raise KeyboardInterrupt

        started = time.monotonic()
        with pytest.raises(KeyboardInterrupt):
            stage.run(interrupted_stream())
        elapsed = time.monotonic() - started

        assert shutdown.is_set()
        # at most the fetch already in flight completes
        assert len(fetcher.article_requests()) <= 1
        assert elapsed < 0.5

    def test_interrupt_also_stops_discovery(self):
        site = build_site("web", [[(11, False)]] * 4)
        slow_site = SlowFetcher(listing_pages=site.listing_pages, articles=site.articles)
        shutdown = threading.Event()
        crawler = IronmanCrawler(fetcher=slow_site)
        discovery = URLDiscoveryStage(crawler, max_workers=1, shutdown_event=shutdown)
        detail = ArticleDetailStage(crawler, max_workers=1, shutdown_event=shutdown)

        def interrupted_stream():
            raise KeyboardInterrupt
            yield

        run = discovery.start("web")
        with pytest.raises(KeyboardInterrupt):
            detail.run(interrupted_stream())

        assert run.join(timeout=5)
        assert shutdown.is_set()
        assert run.stats.pages_fetched <= 1
