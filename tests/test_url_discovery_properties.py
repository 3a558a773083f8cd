"""
Property-based tests for the URL discovery stage.

Every non-failed contestant across every listing page is published exactly
once, failed contestants never are, and the stream is closed only after
all page tasks finish.
"""

import threading
import time
from collections import Counter

import pytest
from hypothesis import given, strategies as st

from ironman_ranking.concurrent.pipeline import URLDiscoveryStage
from ironman_ranking.crawlers.ironman_crawler import IronmanCrawler

from site_fixtures import (
    FakeDocumentFetcher,
    build_site,
    listing_page_html,
    article_url
)


def discover(fetcher, group, max_workers=4):
    stage = URLDiscoveryStage(IronmanCrawler(fetcher=fetcher), max_workers=max_workers)
    run = stage.start(group)
    urls = list(run.stream)
    assert run.join(timeout=10)
    return urls, run


# Per page, per entry: (subscriber_count, failed)
pages_strategy = st.lists(
    st.lists(st.tuples(st.integers(min_value=0, max_value=500), st.booleans()), max_size=8),
    min_size=1,
    max_size=6
)


class TestURLDiscovery:

    def test_two_pages_with_one_failed_entry_yield_four_urls(self):
        fetcher = build_site("web", [
            [(1, False), (2, True), (3, False)],
            [(4, False), (5, False)],
        ])

        urls, run = discover(fetcher, "web")

        assert sorted(urls) == sorted([
            article_url("web", 1, 0),
            article_url("web", 1, 2),
            article_url("web", 2, 0),
            article_url("web", 2, 1),
        ])
        stats = run.stats.to_dict()
        assert stats["pages_expected"] == 2
        assert stats["pages_fetched"] == 2
        assert stats["entries_seen"] == 5
        assert stats["entries_skipped_failed"] == 1
        assert stats["references_published"] == 4

    def test_single_page_group_without_pagination(self):
        fetcher = build_site("self", [[(1, False), (2, False)]])

        urls, run = discover(fetcher, "self")

        assert len(urls) == 2
        assert run.stats.pages_expected == 1

    def test_each_page_is_fetched_exactly_once(self):
        fetcher = build_site("web", [[(1, False)]] * 5)

        discover(fetcher, "web", max_workers=3)

        page_requests = Counter(key for key in fetcher.requests if isinstance(key, tuple) and key[0] == "web")
        assert page_requests == Counter({("web", page): 1 for page in range(1, 6)})

    def test_empty_href_is_still_published(self):
        fetcher = FakeDocumentFetcher(listing_pages={
            ("web", 1): listing_page_html([(None, False), ("https://example.com/a", False)])
        })

        urls, _ = discover(fetcher, "web")

        assert sorted(urls) == ["", "https://example.com/a"]


class TestURLDiscoveryFailures:

    def test_probe_failure_defaults_to_one_page(self):
        fetcher = FakeDocumentFetcher()

        urls, run = discover(fetcher, "web")

        assert urls == []
        assert run.stats.pages_expected == 1
        # the probe and the page-1 fetch both failed
        assert run.stats.pages_failed == 2
        assert run.stream.closed

    def test_failed_page_is_skipped_and_others_continue(self):
        fetcher = build_site("web", [[(1, False)], [(2, False)], [(3, False)]])
        fetcher.failing.add(("web", 2))

        urls, run = discover(fetcher, "web")

        assert sorted(urls) == sorted([article_url("web", 1, 0), article_url("web", 3, 0)])
        assert run.stats.pages_fetched == 2
        assert run.stats.pages_failed == 1
        assert len(run.stats.errors) == 1

    def test_zero_pages_closes_stream_immediately(self):
        fetcher = FakeDocumentFetcher(listing_pages={("web", 1): listing_page_html([], pagination_items=2)})

        urls, run = discover(fetcher, "web")

        assert urls == []
        assert run.stats.pages_expected == 0

    def test_stream_closes_only_after_slow_page_finishes(self):
        fetcher = build_site("web", [[(1, False)], [(2, False)]])
        release = threading.Event()
        original = fetcher.get_document

        def slow_get_document(url, params=None):
            if params and params.get("page") == 2:
                release.wait(5)
            return original(url, params)

        fetcher.get_document = slow_get_document
        stage = URLDiscoveryStage(IronmanCrawler(fetcher=fetcher), max_workers=2)
        run = stage.start("web")

        time.sleep(0.1)
        assert not run.stream.closed

        release.set()
        urls = list(run.stream)
        assert run.join(timeout=5)
        assert sorted(urls) == sorted([article_url("web", 1, 0), article_url("web", 2, 0)])

    def test_shutdown_event_skips_pages(self):
        fetcher = build_site("web", [[(1, False)], [(2, False)]])
        shutdown = threading.Event()
        shutdown.set()
        stage = URLDiscoveryStage(IronmanCrawler(fetcher=fetcher), shutdown_event=shutdown)

        run = stage.start("web")

        assert list(run.stream) == []
        assert run.join(timeout=5)


class TestURLDiscoveryProperties:

    @given(pages=pages_strategy, workers=st.integers(min_value=1, max_value=8))
    def test_published_urls_are_exactly_the_non_failed_entries(self, pages, workers):
        fetcher = build_site("web", pages)

        urls, run = discover(fetcher, "web", max_workers=workers)

        expected = [
            article_url("web", page, index)
            for page, entries in enumerate(pages, start=1)
            for index, (_, failed) in enumerate(entries)
            if not failed
        ]
        assert Counter(urls) == Counter(expected)

    @given(pages=pages_strategy)
    def test_failed_entries_are_never_published(self, pages):
        fetcher = build_site("web", pages)

        urls, _ = discover(fetcher, "web")

        failed = {
            article_url("web", page, index)
            for page, entries in enumerate(pages, start=1)
            for index, (_, is_failed) in enumerate(entries)
            if is_failed
        }
        assert failed.isdisjoint(urls)
