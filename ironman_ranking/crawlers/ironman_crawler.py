"""
iThome Ironman (鐵人賽) sign-up list crawler.
"""

import re
from typing import List, Dict, Any, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ironman_ranking.crawlers.base import BaseCrawler
from ironman_ranking.data.models import ArticleRecord, ListingEntry
from ironman_ranking.utils.errors import EmptyReferenceError, ParseError
from ironman_ranking.utils.logging import get_business_logger


DEFAULT_BASE_URL = "https://ithelp.ithome.com.tw/ironman/signup/list"

PAGINATION_SELECTOR = "ul.pagination li"
# "上一頁" and "下一頁" are list items but not pages
PAGINATION_NAV_ITEMS = 2

ENTRY_SELECTOR = ".contestants-wrapper .contestants-list"
STATUS_SELECTOR = ".team-dashboard__box"
FAILED_CLASS = "team-progress--fail"
ENTRY_LINK_SELECTOR = "a.contestants-list__title"

TITLE_SELECTOR = ".qa-list__title.qa-list__title--ironman"
SUBSCRIBER_SELECTOR = "span.subscription-amount"
SERIES_SUFFIX = "系列"
# Plain digits, or digits grouped in threes by commas
SUBSCRIBER_COUNT_PATTERN = re.compile(r"[0-9]+|[0-9]{1,3}(?:,[0-9]{3})+")


def count_pages(doc: BeautifulSoup) -> int:
    """Number of content pages described by a listing page's pagination control."""
    items = doc.select(PAGINATION_SELECTOR)
    if not items:
        # Groups with a single page have no pagination control
        return 1
    return max(len(items) - PAGINATION_NAV_ITEMS, 0)


def has_class(elements, class_name: str) -> bool:
    """True if any element carries ``class_name``."""
    return any(class_name in (element.get("class") or []) for element in elements)


def parse_listing_entries(doc: BeautifulSoup, page_url: str = "") -> List[ListingEntry]:
    """
    Read every contestant entry from a listing page.

    An entry with no link, or an empty href, is returned with ``url == ""``.
    Relative links are resolved against ``page_url``.
    """
    entries = []
    for entry in doc.select(ENTRY_SELECTOR):
        failed = has_class(entry.select(STATUS_SELECTOR), FAILED_CLASS)

        link = entry.select_one(ENTRY_LINK_SELECTOR)
        href = (link.get("href") or "").strip() if link is not None else ""
        if href and page_url:
            href = urljoin(page_url, href)

        entries.append(ListingEntry(url=href, failed=failed))
    return entries


def clean_title(raw_title: str) -> str:
    """Strip whitespace and the trailing series marker from an article title."""
    title = raw_title.strip()
    if title.endswith(SERIES_SUFFIX):
        title = title[:-len(SERIES_SUFFIX)].rstrip()
    return title


def parse_subscriber_count(text: str) -> int:
    """
    Parse subscriber count text such as ``"42"`` or ``" 1,024 "``.

    Raises:
        ParseError: If the text is empty, non-numeric, negative or badly grouped
    """
    cleaned = text.strip()
    if not SUBSCRIBER_COUNT_PATTERN.fullmatch(cleaned):
        raise ParseError(
            "Subscriber count is not a non-negative integer",
            {"text": text}
        )
    return int(cleaned.replace(",", ""))


def parse_article_detail(doc: BeautifulSoup, url: str) -> ArticleRecord:
    """
    Build an ArticleRecord from an article detail page.

    Raises:
        ParseError: If the title or subscriber element is missing or malformed
    """
    title_element = doc.select_one(TITLE_SELECTOR)
    if title_element is None:
        raise ParseError("Article title element not found", {"url": url})

    subscriber_element = doc.select_one(SUBSCRIBER_SELECTOR)
    if subscriber_element is None:
        raise ParseError("Subscriber count element not found", {"url": url})

    try:
        subscriber_count = parse_subscriber_count(subscriber_element.get_text())
    except ParseError as e:
        e.details["url"] = url
        raise

    return ArticleRecord(
        title=clean_title(title_element.get_text()),
        url=url,
        subscriber_count=subscriber_count
    )


class IronmanCrawler(BaseCrawler):
    """Crawler for the iThome Ironman contest sign-up list."""

    def __init__(self, source_name: str = 'ironman', config: Optional[Dict[str, Any]] = None,
                 fetcher: Optional[Any] = None):
        """
        Initialize Ironman crawler.

        Args:
            source_name: Source name (default: 'ironman')
            config: Crawler configuration
            fetcher: Document fetcher shared by all worker threads
        """
        super().__init__(source_name, config, fetcher)
        self.base_url = self.config.get('base_url', DEFAULT_BASE_URL)
        self.logger = get_business_logger('crawler_ironman')

    def get_number_of_pages(self, group: str) -> int:
        doc = self.fetcher.get_document(self.base_url, params={'group': group})
        n_pages = count_pages(doc)
        self.logger.debug(f"Group {group} has {n_pages} listing page(s)")
        return n_pages

    def fetch_listing_page(self, group: str, page: int) -> List[ListingEntry]:
        params = {'group': group, 'page': page}
        doc = self.fetcher.get_document(self.base_url, params=params)
        entries = parse_listing_entries(doc, page_url=self.base_url)
        self.logger.debug(f"Group {group} page {page}: {len(entries)} entries")
        return entries

    def fetch_article(self, url: str) -> ArticleRecord:
        if not url:
            raise EmptyReferenceError("Article reference has no URL")
        doc = self.fetcher.get_document(url)
        return parse_article_detail(doc, url)
