"""
Abstract base class for contest listing crawlers.
"""

from abc import ABC, abstractmethod
from typing import List, Any, Optional, Dict

from ironman_ranking.data.models import ArticleRecord, ListingEntry
from ironman_ranking.utils.logging import get_business_logger
from ironman_ranking.crawlers.http_client import HTTPClient, RateLimitConfig, RetryConfig


class BaseCrawler(ABC):
    """
    Abstract base class for crawlers of paginated contest listings.

    Subclasses know the site's URLs and markup; the document fetcher
    (``get_document(url, params)``) does the network I/O and is shared by
    every worker thread.
    """

    def __init__(self, source_name: str, config: Optional[Dict[str, Any]] = None,
                 fetcher: Optional[Any] = None):
        """
        Initialize crawler with source name and configuration.

        Args:
            source_name: Name of the data source (e.g., 'ironman')
            config: Optional crawler-specific configuration
            fetcher: Document fetcher; an HTTPClient is built from config when omitted
        """
        self.source_name = source_name
        self.config = config or {}
        self.logger = get_business_logger('crawler_general')

        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher if fetcher is not None else self._create_http_client()

    def _create_http_client(self) -> HTTPClient:
        """Create HTTP client with crawler-specific configuration."""
        rate_limit_config = RateLimitConfig()
        if 'rate_limit' in self.config:
            rate_config = self.config['rate_limit']
            rate_limit_config.requests_per_second = rate_config.get('requests_per_second', 5.0)
            rate_limit_config.min_delay = rate_config.get('min_delay', 0.0)
            rate_limit_config.max_delay = rate_config.get('max_delay', 0.0)

        retry_config = RetryConfig()
        if 'retry' in self.config:
            retry_cfg = self.config['retry']
            retry_config.max_attempts = retry_cfg.get('max_attempts', 3)
            retry_config.backoff_factor = retry_cfg.get('backoff_factor', 2.0)
            retry_config.initial_delay = retry_cfg.get('initial_delay', 1.0)
            retry_config.max_delay = retry_cfg.get('max_delay', 60.0)
            retry_config.retry_on_status = retry_cfg.get('retry_on_status', [429, 500, 502, 503, 504])

        return HTTPClient(
            rate_limit_config=rate_limit_config,
            retry_config=retry_config,
            timeout=self.config.get('timeout', 30.0),
            pool_size=self.config.get('max_workers', 10)
        )

    @abstractmethod
    def get_number_of_pages(self, group: str) -> int:
        """
        Determine how many listing pages exist for a group.

        Raises:
            FetchError: If the first listing page cannot be fetched
        """
        pass

    @abstractmethod
    def fetch_listing_page(self, group: str, page: int) -> List[ListingEntry]:
        """
        Fetch one listing page and return its contestant entries.

        Raises:
            FetchError: If the page cannot be fetched
        """
        pass

    @abstractmethod
    def fetch_article(self, url: str) -> ArticleRecord:
        """
        Fetch one article detail page and build its record.

        Raises:
            FetchError: If the page cannot be fetched
            ParseError: If the title or subscriber count cannot be read
        """
        pass

    def cleanup(self) -> None:
        """Clean up resources used by the crawler."""
        if self._owns_fetcher and hasattr(self.fetcher, 'close'):
            self.fetcher.close()
