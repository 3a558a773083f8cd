"""
HTTP client with retry logic, rate limiting, and HTML document parsing.
"""

import time
import random
import threading
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ironman_ranking.utils.logging import get_business_logger
from ironman_ranking.utils.errors import FetchError


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""
    requests_per_second: float = 5.0
    min_delay: float = 0.0
    max_delay: float = 0.0


@dataclass
class RetryConfig:
    """Retry configuration."""
    max_attempts: int = 3
    backoff_factor: float = 2.0
    initial_delay: float = 1.0
    max_delay: float = 60.0
    retry_on_status: List[int] = field(default_factory=lambda: [429, 500, 502, 503, 504])


class UserAgentRotator:
    """Rotates user agents to avoid detection."""

    def __init__(self):
        """Initialize with common user agents."""
        self.user_agents = [
            'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
            'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0',
            'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15',
            'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
        ]

    def get_random_user_agent(self) -> str:
        """Get a random user agent."""
        return random.choice(self.user_agents)


class RateLimiter:
    """
    Per-domain rate limiter shared by all worker threads.

    Each caller reserves the next free slot for its domain under a lock and
    then sleeps outside the lock until that slot arrives.
    """

    def __init__(self, config: RateLimitConfig):
        """Initialize rate limiter with configuration."""
        self.config = config
        self._next_slot_by_domain: Dict[str, float] = {}
        self._lock = threading.Lock()
        self.logger = get_business_logger('crawler_general')

    def wait_if_needed(self, url: str) -> float:
        """
        Wait until a request to ``url`` is allowed.

        Returns:
            Seconds spent waiting
        """
        delay = self.reserve(url)
        if delay > 0:
            self.logger.debug(f"Rate limiting delay: domain={self._get_domain(url)}, delay_seconds={delay:.2f}")
            time.sleep(delay)
        return delay

    def reserve(self, url: str) -> float:
        """Reserve the next request slot for the URL's domain and return the delay until it."""
        if self.config.requests_per_second <= 0:
            return 0.0

        interval = 1.0 / self.config.requests_per_second
        domain = self._get_domain(url)

        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot_by_domain.get(domain, now))
            self._next_slot_by_domain[domain] = slot + interval

        return slot - now

    def _get_domain(self, url: str) -> str:
        """Extract domain from URL."""
        return urlparse(url).netloc or "unknown"


class HTTPClient:
    """HTTP client that fetches pages and returns parsed HTML documents."""

    def __init__(self,
                 rate_limit_config: Optional[RateLimitConfig] = None,
                 retry_config: Optional[RetryConfig] = None,
                 timeout: float = 30.0,
                 pool_size: int = 10):
        """
        Initialize HTTP client.

        Args:
            rate_limit_config: Rate limiting configuration
            retry_config: Retry configuration
            timeout: Request timeout in seconds
            pool_size: Connection pool size, at least the number of worker threads
        """
        self.rate_limit_config = rate_limit_config or RateLimitConfig()
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.pool_size = pool_size

        self.rate_limiter = RateLimiter(self.rate_limit_config)
        self.user_agent_rotator = UserAgentRotator()
        self.session = self._create_session()
        self.logger = get_business_logger('crawler_general')

    def _create_session(self) -> requests.Session:
        """Create requests session with retry configuration."""
        session = requests.Session()

        # Transport-level retries for connection errors only; status retries
        # are handled in _request so blocking responses can be inspected
        retry_strategy = Retry(
            total=self.retry_config.max_attempts,
            backoff_factor=self.retry_config.backoff_factor,
            status_forcelist=[],
            allowed_methods=["HEAD", "GET", "OPTIONS"]
        )

        adapter = HTTPAdapter(
            max_retries=retry_strategy,
            pool_connections=self.pool_size,
            pool_maxsize=self.pool_size
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def get(self, url: str,
            headers: Optional[Dict[str, str]] = None,
            params: Optional[Dict[str, Any]] = None,
            **kwargs) -> requests.Response:
        """
        Perform GET request with rate limiting and retries.

        Args:
            url: URL to request
            headers: Additional headers
            params: Query parameters
            **kwargs: Additional arguments for requests

        Returns:
            Response object

        Raises:
            FetchError: If request fails after all retries
        """
        return self._request("GET", url, headers=headers, params=params, **kwargs)

    def get_document(self, url: str, params: Optional[Dict[str, Any]] = None) -> BeautifulSoup:
        """
        Fetch a page and parse it into a queryable HTML document.

        Args:
            url: URL to request
            params: Query parameters

        Returns:
            Parsed document

        Raises:
            FetchError: If the page cannot be retrieved
        """
        if not url:
            raise FetchError("Cannot fetch an empty URL", {"params": params})

        response = self.get(url, params=params)
        return BeautifulSoup(response.text, "html.parser")

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Perform HTTP request with rate limiting and retries.

        Raises:
            FetchError: If request fails after all retries
        """
        kwargs['headers'] = self._prepare_headers(kwargs.get('headers'))
        kwargs.setdefault('timeout', self.timeout)

        last_error = None
        for attempt in range(self.retry_config.max_attempts):
            self.rate_limiter.wait_if_needed(url)
            self._add_random_delay()

            try:
                self.logger.debug(f"Making HTTP request: {method} {url} (attempt {attempt + 1})")

                response = self.session.request(method, url, **kwargs)

                if response.status_code in self.retry_config.retry_on_status:
                    last_error = f"HTTP {response.status_code}"
                    if attempt < self.retry_config.max_attempts - 1:
                        delay = self._get_retry_after(response) or self._calculate_retry_delay(attempt)
                        self.logger.warning(f"Retryable status for {url}: status={response.status_code}, waiting {delay:.1f}s")
                        time.sleep(delay)
                        continue

                response.raise_for_status()

                self.logger.debug(f"HTTP request successful: {method} {url} (status={response.status_code}, size={len(response.content)})")

                return response

            except requests.exceptions.HTTPError as e:
                # Non-retryable HTTP status
                raise FetchError(
                    f"HTTP request failed: {e}",
                    {"method": method, "url": url, "status_code": e.response.status_code if e.response is not None else None}
                ) from e
            except requests.exceptions.RequestException as e:
                last_error = str(e)

                if attempt < self.retry_config.max_attempts - 1:
                    delay = self._calculate_retry_delay(attempt)
                    self.logger.warning(f"HTTP request failed, retrying: {method} {url} (attempt {attempt + 1}, error: {e}, retry_delay: {delay:.1f}s)")
                    time.sleep(delay)
                else:
                    self.logger.error(f"HTTP request failed after all retries: {method} {url} (attempts: {self.retry_config.max_attempts}, error: {e})")

        raise FetchError(
            f"HTTP request failed after {self.retry_config.max_attempts} attempts",
            {
                "method": method,
                "url": url,
                "last_error": last_error or "Unknown error"
            }
        )

    def _prepare_headers(self, headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        """Prepare default browser-like headers."""
        default_headers = {
            'User-Agent': self.user_agent_rotator.get_random_user_agent(),
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'zh-TW,zh;q=0.9,en;q=0.8',
            'Connection': 'keep-alive',
        }

        # Provided headers take precedence
        if headers:
            return {**default_headers, **headers}
        return default_headers

    def _add_random_delay(self) -> None:
        """Add random jitter between requests when configured."""
        if self.rate_limit_config.max_delay > 0:
            delay = random.uniform(self.rate_limit_config.min_delay, self.rate_limit_config.max_delay)
            time.sleep(delay)

    def _get_retry_after(self, response: requests.Response) -> Optional[float]:
        """Extract retry-after header value."""
        retry_after = response.headers.get('Retry-After')
        if retry_after:
            try:
                return min(float(retry_after), self.retry_config.max_delay)
            except ValueError:
                # HTTP-date form, fall back to backoff
                return None
        return None

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt."""
        delay = self.retry_config.initial_delay * (self.retry_config.backoff_factor ** attempt)
        # Add jitter to avoid thundering herd
        delay += random.uniform(0.1, 0.5)
        return min(delay, self.retry_config.max_delay)

    def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            self.session.close()
