"""
Crawlers for the contest listing site.
"""

from .base import BaseCrawler
from .http_client import HTTPClient, RateLimitConfig, RetryConfig, RateLimiter, UserAgentRotator
from .ironman_crawler import (
    IronmanCrawler,
    DEFAULT_BASE_URL,
    count_pages,
    parse_listing_entries,
    parse_article_detail,
    parse_subscriber_count,
    clean_title
)

__all__ = [
    'BaseCrawler',
    'HTTPClient',
    'RateLimitConfig',
    'RetryConfig',
    'RateLimiter',
    'UserAgentRotator',
    'IronmanCrawler',
    'DEFAULT_BASE_URL',
    'count_pages',
    'parse_listing_entries',
    'parse_article_detail',
    'parse_subscriber_count',
    'clean_title'
]
