"""
Data models for crawled contest articles.
"""

from .models import ArticleRecord, ListingEntry, FetchOutcome, StageStats, GroupReport

__all__ = [
    'ArticleRecord',
    'ListingEntry',
    'FetchOutcome',
    'StageStats',
    'GroupReport'
]
