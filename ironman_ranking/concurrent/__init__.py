"""
Concurrent crawl pipeline.

Main Components:
- URLDiscoveryStage: fan-out listing page fetches into one closable stream
- ArticleDetailStage: fan-out article fetches into one lock-guarded list
- ClosableQueue / ThreadSafeList: shared stream and collection primitives
"""

from .thread_safe import (
    ClosableQueue,
    ThreadSafeList
)

from .pipeline import (
    URLDiscoveryStage,
    ArticleDetailStage,
    DiscoveryRun,
    DetailResult
)

__all__ = [
    # Thread-safe utilities
    'ClosableQueue',
    'ThreadSafeList',

    # Pipeline stages
    'URLDiscoveryStage',
    'ArticleDetailStage',
    'DiscoveryRun',
    'DetailResult'
]
