"""
Data models for the ironman ranking crawler.
"""

import threading
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, Any, List, Optional

from ironman_ranking.utils.errors import ValidationError, CrawlerError


@dataclass(frozen=True)
class ArticleRecord:
    """One contestant's article series with its subscriber count."""
    title: str
    url: str
    subscriber_count: int

    def __post_init__(self):
        """Validate record after initialization."""
        if self.subscriber_count < 0:
            raise ValidationError(
                "subscriber_count must be non-negative",
                {"url": self.url, "subscriber_count": self.subscriber_count}
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class ListingEntry:
    """A contestant row read from a listing page."""
    url: str
    failed: bool = False


@dataclass(frozen=True)
class FetchOutcome:
    """Result of fetching one article reference: a record or an error, never both."""
    reference: str
    record: Optional[ArticleRecord] = None
    error: Optional[CrawlerError] = None

    def __post_init__(self):
        if (self.record is None) == (self.error is None):
            raise ValidationError(
                "FetchOutcome needs exactly one of record or error",
                {"reference": self.reference}
            )

    @property
    def success(self) -> bool:
        return self.record is not None

    @classmethod
    def succeeded(cls, reference: str, record: ArticleRecord) -> "FetchOutcome":
        return cls(reference=reference, record=record)

    @classmethod
    def failed(cls, reference: str, error: CrawlerError) -> "FetchOutcome":
        return cls(reference=reference, error=error)


@dataclass
class StageStats:
    """Counters describing what one pipeline stage did for a group."""
    pages_expected: int = 0
    pages_fetched: int = 0
    pages_failed: int = 0
    entries_seen: int = 0
    entries_skipped_failed: int = 0
    references_published: int = 0
    references_consumed: int = 0
    articles_fetched: int = 0
    articles_failed: int = 0
    empty_references_skipped: int = 0
    errors: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, name: str, amount: int = 1) -> None:
        """Atomically increment a counter field."""
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)

    def record_error(self, message: str) -> None:
        """Atomically remember an error message."""
        with self._lock:
            self.errors.append(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert counters to a dictionary."""
        with self._lock:
            return {
                "pages_expected": self.pages_expected,
                "pages_fetched": self.pages_fetched,
                "pages_failed": self.pages_failed,
                "entries_seen": self.entries_seen,
                "entries_skipped_failed": self.entries_skipped_failed,
                "references_published": self.references_published,
                "references_consumed": self.references_consumed,
                "articles_fetched": self.articles_fetched,
                "articles_failed": self.articles_failed,
                "empty_references_skipped": self.empty_references_skipped,
                "error_count": len(self.errors),
            }


@dataclass
class GroupReport:
    """Everything produced by one group's pipeline run."""
    group: str
    records: List[ArticleRecord]
    rendered: List[ArticleRecord]
    discovery_stats: StageStats
    detail_stats: StageStats
    started_at: datetime
    completed_at: Optional[datetime] = None
    output: str = ""

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def summary(self) -> Dict[str, Any]:
        """Flat summary used for logging."""
        return {
            "group": self.group,
            "records": len(self.records),
            "rendered": len(self.rendered),
            "duration_seconds": self.duration_seconds,
            **{f"discovery_{k}": v for k, v in self.discovery_stats.to_dict().items()},
            **{f"detail_{k}": v for k, v in self.detail_stats.to_dict().items()},
        }
