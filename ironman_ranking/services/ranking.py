"""
Ranking of aggregated articles by subscriber count.
"""

from dataclasses import dataclass
from typing import Iterable, List

from ironman_ranking.data.models import ArticleRecord
from ironman_ranking.utils.logging import get_business_logger


DEFAULT_MIN_SUBSCRIBERS = 10


def rank_articles(records: Iterable[ArticleRecord]) -> List[ArticleRecord]:
    """
    Sort records by subscriber count, highest first.

    The sort is stable: records with equal counts keep their relative order.
    """
    return sorted(records, key=lambda record: record.subscriber_count, reverse=True)


def filter_for_presentation(records: Iterable[ArticleRecord],
                            min_subscribers: int = DEFAULT_MIN_SUBSCRIBERS) -> List[ArticleRecord]:
    """Records worth showing; the input sequence is left untouched."""
    return [record for record in records if record.subscriber_count >= min_subscribers]


@dataclass
class RankedGroup:
    """Ranked records for one group plus the subset that gets rendered."""
    group: str
    ranked: List[ArticleRecord]
    rendered: List[ArticleRecord]
    output: str


class RankAndRender:
    """Sort a group's collection, filter it for display and hand it to a renderer."""

    def __init__(self, renderer, min_subscribers: int = DEFAULT_MIN_SUBSCRIBERS):
        """
        Args:
            renderer: Object with ``render(group, records) -> str``
            min_subscribers: Records below this count are not rendered
        """
        self.renderer = renderer
        self.min_subscribers = min_subscribers
        self.logger = get_business_logger('ranking')

    def run(self, group: str, records: Iterable[ArticleRecord]) -> RankedGroup:
        ranked = rank_articles(records)
        rendered = filter_for_presentation(ranked, self.min_subscribers)
        self.logger.info(
            f"Ranked group {group}: {len(ranked)} records, {len(rendered)} with >= {self.min_subscribers} subscribers"
        )
        return RankedGroup(
            group=group,
            ranked=ranked,
            rendered=rendered,
            output=self.renderer.render(group, rendered)
        )
