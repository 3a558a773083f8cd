"""
Ranking and rendering services.
"""

from .ranking import RankAndRender, RankedGroup, rank_articles, filter_for_presentation
from .report_renderer import TableRenderer, JSONRenderer, create_renderer

__all__ = [
    'RankAndRender',
    'RankedGroup',
    'rank_articles',
    'filter_for_presentation',
    'TableRenderer',
    'JSONRenderer',
    'create_renderer'
]
