"""
Text and JSON renderers for ranked article tables.
"""

import json
import unicodedata
from typing import List

from ironman_ranking.data.models import ArticleRecord
from ironman_ranking.utils.errors import ConfigurationError


DEFAULT_TITLE_WRAP_WIDTH = 119


def display_width(text: str) -> int:
    """Terminal column width of ``text``; wide CJK characters count as two."""
    return sum(2 if unicodedata.east_asian_width(char) in ("W", "F") else 1 for char in text)


def pad(text: str, width: int) -> str:
    return text + " " * (width - display_width(text))


def wrap_title(title: str, width: int = DEFAULT_TITLE_WRAP_WIDTH) -> List[str]:
    """Break a long title into chunks of at most ``width`` characters."""
    if width <= 0 or len(title) <= width:
        return [title]
    return [title[i:i + width] for i in range(0, len(title), width)]


class TableRenderer:
    """
    Plain-text table with a subscriber column and a topic column.

    Every row is boxed; the topic cell holds the title, a blank line and
    the article URL.
    """

    def __init__(self, title_wrap_width: int = DEFAULT_TITLE_WRAP_WIDTH):
        self.title_wrap_width = title_wrap_width

    def render(self, group: str, records: List[ArticleRecord]) -> str:
        header = ["訂閱數", f"主題（{group}）"]
        rows = [self._row_cells(record) for record in records]

        widths = [display_width(cell) for cell in header]
        for row in rows:
            for column, lines in enumerate(row):
                widths[column] = max([widths[column]] + [display_width(line) for line in lines])

        separator = "+" + "+".join("-" * (width + 2) for width in widths) + "+"
        lines = [separator, self._format_line(header, widths), separator]
        for row in rows:
            height = max(len(cell) for cell in row)
            for index in range(height):
                cells = [cell[index] if index < len(cell) else "" for cell in row]
                lines.append(self._format_line(cells, widths))
            lines.append(separator)
        return "\n".join(lines) + "\n"

    def _row_cells(self, record: ArticleRecord) -> List[List[str]]:
        count_cell = ["", str(record.subscriber_count).center(4)]
        topic_cell = wrap_title(record.title, self.title_wrap_width) + ["", record.url]
        return [count_cell, topic_cell]

    def _format_line(self, cells: List[str], widths: List[int]) -> str:
        return "| " + " | ".join(pad(cell, width) for cell, width in zip(cells, widths)) + " |"


class JSONRenderer:
    """JSON document with the group label and its ranked articles."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    def render(self, group: str, records: List[ArticleRecord]) -> str:
        document = {
            "group": group,
            "articles": [record.to_dict() for record in records]
        }
        return json.dumps(document, ensure_ascii=False, indent=self.indent) + "\n"


def create_renderer(output_format: str, title_wrap_width: int = DEFAULT_TITLE_WRAP_WIDTH):
    """
    Build a renderer by name.

    Raises:
        ConfigurationError: If the format is unknown
    """
    if output_format == "table":
        return TableRenderer(title_wrap_width=title_wrap_width)
    if output_format == "json":
        return JSONRenderer()
    raise ConfigurationError(
        f"Unknown output format: {output_format}",
        {"available_formats": ["table", "json"]}
    )
