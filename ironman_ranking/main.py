"""
Main application entry point for the ironman ranking crawler.
"""

import sys
import argparse
import threading
from datetime import datetime
from typing import Optional, List, TextIO

from ironman_ranking.concurrent.pipeline import URLDiscoveryStage, ArticleDetailStage
from ironman_ranking.crawlers.base import BaseCrawler
from ironman_ranking.crawlers.ironman_crawler import IronmanCrawler
from ironman_ranking.data.models import GroupReport, StageStats
from ironman_ranking.services.ranking import RankAndRender
from ironman_ranking.services.report_renderer import create_renderer
from ironman_ranking.utils.errors import ConfigurationError, handle_error
from ironman_ranking.utils.logging import (
    setup_logging,
    get_logger,
    get_structured_logger,
    log_business_operation
)
from config import ConfigManager, SystemConfig


logger = get_logger(__name__)


class IronmanRankingApp:
    """Runs the crawl pipeline for each configured group, one group at a time."""

    def __init__(self, config: SystemConfig, crawler: Optional[BaseCrawler] = None,
                 output: Optional[TextIO] = None):
        """
        Initialize the application.

        Args:
            config: System configuration; its group list drives the run
            crawler: Crawler to use; built from the crawler config when omitted
            output: Stream rendered tables are written to (stdout by default)
        """
        self.config = config
        self.output = output if output is not None else sys.stdout
        self.shutdown_event = threading.Event()

        self._owns_crawler = crawler is None
        self.crawler = crawler or IronmanCrawler(config=config.crawler.to_crawler_options())

        workers = config.crawler.max_workers
        self.discovery_stage = URLDiscoveryStage(self.crawler, max_workers=workers,
                                                 shutdown_event=self.shutdown_event)
        self.detail_stage = ArticleDetailStage(self.crawler, max_workers=workers,
                                               shutdown_event=self.shutdown_event)
        self.rank_and_render = RankAndRender(
            create_renderer(config.ranking.output_format, config.ranking.title_wrap_width),
            min_subscribers=config.ranking.min_subscribers
        )
        self.summary_logger = get_structured_logger(__name__)

    @log_business_operation('system', 'ranking run')
    def run(self) -> List[GroupReport]:
        """Run every group in order; a failing group does not stop the others."""
        reports = []
        for group in self.config.ranking.groups:
            if self.shutdown_event.is_set():
                logger.warning("Shutdown requested, skipping remaining groups")
                break
            try:
                reports.append(self.run_group(group))
            except Exception as e:
                handle_error(e, logger, {"group": group}, reraise=False)
        return reports

    def run_group(self, group: str) -> GroupReport:
        """Discover, fetch, rank and render one group."""
        started_at = datetime.now()

        discovery = self.discovery_stage.start(group)
        detail = self.detail_stage.run(discovery.stream)
        # The stream is closed, so the coordinator is finishing up
        discovery.join()

        ranked = self.rank_and_render.run(group, detail.records)
        self.output.write(ranked.output)
        self.output.flush()

        report = GroupReport(
            group=group,
            records=ranked.ranked,
            rendered=ranked.rendered,
            discovery_stats=discovery.stats,
            detail_stats=detail.stats,
            started_at=started_at,
            completed_at=datetime.now(),
            output=ranked.output
        )
        self._log_summary(report)
        return report

    def _log_summary(self, report: GroupReport) -> None:
        summary = report.summary()
        failures = (summary["discovery_pages_failed"] + summary["detail_articles_failed"]
                    + summary["detail_empty_references_skipped"])
        if failures:
            logger.warning(f"Group {report.group} finished with {failures} skipped or failed item(s)")
        if summary["discovery_pages_expected"] and not summary["discovery_pages_fetched"]:
            logger.error(f"Group {report.group}: no listing page could be fetched, table is empty")
        self.summary_logger.info("group_completed", **summary)

    def stop(self) -> None:
        """Ask in-flight stages to skip work that has not started yet."""
        self.shutdown_event.set()

    def cleanup(self) -> None:
        if self._owns_crawler:
            self.crawler.cleanup()


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="iThome 鐵人賽訂閱數排行",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ironman-ranking                                  # default groups
  ironman-ranking --groups web self --format json
  ironman-ranking --config config.json --workers 4 --min-subscribers 20
        """
    )

    parser.add_argument('--config', default="config.json",
                        help='Path to JSON configuration file (default: config.json)')
    parser.add_argument('--groups', nargs='+',
                        help='Groups to crawl, in order (overrides configuration)')
    parser.add_argument('--format', choices=['table', 'json'], dest='output_format',
                        help='Output format (default from configuration: table)')
    parser.add_argument('--min-subscribers', type=int,
                        help='Hide articles with fewer subscribers than this')

    crawl_group = parser.add_argument_group('crawl options')
    crawl_group.add_argument('--workers', type=int,
                             help='Concurrent fetches per stage (1-64)')
    crawl_group.add_argument('--timeout', type=float,
                             help='Per-request timeout in seconds (1-300)')

    log_group = parser.add_argument_group('logging options')
    log_group.add_argument('--log-file', help='Also write logs to this file (rotated daily)')
    log_group.add_argument('--verbose', action='store_true', help='Debug logging')
    log_group.add_argument('--quiet', action='store_true', help='Only log warnings and errors')

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SystemConfig:
    """
    Load configuration and apply command line overrides.

    Raises:
        ConfigurationError: If the file or an override is invalid
    """
    manager = ConfigManager(args.config)
    config = manager.load_config()

    if args.groups:
        config.ranking.groups = args.groups
    if args.output_format:
        config.ranking.output_format = args.output_format
    if args.min_subscribers is not None:
        config.ranking.min_subscribers = args.min_subscribers
    if args.workers is not None:
        config.crawler.max_workers = args.workers
    if args.timeout is not None:
        config.crawler.request_timeout = args.timeout
    if args.log_file:
        config.log_file = args.log_file
    if args.verbose:
        config.log_level = "DEBUG"
    elif args.quiet:
        config.log_level = "WARNING"

    # Overrides obey the same schema as the file
    manager.validate_config(manager.export_config())
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point."""
    args = parse_arguments(argv)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e.message} {e.details or ''}", file=sys.stderr)
        return 2

    setup_logging(config.log_level, config.log_file, config.log_retention_days)
    logger.info(f"Crawling groups: {', '.join(config.ranking.groups)}")

    app = IronmanRankingApp(config)
    try:
        app.run()
    except KeyboardInterrupt:
        app.stop()
        logger.warning("Interrupted by user")
        return 1
    finally:
        app.cleanup()

    return 0


if __name__ == "__main__":
    sys.exit(main())
