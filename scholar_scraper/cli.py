"""Command line entry point for the Scholar scraper."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .config import DEFAULT_LANG, DEFAULT_SDT, MAX_PAGES, SDT_CHOICES, ScraperConfig
from .errors import FetchError, StartupError, WriteError
from .monitoring import LogManager
from .service import ScraperService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    sdt_help = ", ".join(f"{code}={label}" for code, label in SDT_CHOICES.items())
    parser = argparse.ArgumentParser(
        prog="scholar-scraper",
        description="Scrape Google Scholar search results into a CSV file"
    )
    parser.add_argument(
        "-query", "--query",
        dest="query",
        default="",
        help="Search term for Google Scholar (required)",
    )
    parser.add_argument(
        "-lang", "--lang",
        dest="lang",
        default=DEFAULT_LANG,
        help=f"Language (default: {DEFAULT_LANG})",
    )
    parser.add_argument(
        "-sdt", "--sdt",
        dest="sdt",
        default=DEFAULT_SDT,
        choices=list(SDT_CHOICES),
        help=f"Scholar document type ({sdt_help})",
    )
    parser.add_argument(
        "-slow", "--slow",
        dest="slow",
        action="store_true",
        help="Enable 'slow mode', lower request rate for extra caution",
    )
    parser.add_argument(
        "-max-pages", "--max-pages",
        dest="max_pages",
        type=int,
        default=MAX_PAGES,
        help=f"Maximum number of listing pages to visit (default: {MAX_PAGES})",
    )
    parser.add_argument(
        "-log-level", "--log-level",
        dest="log_level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser


def parse_args(argv: Optional[List[str]] = None) -> ScraperConfig:
    """Parse command line arguments into a ScraperConfig.

    Raises:
        StartupError: no search term was given
    """
    args = build_parser().parse_args(argv)
    term = args.query.strip()
    if not term:
        raise StartupError("Please provide a search term using -query flag followed by a search term (word)")
    if args.max_pages < 1:
        raise StartupError("-max-pages must be at least 1")

    return ScraperConfig(
        term=term,
        lang=args.lang,
        sdt=args.sdt,
        slow=args.slow,
        max_pages=args.max_pages,
        log_level=args.log_level,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Run the scraper; returns the process exit status"""
    try:
        config = parse_args(argv)
    except StartupError as e:
        LogManager(log_level="INFO")
        logger.error(f"Error: {e}")
        return 1

    LogManager(log_dir=config.log_dir, log_level=config.log_level)

    try:
        asyncio.run(ScraperService(config).run())
    except (FetchError, WriteError) as e:
        logger.error(f"Scrape aborted: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Scraper stopped by user")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
