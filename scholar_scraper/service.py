"""
Scraper Service - wires URL building, output file, collector and controller
"""

import re
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import quote_plus

from .config import BASE_URL, DOMAIN_GLOB, RESULTS_PER_PAGE, ScraperConfig
from .crawler import CrawlController
from .fetch import Collector, LimitRule, RateLimiter, random_delay_policy
from .storage import ResultSink

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[^\w.-]+')


@dataclass
class ScrapeSummary:
    """Outcome of one scrape run"""
    term: str
    start_url: str
    output_path: Path
    total_matches: int
    pages_visited: int


def build_url(term: str, page: int, lang: str, sdt: str, base_url: str = BASE_URL) -> str:
    """Listing URL for a 0-based page of results"""
    return f"{base_url}?start={page * RESULTS_PER_PAGE}&q={quote_plus(term)}&hl={lang}&as_sdt={sdt}"


def build_output_path(output_dir: Path, term: str, now: Optional[datetime] = None) -> Path:
    """scrape-<term>-<YYYYmmdd-HHMMSS>.csv inside output_dir"""
    stamp = (now or datetime.now()).strftime('%Y%m%d-%H%M%S')
    safe_term = _UNSAFE_FILENAME_CHARS.sub('_', term).strip('_') or 'query'
    return Path(output_dir) / f"scrape-{safe_term}-{stamp}.csv"


class ScraperService:
    """Runs a complete scrape for one search term"""

    def __init__(self, config: ScraperConfig):
        self.config = config

    def create_output_file(self) -> Path:
        """Create the output directory and return the path for this run's CSV"""
        output_dir = Path(self.config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        return build_output_path(output_dir, self.config.term)

    def create_collector(self) -> Collector:
        rule = LimitRule(
            domain_glob=DOMAIN_GLOB,
            parallelism=1,
            delay=random_delay_policy(slow=self.config.slow)
        )
        return Collector(
            allowed_domains=self.config.allowed_domains,
            max_depth=self.config.max_depth,
            rate_limiter=RateLimiter([rule])
        )

    async def run(self) -> ScrapeSummary:
        """Scrape every listing page for the configured term.

        Raises:
            FetchError: the first listing page could not be fetched
            WriteError: the output header could not be written
        """
        config = self.config
        start_url = build_url(config.term, 0, config.lang, config.sdt)
        logger.info(f"Scraping URL: {start_url}")

        output_path = self.create_output_file()

        with ResultSink(output_path) as sink:
            sink.write_header()

            async with self.create_collector() as collector:
                controller = CrawlController(collector, sink)
                total_matches, pages_visited = await controller.run(
                    start_url, config.term, config.max_pages
                )

        logger.info(
            f"Scrape complete. It navigated through {pages_visited} pages "
            f"and found {total_matches} results. The results were saved to a CSV file: {output_path}"
        )
        return ScrapeSummary(
            term=config.term,
            start_url=start_url,
            output_path=output_path,
            total_matches=total_matches,
            pages_visited=pages_visited
        )
