"""Configuration constants for the Scholar scraper."""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

# Target site
BASE_URL = "https://scholar.google.com/scholar"
ALLOWED_DOMAIN = "scholar.google.com"
DOMAIN_GLOB = "*scholar.google.com*"


@dataclass(frozen=True)
class Selectors:
    """CSS selectors for the parts of a result listing"""
    body: str = ".gs_r"
    title: str = ".gs_rt"
    snippet: str = ".gs_rs"
    link: str = ".gs_rt a"
    authors: str = ".gs_a"
    action_links: str = ".gs_fl a"
    next: str = "#gs_n td a"


SELECTORS = Selectors()

CSV_HEADERS = [
    "Title",
    "Snippet",
    "Link",
    "Authors",
    "Date",
    "DOI",
    "Journal",
    "Cited by",
    "All versions",
    "Page",
]

# Crawl limits
MAX_PAGES = 100
MAX_DEPTH = 100
RESULTS_PER_PAGE = 10

# Randomized delay ranges in seconds (inclusive)
DELAY_RANGE = (1, 5)
SLOW_DELAY_RANGE = (6, 15)

REQUEST_TIMEOUT = 30
USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)

DEFAULT_LANG = "en"
DEFAULT_SDT = "0,5"
SDT_CHOICES: Dict[str, str] = {
    "0,5": "All",
    "0,33": "Articles",
    "1,5": "Case law",
    "0": "No patents",
    "2": "Patents only",
}

OUTPUT_DIRNAME = "output"
LOG_DIRNAME = "logs"


def program_dir() -> Path:
    """Directory holding the running program"""
    if sys.argv and sys.argv[0]:
        return Path(sys.argv[0]).resolve().parent
    return Path.cwd()


@dataclass
class ScraperConfig:
    """Settings for one scrape run"""
    term: str
    lang: str = DEFAULT_LANG
    sdt: str = DEFAULT_SDT
    slow: bool = False
    max_pages: int = MAX_PAGES
    max_depth: int = MAX_DEPTH
    output_dir: Optional[Path] = None
    allowed_domains: List[str] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if self.output_dir is None:
            self.output_dir = program_dir() / OUTPUT_DIRNAME
        if self.allowed_domains is None:
            self.allowed_domains = [ALLOWED_DOMAIN]

    @property
    def log_dir(self) -> Path:
        return self.output_dir / LOG_DIRNAME
