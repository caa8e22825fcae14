"""
Data models - bibliographic records and per-run crawl state
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set

from .config import CSV_HEADERS
from .errors import FetchError

UNKNOWN_COUNT = 0


@dataclass(frozen=True)
class Record:
    """A single search result extracted from a listing page"""
    title: str
    snippet: str
    link: str
    authors: str
    date: str
    doi: str
    journal: str
    cited_by: int = UNKNOWN_COUNT
    all_versions: int = UNKNOWN_COUNT
    page: int = 1  # 1-based listing page

    def is_empty(self) -> bool:
        """True for malformed blocks carrying neither title nor snippet"""
        return not self.title and not self.snippet

    def matches(self, term: str) -> bool:
        """Case-insensitive substring match against title or snippet"""
        needle = term.lower()
        return needle in self.title.lower() or needle in self.snippet.lower()

    def to_csv_row(self) -> List[str]:
        """Convert to CSV row format."""
        return [
            self.title,
            self.snippet,
            self.link,
            self.authors,
            self.date,
            self.doi,
            self.journal,
            str(self.cited_by),
            str(self.all_versions),
            str(self.page),
        ]

    @staticmethod
    def csv_headers() -> List[str]:
        """Return CSV column headers."""
        return list(CSV_HEADERS)


@dataclass
class CrawlState:
    """Mutable counters for one crawl run.

    Only the controller's collector callbacks touch these fields. The
    collector keeps one request in flight for the target domain, so the
    callbacks never overlap and no lock is held around the state. Raising
    the domain parallelism above 1 requires guarding this object.
    """
    current_page_index: int = 0
    per_page_match_count: int = 0
    total_match_count: int = 0
    last_logged_page: int = -1
    scraped_pages: Set[int] = field(default_factory=set)
    fatal_error: Optional[FetchError] = None

    @property
    def pages_visited(self) -> int:
        return len(self.scraped_pages)
