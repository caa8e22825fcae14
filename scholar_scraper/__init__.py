"""
Scholar Scraper - paginated Google Scholar listing crawler with CSV output
"""

from .config import ScraperConfig, Selectors
from .errors import FetchError, ScraperError, StartupError, WriteError
from .models import CrawlState, Record
from .service import ScrapeSummary, ScraperService

__all__ = [
    'ScraperConfig',
    'Selectors',
    'FetchError',
    'ScraperError',
    'StartupError',
    'WriteError',
    'CrawlState',
    'Record',
    'ScrapeSummary',
    'ScraperService'
]
