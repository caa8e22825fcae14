"""
Crawl Controller - follows the "Next" link chain of a result listing
"""

import logging
from typing import Optional, Tuple

from ..config import MAX_PAGES, SELECTORS, Selectors
from ..errors import FetchError, WriteError
from ..extractor import extract_record
from ..fetch import Collector, HTMLElement, Request, Response
from ..models import CrawlState
from ..storage import ResultSink

logger = logging.getLogger(__name__)

PAGE_KEY = 'page'
NEXT_MARKER = "Next"


class CrawlController:
    """
    Drives one paginated crawl over a collector.

    Pages advance only through a qualifying "Next" link; a page without one,
    or a cap on the page count, ends the crawl. Matching records are written
    to the sink as their blocks are parsed.
    """

    def __init__(self, collector: Collector, sink: ResultSink, selectors: Selectors = SELECTORS):
        self.collector = collector
        self.sink = sink
        self.selectors = selectors
        self.state = CrawlState()
        self.term = ""
        self.max_pages = MAX_PAGES

    async def run(self, start_url: str, term: str, max_pages: int = MAX_PAGES) -> Tuple[int, int]:
        """Crawl from start_url until the chain ends or max_pages pages were visited.

        Returns:
            (total matches written, pages visited)

        Raises:
            FetchError: the first page could not be fetched
        """
        self.term = term
        self.max_pages = max_pages
        self.state = CrawlState()

        self.collector.on_html(self.selectors.body, self.handle_result)
        self.collector.on_html(self.selectors.next, self.handle_next)
        self.collector.on_scraped(self.handle_scraped)
        self.collector.on_error(self.handle_error)

        # callers log a raised FetchError
        self.collector.visit(start_url, ctx={PAGE_KEY: 0})
        await self.collector.wait()

        if self.state.fatal_error is not None:
            raise self.state.fatal_error

        logger.info(f"Total results found: {self.state.total_match_count}")
        return self.state.total_match_count, self.state.pages_visited

    def handle_result(self, element: HTMLElement):
        """Extract, filter and persist one result block"""
        state = self.state
        record = extract_record(element, state.current_page_index + 1, self.selectors)

        if record.is_empty():
            return
        if not record.matches(self.term):
            return

        try:
            self.sink.write_record(record)
        except WriteError as e:
            logger.error(f"Failed to write CSV record: {e}")
            return

        state.per_page_match_count += 1
        state.total_match_count += 1

    def handle_next(self, element: HTMLElement):
        """Advance to the next listing page if this link qualifies"""
        state = self.state
        if NEXT_MARKER not in element.text:
            return

        # a page advances at most once
        if _page_of(element.request) != state.current_page_index:
            return

        if state.current_page_index + 1 >= self.max_pages:
            logger.info(f"Page limit of {self.max_pages} reached, not following next link")
            return

        if state.last_logged_page != state.current_page_index:
            logger.info(
                f"Page {state.current_page_index + 1} scraped. "
                f"{state.per_page_match_count} matches on page, {state.total_match_count} total"
            )
            state.last_logged_page = state.current_page_index

        next_page = element.attr('href')
        state.per_page_match_count = 0
        state.current_page_index += 1
        logger.info(f"Navigating to page {state.current_page_index + 1}...")

        try:
            element.request.visit(next_page, ctx={PAGE_KEY: state.current_page_index})
        except FetchError as e:
            logger.error(f"Error visiting next page: {e}")

    def handle_scraped(self, response: Response):
        state = self.state
        page = _page_of(response.request)
        if page is None:
            page = state.current_page_index
        state.scraped_pages.add(page)

        if state.last_logged_page != page:
            state.last_logged_page = page
            logger.info(f"Found {state.total_match_count} results up to page {page + 1}")

    def handle_error(self, request: Request, error: FetchError):
        logger.error(f"Request failed on URL: {request.url}, Error: {error}")
        if _page_of(request) == 0:
            self.state.fatal_error = error


def _page_of(request: Request) -> Optional[int]:
    return request.ctx.get(PAGE_KEY)
