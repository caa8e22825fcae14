"""
Tests for the pagination state machine
"""

import asyncio
import logging

import pytest

from scholar_scraper.crawler import CrawlController
from scholar_scraper.errors import FetchError, WriteError
from scholar_scraper.fetch import Collector, LimitRule, RateLimiter
from scholar_scraper.fetch.response import Request, Response
from scholar_scraper.storage import ResultSink

from conftest import (FakeCollector, listing_page, local_site, page_href, page_url, read_rows,
                      result_block)


def crawl(pages, output_csv, term="x", max_pages=100, sink_class=ResultSink, start=None):
    async def scenario():
        with sink_class(output_csv) as sink:
            sink.write_header()
            async with FakeCollector(pages) as collector:
                controller = CrawlController(collector, sink)
                totals = await controller.run(start or page_url(0), term, max_pages)
                return totals, controller, collector

    totals, controller, collector = asyncio.run(scenario())
    return totals, controller, collector, read_rows(output_csv)[1:]


def chain(count, blocks_per_page=None, endless=False):
    """count listing pages linked by Next; the last links on only if endless"""
    pages = {}
    for i in range(count):
        blocks = (blocks_per_page or {}).get(i, [])
        has_next = endless or i < count - 1
        pages[page_url(i)] = listing_page(blocks, next_href=page_href(i + 1) if has_next else None)
    return pages


def test_crawl_stops_when_last_page_has_no_next_link(output_csv):
    (total, visited), controller, collector, _ = crawl(chain(3), output_csv, max_pages=100)

    assert collector.requested == [page_url(0), page_url(1), page_url(2)]
    assert visited == 3
    assert controller.state.current_page_index == 2


def test_crawl_respects_page_cap(output_csv):
    pages = chain(5, endless=True)
    (total, visited), controller, collector, _ = crawl(pages, output_csv, max_pages=2)

    assert collector.requested == [page_url(0), page_url(1)]
    assert visited == 2
    assert controller.state.current_page_index == 1


def test_single_page_cap_never_follows_next(output_csv):
    (_, visited), _, collector, _ = crawl(chain(3), output_csv, max_pages=1)
    assert collector.requested == [page_url(0)]
    assert visited == 1


def test_records_written_in_page_then_document_order(output_csv):
    blocks = {
        0: [result_block(title="x A"), result_block(title="x B")],
        1: [result_block(title="x C")],
    }
    (total, visited), _, _, rows = crawl(chain(2, blocks), output_csv)

    assert [(row[0], row[-1]) for row in rows] == [("x A", "1"), ("x B", "1"), ("x C", "2")]
    assert total == 3
    assert visited == 2


def test_filter_keeps_only_matching_records(output_csv):
    blocks = {0: [
        result_block(title="Deep Learning", snippet="survey"),
        result_block(title="Trees", snippet="an ensemble of deep forests"),
        result_block(title="Cooking", snippet="pasta"),
    ]}
    (total, _), controller, _, rows = crawl(chain(1, blocks), output_csv, term="DEEP")

    assert [row[0] for row in rows] == ["Deep Learning", "Trees"]
    assert total == 2
    assert controller.state.total_match_count == len(rows)


def test_blocks_without_title_and_snippet_are_discarded(output_csv):
    blocks = {0: [
        result_block(authors="x - Nowhere - 2020"),
        result_block(title="x kept"),
    ]}
    (total, _), _, _, rows = crawl(chain(1, blocks), output_csv)
    assert [row[0] for row in rows] == ["x kept"]
    assert total == 1


def test_previous_link_does_not_advance(output_csv):
    pages = {
        page_url(0): listing_page([], previous_href=page_href(5)),
        page_url(5): listing_page([]),
    }
    (_, visited), controller, collector, _ = crawl(pages, output_csv)

    assert collector.requested == [page_url(0)]
    assert controller.state.current_page_index == 0
    assert visited == 1


def test_duplicate_next_links_advance_once(output_csv):
    pager = (
        '<div id="gs_n"><table><tr>'
        f'<td><a href="{page_href(1)}">Next</a></td>'
        f'<td><a href="{page_href(2)}">Next</a></td>'
        '</tr></table></div>'
    )
    pages = {
        page_url(0): f'<html><body>{result_block(title="x A")}{pager}</body></html>',
        page_url(1): listing_page([result_block(title="x B")]),
        page_url(2): listing_page([result_block(title="x C")]),
    }
    (total, visited), controller, collector, rows = crawl(pages, output_csv)

    assert collector.requested == [page_url(0), page_url(1)]
    assert [row[-1] for row in rows] == ["1", "2"]
    assert controller.state.current_page_index == 1


def test_page_counters_reset_per_page(output_csv):
    blocks = {0: [result_block(title="x A"), result_block(title="x B")], 1: [result_block(title="x C")]}
    _, controller, _, _ = crawl(chain(2, blocks), output_csv)
    assert controller.state.per_page_match_count == 1
    assert controller.state.total_match_count == 3


def test_scraped_handler_is_idempotent_per_page(output_csv, caplog):
    _, controller, _, _ = crawl(chain(1, {0: [result_block(title="x A")]}), output_csv)
    response = Response(request=Request(url=page_url(0), ctx={'page': 0}), status_code=200)

    caplog.clear()
    with caplog.at_level(logging.INFO):
        controller.handle_scraped(response)
        controller.handle_scraped(response)

    assert controller.state.pages_visited == 1
    assert controller.state.total_match_count == 1
    assert "results up to page" not in caplog.text


def test_initial_fetch_failure_is_fatal(output_csv):
    with pytest.raises(FetchError):
        crawl({page_url(0): 500}, output_csv)


def test_initial_fetch_failure_is_logged_once(output_csv, caplog):
    with caplog.at_level(logging.INFO), pytest.raises(FetchError):
        crawl({page_url(0): 500}, output_csv)

    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert "Request failed on URL" in errors[0].getMessage()
    assert "Failed to start scraping" not in caplog.text


def test_initial_visit_rejection_is_fatal(output_csv):
    with pytest.raises(FetchError):
        crawl({}, output_csv, start="https://example.com/scholar?q=x")


def test_later_fetch_failure_ends_run_without_error(output_csv):
    pages = chain(3, {0: [result_block(title="x A")], 2: [result_block(title="x C")]})
    pages[page_url(1)] = 500

    (total, visited), controller, collector, rows = crawl(pages, output_csv)

    assert collector.requested == [page_url(0), page_url(1)]
    assert [row[0] for row in rows] == ["x A"]
    assert total == 1
    assert visited == 1
    # the advance to the failed page is kept
    assert controller.state.current_page_index == 1


class FlakySink(ResultSink):
    """Fails to write any record whose title contains 'bad'"""

    def write_record(self, record):
        if "bad" in record.title:
            raise WriteError("disk full")
        super().write_record(record)


def test_write_failure_drops_row_and_continues(output_csv):
    blocks = {0: [result_block(title="x good"), result_block(title="x bad")], 1: [result_block(title="x later")]}
    (total, visited), controller, _, rows = crawl(chain(2, blocks), output_csv, sink_class=FlakySink)

    assert [row[0] for row in rows] == ["x good", "x later"]
    assert total == 2
    assert visited == 2


def test_undecodable_later_page_ends_run_without_error(output_csv):
    async def scenario(base):
        with ResultSink(output_csv) as sink:
            sink.write_header()
            collector = Collector(allowed_domains=["127.0.0.1"],
                                  rate_limiter=RateLimiter([LimitRule("*", parallelism=1)]))
            async with collector:
                controller = CrawlController(collector, sink)
                return await controller.run(f"{base}/scholar?q=x", "x", 100)

    async def served():
        pages = {
            "/scholar": (200, listing_page([result_block(title="x A")], next_href="/p1")),
            "/p1": (200, b"<html>\xff\xfe bad \xc3</html>"),
        }
        async with local_site(pages) as base:
            return await scenario(base)

    assert asyncio.run(served()) == (1, 1)
    assert [row[0] for row in read_rows(output_csv)[1:]] == ["x A"]
