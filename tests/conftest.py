"""
Shared fixtures: a collector serving canned listing pages and a local HTTP site
"""

import csv
import socket
from contextlib import asynccontextmanager
from html import escape
from typing import Dict, List, Optional, Tuple, Union

import pytest
from aiohttp import web

from scholar_scraper.errors import FetchError
from scholar_scraper.fetch import Collector, LimitRule, RateLimiter
from scholar_scraper.fetch.response import Request, Response

BASE = "https://scholar.google.com/scholar"

PageValue = Union[str, int, Exception]


def page_url(index: int, term: str = "x") -> str:
    return f"{BASE}?start={index * 10}&q={term}"


def page_href(index: int, term: str = "x") -> str:
    """Relative link as it appears in the pager"""
    return f"/scholar?start={index * 10}&q={term}"


def result_block(title: str = "", snippet: str = "", link: str = "",
                 authors: str = "", actions: Optional[List[str]] = None) -> str:
    title_html = f'<a href="{escape(link)}">{escape(title)}</a>' if link else escape(title)
    action_html = "".join(f'<a href="#">{escape(a)}</a>' for a in (actions or []))
    return (
        '<div class="gs_r gs_or gs_scl">'
        '<div class="gs_ri">'
        f'<h3 class="gs_rt">{title_html}</h3>'
        f'<div class="gs_a">{escape(authors)}</div>'
        f'<div class="gs_rs">{escape(snippet)}</div>'
        f'<div class="gs_fl">{action_html}</div>'
        '</div></div>'
    )


def listing_page(blocks: List[str], next_href: Optional[str] = None,
                 previous_href: Optional[str] = None) -> str:
    pager = ""
    if next_href or previous_href:
        cells = []
        if previous_href:
            cells.append(f'<td><a href="{escape(previous_href)}"><b>Previous</b></a></td>')
        cells.append('<td><b>1</b></td>')
        if next_href:
            cells.append(f'<td><a href="{escape(next_href)}"><b>Next</b></a></td>')
        pager = f'<div id="gs_n"><table><tr>{"".join(cells)}</tr></table></div>'
    return f'<html><body><div id="gs_res_ccl_mid">{"".join(blocks)}</div>{pager}</body></html>'


class FakeCollector(Collector):
    """Collector whose fetches are answered from a dict of url -> page.

    A str value is served as a 200 page, an int as a bodyless response with
    that status, an exception as a transport failure. Unknown URLs fail like
    an unreachable host.
    """

    def __init__(self, pages: Dict[str, PageValue], **kwargs):
        kwargs.setdefault('allowed_domains', ['scholar.google.com'])
        kwargs.setdefault('max_depth', 100)
        kwargs.setdefault('rate_limiter', RateLimiter([LimitRule('*scholar.google.com*', parallelism=1)]))
        super().__init__(**kwargs)
        self.pages = pages
        self.requested: List[str] = []

    async def _fetch(self, request: Request) -> Response:
        self.requested.append(request.url)
        value = self.pages.get(request.url)
        if value is None:
            raise FetchError("Connection refused", url=request.url)
        if isinstance(value, Exception):
            raise FetchError(str(value), url=request.url, cause=value)
        if isinstance(value, int):
            return Response(request=request, status_code=value)
        return Response(request=request, status_code=200, body=value)


def read_rows(path) -> List[List[str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


@pytest.fixture
def output_csv(tmp_path):
    return tmp_path / "out" / "results.csv"


SitePage = Tuple[int, Union[str, bytes]]


def unused_port() -> int:
    """A local port with nothing listening on it"""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@asynccontextmanager
async def local_site(pages: Dict[str, SitePage]):
    """Serve path -> (status, body) over real HTTP on 127.0.0.1; yields the base URL.

    Bodies are sent as-is with a utf-8 charset header, undecodable bytes included.
    """
    async def handle(request):
        status, body = pages.get(request.path, (404, ""))
        if isinstance(body, str):
            body = body.encode("utf-8")
        return web.Response(status=status, body=body,
                            headers={"Content-Type": "text/html; charset=utf-8"})

    app = web.Application()
    app.router.add_get("/{tail:.*}", handle)
    runner = web.AppRunner(app)
    await runner.setup()

    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    site = web.SockSite(runner, sock)
    await site.start()
    try:
        yield f"http://127.0.0.1:{sock.getsockname()[1]}"
    finally:
        await runner.cleanup()
