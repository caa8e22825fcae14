"""
Collector - asynchronous fetch layer with selector callbacks.

Visits are scheduled as asyncio tasks. Each task waits for its domain slot,
fetches the page, parses it with BeautifulSoup and fires, in order: every
on_html callback for every matching element (callbacks in registration
order, elements in document order), then the on_scraped callbacks. Transport
failures, undecodable bodies and non-200 responses go to the on_error
callbacks instead.
"""

import asyncio
import inspect
import time
import logging
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
from urllib.parse import urlparse

import aiohttp
from bs4 import BeautifulSoup

from ..config import REQUEST_TIMEOUT, USER_AGENT
from ..errors import ErrorType, FetchError
from .rate_limiter import RateLimiter
from .response import HTMLElement, Request, Response

logger = logging.getLogger(__name__)

HTMLCallback = Callable[[HTMLElement], Any]
ScrapedCallback = Callable[[Response], Any]
ErrorCallback = Callable[[Request, FetchError], Any]


class Collector:
    """Callback-driven crawler for a fixed set of domains"""

    def __init__(self, allowed_domains: Optional[List[str]] = None, max_depth: int = 0,
                 rate_limiter: Optional[RateLimiter] = None,
                 user_agent: str = USER_AGENT, timeout: float = REQUEST_TIMEOUT):
        self.allowed_domains: Set[str] = {d.lower() for d in (allowed_domains or [])}
        self.max_depth = max_depth  # 0 means unlimited
        self.rate_limiter = rate_limiter or RateLimiter()
        self.user_agent = user_agent
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

        self.visited: Set[str] = set()

        self._html_callbacks: List[Tuple[str, HTMLCallback]] = []
        self._scraped_callbacks: List[ScrapedCallback] = []
        self._error_callbacks: List[ErrorCallback] = []
        self._tasks: Set[asyncio.Task] = set()

    async def __aenter__(self) -> "Collector":
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        self.session = aiohttp.ClientSession(timeout=timeout, headers={'User-Agent': self.user_agent})
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._tasks:
            for task in self._tasks:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self.session:
            await self.session.close()
            self.session = None

    def on_html(self, selector: str, callback: HTMLCallback):
        """Call callback for every element matching selector on each page"""
        self._html_callbacks.append((selector, callback))
        return self

    def on_scraped(self, callback: ScrapedCallback):
        """Call callback once per page after all on_html callbacks ran"""
        self._scraped_callbacks.append(callback)
        return self

    def on_error(self, callback: ErrorCallback):
        """Call callback with the failed request and its FetchError"""
        self._error_callbacks.append(callback)
        return self

    def visit(self, url: str, ctx: Optional[Dict[str, Any]] = None, depth: int = 1) -> Request:
        """Schedule a visit to url.

        Raises:
            FetchError: url is malformed, outside the allowed domains, deeper
                than max_depth, or already visited. Nothing is scheduled.
        """
        self._check_url(url, depth)
        self.visited.add(url)

        request = Request(url=url, depth=depth, ctx=dict(ctx or {}), collector=self)
        task = asyncio.get_running_loop().create_task(self._process(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Scheduled {url} (depth {depth})")
        return request

    def _check_url(self, url: str, depth: int):
        parsed = urlparse(url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise FetchError("Missing or unsupported URL scheme", url=url,
                             error_type=ErrorType.REQUEST_REJECTED)

        domain = parsed.hostname or ""
        if self.allowed_domains and domain not in self.allowed_domains:
            raise FetchError(f"Forbidden domain {domain}", url=url,
                             error_type=ErrorType.REQUEST_REJECTED)

        if self.max_depth and depth > self.max_depth:
            raise FetchError(f"Max depth limit reached ({self.max_depth})", url=url,
                             error_type=ErrorType.REQUEST_REJECTED)

        if url in self.visited:
            raise FetchError("URL already visited", url=url,
                             error_type=ErrorType.REQUEST_REJECTED)

    async def wait(self):
        """Block until every scheduled visit, including ones scheduled meanwhile, is done"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def _process(self, request: Request):
        async with self.rate_limiter.slot(request.url):
            try:
                response = await self._fetch(request)
            except FetchError as error:
                logger.debug(f"Fetch failed for {request.url}: {error}")
                await self._fire_error(request, error)
                return

            self.rate_limiter.request_completed(request.url, response.response_time, response.status_code)

            if response.status_code != 200:
                error = FetchError(f"HTTP {response.status_code}", url=request.url,
                                   status_code=response.status_code)
                await self._fire_error(request, error)
                return

            await self._dispatch(request, response)

    async def _fetch(self, request: Request) -> Response:
        """Fetch a single URL over HTTP"""
        if self.session is None:
            raise RuntimeError("Collector session not started; use 'async with Collector(...)'")

        start_time = time.time()
        try:
            async with self.session.get(request.url) as http_response:
                body = ""
                if http_response.status == 200:
                    try:
                        body = await http_response.text()
                    except (UnicodeDecodeError, LookupError) as e:
                        self.rate_limiter.request_completed(request.url, time.time() - start_time, 0)
                        raise FetchError(f"Could not decode response body: {e}", url=request.url,
                                         cause=e, error_type=ErrorType.DECODE_ERROR) from e
                return Response(
                    request=request,
                    status_code=http_response.status,
                    body=body,
                    response_time=time.time() - start_time
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.rate_limiter.request_completed(request.url, time.time() - start_time, 0)
            raise FetchError(str(e) or type(e).__name__, url=request.url, cause=e) from e

    async def _dispatch(self, request: Request, response: Response):
        soup = BeautifulSoup(response.body, 'html.parser')

        for selector, callback in self._html_callbacks:
            for tag in soup.select(selector):
                await self._call(callback, HTMLElement(tag, request, response))

        for callback in self._scraped_callbacks:
            await self._call(callback, response)

    async def _fire_error(self, request: Request, error: FetchError):
        for callback in self._error_callbacks:
            await self._call(callback, request, error)

    @staticmethod
    async def _call(callback: Callable, *args):
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
