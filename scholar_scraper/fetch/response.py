"""
Request / Response / HTMLElement - data passed to collector callbacks
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, TYPE_CHECKING
from urllib.parse import urljoin

from bs4 import Tag

if TYPE_CHECKING:
    from .collector import Collector


@dataclass
class Request:
    """A scheduled visit"""
    url: str
    depth: int = 1
    ctx: Dict[str, Any] = field(default_factory=dict)
    collector: Optional["Collector"] = field(default=None, repr=False, compare=False)

    def absolute_url(self, href: str) -> str:
        """Resolve a possibly relative link against this request's URL"""
        return urljoin(self.url, href)

    def visit(self, href: str, ctx: Optional[Dict[str, Any]] = None) -> "Request":
        """Schedule a visit to a link found on this page, one level deeper"""
        if self.collector is None:
            raise RuntimeError("Request is not bound to a collector")
        return self.collector.visit(self.absolute_url(href), ctx=ctx, depth=self.depth + 1)


@dataclass
class Response:
    """Result of fetching a single URL"""
    request: Request
    status_code: int
    body: str = ""
    response_time: float = 0.0

    @property
    def url(self) -> str:
        return self.request.url


class HTMLElement:
    """A matched element plus the request/response it was found in"""

    def __init__(self, tag: Tag, request: Request, response: Response):
        self.tag = tag
        self.request = request
        self.response = response

    @property
    def text(self) -> str:
        return self.tag.get_text()

    def attr(self, name: str) -> str:
        value = self.tag.get(name)
        if value is None:
            return ""
        if isinstance(value, list):  # multi-valued attributes such as class
            return " ".join(value)
        return value

    def child_text(self, selector: str) -> str:
        """Stripped text of all descendants matching selector"""
        return " ".join(child.get_text() for child in self.tag.select(selector)).strip()

    def child_attr(self, selector: str, name: str) -> str:
        """Stripped attribute of the first descendant matching selector, '' if none"""
        child = self.tag.select_one(selector)
        if child is None:
            return ""
        value = child.get(name)
        if value is None:
            return ""
        if isinstance(value, list):
            value = " ".join(value)
        return value.strip()

    def __repr__(self):
        return f"HTMLElement(<{self.tag.name}>, url={self.request.url!r})"
