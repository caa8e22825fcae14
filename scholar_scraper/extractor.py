"""
Field extraction for Scholar result blocks.

Every function here is total: unmatched or malformed input resolves to a
sentinel ("Unknown", "N/A" or "0") instead of raising.
"""

import re
from typing import Union

from .config import SELECTORS, Selectors
from .fetch.response import HTMLElement
from .models import Record

UNKNOWN = "Unknown"
NOT_AVAILABLE = "N/A"
ZERO = "0"

YEAR_PATTERN = re.compile(r"(19|20)\d{2}")
CITED_BY_PATTERN = re.compile(r"Cited by (\d+)")
ALL_VERSIONS_PATTERN = re.compile(r"All (\d+) versions")


def extract_date(authors: str) -> str:
    """Publication year from the attribution line, e.g. 'A Smith - Nature, 2019 - nature.com'"""
    match = YEAR_PATTERN.search(authors)
    if match:
        return match.group(0)

    parts = authors.split("-")
    if len(parts) > 1:
        last_part = parts[-1].strip()
        match = YEAR_PATTERN.search(last_part)
        if match:
            return match.group(0)
        return last_part

    return UNKNOWN


def extract_doi(link: str) -> str:
    if "doi.org" in link:
        return link
    return NOT_AVAILABLE


def extract_journal(authors: str) -> str:
    """First '-' separated segment of the attribution line"""
    parts = authors.split("-")
    if len(parts) > 1:
        return parts[0].strip()
    return UNKNOWN


def _action_links_text(source: Union[str, HTMLElement], selectors: Selectors = SELECTORS) -> str:
    if isinstance(source, HTMLElement):
        return source.child_text(selectors.action_links)
    return source or ""


def extract_cited_by(source: Union[str, HTMLElement]) -> str:
    """Citation count from the action link row ('Cited by 12'), '0' when absent"""
    text = _action_links_text(source)
    if "Cited by" in text:
        match = CITED_BY_PATTERN.search(text)
        if match:
            return match.group(1)
    return ZERO


def extract_all_versions(source: Union[str, HTMLElement]) -> str:
    """Version count from the action link row ('All 5 versions'), '0' when absent"""
    text = _action_links_text(source)
    if "All" in text:
        match = ALL_VERSIONS_PATTERN.search(text)
        if match:
            return match.group(1)
    return ZERO


def extract_record(element: HTMLElement, page: int, selectors: Selectors = SELECTORS) -> Record:
    """Build a Record from one result block.

    Args:
        element: The matched result block
        page: 1-based listing page the block was found on
        selectors: Child selectors for the block fields

    Returns:
        The extracted Record; may be empty (see Record.is_empty)
    """
    title = element.child_text(selectors.title)
    snippet = element.child_text(selectors.snippet)
    link = element.child_attr(selectors.link, "href")
    authors = element.child_text(selectors.authors)

    return Record(
        title=title,
        snippet=snippet,
        link=link,
        authors=authors,
        date=extract_date(authors),
        doi=extract_doi(link),
        journal=extract_journal(authors),
        cited_by=int(extract_cited_by(_action_links_text(element, selectors))),
        all_versions=int(extract_all_versions(_action_links_text(element, selectors))),
        page=page,
    )
