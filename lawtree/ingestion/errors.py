"""Exceptions raised while crawling and persisting a legal code."""

from __future__ import annotations


class CrawlError(Exception):
    """Base class for all crawl failures."""


class FetchError(CrawlError):
    """A page could not be loaded."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url


class FetchTimeout(FetchError):
    """The page did not finish loading within the step timeout."""


class NavigationError(FetchError):
    """Transport failure or non-success HTTP status."""


class SelectorNotFound(CrawlError):
    """An element the extractor requires never appeared on the page."""

    def __init__(self, selector: str, url: str = ""):
        where = f" on {url}" if url else ""
        super().__init__(f"No element matches {selector!r}{where}")
        self.selector = selector
        self.url = url


class ExpansionTimeout(CrawlError):
    """A lazy-load expansion never populated its child list."""


class PersistenceError(CrawlError):
    """The snapshot file could not be written."""
