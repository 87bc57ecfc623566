from .base import (
    Chapter,
    Document,
    Extractor,
    PageFetcher,
    PageHandle,
    Part,
    Section,
    Title,
)
from .errors import (
    CrawlError,
    ExpansionTimeout,
    FetchTimeout,
    NavigationError,
    PersistenceError,
    SelectorNotFound,
)
from .fetcher import HttpPageFetcher
from .malegislature import MalegislatureExtractor
from .walker import CrawlStats, TreeWalker

__all__ = [
    "Chapter",
    "Document",
    "Extractor",
    "PageFetcher",
    "PageHandle",
    "Part",
    "Section",
    "Title",
    "CrawlError",
    "ExpansionTimeout",
    "FetchTimeout",
    "NavigationError",
    "PersistenceError",
    "SelectorNotFound",
    "HttpPageFetcher",
    "MalegislatureExtractor",
    "CrawlStats",
    "TreeWalker",
]
