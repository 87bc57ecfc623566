"""Canonical data structures and crawl capabilities for legal-code scraping."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Callable, Optional

from bs4 import BeautifulSoup, Tag

from .errors import SelectorNotFound
from ..normalization.text_cleaner import is_terminal_title


# ----------------------------------------------------------------------
# Persisted hierarchy
# ----------------------------------------------------------------------


@dataclass
class Section:
    """A single section of law (the leaf of the hierarchy)."""

    section: str
    section_title: str = ""
    full_text: str = ""
    url: str = ""

    @property
    def is_complete(self) -> bool:
        """True once the text is known, or the title marks it repealed/inoperative."""
        return bool(self.full_text and self.full_text.strip()) or is_terminal_title(self.section_title)

    def to_dict(self) -> dict:
        return {
            "section": self.section,
            "section_title": self.section_title,
            "full_text": self.full_text,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Section:
        return cls(
            section=str(data.get("section", "")),
            section_title=data.get("section_title") or "",
            full_text=data.get("full_text") or "",
            url=data.get("url") or "",
        )


@dataclass
class Chapter:
    """A chapter. ``sections`` is None when the snapshot never recorded any."""

    chapter: str
    chapter_title: str = ""
    url: str = ""
    sections: Optional[list[Section]] = None

    def find_section(self, key: str) -> Section | None:
        for section in self.sections or []:
            if section.section == key:
                return section
        return None

    def to_dict(self) -> dict:
        data = {
            "chapter": self.chapter,
            "chapter_title": self.chapter_title,
            "url": self.url,
        }
        if self.sections is not None:
            data["sections"] = [s.to_dict() for s in self.sections]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Chapter:
        raw_sections = data.get("sections")
        return cls(
            chapter=str(data.get("chapter", "")),
            chapter_title=data.get("chapter_title") or "",
            url=data.get("url") or "",
            sections=None if raw_sections is None else [Section.from_dict(s) for s in raw_sections],
        )


@dataclass
class Title:
    """A title within a part."""

    title: str
    title_name: str = ""
    chapters: list[Chapter] = field(default_factory=list)

    def find_chapter(self, key: str) -> Chapter | None:
        for chapter in self.chapters:
            if chapter.chapter == key:
                return chapter
        return None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "title_name": self.title_name,
            "chapters": [c.to_dict() for c in self.chapters],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Title:
        return cls(
            title=str(data.get("title", "")),
            title_name=data.get("title_name") or "",
            chapters=[Chapter.from_dict(c) for c in data.get("chapters") or []],
        )


@dataclass
class Part:
    """A top-level part of the code."""

    part: str
    part_title: str = ""
    url: str = ""
    titles: list[Title] = field(default_factory=list)

    def find_title(self, key: str) -> Title | None:
        for title in self.titles:
            if title.title == key:
                return title
        return None

    def to_dict(self) -> dict:
        return {
            "part": self.part,
            "part_title": self.part_title,
            "url": self.url,
            "titles": [t.to_dict() for t in self.titles],
        }

    @classmethod
    def from_dict(cls, data: dict) -> Part:
        return cls(
            part=str(data.get("part", "")),
            part_title=data.get("part_title") or "",
            url=data.get("url") or "",
            titles=[Title.from_dict(t) for t in data.get("titles") or []],
        )


@dataclass
class Document:
    """The complete crawled code: an ordered list of parts."""

    parts: list[Part] = field(default_factory=list)

    def find_part(self, key: str) -> Part | None:
        for part in self.parts:
            if part.part == key:
                return part
        return None

    def find_chapter(self, part_key: str, title_key: str, chapter_key: str) -> Chapter | None:
        part = self.find_part(part_key)
        title = part.find_title(title_key) if part else None
        return title.find_chapter(chapter_key) if title else None

    def to_dict(self) -> dict:
        return {"parts": [p.to_dict() for p in self.parts]}

    @classmethod
    def from_dict(cls, data: dict) -> Document:
        if not isinstance(data, dict) or not isinstance(data.get("parts"), list):
            raise ValueError("snapshot must be an object with a 'parts' list")
        return cls(parts=[Part.from_dict(p) for p in data["parts"]])


# ----------------------------------------------------------------------
# Records produced by extractors
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class PartRecord:
    label: str
    url: str
    tooltip: str = ""


@dataclass(frozen=True)
class TitleNode:
    """A title as listed on a part page, before its chapters are loaded.

    ``expand_args`` holds the lazy-load parameters embedded in the markup, or
    None when the page carries no expansion action for this title.
    """

    label: str
    expand_args: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class ChapterRecord:
    label: str
    url: str


@dataclass(frozen=True)
class SectionRef:
    number: str
    title: str
    url: str


@dataclass(frozen=True)
class SectionBody:
    full_text: str


# ----------------------------------------------------------------------
# Capabilities
# ----------------------------------------------------------------------


class PageHandle:
    """A loaded page that extractors can query."""

    def __init__(self, url: str, soup: BeautifulSoup):
        self.url = url
        self.soup = soup

    def query(self, extract: Callable, *args):
        """Evaluate ``extract(page, *args)`` against this page."""
        return extract(self, *args)

    def select(self, selector: str) -> list[Tag]:
        return self.soup.select(selector)

    def select_one(self, selector: str) -> Tag | None:
        return self.soup.select_one(selector)

    def wait_for(self, selector: str) -> Tag:
        """Return the first element matching ``selector`` or raise SelectorNotFound."""
        element = self.soup.select_one(selector)
        if element is None:
            raise SelectorNotFound(selector, self.url)
        return element

    def __repr__(self) -> str:
        return f"PageHandle({self.url!r})"


class PageFetcher(abc.ABC):
    """Navigates to URLs and hands back queryable pages."""

    @abc.abstractmethod
    def fetch(self, url: str, timeout: float) -> PageHandle:
        """Load ``url``, raising FetchTimeout or NavigationError on failure."""

    @abc.abstractmethod
    def expand(
        self,
        url: str,
        ready: Callable[[PageHandle], bool],
        timeout: float,
        poll_interval: float = 0.5,
    ) -> PageHandle:
        """Trigger a lazy-load at ``url`` until ``ready(page)`` or ExpansionTimeout."""

    def close(self) -> None:
        """Release the underlying session."""

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class Extractor(abc.ABC):
    """Site-specific extraction of typed records, one method per level."""

    @abc.abstractmethod
    def extract_parts(self, page: PageHandle) -> list[PartRecord]:
        """Parts listed on the code's index page."""

    @abc.abstractmethod
    def extract_title_nodes(self, page: PageHandle) -> list[TitleNode]:
        """Titles listed on a part page, with their lazy-load parameters."""

    @abc.abstractmethod
    def expansion_url(self, node: TitleNode) -> str:
        """URL that loads the chapter list for ``node``."""

    @abc.abstractmethod
    def expansion_ready(self, page: PageHandle) -> bool:
        """True once an expanded title page lists at least one chapter."""

    @abc.abstractmethod
    def extract_chapters(self, title_page: PageHandle) -> list[ChapterRecord]:
        """Chapters of an expanded title."""

    @abc.abstractmethod
    def extract_section_links(self, chapter_page: PageHandle) -> list[SectionRef]:
        """Section references listed on a chapter page."""

    @abc.abstractmethod
    def extract_section_body(self, section_page: PageHandle) -> SectionBody:
        """Full text of a section page."""
