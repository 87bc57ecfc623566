"""Shared fixtures: an in-memory site served through fake fetcher/extractor doubles."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from lawtree.config.settings import CrawlConfig
from lawtree.ingestion.base import (
    ChapterRecord,
    Extractor,
    PageFetcher,
    PageHandle,
    PartRecord,
    SectionBody,
    SectionRef,
    TitleNode,
)
from lawtree.ingestion.errors import ExpansionTimeout, NavigationError
from lawtree.ingestion.walker import TreeWalker
from lawtree.normalization.snapshot import SnapshotStore
from lawtree.utils.rate_limiter import RateLimiter

BASE = "https://laws.example/code"


@dataclass
class FakeSite:
    """A whole legal code keyed by URL."""

    parts: list[PartRecord] = field(default_factory=list)
    titles: dict[str, list[TitleNode]] = field(default_factory=dict)
    chapters: dict[str, list[ChapterRecord]] = field(default_factory=dict)
    sections: dict[str, list[SectionRef]] = field(default_factory=dict)
    bodies: dict[str, str] = field(default_factory=dict)

    def add_part(self, part_id: str, name: str) -> str:
        url = f"{BASE}/Part{part_id}"
        self.parts.append(PartRecord(label=f"Part {part_id} {name} Chapters. 1-99", url=url))
        self.titles[url] = []
        return url

    def add_title(self, part_url: str, title_id: str, name: str) -> str:
        args = (str(len(self.parts)), str(len(self.titles[part_url]) + 1), title_id)
        self.titles[part_url].append(TitleNode(label=f"Title {title_id} {name}", expand_args=args))
        expand_url = f"{BASE}/expand/{'/'.join(args)}"
        self.chapters[expand_url] = []
        return expand_url

    def add_chapter(self, expand_url: str, chapter_id: str, name: str) -> str:
        url = f"{BASE}/Chapter{chapter_id}"
        self.chapters[expand_url].append(ChapterRecord(label=f"Chapter {chapter_id} {name}", url=url))
        self.sections[url] = []
        return url

    def add_section(self, chapter_url: str, number: str, title: str, text: str) -> str:
        url = f"{chapter_url}/Section{number}"
        self.sections[chapter_url].append(SectionRef(number=number, title=title, url=url))
        self.bodies[url] = text
        return url


class FakeFetcher(PageFetcher):
    """Serves FakeSite URLs, counting every load and failing on demand."""

    def __init__(self, site: FakeSite):
        self.site = site
        self.calls: Counter = Counter()
        self.failures: Counter = Counter()
        self.expand_failures: set[str] = set()

    def fail(self, url: str, times: int = 1_000) -> None:
        self.failures[url] = times

    def fetch(self, url: str, timeout: float) -> PageHandle:
        self.calls[url] += 1
        if self.failures[url] > 0:
            self.failures[url] -= 1
            raise NavigationError(url, "HTTP 503")
        return PageHandle(url, None)

    def expand(self, url, ready, timeout, poll_interval=0.5) -> PageHandle:
        self.calls[url] += 1
        if url in self.expand_failures:
            raise ExpansionTimeout(f"no children at {url}")
        page = PageHandle(url, None)
        if not ready(page):
            raise ExpansionTimeout(f"no children at {url}")
        return page

    def section_fetches(self) -> int:
        return sum(n for url, n in self.calls.items() if url in self.site.bodies)


class FakeExtractor(Extractor):
    def __init__(self, site: FakeSite):
        self.site = site

    def extract_parts(self, page):
        return list(self.site.parts)

    def extract_title_nodes(self, page):
        return list(self.site.titles[page.url])

    def expansion_url(self, node):
        return f"{BASE}/expand/{'/'.join(node.expand_args)}"

    def expansion_ready(self, page):
        return bool(self.site.chapters.get(page.url))

    def extract_chapters(self, title_page):
        return list(self.site.chapters[title_page.url])

    def extract_section_links(self, chapter_page):
        return list(self.site.sections[chapter_page.url])

    def extract_section_body(self, section_page):
        return SectionBody(full_text=self.site.bodies[section_page.url])


@pytest.fixture
def site() -> FakeSite:
    """Part I with Titles I-IV, one chapter of two sections per title."""
    site = FakeSite()
    part = site.add_part("I", "Administration of the Government")
    for n, (title_id, name) in enumerate(
        [("I", "Jurisdiction"), ("II", "Executive Officers"), ("III", "Laws"), ("IV", "Public Health")],
        start=1,
    ):
        expand_url = site.add_title(part, title_id, name)
        chapter = site.add_chapter(expand_url, str(n), f"Chapter name {n}")
        site.add_section(chapter, "1", f"Definitions {n}", f"Text of {n}.1")
        site.add_section(chapter, "2", f"Powers {n}", f"Text of {n}.2")
    return site


@pytest.fixture
def fetcher(site: FakeSite) -> FakeFetcher:
    return FakeFetcher(site)


@pytest.fixture
def snapshot_path(tmp_path: Path) -> Path:
    return tmp_path / "laws.json"


@pytest.fixture
def config(snapshot_path: Path) -> CrawlConfig:
    return CrawlConfig(base_url=BASE, output_path=snapshot_path, retry_delay=0, pace_delay=0)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_walker(site, fetcher, config, sleeps):
    """Build a walker over the fake site; call again for a "second run"."""

    def factory(cfg: CrawlConfig | None = None) -> TreeWalker:
        cfg = cfg or config
        return TreeWalker(
            fetcher,
            FakeExtractor(site),
            SnapshotStore(cfg.output_path),
            cfg,
            rate_limiter=RateLimiter(0),
            sleep=sleeps.append,
        )

    return factory
