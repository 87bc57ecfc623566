"""Depth-first, resumable crawl of Part → Title → Chapter → Section.

Structural levels are re-crawled on every run. Section text is the expensive
part, so it is only fetched for sections the snapshot does not already hold
in complete form; a chapter whose listed sections are all complete is skipped
without fetching any of them. Every processed chapter is merged into the
snapshot and persisted before the walk moves on.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from .base import (
    Chapter,
    ChapterRecord,
    Document,
    Extractor,
    PageFetcher,
    PageHandle,
    Part,
    PartRecord,
    Section,
    SectionRef,
    Title,
    TitleNode,
)
from ..config.settings import CrawlConfig
from ..normalization.labels import parse_chapter, parse_part, parse_title
from ..utils.rate_limiter import RateLimiter
from ..utils.retry import run_with_retry

if TYPE_CHECKING:
    from ..normalization.snapshot import SnapshotStore

logger = logging.getLogger(__name__)


class NodeState(enum.Enum):
    DISCOVERED = "discovered"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    CHILDREN_PENDING = "children_pending"
    LEAF_READY = "leaf_ready"
    MERGED = "merged"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CrawlStats:
    """Counters reported at the end of a run."""

    parts: int = 0
    parts_failed: int = 0
    titles: int = 0
    titles_dropped: int = 0
    chapters_processed: int = 0
    chapters_skipped: int = 0
    sections_fetched: int = 0
    sections_skipped: int = 0
    sections_failed: int = 0


@dataclass(frozen=True)
class SectionOutcome:
    section: Section
    fetched: bool = False
    failed: bool = False


@dataclass(frozen=True)
class ChapterResult:
    """Outcome of visiting one chapter.

    ``sections`` is None when the chapter was skipped and the snapshot
    already holds its payload.
    """

    chapter: Chapter
    sections: Optional[tuple[Section, ...]]
    fetched: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def processed(self) -> bool:
        return self.sections is not None


def needs_processing(existing: Chapter | None, refs: Iterable[SectionRef]) -> bool:
    """True unless every listed section is already complete in ``existing``."""
    if existing is None or existing.sections is None:
        return True
    for ref in refs:
        prior = existing.find_section(ref.number)
        if prior is None or not prior.is_complete:
            return True
    return False


def fold_sections(existing: Chapter | None, sections: Iterable[Section]) -> tuple[Section, ...]:
    """Discovered sections in order, then persisted ones the site no longer lists."""
    folded: dict[str, Section] = {}
    for section in sections:
        folded.setdefault(section.section, section)
    if existing is not None:
        for prior in existing.sections or []:
            folded.setdefault(prior.section, prior)
    return tuple(folded.values())


class TreeWalker:
    """Drive fetch, extract and retry at every level and feed the snapshot.

    Args:
        fetcher: Loads pages and performs lazy-load expansions.
        extractor: Turns pages into typed records.
        store: Snapshot the results are merged into.
        config: Crawl settings (retries, timeouts, base URL).
        rate_limiter: Pacer applied after each processed section.
        sleep: Sleep used for retry backoff, replaceable in tests.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: Extractor,
        store: SnapshotStore,
        config: CrawlConfig | None = None,
        rate_limiter: RateLimiter | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetcher = fetcher
        self.extractor = extractor
        self.store = store
        self.config = config or CrawlConfig()
        self.rate_limiter = rate_limiter or RateLimiter(self.config.pace_delay)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _retry(self, operation, description: str):
        return run_with_retry(
            operation,
            self.config.max_retries,
            self.config.retry_delay,
            description=description,
            sleep=self._sleep,
        )

    def _load(self, url: str, extract, *args):
        """Fetch ``url`` and evaluate ``extract`` on it as one unit of work."""
        page: PageHandle = self.fetcher.fetch(url, self.config.step_timeout)
        return page.query(extract, *args)

    @staticmethod
    def _state(kind: str, key: str, state: NodeState) -> None:
        logger.debug("%s %s: %s", kind, key, state.value)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def walk(
        self,
        document: Document | None = None,
        part_filter: Iterable[str] | None = None,
        structure_only: bool = False,
    ) -> CrawlStats:
        """Crawl the whole code, merging into ``document`` (loaded if None).

        Raises:
            Whatever the part list fetch raised after retries, and
            PersistenceError if the snapshot cannot be written.
        """
        if document is None:
            document = self.store.load()
        wanted = set(part_filter) if part_filter else None
        stats = CrawlStats()

        records = self._retry(
            lambda: self._load(self.config.base_url, self.extractor.extract_parts),
            f"part list {self.config.base_url}",
        )
        logger.info("Found %d parts", len(records))

        for record in records:
            part = part_from_record(record)
            if wanted is not None and part.part not in wanted:
                logger.debug("Part %s not selected, skipping", part.part)
                continue
            self._walk_part(document, part, stats, structure_only)

        log_summary(stats)
        return stats

    def crawl_chapter(
        self,
        part: Part,
        title: Title,
        chapter: Chapter,
        document: Document | None = None,
    ) -> CrawlStats:
        """Process one chapter URL under the given part and title keys."""
        if document is None:
            document = self.store.load()
        stats = CrawlStats()
        result = self.process_chapter(document, part, title, chapter)
        self._fold(document, part, title, result, stats)
        log_summary(stats)
        return stats

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    def _walk_part(self, document: Document, part: Part, stats: CrawlStats, structure_only: bool) -> None:
        logger.info("Processing Part %s %s", part.part, part.part_title)
        self._state("Part", part.part, NodeState.FETCHING)
        try:
            nodes = self._retry(
                lambda: self._load(part.url, self.extractor.extract_title_nodes),
                f"Part {part.part}",
            )
        except Exception as e:
            self._state("Part", part.part, NodeState.FAILED)
            logger.error("Dropping Part %s after %d attempts: %s", part.part, self.config.max_retries, e)
            stats.parts_failed += 1
            return

        stats.parts += 1
        self._state("Part", part.part, NodeState.CHILDREN_PENDING)
        for node in nodes:
            self._walk_title(document, part, node, stats, structure_only)
        self._state("Part", part.part, NodeState.DONE)

    def _walk_title(
        self,
        document: Document,
        part: Part,
        node: TitleNode,
        stats: CrawlStats,
        structure_only: bool,
    ) -> None:
        parsed = parse_title(node.label)
        title = Title(title=parsed.id, title_name=parsed.name)

        if node.expand_args is None:
            logger.warning("Title %s of Part %s has no expansion action, skipping", title.title, part.part)
            stats.titles_dropped += 1
            return

        self._state("Title", title.title, NodeState.FETCHING)
        try:
            records = self._retry(lambda: self._expand(node), f"Title {title.title} expansion")
        except Exception as e:
            self._state("Title", title.title, NodeState.FAILED)
            logger.error(
                "Abandoning Title %s of Part %s, its chapters are not recorded: %s",
                title.title, part.part, e,
            )
            stats.titles_dropped += 1
            return

        stats.titles += 1
        logger.info("Found %d chapters in Title %s", len(records), title.title)
        self._state("Title", title.title, NodeState.CHILDREN_PENDING)

        chapters = self._unique_chapters(part, title, records)
        if structure_only:
            for chapter in chapters:
                self.store.merge(document, part, title, chapter, None)
            self.store.persist(document)
            return

        for chapter in chapters:
            result = self.process_chapter(document, part, title, chapter)
            self._fold(document, part, title, result, stats)
        self._state("Title", title.title, NodeState.DONE)

    @staticmethod
    def _unique_chapters(part: Part, title: Title, records: Iterable[ChapterRecord]) -> list[Chapter]:
        """Chapters of one title, keeping the first of any repeated key."""
        chapters: list[Chapter] = []
        seen: set[str] = set()
        for record in records:
            chapter = chapter_from_record(record)
            if chapter.chapter in seen:
                logger.warning(
                    "Skipping %r in Title %s of Part %s: chapter key %r already used",
                    record.label, title.title, part.part, chapter.chapter,
                )
                continue
            seen.add(chapter.chapter)
            chapters.append(chapter)
        return chapters

    def _expand(self, node: TitleNode) -> list[ChapterRecord]:
        page = self.fetcher.expand(
            self.extractor.expansion_url(node),
            self.extractor.expansion_ready,
            self.config.expand_timeout,
            self.config.expand_poll_interval,
        )
        return page.query(self.extractor.extract_chapters)

    def process_chapter(self, document: Document, part: Part, title: Title, chapter: Chapter) -> ChapterResult:
        """Visit one chapter, fetching only the sections that are not complete."""
        logger.info("Processing sections for Chapter %s", chapter.chapter)
        existing = document.find_chapter(part.part, title.title, chapter.chapter)

        self._state("Chapter", chapter.chapter, NodeState.FETCHING)
        try:
            refs = self._retry(
                lambda: self._load(chapter.url, self.extractor.extract_section_links),
                f"section list of Chapter {chapter.chapter}",
            )
        except Exception as e:
            self._state("Chapter", chapter.chapter, NodeState.FAILED)
            logger.error("Could not list sections of Chapter %s: %s", chapter.chapter, e)
            refs = []
        logger.info("Found %d sections in Chapter %s", len(refs), chapter.chapter)

        if not needs_processing(existing, refs):
            logger.info("Skipping Chapter %s, all sections already processed", chapter.chapter)
            self._state("Chapter", chapter.chapter, NodeState.DONE)
            return ChapterResult(chapter=chapter, sections=None, skipped=len(refs))

        if existing is None:
            logger.info("Chapter %s not in snapshot, processing all sections", chapter.chapter)

        outcomes = [self._visit_section(existing, ref) for ref in refs]

        failed = [i for i, outcome in enumerate(outcomes) if outcome.failed]
        if failed:
            logger.info("Retrying %d failed sections for Chapter %s", len(failed), chapter.chapter)
            for i in failed:
                outcomes[i] = self._fetch_section(refs[i])

        sections = fold_sections(existing, (o.section for o in outcomes))
        self._state("Chapter", chapter.chapter, NodeState.LEAF_READY)
        return ChapterResult(
            chapter=chapter,
            sections=sections,
            fetched=sum(1 for o in outcomes if o.fetched),
            skipped=sum(1 for o in outcomes if not o.fetched),
            failed=sum(1 for o in outcomes if o.failed),
        )

    def _visit_section(self, existing: Chapter | None, ref: SectionRef) -> SectionOutcome:
        prior = existing.find_section(ref.number) if existing else None
        if prior is not None and prior.is_complete:
            logger.debug("Section %s already processed, skipping", ref.number)
            return SectionOutcome(section=prior)
        if prior is not None:
            logger.info("Section %s exists but needs updating, processing", ref.number)
        else:
            logger.info("Section %s not in snapshot, processing", ref.number)
        return self._fetch_section(ref)

    def _fetch_section(self, ref: SectionRef) -> SectionOutcome:
        self._state("Section", ref.number, NodeState.FETCHING)
        try:
            body = self._retry(
                lambda: self._load(ref.url, self.extractor.extract_section_body),
                f"Section {ref.number}",
            )
        except Exception as e:
            self._state("Section", ref.number, NodeState.FAILED)
            logger.error("Recording Section %s with empty text: %s", ref.number, e)
            return SectionOutcome(
                section=Section(section=ref.number, section_title=ref.title, full_text="", url=ref.url),
                fetched=True,
                failed=True,
            )
        finally:
            self.rate_limiter.pause()

        self._state("Section", ref.number, NodeState.LEAF_READY)
        return SectionOutcome(
            section=Section(section=ref.number, section_title=ref.title, full_text=body.full_text, url=ref.url),
            fetched=True,
        )

    def _fold(self, document: Document, part: Part, title: Title, result: ChapterResult, stats: CrawlStats) -> None:
        stats.sections_fetched += result.fetched
        stats.sections_skipped += result.skipped
        stats.sections_failed += result.failed
        if not result.processed:
            stats.chapters_skipped += 1
            return

        self.store.merge(document, part, title, result.chapter, list(result.sections))
        self.store.persist(document)
        stats.chapters_processed += 1
        self._state("Chapter", result.chapter.chapter, NodeState.MERGED)
        logger.info("Saved progress for Chapter %s", result.chapter.chapter)


def part_from_record(record: PartRecord) -> Part:
    parsed = parse_part(record.label)
    name = parsed.name
    if parsed.fallback and record.tooltip:
        name = record.tooltip
    return Part(part=parsed.id, part_title=name, url=record.url)


def chapter_from_record(record: ChapterRecord) -> Chapter:
    parsed = parse_chapter(record.label)
    return Chapter(chapter=parsed.id, chapter_title=parsed.name, url=record.url)


def log_summary(stats: CrawlStats) -> None:
    logger.info(
        "Crawl finished: %d parts (%d failed), %d titles (%d dropped), "
        "%d chapters processed, %d skipped, %d sections fetched, %d skipped, %d failed",
        stats.parts, stats.parts_failed, stats.titles, stats.titles_dropped,
        stats.chapters_processed, stats.chapters_skipped,
        stats.sections_fetched, stats.sections_skipped, stats.sections_failed,
    )
