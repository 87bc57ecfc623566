"""Incremental JSON snapshot of a crawled code.

The snapshot is both the final artifact and the resume checkpoint. It is
rewritten in full after every chapter, through a temp file and an atomic
rename, so an interrupted run loses at most the chapter in flight.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from ..ingestion.base import Chapter, Document, Part, Section, Title
from ..ingestion.errors import PersistenceError

logger = logging.getLogger(__name__)


def serialize(document: Document) -> str:
    """Render ``document`` exactly as it is written to disk."""
    return json.dumps(document.to_dict(), indent=2, ensure_ascii=False) + "\n"


class SnapshotStore:
    """Load, merge and persist the crawl snapshot at ``path``."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.writes = 0

    def load(self) -> Document:
        """Return the persisted document, or an empty one.

        A snapshot that cannot be read or parsed is copied aside to
        ``<name>.corrupt`` and the run starts from an empty document.
        """
        if not self.path.exists():
            logger.info("No snapshot at %s, starting fresh", self.path)
            return Document()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            document = Document.from_dict(data)
        except (OSError, UnicodeDecodeError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Could not load snapshot %s (%s), starting fresh", self.path, e)
            self._set_aside()
            return Document()

        logger.info("Loaded snapshot with %d parts from %s", len(document.parts), self.path)
        return document

    def _set_aside(self) -> None:
        backup = self.path.with_name(self.path.name + ".corrupt")
        try:
            shutil.copy2(self.path, backup)
            logger.warning("Copied unreadable snapshot to %s", backup)
        except OSError as e:
            logger.warning("Could not copy unreadable snapshot to %s: %s", backup, e)

    def merge(
        self,
        document: Document,
        part: Part,
        title: Title,
        chapter: Chapter,
        sections: Optional[list[Section]],
    ) -> Chapter:
        """Fold one processed chapter into ``document`` by key.

        Missing parts, titles and chapters are appended with copies of the
        discovered payloads. An existing chapter has its ``sections`` replaced
        by ``sections``; passing None records the chapter without touching
        sections it already has.

        Returns:
            The chapter as stored in ``document``.
        """
        stored_part = document.find_part(part.part)
        if stored_part is None:
            stored_part = Part(part=part.part, part_title=part.part_title, url=part.url)
            document.parts.append(stored_part)

        stored_title = stored_part.find_title(title.title)
        if stored_title is None:
            stored_title = Title(title=title.title, title_name=title.title_name)
            stored_part.titles.append(stored_title)

        new_sections = None if sections is None else [Section(**s.to_dict()) for s in sections]
        stored_chapter = stored_title.find_chapter(chapter.chapter)
        if stored_chapter is None:
            stored_chapter = Chapter(
                chapter=chapter.chapter,
                chapter_title=chapter.chapter_title,
                url=chapter.url,
                sections=new_sections,
            )
            stored_title.chapters.append(stored_chapter)
        elif new_sections is not None:
            stored_chapter.chapter_title = chapter.chapter_title
            stored_chapter.url = chapter.url
            stored_chapter.sections = new_sections
        return stored_chapter

    def persist(self, document: Document) -> None:
        """Atomically overwrite the snapshot with ``document``.

        Raises:
            PersistenceError: The snapshot could not be written.
        """
        body = serialize(document)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(body)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"could not write snapshot {self.path}: {e}") from e

        self.writes += 1
        logger.debug("Wrote snapshot %s", self.path)


def summarize(document: Document) -> dict:
    """Counts of every level plus complete/incomplete sections."""
    titles = [t for p in document.parts for t in p.titles]
    chapters = [c for t in titles for c in t.chapters]
    sections = [s for c in chapters for s in c.sections or []]
    complete = sum(1 for s in sections if s.is_complete)
    return {
        "parts": len(document.parts),
        "titles": len(titles),
        "chapters": len(chapters),
        "chapters_without_sections": sum(1 for c in chapters if c.sections is None),
        "sections": len(sections),
        "complete_sections": complete,
        "incomplete_sections": len(sections) - complete,
    }
