"""Extractor for the Massachusetts General Laws website.

Page shapes handled here:

- Index page: ``.generalLawsList > li > a`` links, one per Part.
- Part page: a Bootstrap ``#accordion`` with one ``.panel`` per Title. Each
  panel's ``.panel-title a`` carries an ``onclick`` of the form
  ``accordionAjaxLoad('2', '7', 'I')`` that loads the Title's chapter list.
- Title fragment: ``.generalLawsList a`` links, one per Chapter.
- Chapter page: ``ul.generalLawsList li a`` with ``.section`` and
  ``.sectionTitle`` spans, one per Section.
- Section page: body text inside ``.col-xs-12.col-md-8 .col-xs-12``; the
  navigation toolbar and the heading are not part of the text.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import quote, urljoin

from bs4 import Comment, NavigableString, Tag

from .base import (
    ChapterRecord,
    Extractor,
    PageHandle,
    PartRecord,
    SectionBody,
    SectionRef,
    TitleNode,
)
from ..normalization.text_cleaner import clean_section_number, collapse_whitespace, join_text_nodes

logger = logging.getLogger(__name__)

BASE_URL = "https://malegislature.gov/Laws/GeneralLaws"
EXPAND_URL_TEMPLATE = "/GeneralLaws/GetChaptersForTitle?partId={part_id}&titleId={title_id}&code={code}"

_AJAX_LOAD = re.compile(r"accordionAjaxLoad\('(\d+)',\s*'(\d+)',\s*'([^']+)'\)")
_SKIPPED_TAGS = {"script", "style", "noscript"}


def _has_class(tag: Tag, name: str) -> bool:
    return name in (tag.get("class") or [])


class MalegislatureExtractor(Extractor):
    """BeautifulSoup extraction for malegislature.gov.

    Args:
        base_url: Root used to resolve the expansion URL.
        expand_url_template: Format string with ``part_id``, ``title_id`` and
            ``code`` placeholders, resolved against ``base_url``.
    """

    def __init__(self, base_url: str = BASE_URL, expand_url_template: str = EXPAND_URL_TEMPLATE):
        self.base_url = base_url
        self.expand_url_template = expand_url_template

    def extract_parts(self, page: PageHandle) -> list[PartRecord]:
        page.wait_for(".generalLawsList")
        parts = []
        for a in page.select(".generalLawsList > li > a"):
            label = collapse_whitespace(a.get_text(" "))
            if not label:
                continue
            parts.append(PartRecord(
                label=label,
                url=urljoin(page.url, a.get("href", "")),
                tooltip=a.get("title") or "",
            ))
        return parts

    def extract_title_nodes(self, page: PageHandle) -> list[TitleNode]:
        page.wait_for("#accordion")
        nodes = []
        for panel in page.select("#accordion .panel"):
            heading = panel.select_one(".panel-heading")
            link = panel.select_one(".panel-title a")
            if heading is None or link is None:
                continue
            match = _AJAX_LOAD.search(link.get("onclick") or "")
            nodes.append(TitleNode(
                label=heading.get_text().strip(),
                expand_args=match.groups() if match else None,
            ))
        return nodes

    def expansion_url(self, node: TitleNode) -> str:
        if not node.expand_args:
            raise ValueError(f"title {node.label!r} has no expansion parameters")
        part_id, title_id, code = node.expand_args
        path = self.expand_url_template.format(
            part_id=quote(part_id), title_id=quote(title_id), code=quote(code),
        )
        return urljoin(self.base_url, path)

    def expansion_ready(self, page: PageHandle) -> bool:
        listing = page.select_one(".generalLawsList")
        return listing is not None and listing.find(True) is not None

    def extract_chapters(self, title_page: PageHandle) -> list[ChapterRecord]:
        chapters = []
        for a in title_page.select(".generalLawsList a"):
            label = collapse_whitespace(a.get_text(" "))
            if label:
                chapters.append(ChapterRecord(label=label, url=urljoin(self.base_url, a.get("href", ""))))
        return chapters

    def extract_section_links(self, chapter_page: PageHandle) -> list[SectionRef]:
        chapter_page.wait_for("ul.generalLawsList")
        refs = []
        for a in chapter_page.select("ul.generalLawsList li a"):
            number = a.select_one(".section")
            title = a.select_one(".sectionTitle")
            refs.append(SectionRef(
                number=clean_section_number(number.get_text()) if number else "",
                title=collapse_whitespace(title.get_text()) if title else "",
                url=urljoin(chapter_page.url, a.get("href", "")),
            ))
        return [r for r in refs if r.number]

    def extract_section_body(self, section_page: PageHandle) -> SectionBody:
        section_page.wait_for(".col-xs-12.col-md-8")
        container = section_page.select_one(".col-xs-12.col-md-8 .col-xs-12")
        if container is None:
            logger.debug("No body container on %s", section_page.url)
            return SectionBody(full_text="")
        return SectionBody(full_text=join_text_nodes(_body_text_nodes(container)))


def _body_text_nodes(container: Tag):
    """Yield the text nodes of a section body, minus navigation and heading."""
    for node in container.find_all(string=True):
        if isinstance(node, Comment) or not isinstance(node, NavigableString):
            continue
        parent = node.parent
        if parent is None or parent.name in _SKIPPED_TAGS or _has_class(parent, "genLawHeading"):
            continue
        if _in_navigation(node, container) or _in_heading_small(node, container):
            continue
        yield node


def _in_navigation(node, container: Tag) -> bool:
    for ancestor in node.parents:
        if ancestor is container:
            return False
        if _has_class(ancestor, "btn-toolbar"):
            return True
    return False


def _in_heading_small(node, container: Tag) -> bool:
    for ancestor in node.parents:
        if ancestor is container:
            return False
        if ancestor.name == "small" and any(_has_class(p, "genLawHeading") for p in ancestor.parents):
            return True
    return False
