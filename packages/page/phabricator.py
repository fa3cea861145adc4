"""Phabricator differential page adapter.

Everything that knows about Phabricator markup lives here: where the diff id
and the "Diff Detail" box are, how changeset blocks list their lines, and what
an inline comment row looks like.
"""
from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from bs4 import BeautifulSoup, Tag

from packages.config.settings import Settings
from packages.exporters.html import graph_container_html
from packages.interpreter.method_lines import DiffFileBlock, DiffLine, MethodAnnotation
from packages.schema.errors import PreconditionError

logger = logging.getLogger(__name__)

DIFF_ID_PATTERN = re.compile(r"Diff (\d+)")
ANCHOR_HEADING = "Diff Detail"
INLINE_AUTHOR = "Risk Analysis Bot"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class PageAnchor:
    diff_id: str
    heading: Tag
    box: Tag


@dataclass
class VerdictBox:
    box: Tag
    content: Tag
    graph: Tag

    def append_html(self, markup: str) -> None:
        for node in _fragment(markup):
            self.content.append(node)

    def fill_graph(self, markup: str) -> None:
        self.graph.clear()
        for node in _fragment(markup):
            self.graph.append(node)


def _fragment(markup: str) -> List:
    return list(BeautifulSoup(markup, "html.parser").contents)


def _line_number(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    match = _LEADING_INT.match(raw)
    return int(match.group(1)) if match else None


class PhabricatorPage:
    def __init__(self, markup: str, settings: Settings) -> None:
        self.soup = BeautifulSoup(markup, "html.parser")
        self.settings = settings

    def locate_anchor(self) -> PageAnchor:
        diff_id: Optional[str] = None
        heading: Optional[Tag] = None

        for header in self.soup.select("span.phui-header-header"):
            text = header.get_text()
            if text == ANCHOR_HEADING:
                heading = header
                continue
            match = DIFF_ID_PATTERN.search(text)
            if match:
                diff_id = match.group(1)

        if not diff_id:
            raise PreconditionError("Missing diff ID")
        if heading is None:
            raise PreconditionError("Missing diff detail box")

        candidates = {id(tag) for tag in self.soup.select(self.settings.anchor_box_selector)}
        box = next((parent for parent in heading.parents if id(parent) in candidates), None)
        if box is None:
            raise PreconditionError(
                f"Diff detail heading has no enclosing {self.settings.anchor_box_selector!r}"
            )
        logger.debug("Found diff %s", diff_id)
        return PageAnchor(diff_id=diff_id, heading=heading, box=box)

    def insert_verdict_box(self, anchor: PageAnchor, heading_html: str) -> VerdictBox:
        """Clone the detail box, retitle it and place it right after the original."""

        box = copy.copy(anchor.box)
        title = box.select_one("span.phui-header-header")
        content = box.select_one('div[data-sigil="phui-tab-group-view"]')
        if title is None or content is None:
            raise PreconditionError("Diff detail box lacks a header or tab content")

        title.clear()
        for node in _fragment(heading_html):
            title.append(node)

        graph = _fragment(graph_container_html(self.settings))[0]
        if content.contents:
            content.contents[0].replace_with(graph)
        else:
            content.append(graph)

        anchor.box.insert_after(box)
        return VerdictBox(box=box, content=content, graph=graph)

    def file_blocks(self) -> List[DiffFileBlock]:
        blocks: List[DiffFileBlock] = []
        for block in self.soup.select('div[data-sigil="differential-changeset"]'):
            header = block.select_one("h1.differential-file-icon-header")
            if header is None:
                logger.warning("Skipping changeset without a file header")
                continue
            lines = [
                DiffLine(number=_line_number(cell.get("data-n")), element=cell)
                for cell in block.select("table.differential-diff tbody tr td:nth-child(3)")
            ]
            blocks.append(DiffFileBlock(file_name=header.get_text().strip(), lines=lines))
        return blocks

    def insert_inline_comments(self, annotations: Iterable[MethodAnnotation]) -> int:
        """Insert one comment row per annotation below its anchor line, keeping order."""

        last_inserted: Dict[int, Tag] = {}
        count = 0
        for annotation in annotations:
            cell = annotation.element
            if not isinstance(cell, Tag) or cell.parent is None:
                logger.warning("Annotation for %s has no page element", annotation.record.method_name)
                continue
            row = cell.parent
            comment = self._inline_comment_row(annotation.text)
            after = last_inserted.get(id(row), row)
            after.insert_after(comment)
            last_inserted[id(row)] = comment
            count += 1
        return count

    def render(self) -> str:
        return str(self.soup)

    def _inline_comment_row(self, text: str) -> Tag:
        soup = self.soup
        row = soup.new_tag("tr", attrs={"class": "inline", "data-sigil": "inline-row"})
        for css in ("n", "left", "n", "copy"):
            row.append(soup.new_tag("td", attrs={"class": css}))

        content_cell = soup.new_tag("td", attrs={"colspan": "2"})
        comment = soup.new_tag(
            "div",
            attrs={"class": "differential-inline-comment", "data-sigil": "differential-inline-comment"},
        )
        head = soup.new_tag(
            "div",
            attrs={
                "class": "differential-inline-comment-head grouped",
                "data-sigil": "differential-inline-header",
            },
        )
        head_left = soup.new_tag("div", attrs={"class": "inline-head-left"})
        head_left.string = INLINE_AUTHOR
        head.append(head_left)
        comment.append(head)

        body = soup.new_tag("div", attrs={"class": "differential-inline-comment-content"})
        remarkup = soup.new_tag("div", attrs={"class": "phabricator-remarkup"})
        paragraph = soup.new_tag("p")
        paragraph.string = text
        remarkup.append(paragraph)
        body.append(remarkup)
        comment.append(body)

        content_cell.append(comment)
        row.append(content_cell)
        return row


__all__ = ["PageAnchor", "PhabricatorPage", "VerdictBox", "DIFF_ID_PATTERN"]
