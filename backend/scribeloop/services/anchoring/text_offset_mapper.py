"""
Text Offset Mapper

Converts a reader's text selection into a content-relative, normalized
character range `{start, end, text}`, and back.

Offsets are measured in normalized characters: CRLF pairs collapse to a
single LF and any remaining lone CR becomes LF. Every leaf is normalized on
its own, exactly like the highlight reconciler measures leaves, so an offset
captured here lands on the same characters when highlights are re-applied.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from ...models.annotations import SelectionOffsets
from .text_tree import as_text_tree

logger = logging.getLogger(__name__)

_LINE_BREAKS = re.compile(r"\r\n?")


def normalize_text(text: str) -> str:
    """Collapse CRLF and lone CR to LF."""
    return _LINE_BREAKS.sub("\n", text)


def raw_index(raw: str, normalized_index: int) -> int:
    """
    Map an index into normalize_text(raw) back to the matching index in raw.

    A CRLF pair counts as one normalized character, so the raw index can run
    ahead of the normalized one.
    """
    if "\r" not in raw:
        return normalized_index
    count = 0
    index = 0
    while index < len(raw) and count < normalized_index:
        index += 2 if raw.startswith("\r\n", index) else 1
        count += 1
    return index


@dataclass
class TextRange:
    """A DOM-style range between two boundary points (node, offset)."""

    start_container: Any
    start_offset: int
    end_container: Any
    end_offset: int

    @property
    def collapsed(self) -> bool:
        return (
            self.start_container is self.end_container
            and self.start_offset == self.end_offset
        )


@dataclass
class Selection:
    """The reader's current selection: zero or more ranges, first one wins."""

    ranges: list[TextRange] = field(default_factory=list)

    @property
    def range_count(self) -> int:
        return len(self.ranges)

    @property
    def is_collapsed(self) -> bool:
        return not self.ranges or self.ranges[0].collapsed

    def get_range_at(self, index: int) -> TextRange:
        return self.ranges[index]


def _normalized_join(pieces: list[str]) -> str:
    return "".join(normalize_text(piece) for piece in pieces)


def get_selection_offsets(
    selection: Selection | None, root: Any
) -> SelectionOffsets | None:
    """
    Compute normalized offsets of a selection relative to a root container.

    Args:
        selection: The reader's selection, or None
        root: The content container (BeautifulSoup element or any TextTree)

    Returns:
        SelectionOffsets | None: None for an absent, collapsed or otherwise
        unusable selection. Never raises for those.
    """
    if selection is None or selection.is_collapsed or root is None:
        return None

    tree = as_text_tree(root)

    selected_range = selection.get_range_at(0)
    before_start = tree.text_pieces_before(
        selected_range.start_container, selected_range.start_offset
    )
    before_end = tree.text_pieces_before(
        selected_range.end_container, selected_range.end_offset
    )
    if before_start is None or before_end is None:
        logger.debug("Selection boundary lies outside the content container")
        return None

    pre_text = _normalized_join(before_start)
    through_end = _normalized_join(before_end)
    if len(through_end) <= len(pre_text):
        return None

    selected_text = through_end[len(pre_text) :]
    return SelectionOffsets(
        start=len(pre_text),
        end=len(pre_text) + len(selected_text),
        text=selected_text,
    )


def normalized_text(root: Any) -> str:
    """Full normalized text of a container, leaf by leaf."""
    tree = as_text_tree(root)
    return "".join(normalize_text(tree.leaf_text(leaf)) for leaf in tree.iter_leaves())


def _locate(tree: Any, offset: int, prefer_next: bool) -> tuple[Any, int] | None:
    cursor = 0
    leaves = list(tree.iter_leaves())
    for position, leaf in enumerate(leaves):
        raw = tree.leaf_text(leaf)
        length = len(normalize_text(raw))
        if cursor <= offset <= cursor + length:
            at_leaf_end = offset == cursor + length
            if at_leaf_end and prefer_next and position + 1 < len(leaves):
                cursor += length
                continue
            return leaf, raw_index(raw, offset - cursor)
        cursor += length
    return None


def select_offsets(root: Any, start: int, end: int) -> Selection | None:
    """
    Build a selection covering the normalized range [start, end) of a container.

    The inverse of get_selection_offsets; returns None when the range is
    empty or falls outside the container's text.
    """
    if start < 0 or end <= start:
        return None
    tree = as_text_tree(root)
    start_point = _locate(tree, start, prefer_next=True)
    end_point = _locate(tree, end, prefer_next=False)
    if start_point is None or end_point is None:
        return None
    return Selection(
        ranges=[TextRange(start_point[0], start_point[1], end_point[0], end_point[1])]
    )


class TextOffsetMapper:
    """Stateless facade bound to one content container."""

    def __init__(self, root: Any):
        self.root = root

    def offsets_for(self, selection: Selection | None) -> SelectionOffsets | None:
        return get_selection_offsets(selection, self.root)

    def selection_for(self, start: int, end: int) -> Selection | None:
        return select_offsets(self.root, start, end)

    def text_length(self) -> int:
        return len(normalized_text(self.root))
