"""
Highlight Reconciler

Re-inserts highlight markers for stored annotations into a rendered chapter.

Each root annotation with both offsets is located against the current text
leaves of the container and every leaf it touches is split into
before-text / marker / after-text. Ranges are applied from the rightmost
start offset to the leftmost: splitting a leaf only disturbs leaves at or
after it, so the ranges still waiting to be applied keep valid offsets.

Overlapping annotations each get their own marker. Because the walk for
every annotation is redone over the leaves as they stand after the previous
splits, overlaps nest as separate marker elements instead of merging. The
nesting order follows from the processing order and is not otherwise
guaranteed.

Nothing here raises for bad records: annotations outside the text produce
no matches and are skipped, so one malformed annotation cannot blank the
whole chapter.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ...models.annotations import Annotation, as_annotation
from .text_offset_mapper import normalize_text, raw_index
from .text_tree import as_text_tree

logger = logging.getLogger(__name__)

AnnotationRecord = Annotation | Mapping[str, Any]
HighlightClickHandler = Callable[[AnnotationRecord], None]


@dataclass(frozen=True)
class HighlightMatch:
    """Where one annotation's range intersects one text leaf (normalized, local)."""

    node: Any
    local_start: int
    local_end: int
    text: str

    @property
    def length(self) -> int:
        return self.local_end - self.local_start


@dataclass
class _Marker:
    element: Any
    annotation: Annotation
    record: AnnotationRecord


class HighlightRendering:
    """
    Markers inserted by one reconcile pass, with click dispatch.

    A click bubbles from the clicked node towards the container and stops at
    the first marker it meets, so nested markers fire independently.
    """

    def __init__(self, tree: Any, on_highlight_click: HighlightClickHandler | None):
        self.tree = tree
        self.on_highlight_click = on_highlight_click
        self._markers: dict[int, _Marker] = {}
        self.skipped: list[int] = []

    def register(
        self, element: Any, annotation: Annotation, record: AnnotationRecord
    ) -> None:
        self._markers[id(element)] = _Marker(element, annotation, record)

    @property
    def markers(self) -> list[Any]:
        return [marker.element for marker in self._markers.values()]

    def markers_for(self, annotation_id: Any) -> list[Any]:
        return [
            marker.element
            for marker in self._markers.values()
            if marker.annotation.id == annotation_id
        ]

    @property
    def highlighted_ids(self) -> list[Any]:
        seen = []
        for marker in self._markers.values():
            if marker.annotation.id not in seen:
                seen.append(marker.annotation.id)
        return seen

    def click(self, node: Any) -> AnnotationRecord | None:
        """
        Dispatch a click on a node inside the container.

        Returns:
            The record of the marker that handled the click, or None when the
            click did not land inside any marker
        """
        current = node
        while current is not None:
            marker = self._markers.get(id(current))
            if marker is not None and marker.element is current:
                if self.on_highlight_click is not None:
                    self.on_highlight_click(marker.record)
                return marker.record
            if getattr(self.tree, "root", None) is current:
                break
            current = getattr(current, "parent", None)
        return None


def _annotation_or_none(record: AnnotationRecord) -> Annotation | None:
    try:
        return as_annotation(record)
    except (ValidationError, TypeError, ValueError) as e:
        logger.warning(f"Ignoring malformed annotation record: {e}")
        return None


class HighlightReconciler:
    """Applies stored annotation ranges to a text tree as clickable markers."""

    def select_candidates(
        self, annotations: Iterable[AnnotationRecord] | None
    ) -> list[tuple[Annotation, AnnotationRecord]]:
        """Root annotations with both offsets, sorted by start offset (stable)."""
        candidates = []
        for record in annotations or []:
            annotation = _annotation_or_none(record)
            if annotation is not None and annotation.is_anchored:
                candidates.append((annotation, record))
        candidates.sort(key=lambda pair: pair[0].start_offset)
        return candidates

    def find_matches(self, annotation: Annotation, tree: Any) -> list[HighlightMatch]:
        """
        Walk the leaves in document order and intersect them with the range.

        The full list is collected before anything is mutated.
        """
        start, end = annotation.start_offset, annotation.end_offset
        if start is None or end is None or end <= start:
            return []

        matches = []
        cursor = 0
        for leaf in list(tree.iter_leaves()):
            text = normalize_text(tree.leaf_text(leaf))
            node_start = cursor
            node_end = cursor + len(text)
            cursor = node_end

            if node_end <= start or node_start >= end:
                continue

            local_start = max(0, start - node_start)
            local_end = min(len(text), end - node_start)
            if local_start < local_end:
                matches.append(
                    HighlightMatch(
                        node=leaf,
                        local_start=local_start,
                        local_end=local_end,
                        text=text[local_start:local_end],
                    )
                )
        return matches

    def _wrap(
        self,
        tree: Any,
        match: HighlightMatch,
        annotation: Annotation,
        record: AnnotationRecord,
        rendering: HighlightRendering,
    ) -> bool:
        if not tree.is_attached(match.node):
            return False

        raw = tree.leaf_text(match.node)
        cut_start = raw_index(raw, match.local_start)
        cut_end = raw_index(raw, match.local_end)

        marker = tree.make_marker(raw[cut_start:cut_end], annotation.id)
        pieces = []
        if cut_start > 0:
            pieces.append(tree.make_text(raw[:cut_start]))
        pieces.append(marker)
        if cut_end < len(raw):
            pieces.append(tree.make_text(raw[cut_end:]))

        tree.replace_leaf(match.node, pieces)
        rendering.register(marker, annotation, record)
        return True

    def apply(
        self,
        annotations: Iterable[AnnotationRecord] | None,
        container: Any,
        on_highlight_click: HighlightClickHandler | None = None,
    ) -> HighlightRendering:
        """
        Insert markers for every qualifying annotation into the container.

        Args:
            annotations: Annotation models or raw records, in any order
            container: BeautifulSoup element or any TextTree implementation
            on_highlight_click: Called with the full record when a marker is clicked

        Returns:
            HighlightRendering: The inserted markers. The container is left
            untouched when no annotation qualifies.
        """
        tree = as_text_tree(container)
        rendering = HighlightRendering(tree, on_highlight_click)

        candidates = self.select_candidates(annotations)
        if not candidates:
            return rendering

        for annotation, record in reversed(candidates):
            matches = self.find_matches(annotation, tree)
            if not matches:
                rendering.skipped.append(annotation.id)
                continue
            for match in matches:
                self._wrap(tree, match, annotation, record, rendering)

        logger.debug(
            f"Applied {len(rendering.markers)} highlight markers "
            f"({len(rendering.skipped)} annotations without matches)"
        )
        return rendering


def apply_highlights(
    annotations: Iterable[AnnotationRecord] | None,
    container: Any,
    on_highlight_click: HighlightClickHandler | None = None,
) -> HighlightRendering:
    return HighlightReconciler().apply(annotations, container, on_highlight_click)
