"""
Annotation Sidecar Controller

Thin orchestration between reader events and the anchoring engine:
- selection events -> TextOffsetMapper
- loaded annotation lists -> HighlightReconciler
- opening a highlight -> ThreadAssembler

State is an explicit SidecarState value passed in and returned by every
handler; nothing is kept at module level, so several chapters or panes can
be driven side by side.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from ... import config
from ...models.annotations import (
    AnnotationCreate,
    AnnotationThread,
    ReplyCreate,
    SelectionOffsets,
)
from .highlight_reconciler import (
    AnnotationRecord,
    HighlightClickHandler,
    HighlightReconciler,
    HighlightRendering,
)
from .text_offset_mapper import Selection, get_selection_offsets
from .text_tree import as_text_tree
from .thread_assembler import ThreadAssembler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SidecarState:
    """Everything the sidecar knows about one open chapter."""

    chapter_id: Any = None
    current_selection: SelectionOffsets | None = None
    annotations: tuple[AnnotationRecord, ...] = ()
    active_thread: AnnotationThread | None = None
    rendering: HighlightRendering | None = field(default=None, compare=False)


def capture_selection(
    state: SidecarState, selection: Selection | None, root: Any
) -> SidecarState:
    """Map the selection to offsets; a collapsed or unusable one clears it."""
    offsets = get_selection_offsets(selection, root)
    return replace(state, current_selection=offsets)


def clear_selection(state: SidecarState) -> SidecarState:
    return replace(state, current_selection=None)


def load_annotations(
    state: SidecarState,
    records: list[AnnotationRecord],
    root: Any,
    on_highlight_click: HighlightClickHandler | None = None,
) -> SidecarState:
    """
    Replace the annotation snapshot and highlight a freshly rendered container.

    The container must be unhighlighted: reloads rebuild the chapter from
    scratch rather than patching previous markers.

    Raises:
        ValueError: If the container already carries highlight markers
    """
    if as_text_tree(root).has_markers():
        raise ValueError("Container already carries highlight markers; render a fresh one")
    snapshot = tuple(records or ())
    rendering = HighlightReconciler().apply(snapshot, root, on_highlight_click)
    logger.debug(
        f"Loaded {len(snapshot)} annotations for chapter {state.chapter_id}, "
        f"{len(rendering.highlighted_ids)} highlighted"
    )

    active_thread = None
    if state.active_thread is not None:
        # Keep the open thread in sync with the new snapshot (None if deleted)
        active_thread = ThreadAssembler(snapshot).assemble(
            state.active_thread.annotation.id
        )
    return replace(
        state,
        annotations=snapshot,
        rendering=rendering,
        active_thread=active_thread,
    )


def open_thread(state: SidecarState, annotation_id: Any) -> SidecarState:
    thread = ThreadAssembler(state.annotations).assemble(annotation_id)
    return replace(state, active_thread=thread)


def close_thread(state: SidecarState) -> SidecarState:
    return replace(state, active_thread=None, current_selection=None)


def draft_annotation(
    state: SidecarState, pseudo: str, comment: str
) -> AnnotationCreate | None:
    """Creation payload for the captured selection, or None without one."""
    selection = state.current_selection
    if selection is None:
        return None
    return AnnotationCreate(
        pseudo=pseudo,
        comment=comment,
        start_offset=selection.start,
        end_offset=selection.end,
        selected_text=selection.text,
    )


def draft_reply(pseudo: str, comment: str) -> ReplyCreate:
    return ReplyCreate(pseudo=pseudo, comment=comment)


class SelectionDebouncer:
    """
    Holds back selection changes until they stop for `delay` seconds.

    Touch devices fire a change for every step of a handle drag; only the
    settled selection matters. The clock is injectable for tests.
    """

    def __init__(
        self,
        delay: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.delay = config.SELECTION_DEBOUNCE_SECONDS if delay is None else delay
        self.clock = clock
        self._pending: Selection | None = None
        self._changed_at: float | None = None

    def push(self, selection: Selection | None) -> None:
        self._pending = selection
        self._changed_at = self.clock()

    @property
    def has_pending(self) -> bool:
        return self._changed_at is not None

    def settle(self) -> tuple[bool, Selection | None]:
        """
        Returns:
            tuple[bool, Selection | None]: (settled, selection). settled is
            False while changes are still arriving; once True the pending
            selection is handed over and cleared.
        """
        if self._changed_at is None:
            return False, None
        if self.clock() - self._changed_at < self.delay:
            return False, None
        selection = self._pending
        self._pending = None
        self._changed_at = None
        return True, selection


def poll_selection(
    state: SidecarState, debouncer: SelectionDebouncer, root: Any
) -> SidecarState:
    """Capture the debounced selection once it has settled; otherwise no change."""
    settled, selection = debouncer.settle()
    if not settled:
        return state
    return capture_selection(state, selection, root)
