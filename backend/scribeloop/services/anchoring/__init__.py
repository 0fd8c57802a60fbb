# Annotation anchoring engine
from .annotation_sidecar import SelectionDebouncer, SidecarState
from .highlight_reconciler import (
    HighlightMatch,
    HighlightReconciler,
    HighlightRendering,
    apply_highlights,
)
from .text_offset_mapper import (
    Selection,
    TextOffsetMapper,
    TextRange,
    get_selection_offsets,
    normalize_text,
    normalized_text,
    select_offsets,
)
from .text_tree import SoupTextTree, TextTree
from .thread_assembler import ThreadAssembler, assemble_thread

__all__ = [
    "TextTree",
    "SoupTextTree",
    "TextOffsetMapper",
    "TextRange",
    "Selection",
    "get_selection_offsets",
    "select_offsets",
    "normalize_text",
    "normalized_text",
    "HighlightReconciler",
    "HighlightRendering",
    "HighlightMatch",
    "apply_highlights",
    "ThreadAssembler",
    "assemble_thread",
    "SidecarState",
    "SelectionDebouncer",
]
