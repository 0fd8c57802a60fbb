"""
Chapter Renderer

Renders a chapter's markdown body to HTML and, optionally, re-applies the
stored highlights to it. Offsets are always measured against this rendered
HTML (its text leaves), which is the same markup the reader selects in, so
the renderer is also the reference for offset bounds checks.
"""

import logging
from typing import Any

from bs4 import BeautifulSoup, Tag
from markdown_it import MarkdownIt

from .anchoring.highlight_reconciler import HighlightReconciler
from .anchoring.text_offset_mapper import normalized_text

logger = logging.getLogger(__name__)

CONTAINER_ID = "chapter-content"


class ChapterRenderer:
    """Markdown -> HTML -> BeautifulSoup container, with highlights on demand."""

    def __init__(self):
        # Raw HTML in chapter bodies is escaped; single newlines become <br>
        self._md = MarkdownIt("commonmark", {"html": False, "breaks": True})
        self._reconciler = HighlightReconciler()

    def render_html(self, content_md: str) -> str:
        return self._md.render(content_md or "")

    def build_container(self, content_md: str) -> Tag:
        """Parse the rendered body into a fresh `<div id="chapter-content">`."""
        soup = BeautifulSoup(
            f'<div id="{CONTAINER_ID}">{self.render_html(content_md)}</div>',
            "html.parser",
        )
        return soup.find("div", id=CONTAINER_ID)

    def text_length(self, content_md: str) -> int:
        """Length of the normalized text that annotation offsets index into."""
        return len(normalized_text(self.build_container(content_md)))

    def render_with_highlights(
        self, content_md: str, annotations: list[dict[str, Any]]
    ) -> tuple[str, int]:
        """
        Render the body and wrap every anchored annotation in a marker.

        Returns:
            tuple[str, int]: Inner HTML of the container, normalized text length
        """
        container = self.build_container(content_md)
        text_length = len(normalized_text(container))
        rendering = self._reconciler.apply(annotations, container)
        if rendering.skipped:
            logger.warning(
                f"Annotations without a match in the rendered text: {rendering.skipped}"
            )
        return container.decode_contents(), text_length


chapter_renderer = ChapterRenderer()
