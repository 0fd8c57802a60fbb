"""
Thread Assembler

Rebuilds reply trees from the flat, parent-referencing annotation list the
database returns. The children index is built once per call; siblings are
ordered by parsed creation time with ties kept in input order. A visited
set guards against duplicate ids and malformed (cyclic) parent chains, so
assembly always terminates.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from ...models.annotations import Annotation, AnnotationThread, as_annotation

logger = logging.getLogger(__name__)

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def creation_time(value: datetime | str | None) -> datetime:
    """
    Parse a stored timestamp into an aware UTC datetime for ordering.

    Accepts datetime objects, SQLite "YYYY-MM-DD HH:MM:SS" text and ISO 8601
    strings (a trailing "Z" included). Naive values are taken as UTC.
    Missing or unparseable values sort first.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Unparseable annotation timestamp: {value!r}")
            return _EARLIEST
    if not isinstance(value, datetime):
        return _EARLIEST
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _creation_key(annotation: Annotation) -> datetime:
    return creation_time(annotation.created_at)


class ThreadAssembler:
    """Turns a flat annotation list into ordered reply trees."""

    def __init__(self, annotations: Iterable[Annotation | Mapping[str, Any]] | None):
        self.annotations: list[Annotation] = []
        for record in annotations or []:
            try:
                self.annotations.append(as_annotation(record))
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed annotation record: {e}")

        self._by_id: dict[Any, Annotation] = {}
        self._children: dict[Any, list[Annotation]] = defaultdict(list)
        for annotation in self.annotations:
            # First occurrence of a duplicated id wins, everywhere
            if annotation.id in self._by_id:
                continue
            self._by_id[annotation.id] = annotation
            if annotation.parent_id is not None:
                self._children[annotation.parent_id].append(annotation)

        for siblings in self._children.values():
            siblings.sort(key=_creation_key)

    def _build(self, root: Annotation, visited: set) -> AnnotationThread:
        # Explicit stack: reply chains can be deeper than the recursion limit
        visited.add(root.id)
        top = AnnotationThread(annotation=root, replies=[])
        stack = [(top, root)]
        while stack:
            thread, annotation = stack.pop()
            for child in self._children.get(annotation.id, []):
                if child.id in visited:
                    continue
                visited.add(child.id)
                child_thread = AnnotationThread(annotation=child, replies=[])
                thread.replies.append(child_thread)
                stack.append((child_thread, child))
        return top

    def assemble(self, root_id: Any) -> AnnotationThread | None:
        """
        Build the thread rooted at root_id.

        Returns:
            AnnotationThread | None: None when no annotation has that id
        """
        root = self._by_id.get(root_id)
        if root is None:
            return None
        return self._build(root, set())

    def assemble_all(self) -> list[AnnotationThread]:
        """
        Every root annotation with its replies.

        Anchored roots come first in text order, then creation time; roots
        without offsets follow, by creation time.
        """
        roots = [
            annotation
            for annotation in self._by_id.values()
            if annotation.parent_id is None
        ]
        roots.sort(
            key=lambda a: (
                a.start_offset is None,
                a.start_offset if a.start_offset is not None else 0,
                _creation_key(a),
            )
        )
        visited: set = set()
        threads = []
        for root in roots:
            if root.id in visited:
                continue
            threads.append(self._build(root, visited))
        return threads

    def descendant_ids(self, root_id: Any) -> list[Any]:
        """Ids of the annotation and its whole reply subtree (cascade scope)."""
        thread = self.assemble(root_id)
        if thread is None:
            return []
        return [annotation.id for annotation in thread.walk()]


def assemble_thread(
    annotations: Iterable[Annotation | Mapping[str, Any]] | None, root_id: Any
) -> AnnotationThread | None:
    return ThreadAssembler(annotations).assemble(root_id)
