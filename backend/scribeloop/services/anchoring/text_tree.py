"""
Text tree abstraction for the anchoring engine.

Offsets are counted over the atomic text leaves of a content container, in
document order. The engine only needs a few things from a rendering
technology: enumerate leaves, read a leaf's text, check that a leaf is still
attached, resolve a selection boundary point to the text before it, and
replace a leaf in place with a sequence of new leaves and markers.
`TextTree` names that contract; `SoupTextTree` implements it over a
BeautifulSoup document, which is what the chapter renderer produces. Any
other object with the same methods can be passed to the mapper and the
reconciler directly.
"""

from typing import Any, Iterator, Protocol

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString


class TextTree(Protocol):
    """Ordered text leaves with stable identity, replaceable in place."""

    def iter_leaves(self) -> Iterator[Any]: ...

    def leaf_text(self, leaf: Any) -> str: ...

    def is_attached(self, leaf: Any) -> bool: ...

    def make_text(self, text: str) -> Any: ...

    def make_marker(self, text: str, annotation_id: Any) -> Any: ...

    def replace_leaf(self, leaf: Any, pieces: list[Any]) -> None: ...

    def contains(self, node: Any) -> bool: ...

    def text_pieces_before(self, node: Any, offset: int) -> list[str] | None:
        """
        Raw text of every leaf from the start of the tree up to a boundary
        point, one string per leaf (the last one partial). None when the
        point lies outside the tree.
        """
        ...

    def has_markers(self) -> bool:
        """True once highlight markers have been inserted."""
        ...


def is_text_leaf(node: Any) -> bool:
    """Plain text nodes only; comments, doctypes and CDATA carry no visible text."""
    return isinstance(node, NavigableString) and not isinstance(
        node, PreformattedString
    )


def _last_descendant(tag: Tag) -> Any:
    node = tag
    while isinstance(node, Tag) and node.contents:
        node = node.contents[-1]
    return node


class SoupTextTree:
    """TextTree over a BeautifulSoup element (the content container)."""

    def __init__(
        self, root: Tag, marker_tag: str = "mark", marker_class: str = "highlight"
    ):
        self.root = root
        self.marker_tag = marker_tag
        self.marker_class = marker_class
        self._factory = self._find_document(root)

    @staticmethod
    def _find_document(root: Tag) -> BeautifulSoup:
        top = root
        while top.parent is not None:
            top = top.parent
        if isinstance(top, BeautifulSoup):
            return top
        return BeautifulSoup("", "html.parser")

    def iter_leaves(self) -> Iterator[NavigableString]:
        for node in self.root.descendants:
            if is_text_leaf(node):
                yield node

    def leaf_text(self, leaf: NavigableString) -> str:
        return str(leaf)

    def contains(self, node: Any) -> bool:
        current = node
        while current is not None:
            if current is self.root:
                return True
            current = current.parent
        return False

    def is_attached(self, leaf: Any) -> bool:
        return leaf.parent is not None and self.contains(leaf)

    def make_text(self, text: str) -> NavigableString:
        return NavigableString(text)

    def make_marker(self, text: str, annotation_id: Any) -> Tag:
        marker = self._factory.new_tag(
            self.marker_tag,
            attrs={
                "class": self.marker_class,
                "data-annotation-id": str(annotation_id),
            },
        )
        marker.string = text
        return marker

    def replace_leaf(self, leaf: NavigableString, pieces: list[Any]) -> None:
        leaf.replace_with(*pieces)

    def has_markers(self) -> bool:
        return self.root.find(self.marker_tag, class_=self.marker_class) is not None

    def text_pieces_before(self, node: Any, offset: int) -> list[str] | None:
        """
        Raw text of every leaf between the start of the root and a boundary point.

        A boundary point follows DOM range semantics: on a text leaf the offset
        is a character index, on an element it is a child index. The last
        piece is partial when the point falls inside a leaf.

        Returns:
            list[str] | None: One string per leaf, or None when the point does
            not lie within the root or the offset is out of range
        """
        if node is None or not self.contains(node):
            return None

        if is_text_leaf(node):
            if offset < 0 or offset > len(node):
                return None
            pieces = []
            for leaf in self.iter_leaves():
                if leaf is node:
                    pieces.append(str(leaf)[:offset])
                    return pieces
                pieces.append(str(leaf))
            return None

        if not isinstance(node, Tag) or offset < 0 or offset > len(node.contents):
            return None

        if offset < len(node.contents):
            stop = node.contents[offset]
            pieces = []
            for descendant in self.root.descendants:
                if descendant is stop:
                    return pieces
                if is_text_leaf(descendant):
                    pieces.append(str(descendant))
            return None

        # Boundary after the element's last child: include its whole subtree
        last = _last_descendant(node)
        pieces = []
        if last is node:
            # Empty element; stop where it sits in document order
            if node is self.root:
                return pieces
            for descendant in self.root.descendants:
                if descendant is node:
                    return pieces
                if is_text_leaf(descendant):
                    pieces.append(str(descendant))
            return None
        for descendant in self.root.descendants:
            if is_text_leaf(descendant):
                pieces.append(str(descendant))
            if descendant is last:
                return pieces
        return None


def as_text_tree(container: Any) -> Any:
    """Wrap a BeautifulSoup element; pass anything already implementing TextTree through."""
    if isinstance(container, Tag):
        return SoupTextTree(container)
    return container
