"""Removal of tag markup from a rendered BeautifulSoup tree.

Rendered tags can straddle formatting: ``[VN]hello <em>there</em>[/VN]``
produces three text nodes under two parents. The stripper finds the span by
walking text nodes in document order and deletes it in one splice, the way a
DOM ``Range.deleteContents()`` would, so elements outside the span (and any
state the host attached to them) survive untouched.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag
from bs4.element import PreformattedString

from phonemedia.core.config.constants import POSITION_MARKER_CLASS
from phonemedia.core.models import TagKind

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TextPosition:
    """A boundary point inside a text node."""

    node: NavigableString
    offset: int


def iter_text_nodes(root: Tag) -> list[NavigableString]:
    """Return the text nodes under ``root`` in document order.

    Comments, CDATA, doctypes and other preformatted strings are not text.
    """
    return [
        node
        for node in root.descendants
        if isinstance(node, NavigableString)
        and not isinstance(node, PreformattedString)
    ]


def _next_outside(node: PageElement) -> PageElement | None:
    """Return the first node after ``node`` that is not one of its descendants."""
    current: PageElement | None = node
    while current is not None:
        if current.next_sibling is not None:
            return current.next_sibling
        current = current.parent
    return None


def _set_text(node: NavigableString, text: str) -> NavigableString | None:
    """Replace the value of a text node, dropping it when it becomes empty."""
    if not text:
        node.extract()
        return None
    if text == str(node):
        return node
    replacement = NavigableString(text)
    node.replace_with(replacement)
    return replacement


def splice_range(start: TextPosition, end: TextPosition) -> None:
    """Delete everything between two boundary points, in place.

    ``start`` must not come after ``end`` in document order. Nodes wholly
    inside the span are removed; elements that only partially overlap it
    (ancestors of either boundary) are kept with their outside content, and
    the two boundary text nodes are truncated.
    """
    if start.node is end.node:
        text = str(start.node)
        _set_text(start.node, text[: start.offset] + text[end.offset :])
        return

    end_ancestors = {id(parent) for parent in end.node.parents}
    contained: list[PageElement] = []
    node = _next_outside(start.node)
    while node is not None and node is not end.node:
        if id(node) in end_ancestors:
            # Partially contained: keep the element and walk into it.
            node = node.contents[0] if isinstance(node, Tag) else None
            continue
        contained.append(node)
        node = _next_outside(node)

    for element in contained:
        element.extract()

    start_text = str(start.node)
    end_text = str(end.node)
    _set_text(start.node, start_text[: start.offset])
    _set_text(end.node, end_text[end.offset :])


def find_marker_span(
    root: Tag,
    open_marker: str,
    close_marker: str,
) -> tuple[TextPosition, TextPosition] | None:
    """Locate the first ``open_marker ... close_marker`` span under ``root``.

    Matching is case-insensitive. The close marker is searched only after the
    open marker, possibly in a later text node.
    """
    open_pattern = re.compile(re.escape(open_marker), re.IGNORECASE)
    close_pattern = re.compile(re.escape(close_marker), re.IGNORECASE)
    start: TextPosition | None = None

    for node in iter_text_nodes(root):
        text = str(node)
        search_from = 0
        if start is None:
            open_match = open_pattern.search(text)
            if open_match is None:
                continue
            start = TextPosition(node, open_match.start())
            search_from = open_match.end()

        close_match = close_pattern.search(text, search_from)
        if close_match is not None:
            return start, TextPosition(node, close_match.end())

    return None


def has_class(node: PageElement | None, class_name: str) -> bool:
    """Check an element's class list, whichever way the parser stored it."""
    if not isinstance(node, Tag):
        return False
    classes = node.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return class_name in classes


def build_position_marker() -> Tag:
    """Create the invisible anchor left where a voice-note tag used to be."""
    soup = BeautifulSoup("", "html.parser")
    marker = soup.new_tag("span")
    marker["class"] = [POSITION_MARKER_CLASS]
    marker["hidden"] = ""
    marker["aria-hidden"] = "true"
    return marker


def is_position_marker(node: PageElement | None) -> bool:
    return has_class(node, POSITION_MARKER_CLASS)


def _insert_marker(
    start: TextPosition,
    end: TextPosition,
) -> tuple[Tag, TextPosition, TextPosition]:
    """Split the start node and put a position marker at the span start."""
    marker = build_position_marker()
    text = str(start.node)
    before, after = text[: start.offset], text[start.offset :]

    after_node = NavigableString(after)
    start.node.insert_before(marker)
    if before:
        marker.insert_before(NavigableString(before))
    same_node = start.node is end.node
    start.node.replace_with(after_node)

    new_end = (
        TextPosition(after_node, end.offset - start.offset) if same_node else end
    )
    return marker, TextPosition(after_node, 0), new_end


def strip_tag_kind(root: Tag, kind: TagKind) -> list[Tag]:
    """Remove every ``kind`` tag span from the tree.

    Returns the position markers inserted for voice-note tags, in document
    order; image tags leave no marker.
    """
    syntax = kind.syntax
    markers: list[Tag] = []
    while True:
        span = find_marker_span(root, syntax.open_marker, syntax.close_marker)
        if span is None:
            break
        start, end = span
        if kind is TagKind.VOICE_NOTE:
            marker, start, end = _insert_marker(start, end)
            markers.append(marker)
        splice_range(start, end)
    return markers


def strip_tags_from_tree(root: Tag) -> list[Tag]:
    """Strip image and voice-note markup from a rendered message.

    Must run before placeholders are replaced, since a tag span that encloses
    a placeholder would otherwise take the freshly inserted widget with it.
    """
    strip_tag_kind(root, TagKind.IMAGE)
    markers = strip_tag_kind(root, TagKind.VOICE_NOTE)
    if markers:
        logger.debug("Left %s voice-note position marker(s)", len(markers))
    return markers


def remove_position_markers(
    markers: Iterable[Tag] = (),
    root: Tag | None = None,
) -> None:
    """Delete leftover position markers, given explicitly or found under ``root``."""
    leftovers = list(markers)
    if root is not None:
        leftovers.extend(root.find_all(is_position_marker))
    for marker in leftovers:
        if marker.parent is not None:
            marker.extract()


def is_attached(node: PageElement | None, root: Tag) -> bool:
    """Check whether ``node`` is still inside ``root``."""
    if node is None:
        return False
    return any(parent is root for parent in node.parents)
