"""Placeholder resolution for media widgets.

Authors mark where a widget should go, but models are sloppy: indices get
mislabelled, the host sanitizer renames classes, and sometimes there is only
an emoji in a ``div``. Resolution is an ordered chain of matchers; each one
returns a node or ``None`` and the first hit wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from bs4 import Tag

from phonemedia.core.config.constants import SANITIZER_CLASS_PREFIX, WIDGET_CLASSES
from phonemedia.core.models import TagKind
from phonemedia.logic.tree import has_class

if TYPE_CHECKING:
    from bs4 import PageElement

logger = logging.getLogger(__name__)

Matcher = Callable[[Tag, TagKind, int], Tag | None]


def is_widget(node: PageElement | None) -> bool:
    """Check whether ``node`` is one of our finished or in-progress widgets."""
    return any(has_class(node, widget_class) for widget_class in WIDGET_CLASSES)


def is_inside_widget(node: Tag) -> bool:
    """Check whether ``node`` is a widget or sits inside one."""
    if is_widget(node):
        return True
    return any(is_widget(parent) for parent in node.parents)


def contains_widget(node: Tag) -> bool:
    return node.find(is_widget) is not None


def _pick(candidates: Sequence[Tag], index: int) -> Tag | None:
    """Select by position, clamping out-of-range requests to the last node."""
    if not candidates:
        return None
    return candidates[min(max(index, 0), len(candidates) - 1)]


def _available(nodes: Sequence[Tag]) -> list[Tag]:
    return [node for node in nodes if not is_inside_widget(node)]


def match_exact_marker(root: Tag, kind: TagKind, index: int) -> Tag | None:
    """Tier 1: the node tagged with this kind and this exact slot index."""
    attr = kind.syntax.placeholder_attr
    candidates = _available(
        root.find_all(
            lambda node: str(node.get(attr, "")).strip() == str(index),
        ),
    )
    return candidates[0] if candidates else None


def match_any_marker(root: Tag, kind: TagKind, index: int) -> Tag | None:
    """Tier 2: any node tagged with this kind, whatever index it declares."""
    attr = kind.syntax.placeholder_attr
    return _pick(_available(root.find_all(attrs={attr: True})), index)


def placeholder_classes(kind: TagKind) -> tuple[str, ...]:
    base = kind.syntax.placeholder_class
    return (f"{SANITIZER_CLASS_PREFIX}{base}", base)


def match_class_marker(root: Tag, kind: TagKind, index: int) -> Tag | None:
    """Tier 3: a node carrying the placeholder class, sanitizer-prefixed or not."""
    class_names = placeholder_classes(kind)
    candidates = root.find_all(
        lambda node: any(has_class(node, name) for name in class_names),
    )
    return _pick(_available(candidates), index)


def innermost(candidates: Sequence[Tag]) -> list[Tag]:
    """Drop every candidate that has another candidate nested inside it."""
    candidate_ids = {id(node) for node in candidates}
    nested_in: set[int] = set()
    for node in candidates:
        for parent in node.parents:
            if id(parent) in candidate_ids:
                nested_in.add(id(parent))
    return [node for node in candidates if id(node) not in nested_in]


def _content_candidates(
    root: Tag,
    predicate: Callable[[str], bool],
) -> list[Tag]:
    candidates = [
        node
        for node in root.find_all("div")
        if predicate(node.get_text())
        and not contains_widget(node)
        and not is_inside_widget(node)
    ]
    return innermost(candidates)


def match_sentinel(root: Tag, kind: TagKind, index: int) -> Tag | None:
    """Tier 4: a ``div`` showing the kind's sentinel glyph."""
    sentinel = kind.syntax.sentinel
    return _pick(
        _content_candidates(root, lambda text: sentinel in text),
        index,
    )


def match_phrase(root: Tag, kind: TagKind, index: int) -> Tag | None:
    """Tier 5: a ``div`` mentioning the kind by name; voice notes only."""
    phrases = tuple(phrase.lower() for phrase in kind.syntax.phrases)
    if not phrases:
        return None
    return _pick(
        _content_candidates(
            root,
            lambda text: any(phrase in text.lower() for phrase in phrases),
        ),
        index,
    )


DEFAULT_MATCHERS: tuple[Matcher, ...] = (
    match_exact_marker,
    match_any_marker,
    match_class_marker,
    match_sentinel,
    match_phrase,
)


class PlaceholderResolver:
    """Find the node a media widget should replace."""

    def __init__(self, matchers: Sequence[Matcher] = DEFAULT_MATCHERS) -> None:
        self.matchers = tuple(matchers)

    def resolve(self, root: Tag, kind: TagKind, index: int) -> Tag | None:
        """Run the matchers in order and return the first hit."""
        for matcher in self.matchers:
            node = matcher(root, kind, index)
            if node is not None:
                logger.debug(
                    "Resolved %s slot %s via %s",
                    kind.value,
                    index,
                    getattr(matcher, "__name__", matcher),
                )
                return node
        logger.debug("No placeholder found for %s slot %s", kind.value, index)
        return None
