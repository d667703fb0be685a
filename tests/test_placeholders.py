from __future__ import annotations

import pytest
from bs4 import Tag

from phonemedia.core.models import TagKind
from phonemedia.logic.placeholders import (
    PlaceholderResolver,
    innermost,
    match_class_marker,
    match_exact_marker,
    match_phrase,
)

from ._fakes import render


@pytest.fixture
def resolver() -> PlaceholderResolver:
    return PlaceholderResolver()


def test_exact_marker_wins_over_order(resolver: PlaceholderResolver) -> None:
    root = render(
        '<div data-phone-img="1" id="second"></div><div data-phone-img="0" id="first"></div>',
    )

    node = resolver.resolve(root, TagKind.IMAGE, 0)

    assert node is not None
    assert node["id"] == "first"


def test_mislabelled_markers_fall_back_to_position(resolver: PlaceholderResolver) -> None:
    root = render(
        '<div data-phone-vn="7" id="a"></div><div data-phone-vn="7" id="b"></div>',
    )

    assert match_exact_marker(root, TagKind.VOICE_NOTE, 1) is None
    node = resolver.resolve(root, TagKind.VOICE_NOTE, 1)
    assert node is not None
    assert node["id"] == "b"


def test_sanitizer_prefixed_class_is_recognized(resolver: PlaceholderResolver) -> None:
    root = render(
        '<div class="custom-phone-img-placeholder" id="a"></div>'
        '<div class="phone-img-placeholder" id="b"></div>',
    )

    assert match_class_marker(root, TagKind.IMAGE, 0)["id"] == "a"
    node = resolver.resolve(root, TagKind.IMAGE, 1)
    assert node is not None
    assert node["id"] == "b"


def test_content_fallback_returns_second_candidate(resolver: PlaceholderResolver) -> None:
    root = render(
        "<p>intro</p><div id='one'>\U0001f4f8 selfie</div><div id='two'>\U0001f4f8 beach</div>",
    )

    node = resolver.resolve(root, TagKind.IMAGE, 1)

    assert node is not None
    assert node["id"] == "two"


def test_content_fallback_clamps_to_last_candidate(resolver: PlaceholderResolver) -> None:
    root = render(
        "<div id='a'>▶ 0:03</div><div id='b'>▶ 0:05</div><div id='c'>▶ 0:09</div>",
    )

    node = resolver.resolve(root, TagKind.VOICE_NOTE, 5)

    assert node is not None
    assert node["id"] == "c"


def test_content_fallback_prefers_innermost_div(resolver: PlaceholderResolver) -> None:
    root = render("<div id='outer'><div id='inner'>\U0001f4f8</div></div>")

    node = resolver.resolve(root, TagKind.IMAGE, 0)

    assert node is not None
    assert node["id"] == "inner"


def test_finished_widgets_are_never_candidates(resolver: PlaceholderResolver) -> None:
    root = render(
        '<div class="phone-vn-container" data-phone-widget="1:vn0">'
        '<button class="phone-vn-play-btn">▶</button>'
        "<div class='phone-vn-waveform'>▶</div>"
        "</div>",
    )

    assert resolver.resolve(root, TagKind.VOICE_NOTE, 0) is None


def test_voice_phrase_fallback_is_voice_only(resolver: PlaceholderResolver) -> None:
    root = render("<div id='note'>Sent a Voice Message</div>")

    assert match_phrase(root, TagKind.IMAGE, 0) is None
    node = resolver.resolve(root, TagKind.VOICE_NOTE, 0)
    assert node is not None
    assert node["id"] == "note"


def test_no_candidates_returns_none(resolver: PlaceholderResolver) -> None:
    root = render("<p>nothing to see</p>")

    assert resolver.resolve(root, TagKind.IMAGE, 0) is None


def test_custom_matcher_chain_is_respected() -> None:
    root = render('<div data-phone-img="0" id="marker"></div><div id="special"></div>')

    def match_special(root: Tag, kind: TagKind, index: int) -> Tag | None:
        found = root.find(id="special")
        return found if isinstance(found, Tag) else None

    node = PlaceholderResolver([match_special, match_exact_marker]).resolve(
        root,
        TagKind.IMAGE,
        0,
    )

    assert node is not None
    assert node["id"] == "special"


def test_innermost_drops_ancestors() -> None:
    root = render("<div id='a'><div id='b'><div id='c'></div></div></div><div id='d'></div>")
    nodes = root.find_all("div")

    assert [node["id"] for node in innermost(nodes)] == ["c", "d"]
