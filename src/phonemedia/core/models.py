"""Data models for phonemedia."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from phonemedia.core.config.constants import (
    IMAGE_PLACEHOLDER_ATTR,
    IMAGE_PLACEHOLDER_CLASS,
    IMAGE_SENTINEL,
    IMAGE_TAG_NAME,
    VOICE_PHRASES,
    VOICE_PLACEHOLDER_ATTR,
    VOICE_PLACEHOLDER_CLASS,
    VOICE_SENTINEL,
    VOICE_TAG_NAME,
)

IMAGE_RECORD_TYPE = "image"
VOICE_RECORD_TYPE = "voice_note"
VOICE_SLOT_PREFIX = "vn"

_SLOT_KEY_PATTERN = re.compile(r"^(?:(img|vn))?(\d+)$", re.IGNORECASE)


class TagKind(Enum):
    """The two kinds of media an author can request inline."""

    IMAGE = IMAGE_RECORD_TYPE
    VOICE_NOTE = VOICE_RECORD_TYPE

    @property
    def syntax(self) -> TagSyntax:
        """Return the markup conventions for this kind."""
        return TAG_SYNTAX[self]


@dataclass(frozen=True, slots=True)
class TagSyntax:
    """Markup conventions for one tag kind."""

    name: str
    placeholder_attr: str
    placeholder_class: str
    sentinel: str
    phrases: tuple[str, ...] = ()

    @property
    def open_marker(self) -> str:
        return f"[{self.name}]"

    @property
    def close_marker(self) -> str:
        return f"[/{self.name}]"


TAG_SYNTAX: dict[TagKind, TagSyntax] = {
    TagKind.IMAGE: TagSyntax(
        name=IMAGE_TAG_NAME,
        placeholder_attr=IMAGE_PLACEHOLDER_ATTR,
        placeholder_class=IMAGE_PLACEHOLDER_CLASS,
        sentinel=IMAGE_SENTINEL,
    ),
    TagKind.VOICE_NOTE: TagSyntax(
        name=VOICE_TAG_NAME,
        placeholder_attr=VOICE_PLACEHOLDER_ATTR,
        placeholder_class=VOICE_PLACEHOLDER_CLASS,
        sentinel=VOICE_SENTINEL,
        phrases=VOICE_PHRASES,
    ),
}


@dataclass(frozen=True, slots=True)
class TagMatch:
    """One non-empty tag found in a message's raw text."""

    kind: TagKind
    slot_index: int
    content: str


@dataclass(frozen=True, slots=True)
class Slot:
    """Positional identity of a media widget within one message."""

    kind: TagKind
    index: int

    @property
    def key(self) -> str:
        """Return the persisted key; image and voice slots never collide."""
        if self.kind is TagKind.VOICE_NOTE:
            return f"{VOICE_SLOT_PREFIX}{self.index}"
        return str(self.index)

    @classmethod
    def image(cls, index: int) -> Slot:
        return cls(TagKind.IMAGE, index)

    @classmethod
    def voice(cls, index: int) -> Slot:
        return cls(TagKind.VOICE_NOTE, index)

    @classmethod
    def from_key(
        cls,
        key: str,
        payload: Mapping[str, Any] | None = None,
    ) -> Slot | None:
        """Parse a persisted slot key, using the payload type when the key is bare."""
        match = _SLOT_KEY_PATTERN.match(str(key).strip())
        if match is None:
            return None
        prefix, digits = match.groups()
        if prefix and prefix.lower() == VOICE_SLOT_PREFIX:
            return cls.voice(int(digits))
        if prefix is None and payload is not None:
            if payload.get("type") == VOICE_RECORD_TYPE:
                return cls.voice(int(digits))
        return cls.image(int(digits))


def normalize_record(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Upgrade a persisted media payload to the current shape.

    Legacy image payloads stored a single ``url``; they become a one-variant
    ``urls`` list. The function is pure and idempotent, so it is applied at
    every read and write without tracking whether a record was migrated.
    """
    record_type = payload.get("type")
    if record_type == VOICE_RECORD_TYPE or (
        record_type is None and "text" in payload and "url" not in payload
    ):
        text = payload.get("text")
        return {
            "type": VOICE_RECORD_TYPE,
            "text": text if isinstance(text, str) else "",
        }

    raw_urls = payload.get("urls")
    if isinstance(raw_urls, list):
        urls = [str(url) for url in raw_urls if url]
    else:
        legacy_url = payload.get("url")
        urls = [str(legacy_url)] if legacy_url else []

    raw_active = payload.get("activeIndex", 0)
    if isinstance(raw_active, bool) or not isinstance(raw_active, int):
        raw_active = 0
    active_index = min(max(raw_active, 0), max(len(urls) - 1, 0))

    raw_saved = payload.get("saved")
    saved = sorted(
        {
            index
            for index in (raw_saved if isinstance(raw_saved, list) else [])
            if isinstance(index, int)
            and not isinstance(index, bool)
            and 0 <= index < len(urls)
        },
    )

    prompt = payload.get("prompt")
    return {
        "type": IMAGE_RECORD_TYPE,
        "urls": urls,
        "activeIndex": active_index,
        "prompt": prompt if isinstance(prompt, str) else "",
        "saved": saved,
    }


@dataclass(slots=True)
class ImageRecord:
    """Generated variants for one image slot."""

    variants: list[str]
    prompt: str
    active_index: int = 0
    saved_flags: set[int] = field(default_factory=set)

    kind = TagKind.IMAGE

    @property
    def active_url(self) -> str | None:
        if not self.variants:
            return None
        return self.variants[self.active_index]

    @property
    def is_last(self) -> bool:
        return self.active_index >= len(self.variants) - 1

    def to_payload(self) -> dict[str, Any]:
        return normalize_record(
            {
                "type": IMAGE_RECORD_TYPE,
                "urls": list(self.variants),
                "activeIndex": self.active_index,
                "prompt": self.prompt,
                "saved": sorted(self.saved_flags),
            },
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ImageRecord:
        normalized = normalize_record(payload)
        return cls(
            variants=list(normalized["urls"]),
            prompt=normalized["prompt"],
            active_index=normalized["activeIndex"],
            saved_flags=set(normalized["saved"]),
        )


@dataclass(slots=True)
class VoiceRecord:
    """Text of one voice-note slot."""

    text: str

    kind = TagKind.VOICE_NOTE

    def to_payload(self) -> dict[str, Any]:
        return {"type": VOICE_RECORD_TYPE, "text": self.text}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> VoiceRecord:
        return cls(text=normalize_record(payload)["text"])


MediaRecord = ImageRecord | VoiceRecord


def record_from_payload(payload: Mapping[str, Any]) -> MediaRecord:
    """Build the typed record for a persisted payload of either kind."""
    normalized = normalize_record(payload)
    if normalized["type"] == VOICE_RECORD_TYPE:
        return VoiceRecord.from_payload(normalized)
    return ImageRecord.from_payload(normalized)


@dataclass(slots=True)
class ChatMessage:
    """A chat message as the host stores it."""

    mes: str
    is_user: bool = False
    is_system: bool = False
    name: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
