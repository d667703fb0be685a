from __future__ import annotations

import asyncio

import pytest

from phonemedia.core.config import MediaSettings
from phonemedia.core.exceptions import GalleryUploadError
from phonemedia.core.models import ChatMessage, ImageRecord, Slot, VoiceRecord
from phonemedia.logic.binder import ImageBinding, VoiceBinding, WidgetBinder
from phonemedia.logic.store import MediaStateStore
from phonemedia.logic.widgets import (
    build_image_container,
    build_voice_player,
    get_playback_state,
)
from phonemedia.services.media import MediaServices

from ._fakes import FakeAudio, FakeExecutor, FakeGallery, FakeHost


@pytest.fixture
def gallery() -> FakeGallery:
    return FakeGallery()


@pytest.fixture
def binder(
    services: MediaServices,
    settings: MediaSettings,
    gallery: FakeGallery,
) -> WidgetBinder:
    services.gallery = gallery  # type: ignore[assignment]
    return WidgetBinder(services, settings, lambda: "Alice")


async def _image_binding(
    binder: WidgetBinder,
    host: FakeHost,
    record: ImageRecord,
) -> tuple[ImageBinding, MediaStateStore]:
    store = MediaStateStore(ChatMessage(mes="hi"), host.save_chat, message_id=1)
    await store.upsert(Slot.image(0), record)
    widget = build_image_container(record, "1:0")
    return binder.bind_image(widget, store, 0), store


async def _voice_binding(
    binder: WidgetBinder,
    host: FakeHost,
    text: str,
) -> tuple[VoiceBinding, MediaStateStore]:
    message = ChatMessage(mes=f"intro [VN]{text}[/VN]")
    store = MediaStateStore(message, host.save_chat, message_id=1)
    await store.upsert(Slot.voice(0), VoiceRecord(text=text))
    widget = build_voice_player(text, "1:vn0")
    return binder.bind_voice(widget, store, 0), store


@pytest.mark.asyncio
async def test_next_at_last_variant_generates_new_one(
    binder: WidgetBinder,
    host: FakeHost,
    executor: FakeExecutor,
) -> None:
    executor.urls = ["/b.png"]
    binding, store = await _image_binding(
        binder,
        host,
        ImageRecord(variants=["/a.png"], prompt="a cat"),
    )

    assert await binding.next()

    record = store.get_image(0)
    assert record.variants == ["/a.png", "/b.png"]
    assert record.active_index == 1
    assert executor.commands == ["/imagine quiet=true gallery=false a cat"]
    assert binding.widget.find("img")["src"] == "/b.png"
    assert binding.widget.find(class_="phone-img-counter").get_text() == "2/2"
    assert "fading" not in binding.widget.find("img")["class"]


@pytest.mark.asyncio
async def test_carousel_navigation_does_not_generate(
    binder: WidgetBinder,
    host: FakeHost,
    executor: FakeExecutor,
) -> None:
    binding, store = await _image_binding(
        binder,
        host,
        ImageRecord(variants=["/a.png", "/b.png"], prompt="p"),
    )

    assert not await binding.previous()
    assert await binding.next()
    assert store.get_image(0).active_index == 1
    assert await binding.previous()

    assert store.get_image(0).active_index == 0
    assert binding.widget.find("img")["src"] == "/a.png"
    assert executor.commands == []


@pytest.mark.asyncio
async def test_failed_variant_generation_keeps_record(
    binder: WidgetBinder,
    host: FakeHost,
) -> None:
    binding, store = await _image_binding(
        binder,
        host,
        ImageRecord(variants=["/a.png"], prompt="p"),
    )

    assert not await binding.next()

    assert store.get_image(0).variants == ["/a.png"]
    assert not binding.widget.find(class_="phone-img-nav-right").has_attr("disabled")


@pytest.mark.asyncio
async def test_prompt_edit_flow(
    binder: WidgetBinder,
    host: FakeHost,
    executor: FakeExecutor,
) -> None:
    executor.urls = ["/new.png"]
    binding, store = await _image_binding(
        binder,
        host,
        ImageRecord(variants=["/a.png"], prompt="a cat"),
    )

    assert binding.edit() == "a cat"
    assert "editing" in binding.widget["class"]
    assert not await binding.save_edit("   ")
    assert await binding.save_edit_and_generate("a dog")

    record = store.get_image(0)
    assert record.prompt == "a dog"
    assert record.variants == ["/a.png", "/new.png"]
    assert executor.commands[-1].endswith(" a dog")
    assert "editing" not in binding.widget["class"]
    assert binding.widget.find(class_="phone-img-prompt").get_text() == "a dog"


@pytest.mark.asyncio
async def test_save_to_gallery_once_per_variant(
    binder: WidgetBinder,
    host: FakeHost,
    gallery: FakeGallery,
) -> None:
    binding, store = await _image_binding(
        binder,
        host,
        ImageRecord(variants=["/a.png"], prompt="p"),
    )

    assert await binding.save_to_gallery()
    assert not await binding.save_to_gallery()

    assert gallery.saved == [("/a.png", "Alice")]
    assert store.get_image(0).saved_flags == {0}
    assert "saved" in binding.widget.find(class_="phone-img-save")["class"]


@pytest.mark.asyncio
async def test_gallery_failure_reverts_to_retryable_state(
    binder: WidgetBinder,
    host: FakeHost,
    gallery: FakeGallery,
) -> None:
    gallery.error = GalleryUploadError("HTTP 500", status_code=500)
    binding, store = await _image_binding(
        binder,
        host,
        ImageRecord(variants=["/a.png"], prompt="p"),
    )

    assert not await binding.save_to_gallery()

    save = binding.widget.find(class_="phone-img-save")
    assert "saving" not in save["class"]
    assert "saved" not in save["class"]
    assert store.get_image(0).saved_flags == set()

    gallery.error = None
    assert await binding.save_to_gallery()


@pytest.mark.asyncio
async def test_play_tracks_audio_element(
    binder: WidgetBinder,
    host: FakeHost,
    executor: FakeExecutor,
    audio: FakeAudio,
) -> None:
    binding, _store = await _voice_binding(binder, host, "hey *giggles* you")
    states: list[str] = []

    async def _play_audio(command: str) -> None:
        assert command == '/speak voice="Alice" hey you'
        audio.emit("play")
        states.append(get_playback_state(binding.widget))
        audio.emit("ended")

    executor.on_execute = _play_audio

    assert await binding.play()
    assert states == ["playing"]
    assert get_playback_state(binding.widget) == "idle"
    assert not binding.busy
    assert audio.listener_count == 0


@pytest.mark.asyncio
async def test_play_is_ignored_while_busy(
    binder: WidgetBinder,
    host: FakeHost,
    executor: FakeExecutor,
    audio: FakeAudio,
) -> None:
    binding, _store = await _voice_binding(binder, host, "hello there")
    release = asyncio.Event()

    async def _slow_speech(_command: str) -> None:
        await release.wait()
        audio.emit("play")
        audio.emit("ended")

    executor.on_execute = _slow_speech
    first = asyncio.create_task(binding.play())
    await asyncio.sleep(0.01)

    assert get_playback_state(binding.widget) == "loading"
    assert not await binding.play()

    release.set()
    assert await first
    assert len(executor.commands) == 1


@pytest.mark.asyncio
async def test_play_times_out_without_audio(
    binder: WidgetBinder,
    host: FakeHost,
) -> None:
    binding, _store = await _voice_binding(binder, host, "hello")

    assert not await binding.play()
    assert get_playback_state(binding.widget) == "idle"
    assert not binding.busy


@pytest.mark.asyncio
async def test_speech_failure_reverts_to_idle(
    binder: WidgetBinder,
    host: FakeHost,
    executor: FakeExecutor,
) -> None:
    executor.error = OSError("tts offline")
    binding, store = await _voice_binding(binder, host, "hello")

    assert not await binding.play()
    assert get_playback_state(binding.widget) == "idle"
    assert store.get_voice(0).text == "hello"


@pytest.mark.asyncio
async def test_empty_speech_text_is_not_sent(
    binder: WidgetBinder,
    host: FakeHost,
    executor: FakeExecutor,
) -> None:
    binding, _store = await _voice_binding(binder, host, "*sighs*")

    assert not await binding.play()
    assert executor.commands == []


@pytest.mark.asyncio
async def test_voice_edit_rewrites_tag_and_duration(
    binder: WidgetBinder,
    host: FakeHost,
) -> None:
    binding, store = await _voice_binding(binder, host, "short")

    assert binding.edit() == "short"
    assert await binding.save_edit(" ".join(["word"] * 300))

    assert store.message.mes == f"intro [VN]{' '.join(['word'] * 300)}[/VN]"
    assert binding.widget.find(class_="phone-vn-duration").get_text() == "2:00"


@pytest.mark.asyncio
async def test_voice_edit_with_close_marker_is_rejected(
    binder: WidgetBinder,
    host: FakeHost,
) -> None:
    binding, store = await _voice_binding(binder, host, "a")
    store.message.mes = "[VN]a[/VN] x [VN]b[/VN]"
    saves = host.save_calls

    binding.edit()
    assert not await binding.save_edit("one [/vn] two")

    assert store.message.mes == "[VN]a[/VN] x [VN]b[/VN]"
    assert store.get_voice(0) == VoiceRecord(text="a")
    assert host.save_calls == saves
    assert "editing" in binding.widget.get("class")


def test_rebinding_replaces_previous_binding(
    binder: WidgetBinder,
    host: FakeHost,
) -> None:
    store = MediaStateStore(ChatMessage(mes=""), host.save_chat, message_id=1)
    widget = build_image_container(ImageRecord(variants=["/a"], prompt="p"), "1:0")

    first = binder.bind_image(widget, store, 0)
    second = binder.bind_image(widget, store, 0)

    assert len(binder) == 1
    assert binder.binding_for("1:0") is second
    assert binder.binding_for(widget) is not first

