"""Constant definitions for phonemedia."""

MODULE_NAME = "phone-ui"

# Key under which a message's media slots live in its extension data
MEDIA_EXTRA_KEY = "phoneMedia"

# Tag names as authors write them: [IMG]...[/IMG] and [VN]...[/VN]
IMAGE_TAG_NAME = "IMG"
VOICE_TAG_NAME = "VN"

# Placeholder markers authors attach to the element a widget should replace
IMAGE_PLACEHOLDER_ATTR = "data-phone-img"
VOICE_PLACEHOLDER_ATTR = "data-phone-vn"
IMAGE_PLACEHOLDER_CLASS = "phone-img-placeholder"
VOICE_PLACEHOLDER_CLASS = "phone-vn-placeholder"
SANITIZER_CLASS_PREFIX = "custom-"

# Content sentinels for placeholders without explicit markers
IMAGE_SENTINEL = "\U0001f4f8"  # camera with flash
VOICE_SENTINEL = "▶"  # play triangle
VOICE_PHRASES = ("voice note", "voice message")

# Widget classes
IMAGE_CONTAINER_CLASS = "phone-img-container"
IMAGE_LOADING_CLASS = "phone-img-loading"
IMAGE_FAILED_CLASS = "phone-img-failed"
VOICE_CONTAINER_CLASS = "phone-vn-container"
WIDGET_CLASSES = frozenset(
    {
        IMAGE_CONTAINER_CLASS,
        IMAGE_LOADING_CLASS,
        IMAGE_FAILED_CLASS,
        VOICE_CONTAINER_CLASS,
    },
)
WIDGET_ID_ATTR = "data-phone-widget"
POSITION_MARKER_CLASS = "phone-vn-anchor"

# Voice player visuals
BAR_HEIGHTS = (8, 14, 6, 18, 10, 16, 7, 12, 5, 15, 9, 13)
PLAY_GLYPH = "▶"
PAUSE_GLYPH = "▮▮"

# Playback and speech defaults
PLAYBACK_TIMEOUT_SECONDS = 15.0
SPEECH_WORDS_PER_MINUTE = 150
DEFAULT_VOICE = "default"

# Image generation command
IMAGE_COMMAND = "imagine"
SPEECH_COMMAND = "speak"

# Host gallery upload endpoint
GALLERY_UPLOAD_PATH = "/api/images/upload"

# Manual reprocess slash command
REPROCESS_COMMAND = "phone-reprocess"
