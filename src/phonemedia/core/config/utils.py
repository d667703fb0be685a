"""Configuration helper functions."""

import math
from collections.abc import Mapping


def coerce_positive_float(raw_value: object, default: float) -> float:
    """Return ``raw_value`` as a positive float, or ``default`` when invalid.

    Booleans are rejected even though they are ints, since YAML happily parses
    ``yes``/``no`` into them.

    Examples:
        >>> coerce_positive_float("2.5", 1.0)
        2.5
        >>> coerce_positive_float(True, 1.0)
        1.0
        >>> coerce_positive_float(-3, 1.0)
        1.0

    """
    if isinstance(raw_value, bool) or raw_value is None:
        return default

    try:
        value = float(raw_value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default

    if not math.isfinite(value) or value <= 0:
        return default
    return value


def coerce_bool(raw_value: object, *, default: bool) -> bool:
    """Interpret common YAML/env spellings of a boolean flag."""
    if isinstance(raw_value, bool):
        return raw_value
    if isinstance(raw_value, str):
        lowered = raw_value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return default


def normalize_headers(raw_headers: object) -> dict[str, str]:
    """Normalize a ``headers`` config mapping into ``str -> str`` pairs."""
    if not isinstance(raw_headers, Mapping):
        return {}
    return {
        str(key): str(value)
        for key, value in raw_headers.items()
        if value is not None
    }
