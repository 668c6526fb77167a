"""Playback payload validation shared by session creation and leader updates."""

from __future__ import annotations

import math

from syncrelay.exceptions import ValidationError


def validate_last_known_time(value: object) -> bool:
    """True for a finite, non-negative number of milliseconds.

    ``bool`` is rejected even though it subclasses ``int``.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        # Integers past float range are not a usable position.
        return math.isfinite(float(value)) and value >= 0
    except OverflowError:
        return False


def validate_boolean(value: object) -> bool:
    return isinstance(value, bool)


def check_playback_payload(data: object) -> dict:
    """Validate ``lastKnownTime`` then ``isPlaying``; return *data* unchanged.

    Raises ``ValidationError`` for the first field that fails.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid payload.", code="InvalidPayload")
    if not validate_last_known_time(data.get("lastKnownTime")):
        raise ValidationError("Invalid lastKnownTime.", code="InvalidLastKnownTime")
    if not validate_boolean(data.get("isPlaying")):
        raise ValidationError("Invalid isPlaying.", code="InvalidIsPlaying")
    return data
