from __future__ import annotations

from typing import Any

from evdev import categorize
from evdev import ecodes

from switch_engine.fingerprint import Fingerprint

from ..key_mapping import evdev_to_key_name
from .types import ParsedEvent


def parse_event(fingerprint: Fingerprint, event: Any) -> ParsedEvent | None:
    """Parse a raw evdev event from the device with the given fingerprint.

    Returns None for non-keyboard events (EV_SYN, EV_MSC, LEDs...).
    """
    if event.type != ecodes.EV_KEY:
        return None
    key_name: str | None
    try:
        key_name = evdev_to_key_name(categorize(event).keycode)
    except (KeyError, AttributeError):
        key_name = None
    return ParsedEvent(fingerprint, event.code, event.value, key_name)
