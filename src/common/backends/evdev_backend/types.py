from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from switch_engine.fingerprint import Fingerprint

# Queue payload marking a keyboard that appeared while running.
DEVICE_STABILIZED = object()

# (fingerprint, evdev InputEvent or DEVICE_STABILIZED)
RawEvent = tuple[Fingerprint, Any]


@dataclass(slots=True)
class ParsedEvent:
    fingerprint: Fingerprint
    keycode: int
    value: int  # 0 release, 1 press, 2 repeat
    key_name: Optional[str]
