"""Event and action types flowing through the switch engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from .fingerprint import DeviceKey


class SwitchTrigger(StrEnum):
    """Label attached to a performed switch."""
    KEY_DOWN = 'key-down'
    DEVICE_STABILIZED = 'device-stabilized'


@dataclass(frozen=True)
class EventKind:
    """Kind of a device observation.

    Attributes:
        trigger: Whether this was a key press or a device-stabilized signal
        is_modifier: For key presses, True if the key was a modifier
    """
    trigger: SwitchTrigger
    is_modifier: bool = False

    @classmethod
    def key_down(cls, is_modifier: bool) -> EventKind:
        return cls(SwitchTrigger.KEY_DOWN, is_modifier)

    @classmethod
    def device_stabilized(cls) -> EventKind:
        return cls(SwitchTrigger.DEVICE_STABILIZED)

    @property
    def is_non_modifier_key_down(self) -> bool:
        return self.trigger is SwitchTrigger.KEY_DOWN and not self.is_modifier

    def __str__(self) -> str:
        if self.trigger is SwitchTrigger.KEY_DOWN:
            return 'key-down (modifier)' if self.is_modifier else 'key-down'
        return str(self.trigger)


@dataclass(frozen=True)
class SwitchAction:
    """Record of a successful automatic switch.

    Attributes:
        timestamp: When the switch was performed
        from_source_id: Input source active before the switch, if known
        to_source_id: Input source selected by the switch
        device_key: Logical device that caused the switch
        trigger: Synthesized trigger label for the debounce window
    """
    timestamp: datetime
    from_source_id: str | None
    to_source_id: str
    device_key: DeviceKey
    trigger: SwitchTrigger

    @property
    def device_label(self) -> str:
        return self.device_key.label
