"""Debounce/cooldown state machine deciding when a resolved target is applied.

Debounce coalesces a burst of events from one keystroke into one decision
and lets a genuine device change win over a stray modifier tap. Cooldown
keeps two keyboards mapped to each other's fallback from flip-flopping.

States:
    Idle: no pending switch
    Pending: one device armed with a debounce timer
    Cooldown: a timestamp, orthogonal to the two states above

Only the most recently armed device keeps a pending switch; arming a new
device cancels the previous timer, so at most one timer is outstanding.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta

from common.logging_utils import get_logger

from .clock import Clock
from .clock import TimerHandle
from .events import EventKind
from .events import SwitchTrigger
from .fingerprint import DeviceKey

DEFAULT_DEBOUNCE = timedelta(milliseconds=400)
DEFAULT_COOLDOWN = timedelta(milliseconds=1500)

SwitchHandler = Callable[[DeviceKey, str, SwitchTrigger], bool]


@dataclass
class PendingSwitch:
    """Snapshot for the device whose switch is waiting on the debounce timer.

    Attributes:
        device: Device that armed the window
        current_source: Source active at the last evaluation
        target: Last resolved target
        saw_non_modifier_key_down: Any non-modifier key press seen in the window
        on_switch: Side effect invoked when the window fires
        timer: Debounce timer handle
    """
    device: DeviceKey
    current_source: str | None
    target: str
    saw_non_modifier_key_down: bool
    on_switch: SwitchHandler
    timer: TimerHandle | None = None

    @property
    def trigger(self) -> SwitchTrigger:
        if self.saw_non_modifier_key_down:
            return SwitchTrigger.KEY_DOWN
        return SwitchTrigger.DEVICE_STABILIZED


class SwitchController:
    """Turn per-event resolution results into at most one switch per window.

    Args:
        clock: Time source and timer scheduler
        debounce: Delay between arming and firing a pending switch
        cooldown: Minimum spacing between successful switches
    """

    def __init__(
        self,
        clock: Clock,
        debounce: timedelta = DEFAULT_DEBOUNCE,
        cooldown: timedelta = DEFAULT_COOLDOWN,
    ) -> None:
        self.clock = clock
        self.debounce = debounce
        self.cooldown = cooldown
        self.logger = get_logger('switch_engine.controller')
        self._pending: PendingSwitch | None = None
        self._cooldown_until: datetime | None = None

    @property
    def pending_device(self) -> DeviceKey | None:
        return self._pending.device if self._pending else None

    @property
    def cooldown_until(self) -> datetime | None:
        return self._cooldown_until

    @property
    def is_in_cooldown(self) -> bool:
        return self._cooldown_until is not None and self.clock.now() < self._cooldown_until

    def evaluate(
        self,
        device: DeviceKey,
        current_source: str | None,
        resolved_target: str | None,
        auto_switch_active: bool,
        event_kind: EventKind,
        on_switch: SwitchHandler,
    ) -> None:
        """Feed one observed event into the state machine.

        Args:
            device: Canonical key of the device that produced the event
            current_source: Source active right now, if known
            resolved_target: Result of target resolution for device
            auto_switch_active: False while auto-switch is paused or disabled
            event_kind: Key-down (with modifier flag) or device-stabilized
            on_switch: Side effect to run if this device's window fires.
                Returns True when the OS accepted the selection.
        """
        if not auto_switch_active:
            self.reset()
            return

        if not resolved_target or resolved_target == current_source:
            self.clear_pending(device)
            return

        if self.is_in_cooldown:
            self.logger.debug(f'In cooldown until {self._cooldown_until}, ignoring {device.id}')
            return

        pending = self._pending
        if pending is not None and pending.device == device:
            pending.current_source = current_source
            pending.target = resolved_target
            pending.saw_non_modifier_key_down = (
                pending.saw_non_modifier_key_down or event_kind.is_non_modifier_key_down
            )
            pending.on_switch = on_switch
            return

        if pending is not None:
            self.logger.debug(f'Pending switch for {pending.device.id} superseded by {device.id}')
            self._cancel_timer(pending)

        entry = PendingSwitch(
            device=device,
            current_source=current_source,
            target=resolved_target,
            saw_non_modifier_key_down=event_kind.is_non_modifier_key_down,
            on_switch=on_switch,
        )
        self._pending = entry
        entry.timer = self.clock.call_later(self.debounce, lambda: self._fire(entry))
        self.logger.debug(f'Armed switch {device.id} -> {resolved_target} ({event_kind})')

    def clear_pending(self, device: DeviceKey) -> None:
        """Drop the pending switch if it belongs to device."""
        pending = self._pending
        if pending is None or pending.device != device:
            return
        self._cancel_timer(pending)
        self._pending = None

    def reset(self) -> None:
        """Clear the pending switch and the cooldown together."""
        if self._pending is not None:
            self._cancel_timer(self._pending)
        self._pending = None
        self._cooldown_until = None

    def _fire(self, entry: PendingSwitch) -> None:
        # A superseded or cleared window may still fire if cancellation raced.
        if self._pending is not entry:
            return
        self._pending = None
        entry.timer = None

        if self.is_in_cooldown:
            return

        trigger = entry.trigger
        try:
            switched = bool(entry.on_switch(entry.device, entry.target, trigger))
        except Exception:  # noqa: BLE001
            self.logger.exception(f'Switch to {entry.target} for {entry.device.id} failed')
            switched = False

        if switched:
            self._cooldown_until = self.clock.now() + self.cooldown
            self.logger.debug(f'Cooldown until {self._cooldown_until}')

    @staticmethod
    def _cancel_timer(entry: PendingSwitch) -> None:
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None
