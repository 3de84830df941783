"""Auto-switch engine: identity, resolution and switch decisions wired together.

The engine owns no threads. Callers feed it one observation at a time via
:meth:`AutoSwitchEngine.handle_event` and must serialize those calls with the
clock's timer callbacks.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from datetime import timedelta

from common.logging_utils import get_logger

from .clock import Clock
from .events import EventKind
from .events import SwitchAction
from .events import SwitchTrigger
from .fingerprint import DeviceKey
from .fingerprint import Fingerprint
from .identity import DeviceRegistry
from .mapping_store import MappingConflict
from .mapping_store import MappingStore
from .override_store import OverrideStore
from .override_store import TemporaryOverride
from .ports import InputSourceService
from .resolver import TargetResolver
from .settings import SettingsStore
from .switch_controller import DEFAULT_COOLDOWN
from .switch_controller import DEFAULT_DEBOUNCE
from .switch_controller import SwitchController


class AutoSwitchEngine:
    """Make the input source follow the keyboard being typed on.

    Args:
        input_sources: OS input-source layer
        clock: Time source and timer scheduler
        mapping_store: Device mappings and fallbacks
        override_store: Temporary overrides
        settings: Enable/pause state, global fallback, device filter
        registry: Session device registry; a fresh one if omitted
        debounce: Debounce window length
        cooldown: Minimum spacing between successful switches
        on_action: Called with each successful :class:`SwitchAction`
    """

    def __init__(
        self,
        input_sources: InputSourceService,
        clock: Clock,
        mapping_store: MappingStore | None = None,
        override_store: OverrideStore | None = None,
        settings: SettingsStore | None = None,
        registry: DeviceRegistry | None = None,
        debounce: timedelta = DEFAULT_DEBOUNCE,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        on_action: Callable[[SwitchAction], None] | None = None,
    ) -> None:
        self.input_sources = input_sources
        self.clock = clock
        self.mapping_store = mapping_store if mapping_store is not None else MappingStore()
        self.override_store = override_store if override_store is not None else OverrideStore()
        self.settings = settings if settings is not None else SettingsStore()
        self.registry = registry if registry is not None else DeviceRegistry()
        self.on_action = on_action
        self.logger = get_logger('switch_engine.engine')

        self.resolver = TargetResolver(
            mapping_store=self.mapping_store,
            override_store=self.override_store,
            is_source_enabled=self.input_sources.is_source_enabled,
            clock=self.clock,
            global_fallback=lambda: self.settings.global_fallback_source_id,
        )
        self.controller = SwitchController(clock, debounce=debounce, cooldown=cooldown)

        self.active_device: DeviceKey | None = None
        self.last_action: SwitchAction | None = None

    # -------------------- Event handling --------------------
    def handle_event(self, fingerprint: Fingerprint, event_kind: EventKind) -> None:
        """Process one device observation.

        Never raises: a malformed event is logged and dropped so that the
        following events are still processed.

        Args:
            fingerprint: Observed device fingerprint, location included
            event_kind: Key-down (with modifier flag) or device-stabilized
        """
        try:
            self._handle_event(fingerprint, event_kind)
        except Exception:  # noqa: BLE001
            self.logger.exception(f'Failed to process {event_kind} from {fingerprint!r}')

    def _handle_event(self, fingerprint: Fingerprint, event_kind: EventKind) -> None:
        if not self.settings.device_filter.is_device_enabled(fingerprint):
            return

        device = self.canonicalize(fingerprint)
        if device != self.active_device:
            self.logger.debug(f'Active keyboard: {device.label} ({device.id})')
            self.active_device = device

        target = self.resolver.resolve_target(device)
        # The current source only matters when there is a target.
        current = self._current_source() if target else None
        self.controller.evaluate(
            device=device,
            current_source=current,
            resolved_target=target,
            auto_switch_active=self.settings.is_auto_switch_active(self.clock.now()),
            event_kind=event_kind,
            on_switch=self._perform_switch,
        )

    def canonicalize(self, observation: Fingerprint | DeviceKey) -> DeviceKey:
        return self.registry.resolve(observation, self.mapping_store.all_known_device_keys())

    def resolve_target(self, device_key: DeviceKey) -> str | None:
        return self.resolver.resolve_target(device_key)

    def _current_source(self) -> str | None:
        try:
            return self.input_sources.current_source()
        except Exception as e:  # noqa: BLE001
            self.logger.error(f'Failed to read current input source: {e}')
            return None

    def _perform_switch(self, device: DeviceKey, target: str, trigger: SwitchTrigger) -> bool:
        previous = self._current_source()
        if not self.input_sources.select_source(target):
            self.logger.warning(f'Auto-switch failed for {device.label} -> {target}')
            return False

        action = SwitchAction(
            timestamp=self.clock.now(),
            from_source_id=previous,
            to_source_id=target,
            device_key=device,
            trigger=trigger,
        )
        self.last_action = action
        self.logger.info(f'Auto-switched {device.label} -> {target} ({trigger})')
        if self.on_action:
            try:
                self.on_action(action)
            except Exception as e:  # noqa: BLE001
                self.logger.error(f'Error in on_action callback: {e}')
        return True

    def undo_last_switch(self) -> bool:
        """Select the source that was active before the last auto-switch.

        Returns:
            bool: True if the previous source was selected again
        """
        action = self.last_action
        if action is None or action.from_source_id is None:
            return False
        if not self.input_sources.select_source(action.from_source_id):
            self.logger.warning(f'Undo failed: could not select {action.from_source_id}')
            return False
        self.last_action = None
        self.logger.info(f'Undid switch {action.to_source_id} -> {action.from_source_id}')
        return True

    # -------------------- Configuration --------------------
    def validate_mappings(self) -> list[MappingConflict]:
        enabled_ids = {source.id for source in self.input_sources.list_enabled_sources()}
        return self.mapping_store.validate_mappings(enabled_ids)

    def set_mapping(self, device_key: DeviceKey, source_id: str | None) -> None:
        self.mapping_store.set_mapping(device_key, source_id)
        if self.mapping_store.get_mapping(device_key):
            self.logger.info(f'Saved mapping for {device_key.label} -> {source_id}')
        else:
            self.logger.info(f'Removed mapping for {device_key.label}')

    def remove_mapping(self, device_key: DeviceKey) -> None:
        self.set_mapping(device_key, None)

    def set_per_device_fallback(self, device_key: DeviceKey, source_id: str | None) -> None:
        self.mapping_store.set_per_device_fallback(device_key, source_id)
        self.logger.info(f'Fallback for {device_key.label} -> {source_id or "none"}')

    def forget_device(self, device_key: DeviceKey) -> None:
        self.mapping_store.forget_device(device_key)
        self.override_store.clear(device_key.primary_id)
        self.registry.forget(device_key)
        self.controller.clear_pending(device_key)
        if self.active_device == device_key:
            self.active_device = None
        self.logger.info(f'Forgot device: {device_key.label}')

    def set_temporary_override(
        self,
        device_key: DeviceKey,
        source_id: str,
        duration: timedelta | None = None,
        persist: bool = False,
    ) -> TemporaryOverride | None:
        expires_at = self.clock.now() + duration if duration is not None else None
        return self.override_store.set_override(device_key.primary_id, source_id, expires_at, persist)

    def clear_temporary_override(self, device_key: DeviceKey) -> None:
        self.override_store.clear(device_key.primary_id)

    # -------------------- Enable / pause --------------------
    @property
    def is_auto_switch_active(self) -> bool:
        return self.settings.is_auto_switch_active(self.clock.now())

    def set_auto_switch_enabled(self, enabled: bool) -> None:
        self.settings.auto_switch_enabled = enabled
        if not enabled:
            self.controller.reset()
        self.logger.info(f'Auto-switch {"enabled" if enabled else "disabled"}')

    def pause(self, until: datetime | None = None) -> None:
        """Pause auto-switching, indefinitely or until a point in time."""
        if until is None:
            self.settings.paused = True
        else:
            self.settings.pause_until = until
        self.controller.reset()
        self.logger.info(f'Auto-switch paused until {until.isoformat() if until else "resumed"}')

    def resume(self) -> None:
        self.settings.paused = False
        self.settings.pause_until = None
        self.logger.info('Auto-switch resumed')

    def reset(self) -> None:
        self.controller.reset()

    def shutdown(self) -> None:
        """Cancel any pending switch so no timer fires after teardown."""
        self.controller.reset()
        self.active_device = None
