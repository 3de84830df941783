"""Global switching settings: enable/pause state, global fallback, device filter."""

from __future__ import annotations

from datetime import datetime

from common.logging_utils import get_logger

from .device_filter import DeviceFilterRule
from .mapping_store import normalize_source_id
from .ports import KeyValueStore
from .ports import MemoryStore

AUTO_SWITCH_ENABLED_KEY = 'auto_switch_enabled'
PAUSED_KEY = 'paused'
PAUSE_UNTIL_KEY = 'pause_until'
GLOBAL_FALLBACK_KEY = 'global_fallback_source_id'
DEVICE_FILTER_KEY = 'device_filter'


class SettingsStore:
    """Typed accessors over the key/value storage for global settings.

    Auto-switch is active when it is enabled, not paused indefinitely, and
    any timed pause has run out.
    """

    def __init__(self, storage: KeyValueStore | None = None) -> None:
        self.storage = storage if storage is not None else MemoryStore()
        self.logger = get_logger('switch_engine.settings')

    @property
    def auto_switch_enabled(self) -> bool:
        value = self.storage.get(AUTO_SWITCH_ENABLED_KEY)
        return True if value is None else bool(value)

    @auto_switch_enabled.setter
    def auto_switch_enabled(self, enabled: bool) -> None:
        self.storage.set(AUTO_SWITCH_ENABLED_KEY, bool(enabled))

    @property
    def paused(self) -> bool:
        return bool(self.storage.get(PAUSED_KEY))

    @paused.setter
    def paused(self, paused: bool) -> None:
        if paused:
            self.storage.set(PAUSED_KEY, True)
        else:
            self.storage.delete(PAUSED_KEY)

    @property
    def pause_until(self) -> datetime | None:
        raw = self.storage.get(PAUSE_UNTIL_KEY)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except (TypeError, ValueError):
            self.logger.warning(f'Ignoring invalid stored pause_until: {raw!r}')
            return None

    @pause_until.setter
    def pause_until(self, until: datetime | None) -> None:
        if until is None:
            self.storage.delete(PAUSE_UNTIL_KEY)
        else:
            self.storage.set(PAUSE_UNTIL_KEY, until.isoformat())

    @property
    def global_fallback_source_id(self) -> str | None:
        value = self.storage.get(GLOBAL_FALLBACK_KEY)
        return normalize_source_id(value) if isinstance(value, str) else None

    @global_fallback_source_id.setter
    def global_fallback_source_id(self, source_id: str | None) -> None:
        normalized = normalize_source_id(source_id)
        if normalized is None:
            self.storage.delete(GLOBAL_FALLBACK_KEY)
        else:
            self.storage.set(GLOBAL_FALLBACK_KEY, normalized)

    @property
    def device_filter(self) -> DeviceFilterRule:
        raw = self.storage.get(DEVICE_FILTER_KEY)
        if not isinstance(raw, dict):
            return DeviceFilterRule()
        try:
            return DeviceFilterRule.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning(f'Ignoring invalid stored device filter: {e}')
            return DeviceFilterRule()

    @device_filter.setter
    def device_filter(self, rule: DeviceFilterRule) -> None:
        self.storage.set(DEVICE_FILTER_KEY, rule.to_dict())

    def is_auto_switch_active(self, now: datetime) -> bool:
        if not self.auto_switch_enabled or self.paused:
            return False
        until = self.pause_until
        return until is None or now >= until
