"""Resolve a logical device to the input source it should switch to.

Resolution order is fixed: temporary override, device mapping, per-device
fallback, global fallback, then no action. Every candidate must be
currently enabled to win.
"""

from __future__ import annotations

from collections.abc import Callable

from common.logging_utils import get_logger

from .clock import Clock
from .fingerprint import DeviceKey
from .identity import pick_preferred
from .identity import primary_matches
from .mapping_store import DeviceConfiguration
from .mapping_store import MappingStore
from .override_store import OverrideStore


class TargetResolver:
    """Compute the single target source for a device.

    Args:
        mapping_store: Per-device mappings and fallbacks
        override_store: Temporary overrides keyed by primary id
        is_source_enabled: Predicate from the OS input-source layer
        clock: Clock used to expire overrides
        global_fallback: Returns the global fallback source id, if any
    """

    def __init__(
        self,
        mapping_store: MappingStore,
        override_store: OverrideStore,
        is_source_enabled: Callable[[str], bool],
        clock: Clock,
        global_fallback: Callable[[], str | None] = lambda: None,
    ) -> None:
        self.mapping_store = mapping_store
        self.override_store = override_store
        self.is_source_enabled = is_source_enabled
        self.clock = clock
        self.global_fallback = global_fallback
        self.logger = get_logger('switch_engine.resolver')

    def resolve_target(self, device_key: DeviceKey) -> str | None:
        """Return the source id to switch to for device_key, or None.

        Args:
            device_key: Canonicalized logical device key

        Returns:
            str | None: Enabled target source id, or None for "no action"
        """
        override = self.override_store.get(device_key.primary_id, self.clock.now())
        if override is not None and self._enabled(override.source_id):
            return override.source_id

        mapping = self._lookup(device_key, lambda c: c.mapping_source_id)
        if mapping is not None:
            return mapping

        fallback = self._lookup(device_key, lambda c: c.per_device_fallback_source_id)
        if fallback is not None:
            return fallback

        global_fallback = self.global_fallback()
        if global_fallback and self._enabled(global_fallback):
            return global_fallback

        return None

    def _lookup(
        self,
        device_key: DeviceKey,
        select_value: Callable[[DeviceConfiguration], str | None],
    ) -> str | None:
        """Find an enabled value for device_key, falling back to sibling keys.

        Sibling keys are stored keys of the same physical device recorded
        under an earlier port or metadata variant.
        """
        configurations = self.mapping_store.all_configurations()

        exact = configurations.get(device_key)
        if exact is not None:
            value = select_value(exact)
            if value is not None and self._enabled(value):
                return value

        siblings = primary_matches(device_key, (k for k in configurations if k != device_key))
        candidates = {}
        for key in siblings:
            value = select_value(configurations[key])
            if value is not None and self._enabled(value):
                candidates[key] = value

        if not candidates:
            return None
        if len(candidates) == 1:
            return next(iter(candidates.values()))
        chosen = pick_preferred(candidates, device_key.location_hint)
        self.logger.debug(f'{len(candidates)} sibling configurations for {device_key.id}, using {chosen.id}')
        return candidates[chosen]

    def _enabled(self, source_id: str) -> bool:
        try:
            return bool(self.is_source_enabled(source_id))
        except Exception as e:  # noqa: BLE001
            self.logger.error(f'Failed to check input source {source_id}: {e}')
            return False
