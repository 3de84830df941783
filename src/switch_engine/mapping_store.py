"""Per-profile device configuration: mappings, per-device fallbacks, conflicts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from common.logging_utils import get_logger

from .fingerprint import DeviceKey
from .ports import KeyValueStore
from .ports import MemoryStore
from .profiles import DEFAULT_PROFILE_ID
from .profiles import ProfileManager


def normalize_source_id(source_id: str | None) -> str | None:
    """Treat missing or blank source ids as "no value"."""
    if source_id is None:
        return None
    stripped = source_id.strip()
    return stripped or None


@dataclass(frozen=True)
class DeviceConfiguration:
    """Configuration stored for one device in one profile."""
    mapping_source_id: str | None = None
    per_device_fallback_source_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.mapping_source_id is None and self.per_device_fallback_source_id is None


class ConflictReason(StrEnum):
    MISSING_OR_DISABLED = 'missing/disabled'


@dataclass(frozen=True)
class MappingConflict:
    """A stored mapping whose source is not currently enabled."""
    device_key: DeviceKey
    mapped_source_id: str
    reason: ConflictReason = ConflictReason.MISSING_OR_DISABLED

    @property
    def id(self) -> str:
        return f'{self.device_key.id}|{self.mapped_source_id}|{self.reason}'


class MappingStore:
    """Hold device mappings and per-device fallbacks for every profile.

    Reads and writes always target the active profile of ``profiles``.
    Every mutation is written through to ``storage``.

    Args:
        storage: Key/value storage; in-memory if omitted
        profiles: Profile manager; a fresh one on the same storage if omitted
        storage_key: Storage key for the mapping entries
    """

    def __init__(
        self,
        storage: KeyValueStore | None = None,
        profiles: ProfileManager | None = None,
        storage_key: str = 'device_mappings',
    ) -> None:
        self.storage = storage if storage is not None else MemoryStore()
        self.profiles = profiles if profiles is not None else ProfileManager(self.storage)
        self.storage_key = storage_key
        self.logger = get_logger('switch_engine.mapping_store')
        self._configurations: dict[str, dict[DeviceKey, DeviceConfiguration]] = self._load()

    @property
    def active_profile_id(self) -> str:
        return self.profiles.active_profile_id or DEFAULT_PROFILE_ID

    # -------------------- Queries --------------------
    def get_configuration(self, device_key: DeviceKey) -> DeviceConfiguration | None:
        return self._active().get(device_key)

    def get_mapping(self, device_key: DeviceKey) -> str | None:
        configuration = self.get_configuration(device_key)
        return configuration.mapping_source_id if configuration else None

    def get_per_device_fallback(self, device_key: DeviceKey) -> str | None:
        configuration = self.get_configuration(device_key)
        return configuration.per_device_fallback_source_id if configuration else None

    def all_mappings(self) -> dict[DeviceKey, str]:
        return {
            key: config.mapping_source_id
            for key, config in self._active().items()
            if config.mapping_source_id is not None
        }

    def all_configurations(self) -> dict[DeviceKey, DeviceConfiguration]:
        return dict(sorted(self._active().items()))

    def all_known_device_keys(self) -> list[DeviceKey]:
        return sorted(self._active())

    def validate_mappings(self, enabled_ids: set[str] | frozenset[str]) -> list[MappingConflict]:
        """List stored mappings whose source is not currently enabled.

        Per-device fallbacks are not validated: falling back to nothing is a
        legitimate end state, evaluated lazily during resolution.

        Args:
            enabled_ids: Ids of the currently enabled, selectable sources

        Returns:
            list[MappingConflict]: Conflicts sorted by device key id, then source id
        """
        conflicts = [
            MappingConflict(device_key=key, mapped_source_id=source_id)
            for key, source_id in self.all_mappings().items()
            if source_id not in enabled_ids
        ]
        return sorted(conflicts, key=lambda c: (c.device_key.id, c.mapped_source_id))

    # -------------------- Mutations --------------------
    def set_mapping(self, device_key: DeviceKey, source_id: str | None) -> None:
        """Set (or clear, when source_id is blank) the mapping for a device."""
        current = self.get_configuration(device_key) or DeviceConfiguration()
        self._put(
            device_key,
            DeviceConfiguration(normalize_source_id(source_id), current.per_device_fallback_source_id),
        )

    def set_per_device_fallback(self, device_key: DeviceKey, source_id: str | None) -> None:
        current = self.get_configuration(device_key) or DeviceConfiguration()
        self._put(
            device_key,
            DeviceConfiguration(current.mapping_source_id, normalize_source_id(source_id)),
        )

    def remove_mapping(self, device_key: DeviceKey) -> None:
        """Clear the mapping but keep the per-device fallback."""
        if self.get_configuration(device_key) is None:
            return
        self.set_mapping(device_key, None)

    def forget_device(self, device_key: DeviceKey) -> None:
        """Remove everything stored for a device in the active profile."""
        if self._active().pop(device_key, None) is not None:
            self._save()

    def remove_profile_data(self, profile_id: str) -> None:
        if self._configurations.pop(profile_id or DEFAULT_PROFILE_ID, None) is not None:
            self._save()

    # -------------------- Persistence --------------------
    def _active(self) -> dict[DeviceKey, DeviceConfiguration]:
        return self._configurations.setdefault(self.active_profile_id, {})

    def _put(self, device_key: DeviceKey, configuration: DeviceConfiguration) -> None:
        profile = self._active()
        if configuration.is_empty:
            profile.pop(device_key, None)
        else:
            profile[device_key] = configuration
        self._save()

    def _load(self) -> dict[str, dict[DeviceKey, DeviceConfiguration]]:
        raw = self.storage.get(self.storage_key)
        if raw is None:
            return {}
        if not isinstance(raw, list):
            self.logger.warning(f'Ignoring stored mappings: expected a list, got {type(raw).__name__}')
            return {}

        configurations: dict[str, dict[DeviceKey, DeviceConfiguration]] = {}
        for entry in raw:
            try:
                profile_id = entry.get('profile_id') or DEFAULT_PROFILE_ID
                key = DeviceKey.from_dict(entry['device'])
                configuration = DeviceConfiguration(
                    normalize_source_id(entry.get('source_id')),
                    normalize_source_id(entry.get('fallback_source_id')),
                )
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                self.logger.warning(f'Skipping invalid stored mapping {entry!r}: {e}')
                continue
            if not configuration.is_empty:
                configurations.setdefault(profile_id, {})[key] = configuration
        return configurations

    def _save(self) -> None:
        entries: list[dict[str, Any]] = []
        for profile_id in sorted(self._configurations):
            for key, configuration in sorted(self._configurations[profile_id].items()):
                entries.append({
                    'profile_id': profile_id,
                    'device': key.to_dict(),
                    'source_id': configuration.mapping_source_id,
                    'fallback_source_id': configuration.per_device_fallback_source_id,
                })
        self.storage.set(self.storage_key, entries)
