"""Short-lived per-device overrides that outrank persistent configuration.

Overrides are keyed by the fingerprint primary id rather than the full
device key, so they survive a keyboard moving to another port. An override
without expiry lasts for the session only and is never written to storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from common.logging_utils import get_logger

from .ports import KeyValueStore
from .ports import MemoryStore


@dataclass(frozen=True)
class TemporaryOverride:
    """Override of the target source for one device.

    Attributes:
        device_primary_id: Fingerprint primary id of the device
        source_id: Input source to use while the override is live
        expires_at: End of the override; None means until restart
    """
    device_primary_id: str
    source_id: str
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def to_dict(self) -> dict[str, Any]:
        return {
            'device_primary_id': self.device_primary_id,
            'source_id': self.source_id,
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
        }


def _normalized(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class OverrideStore:
    """Store temporary overrides, purging expired ones lazily on read.

    Args:
        storage: Key/value storage for persisted overrides; in-memory if omitted
        storage_key: Storage key for the persisted list
    """

    def __init__(
        self,
        storage: KeyValueStore | None = None,
        storage_key: str = 'temporary_overrides',
    ) -> None:
        self.storage = storage if storage is not None else MemoryStore()
        self.storage_key = storage_key
        self.logger = get_logger('switch_engine.override_store')
        self._overrides: dict[str, TemporaryOverride] = {}
        self._persisted: set[str] = set()
        self._load()

    def set_override(
        self,
        device_primary_id: str,
        source_id: str,
        expires_at: datetime | None = None,
        persist: bool = False,
    ) -> TemporaryOverride | None:
        """Set or replace the override for a device.

        ``persist`` is honoured only for overrides with a concrete expiry.

        Args:
            device_primary_id: Fingerprint primary id of the device
            source_id: Input source to force
            expires_at: Expiry time, or None for the rest of the session
            persist: Keep the override across restarts

        Returns:
            TemporaryOverride | None: The stored override, or None for blank ids
        """
        primary_id = _normalized(device_primary_id)
        normalized_source = _normalized(source_id)
        if primary_id is None or normalized_source is None:
            return None

        override = TemporaryOverride(primary_id, normalized_source, expires_at)
        self._overrides[primary_id] = override
        if persist and expires_at is not None:
            self._persisted.add(primary_id)
        else:
            self._persisted.discard(primary_id)
        self._save()

        until = expires_at.isoformat() if expires_at else 'end of session'
        self.logger.info(f'Override for {primary_id} -> {normalized_source} until {until}')
        return override

    def get(self, device_primary_id: str, now: datetime) -> TemporaryOverride | None:
        self.clear_expired(now)
        primary_id = _normalized(device_primary_id)
        if primary_id is None:
            return None
        return self._overrides.get(primary_id)

    def all(self, now: datetime) -> list[TemporaryOverride]:
        self.clear_expired(now)
        return [self._overrides[key] for key in sorted(self._overrides)]

    def clear(self, device_primary_id: str) -> None:
        primary_id = _normalized(device_primary_id)
        if primary_id is None or primary_id not in self._overrides:
            return
        del self._overrides[primary_id]
        self._persisted.discard(primary_id)
        self._save()

    def clear_expired(self, now: datetime) -> None:
        expired = [key for key, value in self._overrides.items() if value.is_expired(now)]
        if not expired:
            return
        for key in expired:
            del self._overrides[key]
            self._persisted.discard(key)
            self.logger.debug(f'Override for {key} expired')
        self._save()

    def _load(self) -> None:
        raw = self.storage.get(self.storage_key)
        if not isinstance(raw, list):
            return
        for entry in raw:
            try:
                expires_raw = entry.get('expires_at')
                if not expires_raw:
                    # Session overrides must never come back from storage.
                    continue
                primary_id = _normalized(entry['device_primary_id'])
                source_id = _normalized(entry['source_id'])
                expires_at = datetime.fromisoformat(expires_raw)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                self.logger.warning(f'Skipping invalid stored override {entry!r}: {e}')
                continue
            if primary_id is None or source_id is None:
                continue
            self._overrides[primary_id] = TemporaryOverride(primary_id, source_id, expires_at)
            self._persisted.add(primary_id)

    def _save(self) -> None:
        persisted = [
            self._overrides[key].to_dict()
            for key in sorted(self._persisted)
            if key in self._overrides and self._overrides[key].expires_at is not None
        ]
        if persisted:
            self.storage.set(self.storage_key, persisted)
        else:
            self.storage.delete(self.storage_key)
