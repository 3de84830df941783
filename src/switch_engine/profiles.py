"""Configuration profiles.

Mappings are stored per profile; switching the active profile switches the
effective mapping set without touching the others.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC
from datetime import datetime
from typing import Any

from common.logging_utils import get_logger

from .ports import KeyValueStore
from .ports import MemoryStore

DEFAULT_PROFILE_ID = 'default'
CODING_PROFILE_ID = 'coding'


@dataclass
class Profile:
    """A named set of device mappings."""
    id: str
    name: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'created_at': self.created_at.isoformat()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profile:
        return cls(
            id=str(data['id']),
            name=str(data['name']),
            created_at=datetime.fromisoformat(data['created_at']),
        )


def default_profiles() -> list[Profile]:
    return [
        Profile(DEFAULT_PROFILE_ID, 'Default', datetime.fromtimestamp(0, UTC)),
        Profile(CODING_PROFILE_ID, 'Coding', datetime.fromtimestamp(1, UTC)),
    ]


def _normalized_name(name: str) -> str | None:
    stripped = name.strip()
    return stripped or None


def _unique_name(base: str, existing: list[str]) -> str:
    taken = {name.lower() for name in existing}
    if base.lower() not in taken:
        return base
    suffix = 2
    while f'{base} {suffix}'.lower() in taken:
        suffix += 1
    return f'{base} {suffix}'


class ProfileManager:
    """Keep the list of profiles and which one is active.

    Args:
        storage: Key/value storage; in-memory if omitted
        profiles_key: Storage key for the profile list
        active_key: Storage key for the active profile id
    """

    def __init__(
        self,
        storage: KeyValueStore | None = None,
        profiles_key: str = 'profiles',
        active_key: str = 'active_profile_id',
    ) -> None:
        self.storage = storage if storage is not None else MemoryStore()
        self.profiles_key = profiles_key
        self.active_key = active_key
        self.logger = get_logger('switch_engine.profiles')

        self._profiles = self._ensure_defaults(self._load_profiles())
        self._active_id = self._resolve_active(self.storage.get(active_key))
        self._persist()

    @property
    def profiles(self) -> list[Profile]:
        return sorted(self._profiles, key=lambda p: (p.created_at, p.name.lower()))

    @property
    def active_profile_id(self) -> str:
        return self._active_id

    def get(self, profile_id: str) -> Profile | None:
        return next((p for p in self._profiles if p.id == profile_id), None)

    def create_profile(self, name: str) -> Profile:
        """Create a profile with a unique name.

        Args:
            name: Requested name; blank names become "Profile"

        Returns:
            Profile: The new profile (not activated)
        """
        base = _normalized_name(name) or 'Profile'
        unique = _unique_name(base, [p.name for p in self._profiles])
        profile = Profile(uuid.uuid4().hex, unique, datetime.now(UTC))
        self._profiles.append(profile)
        self._persist()
        self.logger.info(f'Created profile {profile.name} ({profile.id})')
        return profile

    def rename_profile(self, profile_id: str, name: str) -> bool:
        """Rename a profile, keeping names unique.

        Returns:
            bool: True if the profile exists and the name is not blank
        """
        profile = self.get(profile_id)
        normalized = _normalized_name(name)
        if profile is None or normalized is None:
            return False
        others = [p.name for p in self._profiles if p.id != profile_id]
        profile.name = _unique_name(normalized, others)
        self._persist()
        self.logger.info(f'Renamed profile {profile.id} to {profile.name}')
        return True

    def delete_profile(self, profile_id: str) -> bool:
        """Delete a profile. The last remaining profile cannot be deleted.

        Returns:
            bool: True if the profile was deleted
        """
        if len(self._profiles) <= 1:
            return False
        profile = self.get(profile_id)
        if profile is None:
            return False

        self._profiles.remove(profile)
        if self._active_id == profile_id:
            self._active_id = self._resolve_active(DEFAULT_PROFILE_ID)
        self._persist()
        self.logger.info(f'Deleted profile {profile.name} ({profile.id})')
        return True

    def set_active_profile(self, profile_id: str) -> bool:
        """Activate a profile. Unknown ids are ignored.

        Returns:
            bool: True if the profile exists and is now active
        """
        if self.get(profile_id) is None:
            return False
        if self._active_id != profile_id:
            self._active_id = profile_id
            self._persist()
            self.logger.info(f'Active profile: {profile_id}')
        return True

    def _load_profiles(self) -> list[Profile]:
        raw = self.storage.get(self.profiles_key)
        if not isinstance(raw, list):
            return []
        profiles = []
        for entry in raw:
            try:
                profiles.append(Profile.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(f'Skipping invalid stored profile {entry!r}: {e}')
        return profiles

    @staticmethod
    def _ensure_defaults(profiles: list[Profile]) -> list[Profile]:
        if not profiles:
            return default_profiles()
        if not any(p.id == DEFAULT_PROFILE_ID for p in profiles):
            profiles.insert(0, default_profiles()[0])
        return profiles

    def _resolve_active(self, preferred: Any) -> str:
        if isinstance(preferred, str) and self.get(preferred) is not None:
            return preferred
        if self.get(DEFAULT_PROFILE_ID) is not None:
            return DEFAULT_PROFILE_ID
        return self.profiles[0].id

    def _persist(self) -> None:
        profiles = [p.to_dict() for p in self.profiles]
        if self.storage.get(self.profiles_key) != profiles:
            self.storage.set(self.profiles_key, profiles)
        if self.storage.get(self.active_key) != self._active_id:
            self.storage.set(self.active_key, self._active_id)
