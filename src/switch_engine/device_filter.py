"""Allow/deny list deciding which keyboards may trigger auto-switching."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from enum import StrEnum
from typing import Any

from .fingerprint import Fingerprint


class FilterMode(StrEnum):
    ALLOW_LIST = 'allow_list'
    DENY_LIST = 'deny_list'


@dataclass
class DeviceFilterRule:
    """Filter keyboards by primary fingerprint.

    In deny-list mode (the default) listed keyboards are ignored; in
    allow-list mode only listed keyboards are considered.
    """
    mode: FilterMode = FilterMode.DENY_LIST
    fingerprints: set[Fingerprint] = field(default_factory=set)

    def contains(self, fingerprint: Fingerprint) -> bool:
        return any(candidate.matches_primary(fingerprint) for candidate in self.fingerprints)

    def is_device_enabled(self, fingerprint: Fingerprint) -> bool:
        if self.mode is FilterMode.ALLOW_LIST:
            return self.contains(fingerprint)
        return not self.contains(fingerprint)

    def set_device_enabled(self, enabled: bool, fingerprint: Fingerprint) -> None:
        self.fingerprints = {
            candidate for candidate in self.fingerprints
            if not candidate.matches_primary(fingerprint)
        }
        listed = enabled if self.mode is FilterMode.ALLOW_LIST else not enabled
        if listed:
            self.fingerprints.add(fingerprint.canonical())

    def to_dict(self) -> dict[str, Any]:
        ordered = sorted(self.fingerprints, key=lambda fp: fp.primary_id)
        return {'mode': str(self.mode), 'fingerprints': [fp.to_dict() for fp in ordered]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeviceFilterRule:
        """Build a rule from its stored form.

        Raises:
            ValueError: If the mode is unknown or a fingerprint is invalid
        """
        mode = FilterMode(data.get('mode', FilterMode.DENY_LIST))
        fingerprints = {Fingerprint.from_dict(item).canonical() for item in data.get('fingerprints', [])}
        return cls(mode=mode, fingerprints=fingerprints)
