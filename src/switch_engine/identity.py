"""Identity resolution: map raw observations onto known logical devices.

:func:`canonicalize` is pure and deterministic for a fixed set of known keys
and a fixed observation. :class:`DeviceRegistry` wraps it with the set of
keys remembered during the session.
"""

from __future__ import annotations

from collections.abc import Iterable

from common.logging_utils import get_logger

from .fingerprint import DeviceKey
from .fingerprint import Fingerprint


def pick_preferred(candidates: Iterable[DeviceKey], location_hint: int | None) -> DeviceKey:
    """Pick one key out of several primary matches.

    Preference order: same location hint as the observation, then a key with
    no location hint recorded, then the lexicographically smallest key id.
    The last rule only guarantees determinism, not user intent.

    Args:
        candidates: Non-empty collection of primary-matching keys
        location_hint: Location reported by the current observation

    Returns:
        DeviceKey: The preferred candidate

    Raises:
        ValueError: If candidates is empty
    """
    ordered = sorted(candidates)
    if not ordered:
        raise ValueError('No candidates to choose from')  # noqa: TRY003

    if location_hint is not None:
        for key in ordered:
            if key.location_hint == location_hint:
                return key

    for key in ordered:
        if key.location_hint is None:
            return key

    return ordered[0]


def _as_key(observation: Fingerprint | DeviceKey) -> DeviceKey:
    if isinstance(observation, DeviceKey):
        return observation
    return DeviceKey.from_fingerprint(observation)


def primary_matches(observation: DeviceKey, known_keys: Iterable[DeviceKey]) -> list[DeviceKey]:
    """Return the known keys whose fingerprint primary-matches the observation."""
    return sorted(
        {key for key in known_keys if key.fingerprint.matches_primary(observation.fingerprint)}
    )


def canonicalize(
    observation: Fingerprint | DeviceKey,
    known_keys: Iterable[DeviceKey],
) -> DeviceKey:
    """Return the logical device key an observation should be treated as.

    Args:
        observation: Raw fingerprint (its location becomes the hint) or a key
        known_keys: Keys remembered so far (registry and stored configuration)

    Returns:
        DeviceKey: An existing key when one matches, else the observation itself
    """
    observed = _as_key(observation)
    known = set(known_keys)

    if observed in known:
        # Return the stored instance so its display name survives.
        for key in known:
            if key == observed:
                return key

    matches = primary_matches(observed, known)
    if not matches:
        return observed
    if len(matches) == 1:
        return matches[0]
    return pick_preferred(matches, observed.location_hint)


class DeviceRegistry:
    """Remember logical devices observed during the session.

    Each observation is canonicalized against the remembered keys plus any
    extra keys the caller supplies (typically the keys the mapping store
    knows). New keys are registered; ambiguous duplicate hardware is logged
    once per primary id as a quality signal.
    """

    def __init__(self, known_keys: Iterable[DeviceKey] = ()) -> None:
        self._keys: set[DeviceKey] = set(known_keys)
        self._warned: set[str] = set()
        self.logger = get_logger('switch_engine.identity')

    @property
    def keys(self) -> list[DeviceKey]:
        return sorted(self._keys)

    def resolve(
        self,
        observation: Fingerprint | DeviceKey,
        extra_known: Iterable[DeviceKey] = (),
    ) -> DeviceKey:
        """Canonicalize an observation and remember the resulting key.

        Args:
            observation: Raw fingerprint or key from the device stream
            extra_known: Additional known keys, e.g. from stored mappings

        Returns:
            DeviceKey: The logical device key for this observation
        """
        observed = _as_key(observation)
        known = self._keys | set(extra_known)
        key = canonicalize(observed, known)

        matches = primary_matches(observed, known)
        if len(matches) > 1 and observed not in known:
            primary_id = observed.primary_id
            if primary_id not in self._warned:
                self._warned.add(primary_id)
                self.logger.warning(
                    f'Ambiguous duplicate keyboards for {primary_id}: '
                    f'{len(matches)} candidates, using {key.id}'
                )

        if key not in self._keys:
            self._keys.add(key)
            self.logger.debug(f'Registered keyboard {key.id}')
        return key

    def forget(self, key: DeviceKey) -> None:
        self._keys.discard(key)
