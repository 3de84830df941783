"""Keyboard fingerprints and logical device keys.

A fingerprint is the identity signature a keyboard reports on each event.
The logical device key is what the rest of the engine stores mappings
against: a normalized, location-free fingerprint plus an optional location
hint that is only ever used as a tie-breaker.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from dataclasses import field
from typing import Any

ANY_LOCATION = 'any-location'


def normalize_text(value: str | None) -> str | None:
    """Trim and lower-case a metadata string.

    Args:
        value: Raw transport or product name reported by the device

    Returns:
        str | None: Normalized value, or None if missing or blank

    Examples:
        >>> normalize_text('  USB ')
        'usb'
        >>> normalize_text('   ') is None
        True
    """
    if value is None:
        return None
    normalized = value.strip().lower()
    return normalized or None


@dataclass(frozen=True)
class Fingerprint:
    """Identity signature of a keyboard as observed on one event.

    Attributes:
        vendor_id: Raw hardware vendor id
        product_id: Raw hardware product id
        transport: Transport name (e.g. "usb", "bluetooth"), not normalized
        is_built_in: True for the laptop's internal keyboard
        product_name: Product name as reported, not normalized
        location_id: Volatile port/bus hint, never part of identity
    """
    vendor_id: int
    product_id: int
    transport: str | None = None
    is_built_in: bool = False
    product_name: str | None = None
    location_id: int | None = None

    @property
    def normalized_transport(self) -> str | None:
        return normalize_text(self.transport)

    @property
    def normalized_product_name(self) -> str | None:
        return normalize_text(self.product_name)

    @property
    def primary_id(self) -> str:
        """Location-independent identifier used to key temporary overrides."""
        transport = self.normalized_transport or 'unknown'
        product_name = self.normalized_product_name or 'unknown'
        kind = 'builtin' if self.is_built_in else 'external'
        return f'{self.vendor_id}-{self.product_id}-{transport}-{kind}-{product_name}'

    def matches_primary(self, other: Fingerprint) -> bool:
        """Check primary equality with another fingerprint.

        A missing product name on either side matches anything, so matching
        stays stable when some event paths report incomplete metadata.

        Args:
            other: Fingerprint to compare against

        Returns:
            bool: True if both describe the same kind of device
        """
        lhs_name = self.normalized_product_name
        rhs_name = other.normalized_product_name
        names_match = lhs_name is None or rhs_name is None or lhs_name == rhs_name

        return (
            self.vendor_id == other.vendor_id
            and self.product_id == other.product_id
            and self.normalized_transport == other.normalized_transport
            and self.is_built_in == other.is_built_in
            and names_match
        )

    def canonical(self) -> Fingerprint:
        """Return a normalized, location-free copy suitable for storage."""
        return Fingerprint(
            vendor_id=self.vendor_id,
            product_id=self.product_id,
            transport=self.normalized_transport,
            is_built_in=self.is_built_in,
            product_name=self.normalized_product_name,
            location_id=None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'vendor_id': self.vendor_id,
            'product_id': self.product_id,
            'transport': self.transport,
            'is_built_in': self.is_built_in,
            'product_name': self.product_name,
            'location_id': self.location_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Fingerprint:
        """Build a fingerprint from its stored dict form.

        Raises:
            KeyError: If vendor_id or product_id is missing
            ValueError: If an id is not an integer
        """
        location_id = data.get('location_id')
        return cls(
            vendor_id=int(data['vendor_id']),
            product_id=int(data['product_id']),
            transport=data.get('transport'),
            is_built_in=bool(data.get('is_built_in', False)),
            product_name=data.get('product_name'),
            location_id=int(location_id) if location_id is not None else None,
        )


@functools.total_ordering
@dataclass(frozen=True)
class DeviceKey:
    """Stable logical identity of a physical keyboard.

    The fingerprint is normalized and stripped of its location on
    construction, so equality and hashing depend only on the normalized
    identity fields plus ``location_hint``. Ordering follows :attr:`id`.

    Attributes:
        fingerprint: Normalized, location-free fingerprint
        location_hint: Port/bus location last seen for this key, tie-breaker only
        display_name: Human readable name, ignored for equality
    """
    fingerprint: Fingerprint
    location_hint: int | None = None
    display_name: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'fingerprint', self.fingerprint.canonical())

    @classmethod
    def from_fingerprint(cls, fingerprint: Fingerprint) -> DeviceKey:
        """Turn a raw observation into a (not yet canonicalized) key."""
        return cls(
            fingerprint=fingerprint,
            location_hint=fingerprint.location_id,
            display_name=(fingerprint.product_name or '').strip() or None,
        )

    @property
    def id(self) -> str:
        location = ANY_LOCATION if self.location_hint is None else str(self.location_hint)
        return f'{self.fingerprint.primary_id}@{location}'

    @property
    def primary_id(self) -> str:
        return self.fingerprint.primary_id

    @property
    def label(self) -> str:
        """Display label: product name if known, else vendor/product ids."""
        if self.display_name:
            return self.display_name
        if self.fingerprint.product_name:
            return self.fingerprint.product_name
        return f'Keyboard VID {self.fingerprint.vendor_id}, PID {self.fingerprint.product_id}'

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, DeviceKey):
            return NotImplemented
        return self.id < other.id

    def to_dict(self) -> dict[str, Any]:
        data = self.fingerprint.to_dict()
        del data['location_id']
        data['location_hint'] = self.location_hint
        if self.display_name:
            data['display_name'] = self.display_name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeviceKey:
        location_hint = data.get('location_hint')
        return cls(
            fingerprint=Fingerprint.from_dict(data),
            location_hint=int(location_hint) if location_hint is not None else None,
            display_name=data.get('display_name'),
        )
