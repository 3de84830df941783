"""Test doubles and builders shared by the test modules."""

from switch_engine.fingerprint import DeviceKey
from switch_engine.fingerprint import Fingerprint
from switch_engine.ports import InputSource


class FakeInputSources:
    """In-memory input-source service recording every selection."""

    def __init__(self, enabled=('en-US', 'de-DE', 'fr-FR'), current=None):
        self.enabled = set(enabled)
        self.current = current
        self.selected: list[str] = []
        self.fail = False

    def list_enabled_sources(self):
        return [InputSource(id=source_id, name=source_id) for source_id in sorted(self.enabled)]

    def is_source_enabled(self, source_id):
        return source_id in self.enabled

    def current_source(self):
        return self.current

    def select_source(self, source_id):
        if self.fail or source_id not in self.enabled:
            return False
        self.selected.append(source_id)
        self.current = source_id
        return True


def make_fingerprint(
    vendor_id=1133,
    product_id=49948,
    transport='USB',
    is_built_in=False,
    product_name='Logitech K120',
    location_id=None,
) -> Fingerprint:
    return Fingerprint(
        vendor_id=vendor_id,
        product_id=product_id,
        transport=transport,
        is_built_in=is_built_in,
        product_name=product_name,
        location_id=location_id,
    )


def make_key(location_hint=None, **kwargs) -> DeviceKey:
    return DeviceKey(make_fingerprint(**kwargs), location_hint=location_hint)


