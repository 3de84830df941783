"""Tests for fingerprints and logical device keys."""

from switch_engine.fingerprint import ANY_LOCATION
from switch_engine.fingerprint import DeviceKey
from switch_engine.fingerprint import Fingerprint
from switch_engine.fingerprint import normalize_text

from .helpers import make_fingerprint
from .helpers import make_key


def test_normalize_text():
    assert normalize_text('  USB ') == 'usb'
    assert normalize_text('   ') is None
    assert normalize_text(None) is None


def test_primary_id_uses_normalized_fields():
    fp = make_fingerprint(transport=' USB ', product_name='Logitech  K120 ')
    assert fp.primary_id == '1133-49948-usb-external-logitech  k120'


def test_primary_id_placeholders_for_missing_metadata():
    fp = Fingerprint(vendor_id=1, product_id=2, is_built_in=True)
    assert fp.primary_id == '1-2-unknown-builtin-unknown'


def test_matches_primary_ignores_location_and_case():
    a = make_fingerprint(location_id=1, product_name='Logitech K120')
    b = make_fingerprint(location_id=2, product_name='logitech k120', transport='usb')
    assert a.matches_primary(b)


def test_missing_product_name_is_a_wildcard():
    named = make_fingerprint(product_name='Logitech K120')
    anonymous = make_fingerprint(product_name=None)
    assert named.matches_primary(anonymous)
    assert anonymous.matches_primary(named)


def test_different_names_do_not_match():
    assert not make_fingerprint(product_name='A').matches_primary(make_fingerprint(product_name='B'))


def test_built_in_flag_is_part_of_identity():
    assert not make_fingerprint(is_built_in=True).matches_primary(make_fingerprint(is_built_in=False))


def test_device_key_equality_depends_on_normalized_fields():
    a = DeviceKey(make_fingerprint(transport='USB', product_name='Logitech K120', location_id=7))
    b = DeviceKey(make_fingerprint(transport='usb', product_name=' logitech k120'))
    assert a == b
    assert hash(a) == hash(b)
    assert a.fingerprint.location_id is None


def test_display_name_is_not_part_of_equality():
    a = DeviceKey(make_fingerprint(), display_name='Desk keyboard')
    b = DeviceKey(make_fingerprint())
    assert a == b


def test_location_hint_distinguishes_keys():
    assert make_key(location_hint=1) != make_key(location_hint=2)


def test_key_id_format():
    assert make_key().id == f'1133-49948-usb-external-logitech k120@{ANY_LOCATION}'
    assert make_key(location_hint=42).id.endswith('@42')


def test_keys_order_by_id():
    keys = [make_key(location_hint=2), make_key(location_hint=None), make_key(location_hint=1)]
    assert [k.id for k in sorted(keys)] == sorted(k.id for k in keys)


def test_from_fingerprint_takes_location_as_hint():
    key = DeviceKey.from_fingerprint(make_fingerprint(location_id=99))
    assert key.location_hint == 99
    assert key.label == 'Logitech K120'


def test_label_without_name():
    key = DeviceKey(Fingerprint(vendor_id=10, product_id=20))
    assert key.label == 'Keyboard VID 10, PID 20'


def test_dict_form_restores_key():
    key = DeviceKey(make_fingerprint(), location_hint=5, display_name='Desk keyboard')
    restored = DeviceKey.from_dict(key.to_dict())
    assert restored == key
    assert restored.display_name == 'Desk keyboard'
