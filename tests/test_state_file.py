"""Tests for the JSON state file storage."""

import json
from datetime import timedelta

from layout_switcher.state_file import JsonStateFile
from layout_switcher.state_file import open_state
from switch_engine.engine import AutoSwitchEngine

from .helpers import make_fingerprint
from .helpers import make_key


def test_values_survive_reopen(tmp_path):
    path = tmp_path / 'nested' / 'state.json'
    state = JsonStateFile(path)
    state.set('auto_switch_enabled', False)
    state.set('global_fallback_source_id', 'us')

    reopened = JsonStateFile(path)
    assert reopened.get('auto_switch_enabled') is False
    assert reopened.get('global_fallback_source_id') == 'us'


def test_delete(tmp_path):
    path = tmp_path / 'state.json'
    state = JsonStateFile(path)
    state.set('paused', True)
    state.delete('paused')
    assert JsonStateFile(path).get('paused') is None


def test_returned_values_are_copies(tmp_path):
    state = JsonStateFile(tmp_path / 'state.json')
    state.set('profiles', [{'id': 'default'}])
    state.get('profiles').append({'id': 'other'})
    assert state.get('profiles') == [{'id': 'default'}]


def test_no_temporary_files_are_left_behind(tmp_path):
    state = JsonStateFile(tmp_path / 'state.json')
    state.set('a', 1)
    state.set('b', 2)
    assert sorted(p.name for p in tmp_path.iterdir()) == ['.state.json.lock', 'state.json']
    assert json.loads((tmp_path / 'state.json').read_text()) == {'a': 1, 'b': 2}


def test_corrupt_file_is_treated_as_empty(tmp_path):
    path = tmp_path / 'state.json'
    path.write_text('{not json')
    assert JsonStateFile(path).get('anything') is None

    path.write_text('[1, 2, 3]')
    assert JsonStateFile(path).get('anything') is None


def test_reload_picks_up_external_changes(tmp_path):
    path = tmp_path / 'state.json'
    state = JsonStateFile(path)
    JsonStateFile(path).set('paused', True)
    assert state.get('paused') is None
    state.reload()
    assert state.get('paused') is True


def test_open_state_wires_stores_to_one_file(tmp_path):
    path = tmp_path / 'state.json'
    device = make_key(location_hint=3)

    stores = open_state(path)
    stores.mappings.set_mapping(device, 'us')
    stores.settings.global_fallback_source_id = 'de'

    reopened = open_state(path)
    assert reopened.mappings.get_mapping(device) == 'us'
    assert reopened.settings.global_fallback_source_id == 'de'
    assert reopened.profiles.active_profile_id == 'default'


def test_writes_keep_keys_changed_by_another_process(tmp_path):
    path = tmp_path / 'state.json'
    first = JsonStateFile(path)
    second = JsonStateFile(path)

    first.set('paused', True)
    second.set('global_fallback_source_id', 'de')
    first.delete('missing')

    reopened = JsonStateFile(path)
    assert reopened.get('paused') is True
    assert reopened.get('global_fallback_source_id') == 'de'


def test_expiring_override_keeps_mappings_written_elsewhere(tmp_path, sources, clock):
    path = tmp_path / 'state.json'
    running = open_state(path)
    engine = AutoSwitchEngine(sources, clock, running.mappings, running.overrides, running.settings)
    device = engine.canonicalize(make_fingerprint(product_id=1, location_id=1))
    engine.set_temporary_override(device, 'en-US', timedelta(minutes=1), persist=True)

    other = make_key(product_id=2)
    open_state(path).mappings.set_mapping(other, 'de-DE')

    clock.advance(timedelta(minutes=2))
    assert engine.resolve_target(device) is None
    assert open_state(path).mappings.all_mappings() == {other: 'de-DE'}


def test_opening_state_does_not_rewrite_the_file(tmp_path):
    path = tmp_path / 'state.json'
    open_state(path)
    before = path.stat().st_mtime_ns
    content = path.read_text()

    stores = open_state(path)
    assert stores.profiles.active_profile_id == 'default'
    assert path.read_text() == content
    assert path.stat().st_mtime_ns == before
