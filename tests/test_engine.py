"""End-to-end tests for the auto-switch engine with a manual clock."""

import logging
from datetime import timedelta

import pytest

from switch_engine.engine import AutoSwitchEngine
from switch_engine.events import EventKind
from switch_engine.events import SwitchTrigger
from switch_engine.fingerprint import DeviceKey

from .helpers import make_fingerprint

TYPING = EventKind.key_down(is_modifier=False)
FP1 = make_fingerprint(product_id=1, product_name='Desk Keyboard', location_id=11)
FP2 = make_fingerprint(product_id=2, product_name='Laptop Keyboard', transport='i8042', is_built_in=True)


@pytest.fixture
def actions():
    return []


@pytest.fixture
def engine(sources, clock, actions):
    return AutoSwitchEngine(sources, clock, on_action=actions.append)


def key_of(engine, fingerprint):
    return engine.canonicalize(fingerprint)


def test_mapped_device_switches_after_debounce(engine, sources, clock, actions):
    sources.current = 'de-DE'
    engine.set_mapping(key_of(engine, FP1), 'en-US')

    engine.handle_event(FP1, TYPING)
    assert sources.selected == []

    clock.advance(milliseconds=400)
    assert sources.selected == ['en-US']
    assert len(actions) == 1
    assert actions[0].trigger == SwitchTrigger.KEY_DOWN
    assert actions[0].from_source_id == 'de-DE'
    assert actions[0].to_source_id == 'en-US'
    assert engine.last_action == actions[0]


def test_second_device_waits_for_cooldown(engine, sources, clock):
    sources.current = 'de-DE'
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    engine.set_mapping(key_of(engine, FP2), 'de-DE')

    engine.handle_event(FP1, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == ['en-US']

    engine.handle_event(FP2, TYPING)
    clock.advance(milliseconds=1499)
    assert sources.selected == ['en-US']

    clock.advance(milliseconds=1)
    engine.handle_event(FP2, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == ['en-US', 'de-DE']


def test_override_expires_back_to_mapping(engine, clock):
    device = key_of(engine, FP1)
    engine.set_mapping(device, 'en-US')
    engine.set_temporary_override(device, 'fr-FR', timedelta(seconds=1))

    assert engine.resolve_target(device) == 'fr-FR'
    clock.advance(timedelta(seconds=2))
    assert engine.resolve_target(device) == 'en-US'


def test_duplicate_keyboards_follow_their_own_mapping(engine, sources, clock):
    at_one = DeviceKey.from_fingerprint(make_fingerprint(location_id=1))
    at_two = DeviceKey.from_fingerprint(make_fingerprint(location_id=2))
    engine.set_mapping(at_one, 'en-US')
    engine.set_mapping(at_two, 'de-DE')

    engine.handle_event(make_fingerprint(location_id=2), TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == ['de-DE']


def test_already_on_target_does_nothing(engine, sources, clock):
    sources.current = 'en-US'
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    engine.handle_event(FP1, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == []


def test_unmapped_device_uses_global_fallback(engine, sources, clock):
    engine.settings.global_fallback_source_id = 'fr-FR'
    engine.handle_event(FP2, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == ['fr-FR']


def test_port_change_keeps_mapping(engine, sources, clock):
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    moved = make_fingerprint(product_id=1, product_name='Desk Keyboard', location_id=99)
    engine.handle_event(moved, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == ['en-US']
    assert engine.active_device == key_of(engine, FP1)


def test_failed_selection_is_not_an_action(engine, sources, clock, actions, caplog):
    sources.fail = True
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    with caplog.at_level(logging.WARNING, logger='switch_engine.engine'):
        engine.handle_event(FP1, TYPING)
        clock.advance(milliseconds=400)
    assert actions == []
    assert engine.controller.cooldown_until is None
    assert any('Auto-switch failed' in r.getMessage() for r in caplog.records)


def test_undo_selects_previous_source(engine, sources, clock):
    sources.current = 'de-DE'
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    engine.handle_event(FP1, TYPING)
    clock.advance(milliseconds=400)

    assert engine.undo_last_switch()
    assert sources.current == 'de-DE'
    assert engine.last_action is None
    assert not engine.undo_last_switch()


def test_pause_drops_pending_switch(engine, sources, clock):
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    engine.handle_event(FP1, TYPING)
    engine.pause(clock.now() + timedelta(minutes=5))
    clock.advance(milliseconds=400)
    assert sources.selected == []

    engine.handle_event(FP1, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == []

    clock.advance(timedelta(minutes=5))
    engine.handle_event(FP1, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == ['en-US']


def test_indefinite_pause_until_resume(engine, sources, clock):
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    engine.pause()
    engine.handle_event(FP1, TYPING)
    clock.advance(timedelta(hours=1))
    assert sources.selected == []

    engine.resume()
    engine.handle_event(FP1, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == ['en-US']


def test_disabling_auto_switch(engine, sources, clock):
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    engine.handle_event(FP1, TYPING)
    engine.set_auto_switch_enabled(False)
    clock.advance(milliseconds=400)
    assert sources.selected == []
    assert not engine.is_auto_switch_active


def test_filtered_device_is_ignored(engine, sources, clock):
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    rule = engine.settings.device_filter
    rule.set_device_enabled(False, FP1)
    engine.settings.device_filter = rule

    engine.handle_event(FP1, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == []
    assert engine.active_device is None


def test_forget_device_drops_everything(engine, clock):
    device = key_of(engine, FP1)
    engine.set_mapping(device, 'en-US')
    engine.set_temporary_override(device, 'fr-FR')
    engine.handle_event(FP1, TYPING)

    engine.forget_device(device)
    assert engine.resolve_target(device) is None
    assert engine.controller.pending_device is None
    assert device not in engine.registry.keys


def test_validate_mappings_uses_enabled_sources(engine, sources):
    device = key_of(engine, FP1)
    engine.set_mapping(device, 'ja-JP')
    assert [c.mapped_source_id for c in engine.validate_mappings()] == ['ja-JP']
    sources.enabled.add('ja-JP')
    assert engine.validate_mappings() == []


def test_handle_event_never_raises(engine, sources, clock):
    def broken_current():
        raise RuntimeError('input layer gone')

    sources.current_source = broken_current
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    engine.handle_event(FP1, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == ['en-US']


def test_on_action_errors_do_not_break_switching(sources, clock):
    def explode(_action):
        raise RuntimeError('listener failed')

    engine = AutoSwitchEngine(sources, clock, on_action=explode)
    engine.set_mapping(engine.canonicalize(FP1), 'en-US')
    engine.handle_event(FP1, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == ['en-US']
    assert engine.controller.is_in_cooldown


def test_shutdown_cancels_pending_timer(engine, sources, clock):
    engine.set_mapping(key_of(engine, FP1), 'en-US')
    engine.handle_event(FP1, TYPING)
    engine.shutdown()
    assert clock.pending_timers == 0
    clock.advance(milliseconds=400)
    assert sources.selected == []


def test_unmapped_device_does_not_query_current_source(engine, sources, clock):
    queries = []

    def counting_current():
        queries.append(clock.now())
        return sources.current

    sources.current_source = counting_current
    engine.handle_event(FP2, TYPING)
    engine.handle_event(FP2, TYPING)
    assert queries == []

    engine.set_mapping(key_of(engine, FP1), 'en-US')
    engine.handle_event(FP1, TYPING)
    assert len(queries) == 1
