"""Tests for the monitor wiring backend observations into the engine."""

import pytest

from layout_switcher.models import AppConfig
from layout_switcher.models import SourceConfig
from layout_switcher.state_file import open_state
from layout_switcher.switcher_monitor import SwitcherMonitor
from switch_engine.events import EventKind

from .helpers import make_fingerprint

TYPING = EventKind.key_down(is_modifier=False)


class ScriptedBackend:
    """Backend replaying a fixed list of observations, then returning."""

    def __init__(self, observations, clock=None, step_ms=0):
        self.observations = observations
        self.clock = clock
        self.step_ms = step_ms
        self.stopped = False

    def start(self, on_event):
        for fingerprint, kind in self.observations:
            on_event(fingerprint, kind)
            if self.clock is not None and self.step_ms:
                self.clock.advance(milliseconds=self.step_ms)

    def stop(self):
        self.stopped = True

    def get_backend_name(self):
        return 'scripted'


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        state_file=tmp_path / 'state.json',
        sources=[SourceConfig(id='en-US', command='true'), SourceConfig(id='de-DE', command='true')],
    )


def test_observations_drive_switches(config, sources, clock):
    fp = make_fingerprint(location_id=1)
    backend = ScriptedBackend([(fp, TYPING)], clock=clock, step_ms=400)
    monitor = SwitcherMonitor(config, sources, backend, clock=clock)
    monitor.engine.set_mapping(monitor.engine.canonicalize(fp), 'en-US')

    monitor.start()

    assert sources.selected == ['en-US']
    assert [a.to_source_id for a in monitor.history] == ['en-US']


def test_shutdown_after_backend_returns_drops_pending(config, sources, clock):
    fp = make_fingerprint(location_id=1)
    monitor = SwitcherMonitor(config, sources, ScriptedBackend([(fp, TYPING)]), clock=clock)
    monitor.engine.set_mapping(monitor.engine.canonicalize(fp), 'en-US')

    monitor.start()
    clock.advance(milliseconds=400)
    assert sources.selected == []


def test_stop_stops_backend(config, sources, clock):
    backend = ScriptedBackend([])
    monitor = SwitcherMonitor(config, sources, backend, clock=clock)
    monitor.stop()
    assert backend.stopped


def test_reload_state_picks_up_external_mapping(config, sources, clock):
    fp = make_fingerprint(location_id=1)
    monitor = SwitcherMonitor(config, sources, ScriptedBackend([]), clock=clock)
    key = monitor.engine.canonicalize(fp)

    other_process = open_state(config.state_file)
    other_process.mappings.set_mapping(key, 'de-DE')
    assert monitor.engine.resolve_target(key) is None

    monitor.reload_state()
    assert monitor.engine.resolve_target(key) == 'de-DE'
    assert key in monitor.engine.registry.keys

    monitor.on_event(fp, TYPING)
    clock.advance(milliseconds=400)
    assert sources.selected == ['de-DE']


def test_run_locked(config, sources, clock):
    monitor = SwitcherMonitor(config, sources, ScriptedBackend([]), clock=clock)
    assert monitor.run_locked(lambda engine: engine.is_auto_switch_active) is True
