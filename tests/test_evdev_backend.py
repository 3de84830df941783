"""Tests for the evdev backend helpers, using fake devices (no hardware)."""

import logging
import queue
import threading
from types import SimpleNamespace

from evdev import InputEvent
from evdev import ecodes

from common.backends.evdev_backend.device_manager import DeviceManager
from common.backends.evdev_backend.device_manager import fingerprint_from_device
from common.backends.evdev_backend.device_manager import location_from_phys
from common.backends.evdev_backend.event_router import EventRouter
from common.backends.evdev_backend.parser import parse_event
from common.backends.evdev_backend.types import DEVICE_STABILIZED
from common.backends.key_mapping import evdev_to_key_name
from common.key_normalizer import is_modifier_key
from switch_engine.events import EventKind

from .helpers import make_fingerprint

logger = logging.getLogger('tests.evdev')


def fake_device(bustype=0x03, vendor=0x046D, product=0xC31C, name='Logitech USB Keyboard',
                phys='usb-0000:00:14.0-2/input0', path='/dev/input/event5'):
    return SimpleNamespace(
        info=SimpleNamespace(bustype=bustype, vendor=vendor, product=product, version=0x0110),
        name=name,
        phys=phys,
        path=path,
    )


def key_event(code, value):
    return InputEvent(0, 0, ecodes.EV_KEY, code, value)


def test_usb_keyboard_fingerprint():
    fp = fingerprint_from_device(fake_device())
    assert fp.vendor_id == 0x046D
    assert fp.product_id == 0xC31C
    assert fp.transport == 'usb'
    assert fp.is_built_in is False
    assert fp.product_name == 'Logitech USB Keyboard'
    assert fp.location_id == location_from_phys('usb-0000:00:14.0-2/input0')


def test_internal_keyboard_is_built_in():
    fp = fingerprint_from_device(
        fake_device(bustype=0x11, vendor=1, product=1, name='AT Translated Set 2 keyboard', phys='isa0060/serio0/input0')
    )
    assert fp.transport == 'i8042'
    assert fp.is_built_in is True


def test_bluetooth_keyboard():
    fp = fingerprint_from_device(fake_device(bustype=0x05, phys=''))
    assert fp.transport == 'bluetooth'
    assert fp.is_built_in is False
    assert fp.location_id is None


def test_unknown_bus():
    assert fingerprint_from_device(fake_device(bustype=0x42)).transport is None


def test_location_ignores_interface_number():
    assert location_from_phys('usb-0000:00:14.0-2/input0') == location_from_phys('usb-0000:00:14.0-2/input1')
    assert location_from_phys('usb-0000:00:14.0-2/input0') != location_from_phys('usb-0000:00:14.0-3/input0')
    assert location_from_phys(None) is None


def test_device_manager_caches_fingerprints():
    manager = DeviceManager(logger)
    device = fake_device()
    assert manager.fingerprint(device) is manager.fingerprint(device)
    manager.forget(device)
    assert manager.fingerprint(device) == fingerprint_from_device(device)


def test_key_names():
    assert evdev_to_key_name('KEY_LEFTSHIFT') == 'shift_l'
    assert evdev_to_key_name(['KEY_RIGHTALT', 'KEY_ALTGR']) == 'alt_r'
    assert evdev_to_key_name('KEY_Q') == 'q'
    assert is_modifier_key(evdev_to_key_name('KEY_CAPSLOCK'))
    assert not is_modifier_key(evdev_to_key_name('KEY_SPACE'))


def test_parse_event_skips_non_key_events():
    fp = make_fingerprint()
    assert parse_event(fp, InputEvent(0, 0, ecodes.EV_SYN, 0, 0)) is None
    parsed = parse_event(fp, key_event(ecodes.KEY_A, 1))
    assert parsed.key_name == 'a'
    assert parsed.fingerprint == fp


class Collector:
    def __init__(self):
        self.events = []

    def __call__(self, fingerprint, kind):
        self.events.append((fingerprint, kind))


def test_router_forwards_presses_only():
    collector = Collector()
    router = EventRouter(logger, parse_event, collector)
    fp = make_fingerprint()

    router.route(fp, key_event(ecodes.KEY_A, 1))
    router.route(fp, key_event(ecodes.KEY_A, 2))
    router.route(fp, key_event(ecodes.KEY_A, 0))
    router.route(fp, key_event(ecodes.KEY_LEFTCTRL, 1))
    router.route(fp, InputEvent(0, 0, ecodes.EV_SYN, 0, 0))

    assert collector.events == [
        (fp, EventKind.key_down(is_modifier=False)),
        (fp, EventKind.key_down(is_modifier=True)),
    ]


def test_router_forwards_device_stabilized():
    collector = Collector()
    router = EventRouter(logger, parse_event, collector)
    fp = make_fingerprint()
    router.route(fp, DEVICE_STABILIZED)
    assert collector.events == [(fp, EventKind.device_stabilized())]


def test_router_loop_drains_queue_until_stopped():
    collector = Collector()
    router = EventRouter(logger, parse_event, collector)
    events = queue.Queue()
    stop = threading.Event()
    fp = make_fingerprint()

    events.put((fp, key_event(ecodes.KEY_B, 1)))

    def get(timeout):
        if events.empty():
            stop.set()
        return events.get(timeout=timeout)

    router.run(get, stop)
    assert collector.events == [(fp, EventKind.key_down(is_modifier=False))]


def test_reader_drops_events_when_queue_is_full(caplog):
    events = queue.Queue(maxsize=1)
    device = fake_device()
    device.read_loop = lambda: iter([key_event(ecodes.KEY_A, 1), key_event(ecodes.KEY_B, 1)])
    closed = []

    with caplog.at_level(logging.WARNING, logger='tests.evdev'):
        DeviceManager(logger)._reader_loop(device, events.put_nowait, threading.Event(), closed.append)

    fingerprint, event = events.get_nowait()
    assert fingerprint == fingerprint_from_device(device)
    assert event.code == ecodes.KEY_A
    assert closed == [device]
    assert any('dropping event' in r.getMessage() for r in caplog.records)
