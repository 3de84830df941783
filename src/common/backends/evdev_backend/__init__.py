"""Evdev backend package.

Exports EvdevBackend while allowing internal helpers/modules to evolve.
Devices are read without grabbing: the switcher only observes which
keyboard is typing and never rewrites events.
"""

from __future__ import annotations

import queue
import threading
from contextlib import suppress
from typing import Any

from ..base import BackendNotAvailableError, ObservationCallback
from .device_manager import DeviceManager, fingerprint_from_device
from .event_router import EventRouter
from .parser import parse_event
from .types import DEVICE_STABILIZED, RawEvent

__all__ = ['EvdevBackend', 'fingerprint_from_device']


class EvdevBackend:
    """Keyboard backend using evdev (Wayland/X11 compatible)."""

    def __init__(self, rescan_interval: float = 2.0) -> None:
        from common.logging_utils import get_logger
        self.logger = get_logger('common.backend.evdev')
        self.rescan_interval = rescan_interval
        self._devices: dict[str, Any] = {}
        self._devices_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._event_queue: queue.Queue[RawEvent] = queue.Queue(maxsize=1000)
        self._device_manager = DeviceManager(self.logger)
        self.logger.debug('EvdevBackend initialized')

    def get_backend_name(self) -> str:
        return 'evdev'

    @property
    def devices(self) -> list[Any]:
        with self._devices_lock:
            return list(self._devices.values())

    # -------------------- Public API --------------------
    def start(self, on_event: ObservationCallback) -> None:
        dm = self._device_manager
        try:
            readable = dm.list_devices()
        except OSError as e:
            raise BackendNotAvailableError(f'Cannot list input devices: {e}') from e
        if not readable:
            raise BackendNotAvailableError(
                'No readable input devices in /dev/input/. '
                'Add user to the "input" group: sudo usermod -a -G input $USER'
            )

        self._stop_event.clear()
        initial = dm.discover_keyboards()
        if initial:
            self.logger.info(f'Using {len(initial)} keyboard device(s)')
            for device in initial:
                self.logger.info(f'  - {device.name} ({device.path})')
        else:
            self.logger.warning('No keyboard devices found yet; waiting for one to be connected')
        self._attach(initial, announce=False)

        rescan = threading.Thread(target=self._rescan_loop, daemon=True, name='evdev-rescan')
        rescan.start()
        self._threads.append(rescan)

        router = EventRouter(logger=self.logger, parse_event=parse_event, on_event=on_event)
        try:
            router.run(self._event_queue.get, self._stop_event)
        finally:
            self._cleanup_devices()

    def stop(self) -> None:
        self.logger.info('Stopping evdev keyboard listener')
        self._stop_event.set()

    # -------------------- Internals --------------------
    def _attach(self, devices: list[Any], announce: bool) -> None:
        with self._devices_lock:
            for device in devices:
                self._devices[device.path] = device
        self._threads.extend(
            self._device_manager.start_reader_threads(
                devices, self._event_queue.put_nowait, self._stop_event, on_closed=self._on_device_closed,
            )
        )
        if not announce:
            return
        for device in devices:
            self.logger.info(f'Keyboard connected: {device.name} ({device.path})')
            with suppress(queue.Full):
                self._event_queue.put_nowait((self._device_manager.fingerprint(device), DEVICE_STABILIZED))

    def _on_device_closed(self, device: Any) -> None:
        with self._devices_lock:
            self._devices.pop(device.path, None)
        with suppress(OSError):
            device.close()

    def _rescan_loop(self) -> None:
        while not self._stop_event.wait(self.rescan_interval):
            with self._devices_lock:
                known = set(self._devices)
            try:
                new_devices = self._device_manager.discover_keyboards(exclude_paths=known)
            except OSError as e:
                self.logger.warning(f'Device rescan failed: {e}')
                continue
            if new_devices:
                self._attach(new_devices, announce=True)

    def _cleanup_devices(self) -> None:
        self._stop_event.set()
        for device in self.devices:
            with suppress(OSError):
                device.close()
        for thread in self._threads:
            if thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=1.0)
        self._threads.clear()
        with self._devices_lock:
            self._devices.clear()
