from __future__ import annotations

import queue
import re
import threading
import zlib
from typing import Any, Callable, Iterable

import evdev
from evdev import ecodes

from switch_engine.fingerprint import Fingerprint

from .types import RawEvent

# linux/input.h bus types
BUS_TRANSPORTS: dict[int, str] = {
    0x03: 'usb',
    0x05: 'bluetooth',
    0x06: 'virtual',
    0x11: 'i8042',
    0x18: 'i2c',
    0x19: 'host',
    0x1C: 'spi',
}
BUILT_IN_BUSES = frozenset({0x11, 0x18, 0x19, 0x1C})

_INTERFACE_SUFFIX = re.compile(r'/input\d+$')


def transport_for_bus(bustype: int) -> str | None:
    """Return the transport name for an evdev bus type, or None if unknown."""
    return BUS_TRANSPORTS.get(bustype)


def location_from_phys(phys: str | None) -> int | None:
    """Derive a numeric location hint from a device's physical path.

    The interface suffix is dropped so every interface of one physical
    keyboard shares a location.

    Examples:
        >>> location_from_phys('usb-0000:00:14.0-3/input0') == location_from_phys('usb-0000:00:14.0-3/input1')
        True
        >>> location_from_phys('') is None
        True
    """
    if not phys:
        return None
    port = _INTERFACE_SUFFIX.sub('', phys.strip())
    if not port:
        return None
    return zlib.crc32(port.encode('utf-8'))


def fingerprint_from_device(device: Any) -> Fingerprint:
    """Build the identity fingerprint of an evdev InputDevice."""
    info = device.info
    return Fingerprint(
        vendor_id=info.vendor,
        product_id=info.product,
        transport=transport_for_bus(info.bustype),
        is_built_in=info.bustype in BUILT_IN_BUSES,
        product_name=device.name,
        location_id=location_from_phys(getattr(device, 'phys', None)),
    )


class DeviceManager:
    def __init__(self, logger: Any) -> None:
        self.logger = logger
        self._fingerprints: dict[str, Fingerprint] = {}

    @staticmethod
    def device_has_keyboard_caps(device: Any) -> bool:
        """Return True if the evdev device exposes keyboard capabilities."""
        caps = device.capabilities()
        if ecodes.EV_KEY not in caps:
            return False
        keys = caps[ecodes.EV_KEY]
        return (
            ecodes.KEY_LEFTCTRL in keys
            or ecodes.KEY_RIGHTCTRL in keys
            or ecodes.KEY_LEFTALT in keys
            or ecodes.KEY_A in keys
        )

    @staticmethod
    def is_virtual_uinput(device: Any, path: str) -> bool:
        name_l = device.name.lower()
        path_l = str(path).lower()
        return 'uinput' in name_l or 'uinput' in path_l

    def list_devices(self) -> list[str]:
        return evdev.list_devices()

    def discover_keyboards(self, exclude_paths: Iterable[str] = ()) -> list[Any]:
        """Open every physical keyboard not already in exclude_paths."""
        excluded = set(exclude_paths)
        devices = []
        for path in self.list_devices():
            if path in excluded:
                continue
            try:
                dev = evdev.InputDevice(path)
            except OSError:
                continue
            if not self.device_has_keyboard_caps(dev) or self.is_virtual_uinput(dev, path):
                dev.close()
                continue
            devices.append(dev)
        return devices

    def fingerprint(self, device: Any) -> Fingerprint:
        cached = self._fingerprints.get(device.path)
        if cached is None:
            cached = fingerprint_from_device(device)
            self._fingerprints[device.path] = cached
        return cached

    def forget(self, device: Any) -> None:
        self._fingerprints.pop(device.path, None)

    def start_reader_threads(
        self,
        devices: Iterable[Any],
        queue_put: Callable[[RawEvent], None],
        stop_event: Any,
        on_closed: Callable[[Any], None] | None = None,
    ) -> list[threading.Thread]:
        """Start reader threads for devices.

        queue_put: Non-blocking callable that accepts (fingerprint, event) and raises
            queue.Full on overflow; the event is then dropped.
        stop_event: threading.Event-like with is_set().
        on_closed: Called with the device once its read loop ends (unplugged or failed).
        """
        threads = []
        for dev in devices:
            t = threading.Thread(
                target=self._reader_loop,
                args=(dev, queue_put, stop_event, on_closed),
                daemon=True,
                name=f'evdev-read-{dev.name}',
            )
            t.start()
            threads.append(t)
        return threads

    def _reader_loop(self, device: Any, queue_put, stop_event, on_closed) -> None:
        fingerprint = self.fingerprint(device)
        try:
            for event in device.read_loop():
                if stop_event.is_set():
                    break
                try:
                    queue_put((fingerprint, event))
                except queue.Full:
                    self.logger.warning(f'Event queue full, dropping event from {device.name}')
        except OSError as e:
            if not stop_event.is_set():
                self.logger.info(f'Keyboard disconnected: {device.name} ({e})')
        except Exception as e:  # noqa: BLE001
            self.logger.error(f'Unexpected error in read loop for {device.name}: {e}')
        finally:
            self.forget(device)
            if on_closed is not None:
                on_closed(device)
