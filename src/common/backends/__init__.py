"""Keyboard backend abstraction.

Backends report which physical keyboard produced each key press so the
switcher can follow the active device.
"""

from .base import BackendNotAvailableError, KeyboardBackend, ObservationCallback
from .detector import create_backend
from .device_listing import KeyboardDeviceInfo, list_keyboard_devices

__all__ = [
    'KeyboardBackend',
    'ObservationCallback',
    'BackendNotAvailableError',
    'create_backend',
    'KeyboardDeviceInfo',
    'list_keyboard_devices',
]
