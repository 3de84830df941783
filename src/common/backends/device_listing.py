"""Public API for listing keyboard devices.

Lists every keyboard together with its identity fingerprint, so users can
see how each board is identified before mapping it.
"""

from __future__ import annotations

from dataclasses import dataclass

from switch_engine.fingerprint import Fingerprint


@dataclass
class KeyboardDeviceInfo:
    """A keyboard as seen by the input subsystem.

    Attributes:
        name: Device name
        path: Device node (e.g. /dev/input/event3)
        phys: Physical path reported by the kernel, may be empty
        fingerprint: Identity fingerprint built from the device info
        is_virtual: Whether the device is a virtual uinput device
    """

    name: str
    path: str
    phys: str
    fingerprint: Fingerprint
    is_virtual: bool = False


def list_keyboard_devices() -> list[KeyboardDeviceInfo]:
    """List all available keyboard devices in the system.

    Physical keyboards are listed first, followed by virtual keyboards (uinput).

    Returns:
        list[KeyboardDeviceInfo]: Keyboards with their fingerprints

    Raises:
        PermissionError: If access to /dev/input/ is denied
        OSError: If device listing fails for other reasons

    Example:
        >>> for dev in list_keyboard_devices():
        ...     print(f'{dev.name} -> {dev.fingerprint.primary_id}')
    """
    import evdev

    from .evdev_backend.device_manager import DeviceManager, fingerprint_from_device

    try:
        device_paths = evdev.list_devices()
    except PermissionError as e:
        raise PermissionError(
            'Permission denied accessing /dev/input/. '
            'Add user to "input" group:\n'
            '  sudo usermod -a -G input $USER\n'
            'Then log out and back in for changes to take effect.'
        ) from e

    physical_keyboards = []
    virtual_keyboards = []

    for path in device_paths:
        try:
            device = evdev.InputDevice(path)
        except OSError:
            continue
        try:
            if not DeviceManager.device_has_keyboard_caps(device):
                continue
            info = KeyboardDeviceInfo(
                name=device.name,
                path=device.path,
                phys=device.phys or '',
                fingerprint=fingerprint_from_device(device),
                is_virtual=DeviceManager.is_virtual_uinput(device, path),
            )
        finally:
            device.close()
        if info.is_virtual:
            virtual_keyboards.append(info)
        else:
            physical_keyboards.append(info)

    return physical_keyboards + virtual_keyboards
