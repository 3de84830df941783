"""Backend detection and factory.

The switcher needs the identity of the keyboard behind every key press,
which only evdev exposes; it works on both X11 and Wayland.
"""

import logging
from typing import Any

from .base import BackendNotAvailableError, KeyboardBackend

logger = logging.getLogger('common.backend')


def create_backend(**kwargs: Any) -> KeyboardBackend:
    """Create the evdev keyboard backend.

    Args:
        **kwargs: Arguments passed to EvdevBackend (e.g. rescan_interval)

    Returns:
        KeyboardBackend: Initialized EvdevBackend instance.

    Raises:
        BackendNotAvailableError: If the evdev library is not installed.
            The message carries troubleshooting steps.

    Examples:
        backend = create_backend(rescan_interval=5.0)
    """
    try:
        from .evdev_backend import EvdevBackend
    except ImportError as e:
        raise BackendNotAvailableError(
            'Evdev backend is not available: evdev library is not installed.\n\n'
            'Troubleshooting:\n'
            '1. Install evdev library: pip install evdev or uv add evdev\n'
            '2. Add user to input group:\n'
            '   sudo usermod -a -G input $USER\n'
            '   Then log out and back in.'
        ) from e

    backend = EvdevBackend(**kwargs)
    logger.info(f'Created backend: {backend.get_backend_name()}')
    return backend
