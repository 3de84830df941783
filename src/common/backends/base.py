"""Base keyboard backend abstraction using Protocol.

A backend turns the platform's input subsystem into a stream of
``(fingerprint, event_kind)`` observations, one per key press or
device-stabilized signal. No explicit inheritance is required.
"""

from collections.abc import Callable
from typing import Protocol

from switch_engine.events import EventKind
from switch_engine.fingerprint import Fingerprint

ObservationCallback = Callable[[Fingerprint, EventKind], None]


class KeyboardBackend(Protocol):
    """Protocol for per-device keyboard event sources.

    Example:
        class MyBackend:  # No inheritance needed!
            def start(self, on_event) -> None: ...
            def stop(self) -> None: ...
            def get_backend_name(self) -> str: ...
    """

    def start(self, on_event: ObservationCallback) -> None:
        """Start listening for keyboard events (blocking call).

        Blocks until stop() is called from another thread or a signal
        handler. Calls on_event once per key press (auto-repeat excluded)
        and once per keyboard that appears while running.

        Args:
            on_event: Receives the observing device's fingerprint and the
                event kind. It may be called from a backend thread.
        """
        ...

    def stop(self) -> None:
        """Stop listening; start() returns and resources are released."""
        ...

    def get_backend_name(self) -> str:
        """Return a human-readable backend name for logging."""
        ...


class BackendNotAvailableError(Exception):
    """Raised when a backend cannot be initialized.

    This can happen for various reasons:
    - Required library not installed (e.g., evdev)
    - No suitable input devices found
    - Permission denied for /dev/input/

    The error message should provide actionable guidance for the user.
    """
    pass
