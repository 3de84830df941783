from __future__ import annotations

import queue
from typing import Any, Callable

from common.key_normalizer import is_modifier_key
from switch_engine.events import EventKind
from switch_engine.fingerprint import Fingerprint

from .types import DEVICE_STABILIZED, ParsedEvent

KEY_PRESS = 1


class EventRouter:
    """Turns queued raw events into (fingerprint, EventKind) observations.

    Only presses are forwarded; releases and auto-repeat never trigger a
    switch on their own.
    """

    def __init__(
        self,
        logger: Any,
        parse_event: Callable[[Fingerprint, Any], ParsedEvent | None],
        on_event: Callable[[Fingerprint, EventKind], None],
    ) -> None:
        self.logger = logger
        self._parse_event = parse_event
        self._on_event = on_event

    def route(self, fingerprint: Fingerprint, event: Any) -> None:
        if event is DEVICE_STABILIZED:
            self._on_event(fingerprint, EventKind.device_stabilized())
            return
        parsed = self._parse_event(fingerprint, event)
        if parsed is None or parsed.value != KEY_PRESS:
            return
        self._on_event(fingerprint, EventKind.key_down(is_modifier_key(parsed.key_name)))

    def run(self, queue_get, stop_event) -> None:
        event_count = 0
        self.logger.info('Starting main event processing loop...')
        while not stop_event.is_set():
            try:
                fingerprint, event = queue_get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                event_count += 1
                if event_count == 1:
                    self.logger.info('First event received - event loop is working')
                self.route(fingerprint, event)
            except Exception as e:  # noqa: BLE001
                self.logger.error(f'Error processing event from {fingerprint.product_name}: {e}', exc_info=True)
