"""Keyboard monitoring with automatic input-source switching.

This module connects the keyboard backend to the auto-switch engine.
"""

import logging
import threading
from collections import deque
from collections.abc import Callable

from common.backends import KeyboardBackend
from switch_engine.clock import Clock
from switch_engine.clock import SystemClock
from switch_engine.engine import AutoSwitchEngine
from switch_engine.events import EventKind
from switch_engine.events import SwitchAction
from switch_engine.fingerprint import Fingerprint
from switch_engine.identity import DeviceRegistry
from switch_engine.ports import InputSourceService

from .models import AppConfig
from .state_file import StateStores
from .state_file import open_state

HISTORY_SIZE = 20


class SwitcherMonitor:
    """Feed keyboard observations to the engine and run its timers.

    Device events arrive on the backend's router thread and debounce
    timers fire on timer threads; both go through one lock so the engine
    sees a single ordered stream.

    Args:
        config: Application configuration
        input_sources: OS input-source service
        backend: Keyboard backend producing observations
        stores: Persistent stores; opened from config.state_file if omitted
        clock: Clock for the engine; a SystemClock dispatching under the lock if omitted
    """

    def __init__(
        self,
        config: AppConfig,
        input_sources: InputSourceService,
        backend: KeyboardBackend,
        stores: StateStores | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config
        self.input_sources = input_sources
        self.backend = backend
        self.logger = logging.getLogger('layout_switcher.monitor')
        self._lock = threading.RLock()
        self.clock = clock if clock is not None else SystemClock(dispatch=self._dispatch)
        self.stores = stores if stores is not None else open_state(config.state_file)
        self.history: deque[SwitchAction] = deque(maxlen=HISTORY_SIZE)
        self.engine = self._build_engine(DeviceRegistry())

    def _build_engine(self, registry: DeviceRegistry) -> AutoSwitchEngine:
        return AutoSwitchEngine(
            input_sources=self.input_sources,
            clock=self.clock,
            mapping_store=self.stores.mappings,
            override_store=self.stores.overrides,
            settings=self.stores.settings,
            registry=registry,
            debounce=self.config.debounce,
            cooldown=self.config.cooldown,
            on_action=self.history.append,
        )

    def start(self) -> None:
        """Start monitoring keyboards (blocking call).

        This method will block until interrupted (Ctrl+C or SIGTERM).
        """
        self.logger.info(
            f'Starting layout switcher with debounce {self.config.debounce_ms}ms, '
            f'cooldown {self.config.cooldown_ms}ms'
        )
        self.logger.info(f'Profile: {self.stores.mappings.active_profile_id}')
        self._report_configuration()

        try:
            self.backend.start(self.on_event)
        except KeyboardInterrupt:
            self.logger.info('Received interrupt signal, shutting down...')
            raise
        finally:
            self.shutdown()

    def stop(self) -> None:
        """Stop the backend; start() returns once its loop has exited."""
        self.backend.stop()
        self.logger.info('Keyboard monitor stopped')

    def shutdown(self) -> None:
        with self._lock:
            self.engine.shutdown()

    def on_event(self, fingerprint: Fingerprint, event_kind: EventKind) -> None:
        with self._lock:
            self.engine.handle_event(fingerprint, event_kind)

    def run_locked(self, operation: Callable[[AutoSwitchEngine], object]) -> object:
        """Run an operation on the engine while no event or timer is being processed."""
        with self._lock:
            return operation(self.engine)

    def reload_state(self) -> None:
        """Re-open the state file, picking up changes made by other processes.

        Any pending switch is dropped. Device identities seen this session
        are kept.
        """
        with self._lock:
            registry = self.engine.registry
            self.engine.shutdown()
            self.stores = open_state(self.config.state_file)
            self.engine = self._build_engine(registry)
            self.logger.info(f'Reloaded state from {self.config.state_file}')
            self._report_configuration()

    def _dispatch(self, callback: Callable[[], None]) -> None:
        with self._lock:
            callback()

    def _report_configuration(self) -> None:
        configurations = self.stores.mappings.all_configurations()
        self.logger.info(f'{len(configurations)} configured device(s)')
        if self.config.debug_mode:
            for key, configuration in configurations.items():
                self.logger.debug(
                    f'  {key.id} → {configuration.mapping_source_id or "-"} '
                    f'(fallback: {configuration.per_device_fallback_source_id or "-"})'
                )
        for conflict in self.engine.validate_mappings():
            self.logger.warning(
                f'Mapping for {conflict.device_key.label} points to {conflict.mapped_source_id}, '
                f'which is {conflict.reason}'
            )
        if not self.engine.is_auto_switch_active:
            self.logger.warning('Auto-switch is currently disabled or paused')
