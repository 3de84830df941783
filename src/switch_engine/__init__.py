"""Switch Engine - device identity and auto-switch decisions.

Turns a noisy stream of keyboard observations into a small number of
confident, stable input-source switches.
"""

from .clock import Clock
from .clock import ManualClock
from .clock import SystemClock
from .clock import TimerHandle
from .engine import AutoSwitchEngine
from .events import EventKind
from .events import SwitchAction
from .events import SwitchTrigger
from .fingerprint import DeviceKey
from .fingerprint import Fingerprint
from .identity import DeviceRegistry
from .identity import canonicalize
from .mapping_store import MappingConflict
from .mapping_store import MappingStore
from .override_store import OverrideStore
from .override_store import TemporaryOverride
from .ports import InputSource
from .ports import InputSourceService
from .ports import KeyValueStore
from .ports import MemoryStore
from .profiles import ProfileManager
from .resolver import TargetResolver
from .settings import SettingsStore
from .switch_controller import SwitchController

__all__ = [
    'AutoSwitchEngine',
    'Clock',
    'DeviceKey',
    'DeviceRegistry',
    'EventKind',
    'Fingerprint',
    'InputSource',
    'InputSourceService',
    'KeyValueStore',
    'ManualClock',
    'MappingConflict',
    'MappingStore',
    'MemoryStore',
    'OverrideStore',
    'ProfileManager',
    'SettingsStore',
    'SwitchAction',
    'SwitchController',
    'SwitchTrigger',
    'SystemClock',
    'TargetResolver',
    'TemporaryOverride',
    'TimerHandle',
    'canonicalize',
]
