"""JSON-file key/value storage for mappings, overrides and settings.

The whole state is one JSON object shared by the running switcher and the
CLI. Every write re-reads the file under an exclusive lock and changes only
its own key, so processes never overwrite each other's keys. Writes go to a
temporary file in the same directory which then replaces the original, so a
crash never leaves a half-written state file behind.
"""

from __future__ import annotations

import copy
import fcntl
import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from switch_engine.mapping_store import MappingStore
from switch_engine.override_store import OverrideStore
from switch_engine.profiles import ProfileManager
from switch_engine.settings import SettingsStore


class JsonStateFile:
    """Key/value storage persisted to a single JSON document.

    Args:
        path: State file location; parent directories are created on write

    Example:
        >>> state = JsonStateFile(Path('~/.local/state/layout-switcher/state.json').expanduser())
        >>> state.set('auto_switch_enabled', False)
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.lock_path = path.with_name(f'.{path.name}.lock')
        self.logger = logging.getLogger('layout_switcher.state')
        self._data: dict[str, Any] = {}
        self.reload()

    def reload(self) -> None:
        """Re-read the file, treating a missing or corrupt file as empty."""
        self._data = self._read()

    def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        with self._locked():
            data = self._read()
            data[key] = copy.deepcopy(value)
            self._write(data)
            self._data = data

    def delete(self, key: str) -> None:
        with self._locked():
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)
            self._data = data

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.lock_path.open('a') as lock:
            fcntl.flock(lock, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock, fcntl.LOCK_UN)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open('r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f'Ignoring unreadable state file {self.path}: {e}')
            return {}
        if not isinstance(data, dict):
            self.logger.warning(f'Ignoring state file {self.path}: top level is not an object')
            return {}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f'.{self.path.name}.', suffix='.tmp', dir=self.path.parent)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.write('\n')
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


@dataclass
class StateStores:
    """Engine stores opened on one state file."""
    storage: JsonStateFile
    profiles: ProfileManager
    mappings: MappingStore
    overrides: OverrideStore
    settings: SettingsStore


def open_state(path: Path) -> StateStores:
    """Open every persistent engine store on the state file at path."""
    storage = JsonStateFile(path)
    profiles = ProfileManager(storage)
    return StateStores(
        storage=storage,
        profiles=profiles,
        mappings=MappingStore(storage, profiles),
        overrides=OverrideStore(storage),
        settings=SettingsStore(storage),
    )
