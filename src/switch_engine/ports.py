"""Interfaces the engine consumes from its collaborators.

Using Protocol instead of ABC allows structural subtyping: the OS layer and
the storage layer only need the right methods, no inheritance.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class InputSource:
    """A text input source (keyboard layout) known to the OS layer."""
    id: str
    name: str


class InputSourceService(Protocol):
    """OS input-source layer."""

    def list_enabled_sources(self) -> list[InputSource]:
        """Return the sources the user can currently switch to."""
        ...

    def is_source_enabled(self, source_id: str) -> bool:
        ...

    def current_source(self) -> str | None:
        """Return the id of the active source, or None if unknown."""
        ...

    def select_source(self, source_id: str) -> bool:
        """Select a source. Returns False if the OS declined."""
        ...


class KeyValueStore(Protocol):
    """Persisted key/value storage used by the configuration stores.

    Values are JSON-compatible (dicts, lists, strings, numbers, bools, None).
    """

    def get(self, key: str) -> Any | None:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """In-memory :class:`KeyValueStore`, the default for fresh stores and tests."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
