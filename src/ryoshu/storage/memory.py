"""
ryoshu.storage.memory
~~~~~~~~~~~~~~~~~~~~~
In-process storage for tests and throwaway sessions.
"""

from __future__ import annotations

from typing import Iterable

from ..exceptions import StorageError


class MemoryStorage:
    """
    Dict-backed ``KeyValueStorage``.

    Set ``fail_writes = True`` to make every ``set_item`` raise
    ``StorageError`` (simulates a full or disabled storage).
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self.fail_writes = False
        self.write_count = 0

    def __enter__(self) -> "MemoryStorage":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError(f"Storage is not writable (key {key!r}).")
        self._data[key] = value
        self.write_count += 1

    def remove_item(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> Iterable[str]:
        return list(self._data)

    def close(self) -> None:
        pass
