"""
ryoshu.storage.base
~~~~~~~~~~~~~~~~~~~
Abstract key-value storage interface.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStorage(Protocol):
    """
    Durable, string-valued key-value storage.

    Values are always replaced whole — there are no partial updates.
    """

    def get_item(self, key: str) -> str | None:
        """Return the stored value, or ``None`` if the key is absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """
        Overwrite ``key`` with ``value`` in a single write.

        Raises ``StorageError`` if the value could not be stored.
        """
        ...

    def remove_item(self, key: str) -> bool:
        """Delete ``key``. Returns True if it existed."""
        ...

    def keys(self) -> Iterable[str]:
        """All stored keys."""
        ...

    def close(self) -> None:
        """Release connections."""
        ...
