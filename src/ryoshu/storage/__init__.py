"""
ryoshu.storage
~~~~~~~~~~~~~~
Pluggable key-value persistence for issuers and receipt history.

Default backend: SQLite at ``~/.ryoshu/default/ryoshu.db``.

Usage::

    from ryoshu.storage import get_storage

    with get_storage() as storage:
        print(storage.get_item("issuers"))
"""

from .base import KeyValueStorage
from .memory import MemoryStorage
from .sqlite import SQLiteStorage


def get_storage(db_path=None) -> SQLiteStorage:
    """Return the default SQLite storage, optionally at a custom path."""
    return SQLiteStorage(db_path=db_path)


__all__ = ["KeyValueStorage", "MemoryStorage", "SQLiteStorage", "get_storage"]
