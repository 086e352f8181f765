"""Atomic store factory.

Provides get_store() / set_store() to swap implementations:
- InMemoryAtomicStore for development and testing (default)
- SqlAtomicStore when ORDERDESK_STORE_URL points at a database
"""

import os
import threading

from shared.storage.memory_adapter import InMemoryAtomicStore
from shared.storage.port import AtomicStore

STORE_URL_ENV = "ORDERDESK_STORE_URL"

_current_store: AtomicStore | None = None
_store_lock = threading.Lock()


def configure_store(database_uri: str) -> AtomicStore:
    """Build a SQL-backed store for ``database_uri`` and make it current."""
    from shared.storage.sql_adapter import SqlAtomicStore

    store = SqlAtomicStore(database_uri)
    set_store(store)
    return store


def get_store() -> AtomicStore:
    """Return the current atomic store, creating the default on first use."""
    global _current_store
    with _store_lock:
        if _current_store is None:
            database_uri = os.environ.get(STORE_URL_ENV)
            if database_uri:
                from shared.storage.sql_adapter import SqlAtomicStore

                _current_store = SqlAtomicStore(database_uri)
            else:
                _current_store = InMemoryAtomicStore()
    return _current_store


def set_store(store: AtomicStore) -> None:
    """Override the active store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_store() -> None:
    """Reset to the default store."""
    global _current_store
    _current_store = None
