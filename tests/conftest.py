import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the config environment before any domain is imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def store():
    """A clean atomic store per test.

    Uses the database named by ORDERDESK_STORE_URL when set, otherwise a fresh
    in-memory store.
    """
    from shared.storage import STORE_URL_ENV, reset_store, set_store
    from shared.storage.memory_adapter import InMemoryAtomicStore

    database_uri = os.environ.get(STORE_URL_ENV)
    if database_uri:
        from shared.storage.sql_adapter import SqlAtomicStore

        atomic_store = SqlAtomicStore(database_uri)
        atomic_store.reset()
    else:
        atomic_store = InMemoryAtomicStore()
    set_store(atomic_store)

    yield atomic_store

    reset_store()
