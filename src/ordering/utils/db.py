"""Schema management for the ordering context's stores.

Two stores back the context: protean's providers hold the Order aggregate
and its entities, and the atomic store holds stock, counters, claims and
revision registers. Only relational backends need a schema; memory backends
are skipped.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

from shared.storage import get_store
from shared.storage.sql_adapter import SqlAtomicStore

_RELATIONAL_PROVIDERS = ("sqlite", "postgresql")


def _relational_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in _RELATIONAL_PROVIDERS:
            yield provider


def setup_db(domain: Domain) -> list[str]:
    """Create every relational schema. Returns the names of the stores touched."""
    touched = []
    with domain.domain_context():
        for provider in _relational_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            # Touch each repository's DAO so its model is registered with the
            # provider's SQLAlchemy metadata before create_all runs.
            for _, aggregate_record in domain.registry.aggregates.items():
                if aggregate_record.cls.meta_.provider == provider.name:
                    domain.repository_for(aggregate_record.cls)._dao  # noqa: B018
            for _, entity_record in domain.registry.entities.items():
                if entity_record.cls.meta_.provider == provider.name:
                    domain.repository_for(entity_record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)
            touched.append(f"provider:{provider.name}")

    store = get_store()
    if isinstance(store, SqlAtomicStore):
        store.create_schema()
        touched.append("atomic-store")
    return touched


def drop_db(domain: Domain) -> list[str]:
    """Drop every relational schema. Returns the names of the stores touched."""
    touched = []
    with domain.domain_context():
        for provider in _relational_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            touched.append(f"provider:{provider.name}")

    store = get_store()
    if isinstance(store, SqlAtomicStore):
        store.drop_schema()
        touched.append("atomic-store")
    return touched
