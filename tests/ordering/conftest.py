import pytest
from protean.integrations.pytest import DomainFixture

from inventory.catalogue import Catalogue
from ordering.cart import reset_cart_store


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    from protean import current_domain

    reset_cart_store()
    with ordering_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()
    reset_cart_store()


@pytest.fixture()
def catalogue(store):
    return Catalogue(store)


@pytest.fixture()
def address():
    return {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "street": "12 Analytical Way",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
        "country": "US",
    }


@pytest.fixture()
def stocked(catalogue):
    """Seed the two products used across the ordering tests.

    p-mug:    10.00, 50 in stock
    p-poster:  5.00, 50 in stock
    """
    catalogue.stock_product("p-mug", "Mug", 10.00, 50)
    catalogue.stock_product("p-poster", "Poster", 5.00, 50)
    return catalogue
