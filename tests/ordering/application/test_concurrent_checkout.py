"""Concurrent checkouts competing for the last units of a product."""

from concurrent.futures import ThreadPoolExecutor

from protean import current_domain

from ordering.checkout.builder import OrderBuilder
from ordering.domain import ordering
from ordering.order.order import Order
from shared.errors import InsufficientStock

WORKERS = 8


def _race(address, customers, lines):
    def checkout(customer_id):
        with ordering.domain_context():
            try:
                return OrderBuilder().build_order(customer_id, lines, address).order_number
            except InsufficientStock:
                return None

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        return list(pool.map(checkout, customers))


def test_last_unit_goes_to_exactly_one_customer(catalogue, address):
    catalogue.stock_product("p-last", "Last One", 30.00, 1)
    customers = [f"cust-{n}" for n in range(WORKERS)]

    results = _race(address, customers, [{"product_id": "p-last", "quantity": 1}])

    winners = [number for number in results if number]
    assert len(winners) == 1
    assert catalogue.get_product("p-last").available_quantity == 0
    assert current_domain.repository_for(Order).find_by_number(winners[0]) is not None
    assert len(current_domain.repository_for(Order).find_matching()) == 1


def test_losing_multi_line_checkouts_return_their_first_line(catalogue, address):
    # Every checkout can get an "a" unit, but only one can get the "b" unit.
    catalogue.stock_product("p-a", "Plenty", 1.00, 100)
    catalogue.stock_product("p-b", "Scarce", 1.00, 1)
    customers = [f"cust-{n}" for n in range(WORKERS)]
    lines = [{"product_id": "p-a", "quantity": 2}, {"product_id": "p-b", "quantity": 1}]

    results = _race(address, customers, lines)

    assert len([number for number in results if number]) == 1
    assert catalogue.get_product("p-a").available_quantity == 98
    assert catalogue.get_product("p-b").available_quantity == 0

