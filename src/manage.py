"""OrderDesk management CLI.

Usage:
    python src/manage.py setup-db
    python src/manage.py drop-db
    python src/manage.py stock-product --product-id P1 --name Mug --price 12.5 --quantity 40
    python src/manage.py restock-order <order_id>

The atomic store is selected by ORDERDESK_STORE_URL (memory when unset), so
commands that change stock are only meaningful against a database URL.
"""

import argparse
import sys


def setup_databases():
    from ordering.domain import ordering
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    ordering.init()
    for name in setup_db(ordering):
        print(f"  {name} schema ready.")
    print("Done.")


def drop_databases():
    from ordering.domain import ordering
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    ordering.init()
    for name in drop_db(ordering):
        print(f"  {name} schema dropped.")
    print("Done.")


def stock_product(args):
    from inventory.catalogue import Catalogue

    record = Catalogue().stock_product(
        product_id=args.product_id,
        name=args.name,
        price=args.price,
        available_quantity=args.quantity,
        is_active=not args.inactive,
        image=args.image,
        low_stock_threshold=args.low_stock_threshold,
    )
    print(f"Stocked {record.product_id}: {record.available_quantity} available at {record.price:.2f}")


def restock_order(args):
    """Return the stock of a cancelled order whose release did not complete."""
    from ordering.domain import ordering
    from ordering.order.lifecycle import OrderLifecycle

    ordering.init()
    with ordering.domain_context():
        lifecycle = OrderLifecycle()
        released = lifecycle.release_stock(lifecycle.load(args.order_id))
    print(f"Released {released} line(s) for order {args.order_id}")


def main():
    parser = argparse.ArgumentParser(description="OrderDesk management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    stock_parser = subparsers.add_parser("stock-product", help="Create or replace a product's stock row")
    stock_parser.add_argument("--product-id", required=True)
    stock_parser.add_argument("--name", required=True)
    stock_parser.add_argument("--price", type=float, required=True)
    stock_parser.add_argument("--quantity", type=int, required=True)
    stock_parser.add_argument("--image", default="")
    stock_parser.add_argument("--low-stock-threshold", type=int, default=10)
    stock_parser.add_argument("--inactive", action="store_true")

    restock_parser = subparsers.add_parser("restock-order", help="Return a cancelled order's stock")
    restock_parser.add_argument("order_id")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    elif args.command == "stock-product":
        stock_product(args)
    elif args.command == "restock-order":
        restock_order(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
