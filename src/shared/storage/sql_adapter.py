"""Relational atomic store built on SQLAlchemy Core.

Each primitive is a single conditional statement, so the database's row
locking is the only contention mechanism:

- stock:     UPDATE products SET available_quantity = available_quantity - :q
             WHERE product_id = :id AND is_active AND available_quantity >= :q
- counters:  UPDATE counters SET value = value + 1 WHERE key = :key
- claims:    INSERT under a composite primary key
- registers: UPDATE registers SET value = :new WHERE ... AND value = :expected
- releases:  INSERT claim and UPDATE products in one transaction

Works against PostgreSQL and SQLite.
"""

from contextlib import contextmanager

import structlog
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
    true,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shared.errors import PersistenceError
from shared.storage.port import AtomicStore, DecrementStatus, ProductRecord, StockDecrement

logger = structlog.get_logger(__name__)

metadata = MetaData()

products = Table(
    "products",
    metadata,
    Column("product_id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("price", Float, nullable=False),
    Column("image", String(1024), nullable=False, default=""),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("available_quantity", Integer, nullable=False),
    Column("low_stock_threshold", Integer, nullable=False, default=10),
    CheckConstraint("available_quantity >= 0", name="ck_products_available_non_negative"),
)

counters = Table(
    "counters",
    metadata,
    Column("key", String(128), primary_key=True),
    Column("value", Integer, nullable=False),
)

claims = Table(
    "claims",
    metadata,
    Column("namespace", String(64), primary_key=True),
    Column("key", String(255), primary_key=True),
)

registers = Table(
    "registers",
    metadata,
    Column("namespace", String(64), primary_key=True),
    Column("key", String(255), primary_key=True),
    Column("value", Integer, nullable=False),
)


def _record_from_row(row) -> ProductRecord:
    return ProductRecord(
        product_id=row.product_id,
        name=row.name,
        price=row.price,
        image=row.image or "",
        is_active=bool(row.is_active),
        available_quantity=row.available_quantity,
        low_stock_threshold=row.low_stock_threshold,
    )


class SqlAtomicStore(AtomicStore):
    """Atomic store backed by a relational database."""

    def __init__(self, database_uri: str, create_schema: bool = True) -> None:
        connect_args = {"timeout": 30} if database_uri.startswith("sqlite") else {}
        self._engine = create_engine(database_uri, connect_args=connect_args)
        if create_schema:
            self.create_schema()

    def create_schema(self) -> None:
        metadata.create_all(self._engine)

    def drop_schema(self) -> None:
        metadata.drop_all(self._engine)

    @contextmanager
    def _transaction(self):
        try:
            with self._engine.begin() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("Atomic store operation failed", error=str(exc))
            raise PersistenceError("Storage operation failed") from exc

    # -------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------
    def add_product(self, record: ProductRecord) -> None:
        values = {
            "name": record.name,
            "price": record.price,
            "image": record.image,
            "is_active": record.is_active,
            "available_quantity": record.available_quantity,
            "low_stock_threshold": record.low_stock_threshold,
        }
        with self._transaction() as conn:
            updated = conn.execute(update(products).where(products.c.product_id == record.product_id).values(**values))
            if updated.rowcount == 0:
                conn.execute(insert(products).values(product_id=record.product_id, **values))

    def get_product(self, product_id: str) -> ProductRecord | None:
        with self._transaction() as conn:
            row = conn.execute(select(products).where(products.c.product_id == str(product_id))).first()
        return _record_from_row(row) if row is not None else None

    def decrement_stock(self, product_id: str, quantity: int) -> StockDecrement:
        product_id = str(product_id)
        with self._transaction() as conn:
            result = conn.execute(
                update(products)
                .where(
                    products.c.product_id == product_id,
                    products.c.is_active == true(),
                    products.c.available_quantity >= quantity,
                )
                .values(available_quantity=products.c.available_quantity - quantity)
            )
            applied = result.rowcount == 1
            row = conn.execute(
                select(products.c.is_active, products.c.available_quantity).where(products.c.product_id == product_id)
            ).first()

        if applied:
            return StockDecrement(DecrementStatus.APPLIED, row.available_quantity)
        if row is None:
            return StockDecrement(DecrementStatus.NOT_FOUND)
        if not row.is_active:
            return StockDecrement(DecrementStatus.INACTIVE, row.available_quantity)
        return StockDecrement(DecrementStatus.INSUFFICIENT, row.available_quantity)

    def increment_stock(self, product_id: str, quantity: int) -> int:
        product_id = str(product_id)
        with self._transaction() as conn:
            result = conn.execute(
                update(products)
                .where(products.c.product_id == product_id)
                .values(available_quantity=products.c.available_quantity + quantity)
            )
            if result.rowcount == 0:
                raise KeyError(product_id)
            return conn.execute(
                select(products.c.available_quantity).where(products.c.product_id == product_id)
            ).scalar_one()

    def release_once(self, namespace: str, key: str, product_id: str, quantity: int) -> int | None:
        product_id = str(product_id)
        try:
            with self._transaction() as conn:
                conn.execute(insert(claims).values(namespace=namespace, key=key))
                result = conn.execute(
                    update(products)
                    .where(products.c.product_id == product_id)
                    .values(available_quantity=products.c.available_quantity + quantity)
                )
                if result.rowcount == 0:
                    # Rolls the claim back with the transaction
                    raise KeyError(product_id)
                return conn.execute(
                    select(products.c.available_quantity).where(products.c.product_id == product_id)
                ).scalar_one()
        except IntegrityError:
            return None

    # -------------------------------------------------------------------
    # Counters, claims and registers
    # -------------------------------------------------------------------
    def increment_counter(self, key: str) -> int:
        # A concurrent first insert for the same key surfaces as IntegrityError;
        # the second pass then takes the UPDATE path.
        for _ in range(2):
            try:
                with self._transaction() as conn:
                    result = conn.execute(
                        update(counters).where(counters.c.key == key).values(value=counters.c.value + 1)
                    )
                    if result.rowcount == 0:
                        conn.execute(insert(counters).values(key=key, value=1))
                        return 1
                    return conn.execute(select(counters.c.value).where(counters.c.key == key)).scalar_one()
            except IntegrityError:
                continue
        raise PersistenceError(f"Could not increment counter {key}")

    def claim(self, namespace: str, key: str) -> bool:
        try:
            with self._transaction() as conn:
                conn.execute(insert(claims).values(namespace=namespace, key=key))
        except IntegrityError:
            return False
        return True

    def compare_and_set(self, namespace: str, key: str, expected: int, new: int) -> bool:
        if expected == 0:
            try:
                with self._transaction() as conn:
                    conn.execute(insert(registers).values(namespace=namespace, key=key, value=new))
                return True
            except IntegrityError:
                pass

        with self._transaction() as conn:
            result = conn.execute(
                update(registers)
                .where(
                    registers.c.namespace == namespace,
                    registers.c.key == key,
                    registers.c.value == expected,
                )
                .values(value=new)
            )
            return result.rowcount == 1

    def reset(self) -> None:
        with self._transaction() as conn:
            for table in (products, counters, claims, registers):
                conn.execute(delete(table))
