"""Ordering bounded context — checkout, order numbering and order lifecycle.

Turns a customer's cart into a priced, numbered order backed by atomic stock
reservations, then governs every later status and payment-status change.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
