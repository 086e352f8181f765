"""Business settings for the ordering context.

Values come from the ``[custom]`` table of the domain's ``domain.toml`` and
fall back to the defaults below when a key is absent.
"""

from ordering.domain import ordering

DEFAULTS = {
    "ORDER_NUMBER_PREFIX": "ORD",
    "TAX_RATE": 0.08,
    "FREE_SHIPPING_THRESHOLD": 100.0,
    "FLAT_SHIPPING_FEE": 10.0,
    "MAX_LINE_QUANTITY": 10,
    "MAX_TRANSITION_ATTEMPTS": 5,
    "DEFAULT_PAGE_LIMIT": 10,
    "ADMIN_PAGE_LIMIT": 20,
}


def setting(name):
    custom = ordering.config.get("custom") or {}
    return custom.get(name, DEFAULTS[name])
