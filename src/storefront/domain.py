"""Storefront bounded context: carts, orders, loyalty ledger and subscriptions.

One domain on purpose: checkout touches the cart, the products, the order and
the customer's loyalty account, and all of those writes must share a single
unit of work.
"""

import structlog
from protean.domain import Domain

from storefront.utils.logging import configure_logging

configure_logging()

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
