"""Storefront bounded context — cart, checkout and order tracking for the shop client.

Owns the locally persisted cart, the payment-to-order checkout flow, and the
polling trackers that feed the customer and kitchen views. The backend order
store and the payment gateway are reached over HTTP and are not modelled here.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
