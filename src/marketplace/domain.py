"""Marketplace bounded context — Orders, Payments and Flash Sales.

Handles order creation with stock reservation against the catalogue, fraud
scoring at checkout, the order status state machine, M-Pesa STK-push payment
reconciliation via provider callbacks, and time-boxed flash sales.

Configuration lives in ``domain.toml`` beside this file. Values under
``[custom]`` become attributes on the domain object (e.g. ``marketplace.TAX_RATE``).
"""

import structlog
from protean.domain import Domain

marketplace = Domain(name="marketplace")

logger = structlog.get_logger(__name__)
