"""Stock reservation against the catalog store.

Checkout reserves in two phases: every line is first withdrawn with an
atomic conditional decrement, and only once all withdrawals succeed are sold
counts bumped. If any withdrawal fails, the lines already withdrawn are put
back before the error propagates, so a catalogue that commits each call on
its own is left as it was found.
"""

import structlog

from marketplace.catalogue.store import CatalogStore

logger = structlog.get_logger(__name__)


def reserve_stock(catalog: CatalogStore, quantities: dict[str, int]) -> None:
    """Withdraw ``quantities`` (product id to units) or withdraw nothing."""
    withdrawn: dict[str, int] = {}
    try:
        for product_id, quantity in quantities.items():
            catalog.decrement_stock(product_id, quantity)
            withdrawn[product_id] = quantity
    except Exception:
        _put_back(catalog, withdrawn)
        raise

    for product_id, quantity in quantities.items():
        catalog.increment_sold_count(product_id, quantity)


def release_stock(catalog: CatalogStore, quantities: dict[str, int]) -> None:
    """Inverse of ``reserve_stock``: return units and reverse sold counts."""
    for product_id, quantity in quantities.items():
        catalog.increment_stock(product_id, quantity)
        catalog.decrement_sold_count(product_id, quantity)


def _put_back(catalog: CatalogStore, withdrawn: dict[str, int]) -> None:
    for product_id, quantity in withdrawn.items():
        try:
            catalog.increment_stock(product_id, quantity)
        except Exception:
            # The caller is already failing; record the leak rather than mask the cause
            logger.error(
                "stock.compensation_failed",
                product_id=product_id,
                quantity=quantity,
                exc_info=True,
            )


def restore_order_stock(catalog: CatalogStore, order) -> None:
    """Return a cancelled order's units to the catalogue, once."""
    if not order.needs_stock_restore:
        return

    release_stock(catalog, order.reserved_quantities())
    order.mark_stock_restored()
    logger.info("stock.restored", order_id=str(order.id))
