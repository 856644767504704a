"""Flash sale reads.

The public listing re-derives status at read time so a sale past its hour
drops out even if the sweep has not run yet. Admin listings show stored
status as-is.
"""

from datetime import UTC, datetime

from protean.utils.globals import current_domain

from marketplace.errors import AccessDenied
from marketplace.flash_sale.flash_sale import FlashSale, FlashSaleStatus, derive_status
from marketplace.order.order import ActorRole


def _sales():
    return current_domain.repository_for(FlashSale)._dao.query


def active_flash_sales(now=None):
    now = now or datetime.now(UTC)
    sales = _sales().filter(status=FlashSaleStatus.ACTIVE.value).order_by("-created_at").limit(None).all().items
    return [sale for sale in sales if derive_status(sale, now) == FlashSaleStatus.ACTIVE]


def all_flash_sales(requester_role):
    if requester_role != ActorRole.ADMIN.value:
        raise AccessDenied("Not authorized as an admin")
    return _sales().order_by("-created_at").limit(None).all().items


def get_flash_sale(flash_sale_id):
    return current_domain.repository_for(FlashSale).get(flash_sale_id)
