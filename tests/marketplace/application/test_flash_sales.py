"""Flash sale creation, revision, removal, purchases and the expiry sweep."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.errors import AccessDenied
from marketplace.flash_sale.management import (
    CreateFlashSale,
    DeleteFlashSale,
    PurchaseFlashSale,
    SweepFlashSales,
    UpdateFlashSale,
)
from marketplace.flash_sale.queries import active_flash_sales, all_flash_sales, get_flash_sale


def _create(product_id, flash_price=700.0, quantity=2, role="admin", start_time=None):
    return current_domain.process(
        CreateFlashSale(
            product_id=product_id,
            flash_price=flash_price,
            quantity=quantity,
            created_by="admin-1",
            creator_role=role,
            start_time=start_time,
        ),
        asynchronous=False,
    )


def _purchase(sale_id, customer_id="cust-1", quantity=1, as_of=None):
    return current_domain.process(
        PurchaseFlashSale(flash_sale_id=sale_id, customer_id=customer_id, quantity=quantity, as_of=as_of),
        asynchronous=False,
    )


def _sweep(as_of):
    return current_domain.process(SweepFlashSales(as_of=as_of), asynchronous=False)


@pytest.fixture()
def product_id(make_product):
    return make_product(price=1000.0, stock=5)


class TestCreate:
    def test_admin_creates_one_hour_sale(self, product_id):
        sale = get_flash_sale(_create(product_id))
        assert sale.status == "active"
        assert sale.end_time - sale.start_time == timedelta(hours=1)

    def test_non_admin_is_refused(self, product_id):
        with pytest.raises(AccessDenied):
            _create(product_id, role="seller")

    def test_quantity_cannot_exceed_stock(self, product_id):
        with pytest.raises(ValidationError):
            _create(product_id, quantity=6)

    def test_price_must_undercut_regular_price(self, product_id):
        with pytest.raises(ValidationError):
            _create(product_id, flash_price=1200.0)

    def test_one_active_sale_per_product(self, product_id):
        _create(product_id)
        with pytest.raises(ValidationError):
            _create(product_id)

    def test_inactive_product(self, make_product):
        inactive = make_product(is_active=False)
        with pytest.raises(ValidationError):
            _create(inactive)


class TestPurchase:
    def test_purchase_moves_stock(self, product_id, load_product):
        sale_id = _create(product_id, quantity=3)

        result = _purchase(sale_id, quantity=2)

        assert result == {"remaining_quantity": 1, "is_sold_out": False}
        product = load_product(product_id)
        assert product.stock == 3
        assert product.sold_count == 2
        assert get_flash_sale(sale_id).sold_quantity == 2

    def test_last_unit_sells_out(self, product_id):
        sale_id = _create(product_id, quantity=1)
        assert _purchase(sale_id)["is_sold_out"] is True
        with pytest.raises(ValidationError):
            _purchase(sale_id, customer_id="cust-2")

    def test_expired_sale_refuses_before_sweep(self, product_id, load_product):
        start = datetime.now(UTC) - timedelta(hours=2)
        sale_id = _create(product_id, start_time=start)

        with pytest.raises(ValidationError) as exc:
            _purchase(sale_id, as_of=datetime.now(UTC))

        assert "expired" in str(exc.value.messages)
        assert load_product(product_id).stock == 5

    def test_purchase_with_injected_clock(self, product_id):
        start = datetime(2025, 6, 1, 10, 0, tzinfo=UTC)
        sale_id = _create(product_id, start_time=start)
        assert _purchase(sale_id, as_of=start + timedelta(minutes=59))["remaining_quantity"] == 1
        with pytest.raises(ValidationError):
            _purchase(sale_id, as_of=start + timedelta(minutes=61))


class TestSweep:
    def test_sweep_expires_stale_sales(self, product_id, make_product):
        start = datetime(2025, 6, 1, 10, 0, tzinfo=UTC)
        stale = _create(product_id, start_time=start)
        fresh = _create(make_product(price=1000.0, stock=5), start_time=start + timedelta(minutes=50))

        assert _sweep(start + timedelta(minutes=70)) == 1

        assert get_flash_sale(stale).status == "expired"
        assert get_flash_sale(fresh).status == "active"

    def test_sweep_is_idempotent(self, product_id):
        start = datetime(2025, 6, 1, 10, 0, tzinfo=UTC)
        _create(product_id, start_time=start)
        _sweep(start + timedelta(hours=2))
        assert _sweep(start + timedelta(hours=2)) == 0


class TestListings:
    def test_active_listing_hides_lapsed_sales(self, product_id):
        start = datetime(2025, 6, 1, 10, 0, tzinfo=UTC)
        sale_id = _create(product_id, start_time=start)

        assert [str(sale.id) for sale in active_flash_sales(now=start + timedelta(minutes=5))] == [sale_id]
        assert active_flash_sales(now=start + timedelta(hours=2)) == []

    def test_admin_listing(self, product_id):
        _create(product_id)
        assert len(all_flash_sales("admin")) == 1
        with pytest.raises(AccessDenied):
            all_flash_sales("customer")


def _update(sale_id, role="admin", as_of=None, **changes):
    return current_domain.process(
        UpdateFlashSale(flash_sale_id=sale_id, actor_id="admin-1", actor_role=role, as_of=as_of, **changes),
        asynchronous=False,
    )


def _delete(sale_id, role="admin"):
    return current_domain.process(
        DeleteFlashSale(flash_sale_id=sale_id, actor_id="admin-1", actor_role=role),
        asynchronous=False,
    )


class TestUpdate:
    def test_admin_revises_running_sale(self, product_id):
        sale_id = _create(product_id)
        _update(sale_id, flash_price=600.0, quantity=4)

        sale = get_flash_sale(sale_id)
        assert sale.flash_price == 600.0
        assert sale.quantity == 4

    def test_non_admin_is_refused(self, product_id):
        sale_id = _create(product_id)
        with pytest.raises(AccessDenied):
            _update(sale_id, role="customer", flash_price=600.0)

    def test_lapsed_sale_is_refused(self, product_id):
        start = datetime(2025, 6, 1, 10, 0, tzinfo=UTC)
        sale_id = _create(product_id, start_time=start)
        with pytest.raises(ValidationError):
            _update(sale_id, as_of=start + timedelta(hours=2), flash_price=600.0)
        assert get_flash_sale(sale_id).flash_price == 700.0

    def test_size_is_checked_against_current_stock(self, product_id):
        sale_id = _create(product_id)
        with pytest.raises(ValidationError):
            _update(sale_id, quantity=6)


class TestDelete:
    def test_admin_removes_sale(self, product_id):
        sale_id = _create(product_id)
        _delete(sale_id)

        with pytest.raises(ObjectNotFoundError):
            get_flash_sale(sale_id)
        assert active_flash_sales() == []

    def test_units_already_sold_stay_sold(self, product_id, load_product):
        sale_id = _create(product_id)
        _purchase(sale_id)
        _delete(sale_id)
        assert load_product(product_id).stock == 4

    def test_non_admin_is_refused(self, product_id):
        sale_id = _create(product_id)
        with pytest.raises(AccessDenied):
            _delete(sale_id, role="seller")
        assert get_flash_sale(sale_id) is not None

    def test_unknown_sale(self):
        with pytest.raises(ObjectNotFoundError):
            _delete("missing")
