"""FlashSale aggregate: derived status and bounded purchases."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from marketplace.flash_sale.flash_sale import FlashSale, FlashSaleStatus, derive_status

START = datetime(2025, 6, 1, 10, 0, tzinfo=UTC)


def _sale(quantity=2):
    return FlashSale.create(
        product_id="prod-1",
        product_price=1000.0,
        flash_price=700.0,
        quantity=quantity,
        created_by="admin-1",
        start_time=START,
    )


class TestCreate:
    def test_runs_for_one_hour(self):
        sale = _sale()
        assert sale.end_time == START + timedelta(hours=1)
        assert sale.status == "active"
        assert sale.remaining_quantity == 2

    def test_price_must_be_discounted(self):
        with pytest.raises(ValidationError):
            FlashSale.create(
                product_id="prod-1",
                product_price=1000.0,
                flash_price=1000.0,
                quantity=1,
                created_by="admin-1",
            )


class TestDeriveStatus:
    def test_active_within_window(self):
        assert derive_status(_sale(), START + timedelta(minutes=30)) == FlashSaleStatus.ACTIVE

    def test_expired_after_end(self):
        assert derive_status(_sale(), START + timedelta(hours=1, seconds=1)) == FlashSaleStatus.EXPIRED

    def test_still_active_at_exact_end(self):
        assert derive_status(_sale(), START + timedelta(hours=1)) == FlashSaleStatus.ACTIVE

    def test_naive_clock_is_treated_as_utc(self):
        naive = (START + timedelta(hours=2)).replace(tzinfo=None)
        assert derive_status(_sale(), naive) == FlashSaleStatus.EXPIRED


class TestPurchase:
    def test_purchase_counts_units(self):
        sale = _sale(quantity=3)
        sale.record_purchase("cust-1", 2, START + timedelta(minutes=5))
        assert sale.sold_quantity == 2
        assert sale.remaining_quantity == 1
        assert not sale.is_sold_out

    def test_last_unit_sells_out(self):
        sale = _sale(quantity=1)
        sale.record_purchase("cust-1", 1, START + timedelta(minutes=5))
        assert sale.status == "sold_out"
        assert sale.is_sold_out

    def test_cannot_exceed_remaining(self):
        sale = _sale(quantity=2)
        with pytest.raises(ValidationError) as exc:
            sale.record_purchase("cust-1", 3, START + timedelta(minutes=5))
        assert "Only 2 left" in str(exc.value.messages)

    def test_sold_out_sale_refuses(self):
        sale = _sale(quantity=1)
        sale.record_purchase("cust-1", 1, START + timedelta(minutes=5))
        with pytest.raises(ValidationError) as exc:
            sale.record_purchase("cust-2", 1, START + timedelta(minutes=6))
        assert "sold out" in str(exc.value.messages)

    def test_expired_sale_refuses_even_when_stored_active(self):
        sale = _sale()
        with pytest.raises(ValidationError) as exc:
            sale.record_purchase("cust-1", 1, START + timedelta(hours=2))
        assert "expired" in str(exc.value.messages)
        assert sale.status == "active"

    def test_not_started_sale_refuses(self):
        sale = _sale()
        with pytest.raises(ValidationError):
            sale.record_purchase("cust-1", 1, START - timedelta(minutes=1))


class TestRefreshStatus:
    def test_expires_after_window(self):
        sale = _sale()
        assert sale.refresh_status(START + timedelta(hours=2)) is True
        assert sale.status == "expired"

    def test_no_change_within_window(self):
        sale = _sale()
        assert sale.refresh_status(START + timedelta(minutes=10)) is False
        assert sale.status == "active"


class TestRevise:
    def test_running_sale_can_be_repriced_and_resized(self):
        sale = _sale()
        sale.revise(START + timedelta(minutes=10), product_price=1000.0, product_stock=5, flash_price=650.0, quantity=4)
        assert sale.flash_price == 650.0
        assert sale.quantity == 4
        assert sale.remaining_quantity == 4

    def test_lapsed_sale_cannot_be_revised(self):
        sale = _sale()
        with pytest.raises(ValidationError) as exc:
            sale.revise(START + timedelta(hours=2), product_price=1000.0, product_stock=5, flash_price=650.0)
        assert "Cannot update" in str(exc.value.messages)

    def test_size_cannot_drop_to_units_already_sold(self):
        sale = _sale(quantity=3)
        sale.record_purchase("cust-1", 2, START)
        with pytest.raises(ValidationError):
            sale.revise(START, product_price=1000.0, product_stock=5, quantity=2)

    def test_units_left_to_sell_are_bounded_by_stock(self):
        sale = _sale(quantity=3)
        sale.record_purchase("cust-1", 1, START)

        with pytest.raises(ValidationError):
            sale.revise(START, product_price=1000.0, product_stock=3, quantity=5)

        sale.revise(START, product_price=1000.0, product_stock=3, quantity=4)
        assert sale.remaining_quantity == 3

    def test_price_must_stay_below_regular_price(self):
        with pytest.raises(ValidationError):
            _sale().revise(START, product_price=1000.0, product_stock=5, flash_price=1000.0)

    def test_something_must_change(self):
        with pytest.raises(ValidationError):
            _sale().revise(START, product_price=1000.0, product_stock=5)
