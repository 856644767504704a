import pytest
from protean.exceptions import ValidationError

from marketplace.catalogue.product import Product
from marketplace.errors import InsufficientStock


def _product(stock=5):
    return Product.create(name="Widget", price=1000.0, stock=stock, seller_id="seller-1")


def test_price_must_be_positive():
    with pytest.raises(ValidationError):
        Product.create(name="Free", price=0, stock=1, seller_id="seller-1")


def test_withdraw_stock():
    product = _product()
    product.withdraw_stock(3)
    assert product.stock == 2


def test_withdraw_beyond_stock_is_refused():
    product = _product(stock=1)
    with pytest.raises(InsufficientStock):
        product.withdraw_stock(2)
    assert product.stock == 1


def test_return_stock():
    product = _product(stock=0)
    product.return_stock(2)
    assert product.stock == 2


def test_sold_count_never_negative():
    product = _product()
    product.record_sale(1)
    product.reverse_sale(3)
    assert product.sold_count == 0
