"""Shared BDD fixtures and step definitions for checkout scenarios."""

import pytest
from pytest_bdd import given, parsers, then


@pytest.fixture()
def catalogue():
    """Product ids by the names used in the scenarios."""
    return {}


@pytest.fixture(autouse=True)
def _mailbox(mailbox):
    return mailbox


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:d} with stock {stock:d}'))
def _(catalogue, make_product, name, price, stock):
    catalogue[name] = make_product(name=name, price=float(price), stock=stock)


@given("the fraud scorer rates every order as high risk")
def _(force_risk):
    force_risk("high")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the stock of "{name}" is {stock:d}'))
def _(catalogue, load_product, name, stock):
    assert load_product(catalogue[name]).stock == stock


@then(parsers.cfparse("the order total is {total:d}"))
def _(order_id, load_order, total):
    assert load_order(order_id).total_price == float(total)


@then(parsers.cfparse('the order status is "{status}"'))
def _(order_id, load_order, status):
    assert load_order(order_id).status == status


@then("the order is paid")
def _(order_id, load_order):
    assert load_order(order_id).is_paid is True


@then("the order is not paid")
def _(order_id, load_order):
    assert load_order(order_id).is_paid is False
