import json

import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _reset_adapters():
    from marketplace.catalogue import reset_catalog_store
    from marketplace.fraud import reset_fraud_scorer
    from marketplace.gateway import reset_gateway
    from marketplace.notification import reset_dispatcher
    from marketplace.notification.channel import reset_channels

    def reset():
        reset_gateway()
        reset_fraud_scorer()
        reset_catalog_store()
        reset_dispatcher()
        reset_channels()

    reset()
    yield
    reset()


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------
@pytest.fixture()
def fake_gateway():
    from marketplace.gateway import set_gateway
    from marketplace.gateway.fake_adapter import FakeMobileMoneyGateway

    gateway = FakeMobileMoneyGateway()
    set_gateway(gateway)
    return gateway


@pytest.fixture()
def mailbox():
    from marketplace.notification.channel import set_email_channel
    from marketplace.notification.channel.fake_email import FakeEmailAdapter

    adapter = FakeEmailAdapter()
    set_email_channel(adapter)
    return adapter


@pytest.fixture()
def force_risk():
    """Install a scorer that always answers with the given level."""
    from marketplace.fraud import set_fraud_scorer
    from marketplace.fraud.port import FraudScorer, RiskAssessment, RiskLevel

    class FixedScorer(FraudScorer):
        def __init__(self, assessment):
            self.assessment = assessment

        def assess(self, order, history):
            return self.assessment

    def install(level="high", score=85, flags=("unusually_high_amount", "multiple_shipping_addresses")):
        assessment = RiskAssessment(
            risk_level=RiskLevel(level),
            score=score,
            flags=tuple(flags),
            recommendations=("Hold the order for manual review",),
        )
        set_fraud_scorer(FixedScorer(assessment))
        return assessment

    return install


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_product():
    from marketplace.catalogue.product import Product

    def make(name="Widget", price=1000.0, stock=5, seller_id="seller-1", **kwargs):
        product = Product.create(name=name, price=price, stock=stock, seller_id=seller_id, **kwargs)
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    return make


@pytest.fixture()
def load_product():
    from marketplace.catalogue.product import Product

    return lambda product_id: current_domain.repository_for(Product).get(product_id)


@pytest.fixture()
def load_order():
    from marketplace.order.order import Order

    return lambda order_id: current_domain.repository_for(Order).get(order_id)


@pytest.fixture()
def place_order():
    from marketplace.order.creation import PlaceOrder

    def place(
        items,
        customer_id="cust-1",
        city="Nairobi",
        country="Kenya",
        payment_method="M-Pesa",
        email="buyer@example.com",
        is_express=False,
    ):
        command = PlaceOrder(
            customer_id=customer_id,
            customer_email=email,
            customer_name="Wanjiru",
            items=json.dumps([{"product_id": pid, "quantity": qty} for pid, qty in items]),
            shipping_address=json.dumps(
                {"address": "Moi Avenue 12", "city": city, "postal_code": "00100", "country": country}
            ),
            payment_method=payment_method,
            is_express=is_express,
        )
        return current_domain.process(command, asynchronous=False)

    return place


@pytest.fixture()
def stk_callback():
    """Build a provider callback body for a checkout request."""

    def build(checkout_request_id, result_code=0, amount=2700, receipt="QGH123", result_desc=None):
        stk = {
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": checkout_request_id,
            "ResultCode": result_code,
            "ResultDesc": result_desc
            or ("The service request is processed successfully." if result_code == 0 else "Request cancelled by user"),
        }
        if result_code == 0:
            stk["CallbackMetadata"] = {
                "Item": [
                    {"Name": "Amount", "Value": amount},
                    {"Name": "MpesaReceiptNumber", "Value": receipt},
                    {"Name": "TransactionDate", "Value": 20250101120000},
                    {"Name": "PhoneNumber", "Value": 254712345678},
                ]
            }
        return {"Body": {"stkCallback": stk}}

    return build


@pytest.fixture()
def deliver_callback():
    from marketplace.order.payment import ProcessStkCallback

    def deliver(payload):
        return current_domain.process(ProcessStkCallback(raw_body=json.dumps(payload)), asynchronous=False)

    return deliver


@pytest.fixture()
def initiate_payment(fake_gateway):
    from marketplace.order.payment import InitiatePayment

    def initiate(order_id, customer_id="cust-1", phone_number="0712345678", amount=None):
        command = InitiatePayment(
            order_id=order_id,
            customer_id=customer_id,
            phone_number=phone_number,
            amount=amount,
        )
        return current_domain.process(command, asynchronous=False)

    return initiate
