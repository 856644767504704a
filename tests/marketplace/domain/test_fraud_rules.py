"""Rule-based fraud scoring."""

from datetime import UTC, datetime, timedelta

from marketplace.fraud.port import LineSnapshot, OrderSnapshot, PastOrder, RiskAssessment, RiskLevel
from marketplace.fraud.rules import RuleBasedFraudScorer, risk_level_for

NOON = datetime(2025, 3, 4, 12, 0, tzinfo=UTC)
HOME = {"address": "Moi Avenue 12", "city": "Nairobi", "postal_code": "00100", "country": "Kenya"}


def _order(total=2700.0, unit_price=2500.0, quantity=1, payment_method="M-Pesa", address=None, placed_at=NOON):
    return OrderSnapshot(
        customer_id="cust-1",
        total_price=total,
        payment_method=payment_method,
        shipping_address=address or HOME,
        items=(LineSnapshot(product_id="prod-1", unit_price=unit_price, quantity=quantity),),
        placed_at=placed_at,
    )


def _past(total=2000.0, status="Delivered", address=None, age=timedelta(days=30)):
    return PastOrder(total_price=total, status=status, shipping_address=address or HOME, created_at=NOON - age)


scorer = RuleBasedFraudScorer()


class TestRiskLevels:
    def test_thresholds(self):
        assert risk_level_for(0) == RiskLevel.LOW
        assert risk_level_for(39) == RiskLevel.LOW
        assert risk_level_for(40) == RiskLevel.MEDIUM
        assert risk_level_for(69) == RiskLevel.MEDIUM
        assert risk_level_for(70) == RiskLevel.HIGH


class TestOrdinaryOrder:
    def test_first_mpesa_order_is_low_risk(self):
        assessment = scorer.assess(_order(), [])
        assert assessment.risk_level == RiskLevel.LOW
        assert assessment.score == 0
        assert assessment.flags == ()
        assert assessment.recommendations == ("Process the order normally",)

    def test_scoring_is_deterministic(self):
        history = [_past(), _past(total=500)]
        assert scorer.assess(_order(), history) == scorer.assess(_order(), history)


class TestAmountRules:
    def test_high_and_round_amount(self):
        assessment = scorer.assess(_order(total=60_000, unit_price=1000, quantity=1), [])
        assert "unusually_high_amount" in assessment.flags
        assert "round_number_amount" in assessment.flags
        assert assessment.score == 35

    def test_spike_against_recent_average(self):
        history = [_past(total=1000) for _ in range(3)]
        assessment = scorer.assess(_order(total=3500), history)
        assert "significant_amount_increase" in assessment.flags


class TestVelocityRules:
    def test_many_orders_in_a_day(self):
        history = [_past(age=timedelta(hours=hours)) for hours in (1, 2, 3, 4)]
        assessment = scorer.assess(_order(), history)
        assert "multiple_orders_short_time" in assessment.flags

    def test_many_recent_cancellations(self):
        history = [_past(status="Cancelled", age=timedelta(days=2)) for _ in range(3)]
        assessment = scorer.assess(_order(), history)
        assert "recent_failed_payments" in assessment.flags

    def test_naive_history_timestamps_are_read_as_utc(self):
        history = [
            PastOrder(
                total_price=2000.0,
                status="Cancelled",
                shipping_address=HOME,
                created_at=(NOON - timedelta(hours=hours)).replace(tzinfo=None),
            )
            for hours in (1, 2, 3, 4)
        ]
        assessment = scorer.assess(_order(), history)
        assert "multiple_orders_short_time" in assessment.flags
        assert "recent_failed_payments" in assessment.flags

    def test_order_outside_the_window_is_not_counted(self):
        history = [_past(age=timedelta(hours=hours)) for hours in (1, 2, 3, 25)]
        assert "multiple_orders_short_time" not in scorer.assess(_order(), history).flags


class TestAddressRules:
    def test_many_shipping_addresses(self):
        history = [
            _past(address={**HOME, "address": "Kenyatta Avenue 1"}),
            _past(address={**HOME, "address": "Biashara Street 9"}),
        ]
        assessment = scorer.assess(_order(), history)
        assert "multiple_shipping_addresses" in assessment.flags

    def test_international_new_customer(self):
        assessment = scorer.assess(_order(address={**HOME, "country": "Uganda"}), [])
        assert "international_shipping_new_user" in assessment.flags


class TestPaymentAndTimingRules:
    def test_unknown_payment_method(self):
        assessment = scorer.assess(_order(payment_method="Card"), [])
        assert "unusual_payment_method" in assessment.flags
        assert assessment.score == 10

    def test_late_night_order(self):
        assessment = scorer.assess(_order(placed_at=NOON.replace(hour=3)), [])
        assert "unusual_order_time" in assessment.flags

    def test_mpesa_never_drives_score_below_zero(self):
        assert scorer.assess(_order(), []).score == 0


class TestItemRules:
    def test_bulk_quantity(self):
        assessment = scorer.assess(_order(unit_price=100, quantity=11, total=1300), [])
        assert "bulk_quantity_order" in assessment.flags

    def test_high_value_items_for_new_customer(self):
        assessment = scorer.assess(_order(unit_price=15_000, total=15_200), [])
        assert "high_value_items_new_user" in assessment.flags

    def test_high_value_items_for_established_customer(self):
        history = [_past(total=15_000) for _ in range(3)]
        assessment = scorer.assess(_order(unit_price=15_000, total=15_200), history)
        assert "high_value_items_new_user" not in assessment.flags


class TestHighRisk:
    def test_stacked_rules_reach_high_risk(self):
        order = _order(
            total=80_000,
            unit_price=20_000,
            quantity=4,
            payment_method="Card",
            address={**HOME, "country": "Tanzania"},
            placed_at=NOON.replace(hour=2),
        )
        assessment = scorer.assess(order, [])
        assert assessment.risk_level == RiskLevel.HIGH
        assert assessment.is_high_risk
        assert assessment.recommendations[0] == "Hold the order for manual review"


def test_unknown_assessment_is_not_high_risk():
    unknown = RiskAssessment.unknown()
    assert unknown.risk_level == RiskLevel.UNKNOWN
    assert unknown.flags == ("analysis_error",)
    assert not unknown.is_high_risk
