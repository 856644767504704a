"""Rule-based fraud scorer.

Each rule inspects the order snapshot or the customer's history and adds
(or removes) points and a flag. The total maps onto a risk level. No rule
reads the clock: "recent" is measured from the order's own ``placed_at``.
"""

from datetime import timedelta

from marketplace.fraud.port import (
    FraudScorer,
    OrderSnapshot,
    PastOrder,
    RiskAssessment,
    RiskLevel,
)
from marketplace.utils.timestamps import as_utc

HIGH_AMOUNT_THRESHOLD = 50_000
HIGH_VALUE_ITEM_PRICE = 10_000
BULK_QUANTITY = 10
HOME_COUNTRY = "kenya"

HIGH_RISK_SCORE = 70
MEDIUM_RISK_SCORE = 40

_KNOWN_PAYMENT_METHODS = {"M-Pesa", "Cash on Delivery"}

_FLAG_RECOMMENDATIONS = {
    "unusually_high_amount": "Confirm the order amount with the customer",
    "multiple_orders_short_time": "Check for duplicate or scripted orders",
    "multiple_shipping_addresses": "Verify the shipping address with the customer",
    "international_shipping_new_user": "Verify the identity of the international customer",
    "recent_failed_payments": "Confirm payment before fulfilment",
    "high_value_items_new_user": "Require payment confirmation before shipping high value items",
}


def _placed_since(past: PastOrder, cutoff) -> bool:
    return past.created_at is not None and as_utc(past.created_at) >= cutoff


def _address_key(address: dict) -> tuple:
    return tuple(str(address.get(key, "")).strip().lower() for key in ("address", "city", "postal_code", "country"))


class RuleBasedFraudScorer(FraudScorer):
    def assess(self, order: OrderSnapshot, history: list[PastOrder]) -> RiskAssessment:
        score = 0
        flags: list[str] = []

        def flag(points: int, name: str) -> None:
            nonlocal score
            score += points
            flags.append(name)

        total = order.total_price
        recent = history[:10]

        # Amount
        if total > HIGH_AMOUNT_THRESHOLD:
            flag(30, "unusually_high_amount")
        if total > 0 and total % 1000 == 0:
            flag(15, "round_number_amount")
        if recent:
            average = sum(past.total_price for past in recent) / len(recent)
            if average > 0 and total > average * 3:
                flag(20, "significant_amount_increase")

        # Velocity
        placed_at = as_utc(order.placed_at)
        day_ago = placed_at - timedelta(hours=24)
        week_ago = placed_at - timedelta(days=7)
        if sum(1 for past in history if _placed_since(past, day_ago)) > 3:
            flag(20, "multiple_orders_short_time")
        cancelled_this_week = sum(
            1 for past in history if past.status == "Cancelled" and _placed_since(past, week_ago)
        )
        if cancelled_this_week > 2:
            flag(15, "recent_failed_payments")

        # Address
        addresses = {_address_key(past.shipping_address) for past in history}
        addresses.add(_address_key(order.shipping_address))
        if len(addresses) > 2:
            flag(15, "multiple_shipping_addresses")
        country = str(order.shipping_address.get("country", "")).strip().lower()
        if country and country != HOME_COUNTRY and len(history) < 2:
            flag(20, "international_shipping_new_user")

        # Payment method
        if order.payment_method == "M-Pesa":
            score -= 10
        elif order.payment_method not in _KNOWN_PAYMENT_METHODS:
            flag(10, "unusual_payment_method")

        # Timing
        hour = order.placed_at.hour
        if hour < 6 or hour > 22:
            flag(10, "unusual_order_time")

        # Items
        if any(line.quantity > BULK_QUANTITY for line in order.items):
            flag(15, "bulk_quantity_order")
        if any(line.unit_price > HIGH_VALUE_ITEM_PRICE for line in order.items) and len(history) < 3:
            flag(20, "high_value_items_new_user")

        score = max(0, score)
        level = risk_level_for(score)
        return RiskAssessment(
            risk_level=level,
            score=score,
            flags=tuple(flags),
            recommendations=tuple(recommendations_for(level, flags)),
        )


def risk_level_for(score: int) -> RiskLevel:
    if score >= HIGH_RISK_SCORE:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK_SCORE:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def recommendations_for(level: RiskLevel, flags: list[str]) -> list[str]:
    if level == RiskLevel.HIGH:
        recommendations = [
            "Hold the order for manual review",
            "Contact the customer to verify the order",
        ]
    elif level == RiskLevel.MEDIUM:
        recommendations = ["Monitor the order closely"]
    else:
        recommendations = ["Process the order normally"]

    recommendations.extend(_FLAG_RECOMMENDATIONS[name] for name in flags if name in _FLAG_RECOMMENDATIONS)
    return recommendations
