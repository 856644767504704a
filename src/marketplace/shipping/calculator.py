"""Zone-based shipping cost calculation.

Pure functions: no repository access and no clock. Used by checkout to price
delivery server-side and by the preview endpoint to show an estimate before
an order exists.
"""

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from protean.exceptions import ValidationError

from marketplace.shipping.zones import (
    CURRENCY,
    DEFAULT_ZONE_KEY,
    EXPRESS_MULTIPLIER,
    WEIGHT_BANDS,
    ZONES,
    ShippingZone,
)


@dataclass(frozen=True)
class ShippingLine:
    """The part of an order line that shipping cares about."""

    quantity: int
    weight_kg: float = 0.0


@dataclass(frozen=True)
class ShippingBreakdown:
    zone_cost: int
    weight_cost: int
    express_cost: int


@dataclass(frozen=True)
class ShippingQuote:
    zone: str
    zone_name: str
    base_cost: int
    weight_surcharge: int
    express_surcharge: int
    total_cost: int
    estimated_days: int
    currency: str = CURRENCY
    breakdown: ShippingBreakdown = field(default_factory=lambda: ShippingBreakdown(0, 0, 0))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _city_of(address: Any) -> str | None:
    if address is None:
        return None
    if isinstance(address, Mapping):
        return address.get("city")
    return getattr(address, "city", None)


def zone_for_city(city: str | None) -> ShippingZone:
    """Return the zone serving ``city``, falling back to the regional zone.

    Matching is case-insensitive and accepts either name containing the
    other, so "Nairobi CBD" resolves to Nairobi Metropolitan.
    """
    if not city or not city.strip():
        raise ValidationError({"city": ["A destination city is required to calculate shipping"]})

    normalized = city.strip().lower()
    for zone in ZONES:
        for zone_city in zone.cities:
            candidate = zone_city.lower()
            if candidate in normalized or normalized in candidate:
                return zone

    return next(zone for zone in ZONES if zone.key == DEFAULT_ZONE_KEY)


def weight_surcharge(total_weight_kg: float) -> int:
    if total_weight_kg <= 0:
        return 0
    for upper_bound, surcharge in WEIGHT_BANDS:
        if upper_bound is None or total_weight_kg <= upper_bound:
            return surcharge
    return WEIGHT_BANDS[-1][1]


def estimate_weight(items: Iterable[ShippingLine]) -> float:
    return sum(line.quantity * (line.weight_kg or 0.0) for line in items)


def calculate_shipping(
    address: Any,
    items: Iterable[ShippingLine] = (),
    is_express: bool = False,
    custom_weight: float | None = None,
) -> ShippingQuote:
    """Price delivery of ``items`` to ``address``.

    Args:
        address: Mapping or object exposing ``city``.
        items: Lines with quantity and per-unit weight. Unknown weights count as 0 kg.
        is_express: Express delivery costs 1.5x and arrives a day sooner (never under 1 day).
        custom_weight: Overrides the weight estimated from ``items``.
    """
    zone = zone_for_city(_city_of(address))

    total_weight = custom_weight if custom_weight is not None else estimate_weight(items)
    surcharge = weight_surcharge(total_weight)

    cost = zone.base_cost + surcharge
    express_cost = 0
    estimated_days = zone.estimated_days
    if is_express:
        cost = round(cost * EXPRESS_MULTIPLIER)
        express_cost = round(zone.base_cost * (EXPRESS_MULTIPLIER - 1))
        estimated_days = max(1, zone.estimated_days - 1)

    return ShippingQuote(
        zone=zone.key,
        zone_name=zone.name,
        base_cost=zone.base_cost,
        weight_surcharge=surcharge,
        express_surcharge=express_cost,
        total_cost=cost,
        estimated_days=estimated_days,
        breakdown=ShippingBreakdown(
            zone_cost=zone.base_cost,
            weight_cost=surcharge,
            express_cost=express_cost,
        ),
    )


def get_all_zones() -> list[dict[str, Any]]:
    return [
        {
            "zone": zone.key,
            "name": zone.name,
            "base_cost": zone.base_cost,
            "estimated_days": zone.estimated_days,
            "cities": list(zone.cities),
        }
        for zone in ZONES
    ]
