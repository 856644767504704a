"""Shipping zone table.

Zones are data, not logic: the calculator only looks cities up here. Order
matters because the first zone with a matching city wins.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ShippingZone:
    key: str
    name: str
    base_cost: int
    estimated_days: int
    cities: tuple[str, ...]


DEFAULT_ZONE_KEY = "regional"

ZONES: tuple[ShippingZone, ...] = (
    ShippingZone(
        key="nairobi",
        name="Nairobi Metropolitan",
        base_cost=200,
        estimated_days=2,
        cities=(
            "Nairobi",
            "Westlands",
            "Karen",
            "Kilimani",
            "Langata",
            "Parklands",
            "Koinange Street",
            "River Road",
            "Luthuli Avenue",
        ),
    ),
    ShippingZone(
        key="major_cities",
        name="Major Cities",
        base_cost=210,
        estimated_days=5,
        cities=(
            "Mombasa",
            "Kisumu",
            "Nakuru",
            "Eldoret",
            "Thika",
            "Machakos",
            "Nyeri",
            "Meru",
            "Kakamega",
            "Kitale",
            "Malindi",
            "Garissa",
        ),
    ),
    ShippingZone(
        key="regional",
        name="Regional Areas",
        base_cost=200,
        estimated_days=3,
        cities=(
            "Nanyuki",
            "Isiolo",
            "Marsabit",
            "Wajir",
            "Mandera",
            "Lamu",
            "Voi",
            "Taveta",
            "Hola",
            "Moyale",
            "Lokichogio",
            "Lodwar",
        ),
    ),
    ShippingZone(
        key="remote",
        name="Remote Areas",
        base_cost=200,
        estimated_days=4,
        cities=(
            "Mombasa Island",
            "Diani Beach",
            "Kilifi",
            "Watamu",
            "Lamu Island",
            "Pate Island",
            "Kiwayu",
            "Manda Island",
        ),
    ),
)

# (upper bound in kg, surcharge); the last band is open-ended
WEIGHT_BANDS: tuple[tuple[float | None, int], ...] = (
    (1.0, 0),
    (5.0, 50),
    (10.0, 150),
    (None, 300),
)

EXPRESS_MULTIPLIER = 1.5

CURRENCY = "KSh"
