"""Fraud scorer port (abstract interface).

Checkout hands the scorer an immutable snapshot of the order being placed
and the customer's previous orders. Scorers must be deterministic for the
same inputs; anything they raise is treated by the caller as "unknown" risk.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class LineSnapshot:
    product_id: str
    unit_price: float
    quantity: int


@dataclass(frozen=True)
class OrderSnapshot:
    """The order as the scorer sees it, before it is persisted."""

    customer_id: str
    total_price: float
    payment_method: str
    shipping_address: dict
    items: tuple[LineSnapshot, ...]
    placed_at: datetime


@dataclass(frozen=True)
class PastOrder:
    """One of the customer's earlier orders."""

    total_price: float
    status: str
    shipping_address: dict
    created_at: datetime


@dataclass(frozen=True)
class RiskAssessment:
    risk_level: RiskLevel
    score: int
    flags: tuple[str, ...] = field(default_factory=tuple)
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_high_risk(self) -> bool:
        return self.risk_level == RiskLevel.HIGH

    @classmethod
    def unknown(cls) -> "RiskAssessment":
        """Stand-in record used when scoring fails; checkout never blocks on fraud."""
        return cls(
            risk_level=RiskLevel.UNKNOWN,
            score=0,
            flags=("analysis_error",),
            recommendations=("Manual review required due to analysis error",),
        )


class FraudScorer(ABC):
    """Abstract fraud scoring interface."""

    @abstractmethod
    def assess(self, order: OrderSnapshot, history: list[PastOrder]) -> RiskAssessment:
        """Score ``order`` given the customer's ``history`` (most recent first)."""
        ...
