"""Mobile-money gateway port (abstract interface).

Defines the contract every STK-push adapter implements, so checkout and
payment reconciliation run unchanged against the fake gateway in tests and
the M-Pesa Daraja API in production.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class StkPushResult:
    """Provider acknowledgement of an STK push. Payment is not yet confirmed."""

    checkout_request_id: str
    merchant_request_id: str | None = None
    response_code: str = "0"
    response_description: str | None = None
    customer_message: str | None = None


@dataclass(frozen=True)
class StkQueryResult:
    """Provider view of a previously pushed charge."""

    checkout_request_id: str
    response_code: str | None = None
    result_code: str | None = None
    result_desc: str | None = None

    @property
    def is_successful(self) -> bool:
        return self.result_code == "0"


class MobileMoneyGateway(ABC):
    """Abstract mobile-money gateway interface."""

    @abstractmethod
    def request_stk_push(self, order_id: str, phone_number: str, amount: float) -> StkPushResult:
        """Prompt the payer's handset to authorise ``amount``.

        Raises GatewayError if the provider is unreachable or refuses the request.
        """
        ...

    @abstractmethod
    def query_stk_status(self, checkout_request_id: str) -> StkQueryResult:
        """Ask the provider for the outcome of an earlier push."""
        ...
