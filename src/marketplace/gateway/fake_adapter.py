"""Configurable fake mobile-money gateway for development and testing.

No network calls are made. Correlation ids are deterministic
(``ws_CO_000001``, ``ws_CO_000002``, ...) so tests can build matching
callbacks without reading them back first.
"""

from marketplace.errors import GatewayError
from marketplace.gateway.port import MobileMoneyGateway, StkPushResult, StkQueryResult


class FakeMobileMoneyGateway(MobileMoneyGateway):
    """Configurable fake STK-push gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Unable to reach payment provider"
        self.query_result_code: str = "0"
        self.query_result_desc: str = "The service request is processed successfully."
        self.calls: list[dict] = []
        self._sequence = 0

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Unable to reach payment provider",
        query_result_code: str = "0",
        query_result_desc: str = "The service request is processed successfully.",
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.query_result_code = query_result_code
        self.query_result_desc = query_result_desc

    def request_stk_push(self, order_id: str, phone_number: str, amount: float) -> StkPushResult:
        self.calls.append(
            {
                "method": "request_stk_push",
                "order_id": order_id,
                "phone_number": phone_number,
                "amount": amount,
            }
        )
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)

        self._sequence += 1
        return StkPushResult(
            checkout_request_id=f"ws_CO_{self._sequence:06d}",
            merchant_request_id=f"fake-merchant-{self._sequence:06d}",
            response_code="0",
            response_description="Success. Request accepted for processing",
            customer_message="Success. Request accepted for processing",
        )

    def query_stk_status(self, checkout_request_id: str) -> StkQueryResult:
        self.calls.append({"method": "query_stk_status", "checkout_request_id": checkout_request_id})
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)

        return StkQueryResult(
            checkout_request_id=checkout_request_id,
            response_code="0",
            result_code=self.query_result_code,
            result_desc=self.query_result_desc,
        )
