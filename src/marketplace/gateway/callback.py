"""Parsing of STK-push result callbacks.

The provider posts::

    {"Body": {"stkCallback": {
        "MerchantRequestID": "...", "CheckoutRequestID": "...",
        "ResultCode": 0, "ResultDesc": "...",
        "CallbackMetadata": {"Item": [{"Name": "Amount", "Value": 2700}, ...]}}}}

``CallbackMetadata`` is present only on success. Items are looked up by
``Name`` since their order is not guaranteed.
"""

from dataclasses import dataclass, field


class MalformedCallback(ValueError):
    """The payload does not have the STK callback shape."""


@dataclass(frozen=True)
class StkCallback:
    checkout_request_id: str
    result_code: int
    result_desc: str | None = None
    merchant_request_id: str | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def is_successful(self) -> bool:
        return self.result_code == 0

    @property
    def amount(self) -> float | None:
        value = self.metadata.get("Amount")
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @property
    def receipt_number(self) -> str | None:
        value = self.metadata.get("MpesaReceiptNumber")
        return str(value) if value is not None else None

    @property
    def transaction_date(self):
        return self.metadata.get("TransactionDate")

    @property
    def phone_number(self):
        return self.metadata.get("PhoneNumber")


def parse_stk_callback(payload) -> StkCallback:
    if not isinstance(payload, dict):
        raise MalformedCallback("Callback body is not an object")

    body = payload.get("Body")
    stk = body.get("stkCallback") if isinstance(body, dict) else None
    if not isinstance(stk, dict):
        raise MalformedCallback("Callback has no Body.stkCallback")

    checkout_request_id = stk.get("CheckoutRequestID")
    if not checkout_request_id:
        raise MalformedCallback("Callback has no CheckoutRequestID")

    try:
        result_code = int(stk.get("ResultCode"))
    except (TypeError, ValueError) as exc:
        raise MalformedCallback("Callback has no numeric ResultCode") from exc

    metadata = {}
    container = stk.get("CallbackMetadata")
    items = container.get("Item") if isinstance(container, dict) else None
    for item in items or []:
        if isinstance(item, dict) and "Name" in item:
            metadata[item["Name"]] = item.get("Value")

    return StkCallback(
        checkout_request_id=str(checkout_request_id),
        result_code=result_code,
        result_desc=stk.get("ResultDesc"),
        merchant_request_id=stk.get("MerchantRequestID"),
        metadata=metadata,
    )
