"""M-Pesa (Safaricom Daraja) STK-push adapter.

Talks to the Daraja REST API over httpx:

- OAuth client-credentials token, cached until shortly before it expires
- Lipa Na M-Pesa Online push (``/mpesa/stkpush/v1/processrequest``)
- Push status query (``/mpesa/stkpushquery/v1/query``)

Every failure is raised as GatewayError built from the provider's own codes
and descriptions. Credentials, the passkey, the derived password and the
bearer token never appear in exception messages or logs.
"""

import base64
import math
import time
from datetime import UTC, datetime

import httpx
import structlog

from marketplace.errors import GatewayError
from marketplace.gateway.port import MobileMoneyGateway, StkPushResult, StkQueryResult

logger = structlog.get_logger(__name__)

BASE_URLS = {
    "sandbox": "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}

TOKEN_PATH = "/oauth/v1/generate"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"
STK_QUERY_PATH = "/mpesa/stkpushquery/v1/query"

# Tokens are refreshed this many seconds before the provider says they expire
TOKEN_EXPIRY_MARGIN = 60


def stk_timestamp(moment: datetime) -> str:
    return moment.strftime("%Y%m%d%H%M%S")


def stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode()).decode()


class MpesaGateway(MobileMoneyGateway):
    """Production STK-push gateway backed by the Daraja API."""

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        shortcode: str,
        passkey: str,
        callback_url: str,
        environment: str = "sandbox",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        clock=None,
    ) -> None:
        if environment not in BASE_URLS:
            raise ValueError(f"Unknown M-Pesa environment {environment!r}")

        self.shortcode = str(shortcode)
        self.callback_url = callback_url
        self.environment = environment
        self._consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self._passkey = passkey
        self._clock = clock or (lambda: datetime.now(UTC))
        self._client = httpx.Client(
            base_url=BASE_URLS[environment],
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._token: str | None = None
        self._token_expires_at = 0.0

    @classmethod
    def from_config(cls, domain) -> "MpesaGateway":
        """Build the gateway from the domain's ``[custom]`` M-Pesa settings."""
        return cls(
            consumer_key=domain.MPESA_CONSUMER_KEY,
            consumer_secret=domain.MPESA_CONSUMER_SECRET,
            shortcode=domain.MPESA_SHORTCODE,
            passkey=domain.MPESA_PASSKEY,
            callback_url=domain.MPESA_CALLBACK_URL,
            environment=getattr(domain, "MPESA_ENVIRONMENT", "sandbox") or "sandbox",
            timeout=float(getattr(domain, "MPESA_TIMEOUT_SECONDS", 10) or 10),
        )

    def close(self) -> None:
        self._client.close()

    # -------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------
    def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        response = self._send(
            "GET",
            TOKEN_PATH,
            params={"grant_type": "client_credentials"},
            auth=(self._consumer_key, self._consumer_secret),
        )
        body = self._json(response)
        token = body.get("access_token")
        if not token:
            raise GatewayError("Payment provider did not issue an access token")

        try:
            expires_in = int(body.get("expires_in", 3599))
        except (TypeError, ValueError):
            expires_in = 3599

        self._token = token
        self._token_expires_at = time.monotonic() + max(0, expires_in - TOKEN_EXPIRY_MARGIN)
        logger.debug("mpesa.token_refreshed", expires_in=expires_in)
        return token

    def _credentials(self) -> dict:
        timestamp = stk_timestamp(self._clock())
        return {
            "BusinessShortCode": self.shortcode,
            "Password": stk_password(self.shortcode, self._passkey, timestamp),
            "Timestamp": timestamp,
        }

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("mpesa.timeout", path=path)
            raise GatewayError("Payment provider timed out") from exc
        except httpx.RequestError as exc:
            logger.warning("mpesa.unreachable", path=path, error_type=type(exc).__name__)
            raise GatewayError("Unable to reach payment provider") from exc

        if response.is_error:
            if response.status_code == 401:
                self._token = None
            code, description = self._error_details(response)
            logger.warning("mpesa.request_rejected", path=path, status_code=response.status_code, provider_code=code)
            raise GatewayError(
                f"Payment provider rejected the request ({response.status_code}): {description}",
                provider_code=code,
            )
        return response

    def _post(self, path: str, payload: dict) -> dict:
        token = self._access_token()
        response = self._send("POST", path, json=payload, headers={"Authorization": f"Bearer {token}"})
        return self._json(response)

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayError("Payment provider returned an unreadable response") from exc
        if not isinstance(body, dict):
            raise GatewayError("Payment provider returned an unexpected response")
        return body

    @staticmethod
    def _error_details(response: httpx.Response) -> tuple[str | None, str]:
        try:
            body = response.json()
        except ValueError:
            return None, response.reason_phrase or "error"
        if not isinstance(body, dict):
            return None, response.reason_phrase or "error"
        return body.get("errorCode"), body.get("errorMessage") or response.reason_phrase or "error"

    # -------------------------------------------------------------------
    # Gateway operations
    # -------------------------------------------------------------------
    def request_stk_push(self, order_id: str, phone_number: str, amount: float) -> StkPushResult:
        payload = {
            **self._credentials(),
            "TransactionType": "CustomerPayBillOnline",
            "Amount": math.ceil(amount),  # whole shillings only
            "PartyA": phone_number,
            "PartyB": self.shortcode,
            "PhoneNumber": phone_number,
            "CallBackURL": self.callback_url,
            "AccountReference": f"Order-{order_id}",
            "TransactionDesc": "Payment for order",
        }
        body = self._post(STK_PUSH_PATH, payload)

        response_code = str(body.get("ResponseCode", ""))
        if response_code != "0" or not body.get("CheckoutRequestID"):
            raise GatewayError(
                f"Payment provider declined the request: {body.get('ResponseDescription') or 'no description'}",
                provider_code=response_code or None,
            )

        logger.info(
            "mpesa.stk_push_accepted",
            order_id=order_id,
            checkout_request_id=body["CheckoutRequestID"],
        )
        return StkPushResult(
            checkout_request_id=body["CheckoutRequestID"],
            merchant_request_id=body.get("MerchantRequestID"),
            response_code=response_code,
            response_description=body.get("ResponseDescription"),
            customer_message=body.get("CustomerMessage"),
        )

    def query_stk_status(self, checkout_request_id: str) -> StkQueryResult:
        payload = {**self._credentials(), "CheckoutRequestID": checkout_request_id}
        body = self._post(STK_QUERY_PATH, payload)

        result_code = body.get("ResultCode")
        return StkQueryResult(
            checkout_request_id=body.get("CheckoutRequestID") or checkout_request_id,
            response_code=str(body["ResponseCode"]) if body.get("ResponseCode") is not None else None,
            result_code=str(result_code) if result_code is not None else None,
            result_desc=body.get("ResultDesc"),
        )
