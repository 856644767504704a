"""Error taxonomy for the marketplace.

Validation and not-found failures use Protean's own exceptions
(``ValidationError``, ``ObjectNotFoundError``). The types below cover the
remaining kinds the HTTP layer maps to distinct status codes.
"""

from protean.exceptions import ValidationError


class InsufficientStock(ValidationError):
    """A product does not hold enough stock for the requested quantity."""

    def __init__(self, product_name: str, available: int, requested: int) -> None:
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            {"stock": [f"Insufficient stock for {product_name}. Available: {available}, requested: {requested}"]}
        )


class AccessDenied(Exception):
    """The requester is known but may not perform the operation."""

    status_code = 403

    def __init__(self, message: str = "Not authorized to access this resource") -> None:
        self.message = message
        super().__init__(message)


class AuthenticationRequired(AccessDenied):
    """No requester identity was supplied."""

    status_code = 401

    def __init__(self, message: str = "Not authorized, no user identity supplied") -> None:
        super().__init__(message)


class GatewayError(Exception):
    """The payment provider was unreachable or rejected the request.

    Messages are built from provider status codes and descriptions only, so
    they are safe to return to clients.
    """

    def __init__(self, message: str, provider_code: str | None = None) -> None:
        self.message = message
        self.provider_code = provider_code
        super().__init__(message)


class FraudScoringFailure(Exception):
    """A fraud scorer could not assess an order."""
