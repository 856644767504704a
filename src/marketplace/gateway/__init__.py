"""Mobile-money gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeMobileMoneyGateway for development and testing
- MpesaGateway when the domain is configured with PAYMENT_GATEWAY = "mpesa"
"""

from protean.utils.globals import current_domain

from marketplace.gateway.fake_adapter import FakeMobileMoneyGateway
from marketplace.gateway.mpesa_adapter import MpesaGateway
from marketplace.gateway.port import MobileMoneyGateway

_current_gateway: MobileMoneyGateway | None = None


def get_gateway() -> MobileMoneyGateway:
    """Return the current gateway, building it from domain config on first use."""
    global _current_gateway
    if _current_gateway is None:
        if getattr(current_domain, "PAYMENT_GATEWAY", "fake") == "mpesa":
            _current_gateway = MpesaGateway.from_config(current_domain)
        else:
            _current_gateway = FakeMobileMoneyGateway()
    return _current_gateway


def set_gateway(gateway: MobileMoneyGateway) -> None:
    """Override the active gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to the configured default gateway."""
    global _current_gateway
    _current_gateway = None
