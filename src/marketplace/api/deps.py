"""Requester identity for API routes.

Authentication happens upstream; the gateway in front of this service
forwards the authenticated user as trusted headers.
"""

from dataclasses import dataclass

from fastapi import Header

from marketplace.errors import AccessDenied, AuthenticationRequired
from marketplace.order.order import ActorRole

_REQUEST_ROLES = {ActorRole.CUSTOMER.value, ActorRole.SELLER.value, ActorRole.ADMIN.value}


@dataclass(frozen=True)
class Requester:
    user_id: str
    role: str = ActorRole.CUSTOMER.value
    email: str | None = None
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN.value

    @property
    def is_seller(self) -> bool:
        return self.role == ActorRole.SELLER.value


async def get_requester(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default=ActorRole.CUSTOMER.value),
    x_user_email: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
) -> Requester:
    if not x_user_id:
        raise AuthenticationRequired()
    role = x_user_role.lower()
    if role not in _REQUEST_ROLES:
        raise AccessDenied(f"Unknown role {x_user_role}")
    return Requester(user_id=x_user_id, role=role, email=x_user_email, name=x_user_name)


def require_admin(requester: Requester) -> None:
    if not requester.is_admin:
        raise AccessDenied("Not authorized as an admin")
