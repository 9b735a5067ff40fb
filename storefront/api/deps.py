# storefront/api/deps.py
from dataclasses import dataclass

from fastapi import Cookie, Depends, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storefront.domain.errors import Forbidden, Unauthorized
from storefront.services.cart_service import Identity
from storefront.utils.security import decode_token
from storefront.utils.settings import GUEST_CART_COOKIE, GUEST_CART_MAX_AGE_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass
class Caller:
    user_id: int | None
    role: str | None
    guest_id: str | None
    token_error: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def identity(self) -> Identity:
        return Identity(user_id=self.user_id, guest_id=self.guest_id)


def resolve_identity(token: str) -> dict:
    payload = decode_token(token)
    if payload.get("type") != "access":
        raise ValueError("not an access token")
    return payload


def get_caller(
    creds: HTTPAuthorizationCredentials | None = Depends(security),
    guest_id: str | None = Cookie(default=None, alias=GUEST_CART_COOKIE),
) -> Caller:
    """Optional auth: a missing or bad token means an anonymous caller."""
    if not creds:
        return Caller(user_id=None, role=None, guest_id=guest_id)

    try:
        payload = resolve_identity(creds.credentials)
        return Caller(user_id=int(payload["sub"]), role=payload.get("role"), guest_id=guest_id)
    except Exception as e:
        logger.info(f"Token rejected, continuing as guest: {e}")
        return Caller(user_id=None, role=None, guest_id=guest_id, token_error="Invalid token")


def require_user(caller: Caller = Depends(get_caller)) -> Caller:
    if caller.user_id is None:
        raise Unauthorized(caller.token_error)
    return caller


def require_admin(caller: Caller = Depends(require_user)) -> Caller:
    if not caller.is_admin:
        raise Forbidden("Admin required")
    return caller


def sync_guest_cookie(response: Response, before: str | None, identity: Identity):
    """Mirrors the service's view of the guest token back into the cookie."""
    if identity.guest_id and identity.guest_id != before:
        response.set_cookie(
            GUEST_CART_COOKIE,
            identity.guest_id,
            max_age=GUEST_CART_MAX_AGE_SECONDS,
            httponly=True,
        )
    elif before and not identity.guest_id:
        response.delete_cookie(GUEST_CART_COOKIE)
