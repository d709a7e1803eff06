"""Tenant identity resolution.

Queue operations are scoped to the business that owns the queue. The
surrounding back-office authenticates users; here we only need to know which
tenant a request acts for.
"""

from dataclasses import dataclass
from typing import Annotated, Optional, Protocol

from fastapi import Depends, Request

from virtual_queue.core.errors import AuthError
from virtual_queue.core.security import COOKIE_ACCESS_NAME, decode_access_token


@dataclass(frozen=True)
class TenantIdentity:
    """Opaque identity of the business a request acts for.

    Attributes:
        tenant_id: Key of the tenant's queue (the business user's id).
        email: Email claim of the token, when present.
    """

    tenant_id: str
    email: Optional[str] = None


class AuthResolver(Protocol):
    def current_tenant(self, request: Request) -> Optional[TenantIdentity]:
        ...


class BearerTokenAuthResolver:
    """Resolve the tenant from a JWT access token.

    Checks in order:
    1. Authorization: Bearer <token> header
    2. access_token cookie (HttpOnly)

    The tenant is the ``tenant_id`` claim when present, else ``sub``.
    """

    def current_tenant(self, request: Request) -> Optional[TenantIdentity]:
        payload = None

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header.split(" ", 1)[1]
            if token:
                payload = decode_access_token(token)

        # Fall back to cookie if no Bearer or Bearer was invalid
        if payload is None:
            cookie_token = request.cookies.get(COOKIE_ACCESS_NAME)
            if cookie_token:
                payload = decode_access_token(cookie_token)

        if payload is None:
            return None

        tenant_id = payload.get("tenant_id") or payload.get("sub")
        if not tenant_id:
            return None
        return TenantIdentity(tenant_id=str(tenant_id), email=payload.get("email"))


_default_resolver = BearerTokenAuthResolver()


def get_auth_resolver() -> AuthResolver:
    """Dependency returning the resolver; override it to plug in another auth source."""
    return _default_resolver


def get_current_tenant(
    request: Request,
    resolver: Annotated[AuthResolver, Depends(get_auth_resolver)],
) -> TenantIdentity:
    """Require an authenticated tenant identity (401 otherwise)."""
    identity = resolver.current_tenant(request)
    if identity is None:
        raise AuthError()
    return identity


CurrentTenant = Annotated[TenantIdentity, Depends(get_current_tenant)]
