# catalog/core/auth.py
import uuid
from dataclasses import dataclass
from typing import Any, Protocol

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from catalog.core.config import get_settings
from catalog.core.errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
)

settings = get_settings()

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so public read endpoints can resolve a "guest" principal.
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """
    The authenticated identity making a request.

    ``id`` is the Supabase auth user id (JWT "sub"); it is what catalog rows
    store as ``owner_id``.
    """

    id: uuid.UUID
    email: str | None = None
    role: str | None = None


class OwnedRow(Protocol):
    owner_id: uuid.UUID


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        AuthenticationError: if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """
    Build a Principal from decoded JWT claims.

    Supabase puts the application role (if any) under app_metadata.role.
    """
    sub = payload.get("sub")
    if not sub:
        raise AuthenticationError("Token missing sub")

    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise AuthenticationError("Invalid sub in token")

    app_metadata = payload.get("app_metadata") or {}
    return Principal(
        id=sub_uuid,
        email=payload.get("email"),
        role=app_metadata.get("role"),
    )


class AuthorizationGuard:
    """
    Principal / operator / ownership checks.

    Operator identities are injected at construction time instead of being
    compiled into the checks:
      - operator_emails: principals whose email is listed (case-insensitive)
      - operator_role: principals whose role claim equals this value
    """

    def __init__(
        self,
        operator_emails: list[str] | tuple[str, ...] = (),
        operator_role: str | None = None,
        hide_foreign_entities: bool = False,
    ):
        self.operator_emails = {e.strip().lower() for e in operator_emails if e.strip()}
        self.operator_role = operator_role
        self.hide_foreign_entities = hide_foreign_entities

    def require_principal(self, principal: Principal | None) -> Principal:
        if principal is None:
            raise AuthenticationError()
        return principal

    def is_operator(self, principal: Principal) -> bool:
        if principal.email and principal.email.lower() in self.operator_emails:
            return True
        return self.operator_role is not None and principal.role == self.operator_role

    def require_operator(self, principal: Principal | None) -> Principal:
        """
        Enforce operator access.

        Raises:
            AuthenticationError(401): no principal.
            AuthorizationError(403): principal is not an operator.
        """
        principal = self.require_principal(principal)
        if not self.is_operator(principal):
            raise AuthorizationError("Operator access required")
        return principal

    def assert_owner(
        self,
        row: OwnedRow | None,
        principal: Principal,
        entity: str = "Entity",
    ):
        """
        Ensure ``row`` exists and belongs to ``principal``.

        Missing rows are always 404. Rows owned by someone else are 403,
        or 404 when hide_foreign_entities is enabled.
        """
        if row is None:
            raise NotFoundError(f"{entity} not found")
        if row.owner_id != principal.id:
            if self.hide_foreign_entities:
                raise NotFoundError(f"{entity} not found")
            raise AuthorizationError(f"You do not own this {entity.lower()}")
        return row


def get_guard() -> AuthorizationGuard:
    """FastAPI dependency returning a guard built from settings."""
    return AuthorizationGuard(
        operator_emails=settings.OPERATOR_EMAILS,
        operator_role=settings.OPERATOR_ROLE,
        hide_foreign_entities=settings.HIDE_FOREIGN_ENTITIES,
    )


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal | None:
    """
    Resolve the current principal from a Supabase JWT.

    Returns:
        Principal if a bearer token is present, else None for guests.

    Raises:
        AuthenticationError(401): if the token is malformed or expired.
    """
    if credentials is None:
        return None  # guest mode

    payload = decode_access_token(credentials.credentials)
    return principal_from_claims(payload)


def require_operator(
    principal: Principal | None = Depends(get_current_principal),
    guard: AuthorizationGuard = Depends(get_guard),
) -> Principal:
    """Reject guests with 401 and non-operators with 403."""
    return guard.require_operator(principal)
