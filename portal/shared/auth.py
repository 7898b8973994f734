"""
Caller identity and role checks.

Every HTTP handler receives a bearer identity token. The token is
verified with PyJWT; admin and super-admin roles come from token claims,
the configured allow-list, or role items in the portal table.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping

import jwt
import structlog

from portal.shared.config import get_settings
from portal.shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
)
from portal.shared.tools import dynamodb

log = structlog.get_logger()

ADMIN_ROLE = "admin"
SUPER_ADMIN_ROLE = "super_admin"


@dataclass(frozen=True)
class Identity:
    """Verified caller."""

    uid: str
    email: str = ""
    name: str = ""
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def actor_label(self) -> str:
        """Name shown in audit fields."""
        return self.name or self.email or "Admin"


@dataclass(frozen=True)
class AdminIdentity:
    """Caller verified to hold an admin role."""

    identity: Identity
    is_super_admin: bool = False

    @property
    def uid(self) -> str:
        return self.identity.uid

    @property
    def email(self) -> str:
        return self.identity.email

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def actor_label(self) -> str:
        return self.identity.actor_label


def extract_bearer_token(headers: Mapping[str, str] | None) -> str:
    """Pull the token out of an `Authorization: Bearer ...` header."""
    for name, value in (headers or {}).items():
        if name.lower() == "authorization" and value:
            scheme, _, token = str(value).strip().partition(" ")
            if scheme.lower() == "bearer" and token.strip():
                return token.strip()
    raise AuthenticationError("Missing Authorization Bearer token")


def verify_id_token(token: str) -> Identity:
    """
    Verify a bearer identity token.

    Raises:
        AuthenticationError: If the token is invalid, expired or lacks a subject
        ConfigurationError: If no verification secret is configured
    """
    settings = get_settings()
    if not settings.auth_jwt_secret:
        raise ConfigurationError("Identity token secret not configured")

    try:
        claims = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            options={"verify_aud": settings.auth_jwt_audience is not None},
        )
    except jwt.PyJWTError as e:
        log.warning("identity_token_rejected", error=str(e))
        raise AuthenticationError("Invalid token") from e

    uid = str(claims.get("sub") or claims.get("uid") or "").strip()
    if not uid:
        raise AuthenticationError("Invalid token")

    return Identity(
        uid=uid,
        email=str(claims.get("email") or "").strip().lower(),
        name=str(claims.get("name") or "").strip(),
        claims=claims,
    )


def authenticate(headers: Mapping[str, str] | None) -> Identity:
    """Verify the request's bearer token."""
    return verify_id_token(extract_bearer_token(headers))


def _holds_role(role: str, identity: Identity) -> bool:
    # Role items are keyed by uid; older grants were keyed by email.
    if dynamodb.has_role(role, identity.uid):
        return True
    return bool(identity.email) and dynamodb.has_role(role, identity.email)


def resolve_admin(identity: Identity) -> AdminIdentity | None:
    """Return the caller's admin grant, or None for non-admins."""
    settings = get_settings()
    claims = identity.claims

    allowlist = {e.strip().lower() for e in settings.admin_email_allowlist if e.strip()}
    if claims.get("superAdmin") or (identity.email and identity.email in allowlist):
        return AdminIdentity(identity=identity, is_super_admin=True)

    if _holds_role(SUPER_ADMIN_ROLE, identity):
        return AdminIdentity(identity=identity, is_super_admin=True)

    if claims.get("admin") or _holds_role(ADMIN_ROLE, identity):
        return AdminIdentity(identity=identity, is_super_admin=False)

    return None


def require_admin(identity: Identity) -> AdminIdentity:
    """
    Raises:
        AuthorizationError: If the caller is not an admin
    """
    admin = resolve_admin(identity)
    if admin is None:
        log.warning("admin_required", uid=identity.uid, email=identity.email)
        raise AuthorizationError("Admin privileges required", uid=identity.uid)
    return admin


def require_super_admin(admin: AdminIdentity) -> AdminIdentity:
    if not admin.is_super_admin:
        log.warning("super_admin_required", uid=admin.uid, email=admin.email)
        raise AuthorizationError("Super admin privileges required", uid=admin.uid)
    return admin


def can_delete_visits(admin: AdminIdentity) -> bool:
    """Super admins, or admins listed in the notifications settings document."""
    if admin.is_super_admin:
        return True
    document = dynamodb.load_settings_document("notifications")
    allowed = {
        str(entry).strip().lower()
        for entry in document.get("sw_visit_delete_permissions", []) or []
        if str(entry).strip()
    }
    return admin.uid.lower() in allowed or (bool(admin.email) and admin.email in allowed)
