"""
Test Auth

Unit tests for bearer token verification and admin role resolution.
Role items and the notifications settings document live in a moto table.
"""

import time

import jwt
import pytest

from portal.shared.auth import (
    AdminIdentity,
    Identity,
    authenticate,
    can_delete_visits,
    extract_bearer_token,
    require_admin,
    require_super_admin,
    resolve_admin,
    verify_id_token,
)
from portal.shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
)

TABLE_NAME = "TestCalAIMPortal"


def _grant(dynamodb, role: str, principal: str) -> None:
    dynamodb.Table(TABLE_NAME).put_item(Item={"PK": f"ROLE#{role}", "SK": f"USER#{principal}"})


class TestExtractBearerToken:
    """Tests for Authorization header parsing."""

    def test_header_name_case_insensitive(self):
        assert extract_bearer_token({"authorization": "Bearer abc"}) == "abc"
        assert extract_bearer_token({"Authorization": "bearer  abc "}) == "abc"

    @pytest.mark.parametrize(
        "headers",
        [None, {}, {"Authorization": ""}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer "}],
    )
    def test_missing_token(self, headers):
        with pytest.raises(AuthenticationError, match="Missing Authorization Bearer token") as exc_info:
            extract_bearer_token(headers)
        assert exc_info.value.status_code == 401


class TestVerifyIdToken:
    """Tests for PyJWT verification."""

    def test_valid_token(self, make_token):
        identity = verify_id_token(make_token(uid="u1", email="Sam@Example.com", name=" Sam "))
        assert identity.uid == "u1"
        assert identity.email == "sam@example.com"
        assert identity.name == "Sam"
        assert identity.claims["sub"] == "u1"

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "u1"}, "another-secret-that-is-long-enough-0000", algorithm="HS256")
        with pytest.raises(AuthenticationError, match="Invalid token"):
            verify_id_token(token)

    def test_expired_token(self, make_token):
        token = make_token(exp=int(time.time()) - 60)
        with pytest.raises(AuthenticationError):
            verify_id_token(token)

    def test_missing_subject(self, make_token):
        token = make_token(uid="")
        with pytest.raises(AuthenticationError):
            verify_id_token(token)

    def test_uid_claim_fallback(self):
        from portal.shared.config import get_settings

        token = jwt.encode({"uid": "legacy-uid"}, get_settings().auth_jwt_secret, algorithm="HS256")
        assert verify_id_token(token).uid == "legacy-uid"

    def test_secret_not_configured(self, monkeypatch, make_token):
        token = make_token()
        monkeypatch.setenv("CALAIM_AUTH_JWT_SECRET", "")
        from portal.shared.config import get_settings

        get_settings.cache_clear()
        with pytest.raises(ConfigurationError) as exc_info:
            verify_id_token(token)
        assert exc_info.value.status_code == 500

    def test_authenticate_from_headers(self, make_token):
        identity = authenticate({"Authorization": f"Bearer {make_token(uid='u2')}"})
        assert identity.uid == "u2"


class TestResolveAdmin:
    """Tests for admin and super admin resolution."""

    def test_super_admin_claim(self, mock_dynamodb):
        admin = resolve_admin(Identity(uid="u1", claims={"superAdmin": True}))
        assert admin.is_super_admin is True

    def test_allowlisted_email(self, mock_dynamodb, monkeypatch):
        monkeypatch.setenv("CALAIM_ADMIN_EMAIL_ALLOWLIST", '["boss@example.com"]')
        from portal.shared.config import get_settings

        get_settings.cache_clear()
        admin = resolve_admin(Identity(uid="u1", email="boss@example.com"))
        assert admin.is_super_admin is True

    def test_admin_claim(self, mock_dynamodb):
        admin = resolve_admin(Identity(uid="u1", claims={"admin": True}))
        assert admin.is_super_admin is False

    def test_role_item_by_uid(self, mock_dynamodb):
        _grant(mock_dynamodb, "admin", "u1")
        admin = resolve_admin(Identity(uid="u1"))
        assert admin is not None
        assert admin.is_super_admin is False

    def test_super_admin_role_item_by_email(self, mock_dynamodb):
        _grant(mock_dynamodb, "super_admin", "chief@example.com")
        admin = resolve_admin(Identity(uid="u1", email="chief@example.com"))
        assert admin.is_super_admin is True

    def test_non_admin(self, mock_dynamodb):
        assert resolve_admin(Identity(uid="u1", email="sw@example.com")) is None
        with pytest.raises(AuthorizationError, match="Admin privileges required") as exc_info:
            require_admin(Identity(uid="u1"))
        assert exc_info.value.status_code == 403

    def test_require_super_admin(self, admin_identity, super_admin_identity):
        assert require_super_admin(super_admin_identity) is super_admin_identity
        with pytest.raises(AuthorizationError, match="Super admin privileges required"):
            require_super_admin(admin_identity)


class TestCanDeleteVisits:
    """Tests for the SW visit delete permission."""

    def test_super_admin_always_allowed(self, super_admin_identity):
        assert can_delete_visits(super_admin_identity) is True

    def test_admin_without_permission(self, mock_dynamodb, admin_identity):
        assert can_delete_visits(admin_identity) is False

    def test_admin_listed_by_uid(self, mock_dynamodb, admin_identity):
        mock_dynamodb.Table(TABLE_NAME).put_item(
            Item={
                "PK": "SETTINGS#notifications",
                "SK": "METADATA",
                "sw_visit_delete_permissions": ["someone-else", admin_identity.uid],
            }
        )
        assert can_delete_visits(admin_identity) is True

    def test_admin_listed_by_email(self, mock_dynamodb):
        mock_dynamodb.Table(TABLE_NAME).put_item(
            Item={
                "PK": "SETTINGS#notifications",
                "SK": "METADATA",
                "sw_visit_delete_permissions": ["Staff@Example.com"],
            }
        )
        admin = AdminIdentity(identity=Identity(uid="u9", email="staff@example.com"))
        assert can_delete_visits(admin) is True


def test_actor_label_fallbacks():
    assert Identity(uid="u1", email="a@example.com", name="Ann").actor_label == "Ann"
    assert Identity(uid="u1", email="a@example.com").actor_label == "a@example.com"
    assert Identity(uid="u1").actor_label == "Admin"
