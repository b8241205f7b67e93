"""Unit tests for claim authorization against roles.

Fixture values follow a typical Google ID token.
"""

from datetime import timedelta

import pytest

from oauth_login.auth.authorizer import authorize
from oauth_login.auth.role import build_role
from oauth_login.errors import (
    BoundClaimMismatchError,
    InvalidRequestError,
    MissingUserClaimError,
    RoleNotFoundError,
)

SUBJECT = "subject123908713857189"


@pytest.fixture
def claims():
    return {
        "iss": "https://accounts.google.com",
        "sub": SUBJECT,
        "email": "john.doe@example.com",
        "email_verified": True,
        "given_name": "John Doe",
        "hd": "example.com",
        "aud": "cid",
    }


@pytest.fixture
def role():
    return build_role(
        "default",
        {"policies": "admin", "num_uses": 42, "ttl": 300, "max_ttl": 3600},
    )


class TestAuthorize:
    """Tests for role authorization of claims."""

    def test_outcome_carries_role_settings_and_alias(self, claims, role):
        """Test outcome carries role settings and the alias."""
        outcome = authorize(claims, role)

        assert outcome.granted
        assert outcome.policies == ["admin"]
        assert outcome.num_uses == 42
        assert outcome.ttl == timedelta(seconds=300)
        assert outcome.max_ttl == timedelta(seconds=3600)
        assert outcome.display_name == SUBJECT
        assert outcome.alias_name == SUBJECT
        assert outcome.alias_metadata == {
            "given_name": "John Doe",
            "email": "john.doe@example.com",
        }

    def test_missing_role(self, claims):
        """Test authorizing without a role fails."""
        with pytest.raises(RoleNotFoundError):
            authorize(claims, None)

    def test_unnamed_role(self, claims):
        """Test a role without a name is rejected."""
        with pytest.raises(InvalidRequestError):
            authorize(claims, build_role("x", {}).model_copy(update={"name": ""}))

    def test_missing_user_claim(self, claims, role):
        """Test an absent user claim is rejected."""
        del claims["sub"]

        with pytest.raises(MissingUserClaimError, match=r"User claim \(sub\) is missing"):
            authorize(claims, role)

    def test_non_string_user_claim(self, claims):
        """Test a non-string user claim is rejected."""
        role = build_role("default", {"user_claim": "email_verified"})

        with pytest.raises(MissingUserClaimError):
            authorize(claims, role)

    def test_custom_user_claim(self, claims):
        """Test a custom user claim becomes the alias name."""
        outcome = authorize(claims, build_role("default", {"user_claim": "email"}))

        assert outcome.alias_name == "john.doe@example.com"

    def test_optional_metadata_absent(self, role):
        """Test absent email and given name leave metadata empty."""
        outcome = authorize({"sub": SUBJECT, "email": 5}, role)

        assert outcome.alias_metadata == {}


class TestBoundClaims:
    """Tests for bound claim enforcement."""

    def test_all_match(self, claims):
        """Test login succeeds when every bound claim matches."""
        role = build_role("default", {"bound_claims": {"hd": "example.com", "email_verified": True}})

        assert authorize(claims, role).granted

    def test_absent_claim_fails_closed(self, claims):
        """Test an absent bound claim fails the login."""
        role = build_role("default", {"bound_claims": {"domain": "example.com"}})

        with pytest.raises(BoundClaimMismatchError, match="claims do not match bound_claims of role"):
            authorize(claims, role)

    def test_different_value(self, claims):
        """Test a different claim value fails the login."""
        role = build_role("default", {"bound_claims": {"hd": "evil.com"}})

        with pytest.raises(BoundClaimMismatchError):
            authorize(claims, role)

    def test_one_mismatch_fails_everything(self, claims):
        """Test a single mismatch fails despite other matches."""
        role = build_role(
            "default",
            {"bound_claims": {"hd": "example.com", "email": "someone@else.com"}},
        )

        with pytest.raises(BoundClaimMismatchError):
            authorize(claims, role)

    def test_bool_binding_not_satisfied_by_number(self, claims):
        """Test a boolean binding is not satisfied by 1."""
        claims["email_verified"] = 1
        role = build_role("default", {"bound_claims": {"email_verified": True}})

        with pytest.raises(BoundClaimMismatchError):
            authorize(claims, role)

    def test_null_claim_does_not_match_string(self, claims):
        """Test a null claim does not match a string binding."""
        claims["hd"] = None
        role = build_role("default", {"bound_claims": {"hd": "example.com"}})

        with pytest.raises(BoundClaimMismatchError):
            authorize(claims, role)
