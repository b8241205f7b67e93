"""Unit tests for client token issuance."""

from datetime import timedelta

import jwt
import pytest

from oauth_login.auth.authorizer import LoginOutcome
from oauth_login.auth.token import TokenIssuer


def outcome(ttl: int = 300, max_ttl: int = 3600) -> LoginOutcome:
    return LoginOutcome(
        policies=["admin"],
        num_uses=42,
        ttl=timedelta(seconds=ttl),
        max_ttl=timedelta(seconds=max_ttl),
        display_name="u1",
        alias_name="u1",
        alias_metadata={"email": "u1@example.com"},
    )


@pytest.fixture(scope="module")
def issuer():
    return TokenIssuer(default_ttl=600, system_max_ttl=7200)


class TestLease:
    """Tests for lease duration calculation."""

    def test_role_ttl(self, issuer):
        """Test the role ttl is used when set."""
        assert issuer.lease_for(outcome(ttl=300)) == timedelta(seconds=300)

    def test_default_when_role_has_no_ttl(self, issuer):
        """Test the default ttl applies without a role ttl."""
        assert issuer.lease_for(outcome(ttl=0, max_ttl=0)) == timedelta(seconds=600)

    def test_default_capped_by_role_max_ttl(self, issuer):
        """Test the default ttl is capped by role max_ttl."""
        assert issuer.lease_for(outcome(ttl=0, max_ttl=120)) == timedelta(seconds=120)

    def test_role_max_ttl_capped_by_system(self, issuer):
        """Test role max_ttl is capped by the system maximum."""
        long_lived = TokenIssuer(default_ttl=86400, system_max_ttl=7200)

        assert long_lived.lease_for(outcome(ttl=0, max_ttl=86400)) == timedelta(seconds=7200)


class TestIssue:
    """Tests for credential issuing."""

    def test_token_verifies_with_public_key(self, issuer):
        """Test the token verifies against the issuer key."""
        credential = issuer.issue(outcome())

        payload = issuer.decode_token(credential.client_token)

        assert payload["sub"] == "u1"
        assert payload["policies"] == ["admin"]
        assert payload["num_uses"] == 42
        assert payload["meta"] == {"email": "u1@example.com"}
        assert payload["exp"] - payload["iat"] == 300

    def test_response_shape(self, issuer):
        """Test the auth response carries the outcome fields."""
        response = issuer.issue(outcome()).to_response()

        assert response["lease_duration"] == 300
        assert response["policies"] == ["admin"]
        assert response["num_uses"] == 42
        assert response["display_name"] == "u1"
        assert response["alias"] == {"name": "u1", "metadata": {"email": "u1@example.com"}}

    def test_tokens_are_unique(self, issuer):
        """Test two issues yield distinct tokens."""
        first = issuer.issue(outcome()).client_token
        second = issuer.issue(outcome()).client_token

        assert first != second

    def test_other_key_rejected(self, issuer):
        """Test a token from another key does not verify."""
        token = TokenIssuer().issue(outcome()).client_token

        with pytest.raises(jwt.InvalidSignatureError):
            issuer.decode_token(token)

    def test_configured_key_survives_restart(self, issuer):
        """Test a configured key verifies across issuers."""
        token = issuer.issue(outcome()).client_token

        restarted = TokenIssuer(private_key=issuer.private_key)

        assert restarted.decode_token(token)["sub"] == "u1"
