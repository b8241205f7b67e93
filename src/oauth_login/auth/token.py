"""Client token issuance for successful logins.

Signs the granted authorization into an ES256 (ECDSA P-256) JWT. Policy
and lease enforcement happen downstream, wherever the token is presented.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt as pyjwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from loguru import logger

from oauth_login.auth.authorizer import LoginOutcome
from oauth_login.settings import settings


@dataclass(frozen=True)
class IssuedCredential:
    """Token handed back to the client together with what it grants."""

    client_token: str
    lease_duration: int
    outcome: LoginOutcome

    def to_response(self) -> dict[str, Any]:
        outcome = self.outcome
        return {
            "client_token": self.client_token,
            "policies": outcome.policies,
            "num_uses": outcome.num_uses,
            "lease_duration": self.lease_duration,
            "renewable": False,
            "display_name": outcome.display_name,
            "metadata": dict(outcome.alias_metadata),
            "alias": {
                "name": outcome.alias_name,
                "metadata": dict(outcome.alias_metadata),
            },
        }


class TokenIssuer:
    """JWT issuer with ES256 keypair signing.

    Private key signs tokens, public key verifies them. Without a configured
    key an ephemeral one is generated, so tokens do not survive a restart.
    """

    def __init__(
        self,
        private_key: str = "",
        algorithm: str = "ES256",
        default_ttl: int | None = None,
        system_max_ttl: int | None = None,
    ):
        """Initialize token issuer.

        Args:
            private_key: Private key in PEM format for signing
            algorithm: JWT algorithm (ES256, ES384, ES512)
            default_ttl: Lease in seconds when the role sets no ttl
            system_max_ttl: Ceiling in seconds for any lease
        """
        if not private_key:
            logger.warning("No token signing key configured, generating an ephemeral key")
            key = ec.generate_private_key(ec.SECP256R1())
            private_key = key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            ).decode("ascii")

        self.private_key = private_key
        self.public_key = (
            serialization.load_pem_private_key(private_key.encode("ascii"), password=None)
            .public_key()
            .public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
            .decode("ascii")
        )
        self.algorithm = algorithm
        self.default_ttl = timedelta(
            seconds=default_ttl if default_ttl is not None else settings.server.default_lease_ttl
        )
        self.system_max_ttl = timedelta(
            seconds=(
                system_max_ttl if system_max_ttl is not None else settings.server.max_lease_ttl
            )
        )

    def lease_for(self, outcome: LoginOutcome) -> timedelta:
        """Effective token lifetime for an outcome.

        The role's ttl (or the default) capped by the role's max_ttl, which
        is itself capped by the system maximum.
        """
        max_ttl = self.system_max_ttl
        if outcome.max_ttl > timedelta(0):
            max_ttl = min(outcome.max_ttl, max_ttl)
        ttl = outcome.ttl if outcome.ttl > timedelta(0) else self.default_ttl
        return min(ttl, max_ttl)

    def issue(self, outcome: LoginOutcome) -> IssuedCredential:
        """Sign a client token for a granted login."""
        lease = self.lease_for(outcome)
        now = datetime.now(timezone.utc)
        payload = {
            "sub": outcome.alias_name,
            "jti": str(uuid.uuid4()),
            "iat": int(now.timestamp()),
            "exp": int((now + lease).timestamp()),
            "display_name": outcome.display_name,
            "policies": outcome.policies,
            "num_uses": outcome.num_uses,
            "meta": dict(outcome.alias_metadata),
        }
        token = pyjwt.encode(payload, self.private_key, algorithm=self.algorithm)
        logger.info(
            f"Issued token for {outcome.alias_name} "
            f"(policies={outcome.policies}, lease={int(lease.total_seconds())}s)"
        )
        return IssuedCredential(
            client_token=token,
            lease_duration=int(lease.total_seconds()),
            outcome=outcome,
        )

    def decode_token(self, token: str) -> dict[str, Any]:
        """Decode and verify a client token with the public key.

        Raises:
            jwt.ExpiredSignatureError: Token expired
            jwt.InvalidTokenError: Token invalid
        """
        return pyjwt.decode(
            token,
            self.public_key,
            algorithms=[self.algorithm],
            options={"verify_exp": True},
        )
