"""Role-based claim authorization.

Turns a verified claim set and a role into a login outcome. Pure function
of its inputs: no storage, no network, no clock.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping

from loguru import logger

from oauth_login.auth.claims import ClaimValue, claim_matches, string_claim
from oauth_login.auth.role import Role
from oauth_login.errors import (
    BoundClaimMismatchError,
    InvalidRequestError,
    MissingUserClaimError,
    RoleNotFoundError,
)


@dataclass(frozen=True)
class LoginOutcome:
    """Granted authorization for one successful login."""

    policies: list[str]
    num_uses: int
    ttl: timedelta
    max_ttl: timedelta
    display_name: str
    alias_name: str
    alias_metadata: dict[str, str] = field(default_factory=dict)
    granted: bool = True


def verify_bound_claims(
    claims: Mapping[str, ClaimValue], bound_claims: Mapping[str, ClaimValue]
) -> None:
    """Require every bound claim to be present with exactly the expected value.

    Raises:
        BoundClaimMismatchError: First absent or differing claim
    """
    for name, expected in bound_claims.items():
        if name not in claims or not claim_matches(claims[name], expected):
            logger.warning(f"login failed: claim {name!r} does not satisfy the role binding")
            raise BoundClaimMismatchError("claims do not match bound_claims of role")


def authorize(claims: Mapping[str, ClaimValue], role: Role | None) -> LoginOutcome:
    """Decide whether the claims satisfy the role and derive the outcome.

    Args:
        claims: Verified ID token claims
        role: Role named in the login request, None if it does not exist

    Returns:
        LoginOutcome carrying the role's token settings and the user's alias

    Raises:
        RoleNotFoundError: Role does not exist
        InvalidRequestError: Role has no name
        MissingUserClaimError: User claim absent or not a string
        BoundClaimMismatchError: A bound claim is absent or differs
    """
    if role is None:
        raise RoleNotFoundError("role does not exist")
    if not role.name:
        raise InvalidRequestError("role is required")

    user_name = string_claim(claims, role.user_claim)
    if user_name is None:
        raise MissingUserClaimError(f"User claim ({role.user_claim}) is missing")

    verify_bound_claims(claims, role.bound_claims)

    metadata: dict[str, str] = {}
    given_name = string_claim(claims, role.given_name_claim)
    if given_name is not None:
        metadata["given_name"] = given_name
    email = string_claim(claims, role.email_claim)
    if email is not None:
        metadata["email"] = email

    return LoginOutcome(
        policies=list(role.policies),
        num_uses=role.num_uses,
        ttl=role.ttl,
        max_ttl=role.max_ttl,
        display_name=user_name,
        alias_name=user_name,
        alias_metadata=metadata,
    )
