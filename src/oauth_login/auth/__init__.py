"""Server-side authentication for oauth-login.

This module provides:
- OIDC identity provider (discovery, code exchange, ID token verification)
- Roles with bound-claim policies
- Claim authorization into login outcomes
- ES256 client token issuance
- Pluggable key-value storage (filesystem, in-memory)
"""

from oauth_login.auth.authorizer import LoginOutcome, authorize
from oauth_login.auth.backend import OAuthBackend
from oauth_login.auth.config import ProviderConfig
from oauth_login.auth.providers import IdentityProvider
from oauth_login.auth.role import Role, RoleStore
from oauth_login.auth.storage import InMemoryStorage, Storage
from oauth_login.auth.storage_factory import get_storage
from oauth_login.auth.token import IssuedCredential, TokenIssuer

__all__ = [
    "IdentityProvider",
    "InMemoryStorage",
    "IssuedCredential",
    "LoginOutcome",
    "OAuthBackend",
    "ProviderConfig",
    "Role",
    "RoleStore",
    "Storage",
    "TokenIssuer",
    "authorize",
    "get_storage",
]
