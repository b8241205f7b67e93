"""Authentication backend: the operations behind the HTTP routes.

Composes the cached identity provider, the role store and the claim
authorizer. Every failure is raised as a typed ``OAuthLoginError``; no
partial result is ever returned.
"""

from datetime import timedelta
from typing import Any, Awaitable, Callable, Mapping

from loguru import logger

from oauth_login.auth.authorizer import LoginOutcome, authorize
from oauth_login.auth.config import ProviderConfig, load_config
from oauth_login.auth.provider_cache import ProviderCell
from oauth_login.auth.provider_oidc import OIDCIdentityProvider
from oauth_login.auth.providers import IdentityProvider
from oauth_login.auth.role import Role, RoleStore, build_role, normalize_role_name
from oauth_login.auth.storage import Storage
from oauth_login.errors import (
    InvalidRequestError,
    NotConfiguredError,
    RoleNotFoundError,
)
from oauth_login.settings import settings

ProviderFactory = Callable[[ProviderConfig], Awaitable[IdentityProvider]]

MAX_TTL_WARNING = (
    "max_ttl is greater than the system or backend mount's maximum TTL value; "
    "issued tokens' max TTL value will be truncated"
)


class OAuthBackend:
    """OAuth authentication backend.

    Args:
        storage: Persistence for provider configuration and roles
        provider_factory: Builds a provider from configuration (performs
            discovery); replaceable for tests
        system_max_ttl: Ceiling in seconds used for max_ttl warnings
    """

    def __init__(
        self,
        storage: Storage,
        provider_factory: ProviderFactory = OIDCIdentityProvider.discover,
        system_max_ttl: int | None = None,
    ):
        self.storage = storage
        self.roles = RoleStore(storage)
        self.provider_factory = provider_factory
        self.system_max_ttl = timedelta(
            seconds=(
                system_max_ttl if system_max_ttl is not None else settings.server.max_lease_ttl
            )
        )
        self.providers = ProviderCell(self._load_provider)

    async def _load_provider(self) -> IdentityProvider | None:
        config = load_config(self.storage)
        if config is None:
            return None
        return await self.provider_factory(config)

    # Authentication

    async def auth_request_url(self) -> str:
        """Authorization URL for the configured provider.

        Raises:
            NotConfiguredError: No provider configuration saved
            DiscoveryError: Lazy rebuild after restart failed
        """
        async with self.providers.current() as provider:
            if provider is None:
                raise NotConfiguredError("plugin not configured")
            return provider.auth_url()

    async def login(self, code: str, redirect_uri: str, role_name: str) -> LoginOutcome:
        """Validate an authorization code and authorize it against a role.

        Args:
            code: Authorization code from the provider
            redirect_uri: Redirect URI of the authorization request. Callers
                that used the out-of-band flow pass "" and the provider's
                default redirect is used.
            role_name: Role to authorize against

        Raises:
            InvalidRequestError: Missing role name
            RoleNotFoundError: Role does not exist
            NotConfiguredError: No provider configured
            ExchangeError, TokenMissingError, VerificationError: Provider step failed
            MissingUserClaimError, BoundClaimMismatchError: Claims rejected
        """
        # Role checks precede any provider lookup or network call.
        if not role_name:
            raise InvalidRequestError("role is required")
        try:
            role_name = normalize_role_name(role_name)
        except InvalidRequestError:
            # A name no role can be stored under is reported as absent
            raise RoleNotFoundError(f"role {role_name} does not exist") from None
        role = self.roles.get(role_name)
        if role is None:
            raise RoleNotFoundError(f"role {role_name} does not exist")
        if not code:
            raise InvalidRequestError("code is required")

        async with self.providers.current() as provider:
            if provider is None:
                raise NotConfiguredError("plugin is not yet configured")
            claims = await provider.validate_code(code, redirect_uri or "")

        outcome = authorize(claims, role)
        logger.info(f"Login succeeded for {outcome.alias_name} with role {role_name}")
        return outcome

    # Configuration

    async def read_config(self) -> ProviderConfig | None:
        async with self.providers.shared():
            return load_config(self.storage)

    async def write_config(self, config: ProviderConfig) -> None:
        """Validate, build and persist a new provider configuration.

        The cached provider is dropped first. The new provider is discovered
        before anything is persisted, so a discovery failure leaves the
        stored configuration untouched, and a storage failure never leaves a
        provider cached that storage does not describe.

        Raises:
            InvalidRequestError: Missing issuer, client_id or client_secret
            DiscoveryError: Issuer metadata unreachable or invalid
            StorageError: Persisting failed
        """
        config.validate_required()

        async def build() -> IdentityProvider:
            provider = await self.provider_factory(config)
            try:
                config.save(self.storage)
            except Exception:
                await provider.aclose()
                raise
            return provider

        await self.providers.replace(build)
        logger.info(f"Provider configuration saved for issuer {config.issuer}")

    # Roles

    async def read_role(self, name: str) -> Role | None:
        return self.roles.get(name)

    async def create_role(self, name: str, fields: Mapping[str, Any]) -> tuple[Role, list[str]]:
        """Create a role from defaults plus the given fields.

        Writing to an existing role updates it instead.

        Returns:
            Saved role and advisory warnings
        """
        name = normalize_role_name(name)
        if self.roles.get(name) is not None:
            return await self.update_role(name, fields)

        role = build_role(name, fields)
        self.roles.save(role)
        logger.info(f"Created role {name}")
        return role, self._role_warnings(role)

    async def update_role(self, name: str, fields: Mapping[str, Any]) -> tuple[Role, list[str]]:
        """Merge the given fields into an existing role.

        Raises:
            RoleNotFoundError: Role does not exist
        """
        name = normalize_role_name(name)
        existing = self.roles.get(name)
        if existing is None:
            raise RoleNotFoundError(f"role {name} does not exist")

        role = build_role(name, fields, base=existing)
        self.roles.save(role)
        logger.info(f"Updated role {name}")
        return role, self._role_warnings(role)

    async def delete_role(self, name: str) -> None:
        self.roles.delete(name)
        logger.info(f"Deleted role {normalize_role_name(name)}")

    async def list_roles(self) -> list[str]:
        return self.roles.list()

    def _role_warnings(self, role: Role) -> list[str]:
        if role.max_ttl > self.system_max_ttl:
            logger.warning(f"Role {role.name}: {MAX_TTL_WARNING}")
            return [MAX_TTL_WARNING]
        return []

    async def close(self) -> None:
        await self.providers.invalidate()
