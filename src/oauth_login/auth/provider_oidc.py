"""OIDC identity provider (Google, Microsoft Entra ID, Okta, Auth0, etc.).

Performs issuer discovery, builds authorization URLs, exchanges
authorization codes and verifies the returned ID token against the
provider's published JWKS.

Uses authlib for the OAuth2 token exchange and JWT validation.
"""

import asyncio
import time
from typing import Any

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from authlib.jose import JoseError, JsonWebToken
from authlib.jose.rfc7517 import JsonWebKey
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri
from loguru import logger

from oauth_login.auth.claims import Claims, as_claims
from oauth_login.auth.config import DEFAULT_SCOPES, ProviderConfig
from oauth_login.auth.providers import OOB_REDIRECT_URI, IdentityProvider
from oauth_login.errors import (
    DiscoveryError,
    ExchangeError,
    TokenMissingError,
    VerificationError,
)
from oauth_login.settings import settings

# Seconds of clock skew tolerated on exp/iat/nbf
CLOCK_SKEW = 60

_REQUIRED_METADATA = ("authorization_endpoint", "token_endpoint", "jwks_uri")


class OIDCIdentityProvider(IdentityProvider):
    """External OIDC provider.

    Built with ``discover()``, which fetches the issuer's
    ``/.well-known/openid-configuration``. The HTTP client used for
    discovery stays open for the provider's lifetime because signing keys
    are fetched lazily and re-fetched when the provider rotates them.

    Examples:
        Google:
            issuer: https://accounts.google.com

        Microsoft Entra ID:
            issuer: https://login.microsoftonline.com/{tenant}/v2.0
    """

    def __init__(
        self,
        config: ProviderConfig,
        metadata: dict[str, Any],
        http_client: httpx.AsyncClient,
        jwks_cache_ttl: int | None = None,
    ):
        """Initialize from already-fetched discovery metadata.

        Args:
            config: Client registration
            metadata: OIDC discovery document
            http_client: Client that fetched the metadata; owned from here on
            jwks_cache_ttl: JWKS cache TTL in seconds (defaults to settings)
        """
        self._config = config
        self._metadata = metadata
        self._http = http_client
        self.jwks_cache_ttl = jwks_cache_ttl or settings.server.jwks_cache_ttl

        self._jwks: dict[str, Any] | None = None
        self._jwks_cache_time: float = 0
        self._jwks_lock = asyncio.Lock()
        self._jwt = JsonWebToken(["RS256", "RS384", "RS512", "ES256", "ES384", "PS256"])

    @classmethod
    async def discover(cls, config: ProviderConfig) -> "OIDCIdentityProvider":
        """Fetch issuer metadata and build a provider.

        Args:
            config: Validated client registration

        Returns:
            Provider ready to build URLs and validate codes

        Raises:
            DiscoveryError: Metadata unreachable, malformed or for another issuer
        """
        discovery_url = f"{config.issuer.rstrip('/')}/.well-known/openid-configuration"
        http_client = httpx.AsyncClient(timeout=settings.server.http_timeout)

        try:
            try:
                response = await http_client.get(discovery_url)
                response.raise_for_status()
                metadata = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise DiscoveryError(
                    f"failed to fetch provider metadata from {discovery_url}: {e}"
                ) from e
            _check_metadata(config, metadata)
        except Exception:
            await http_client.aclose()
            raise

        logger.info(f"Fetched OIDC config from {discovery_url}")
        return cls(config, metadata, http_client)

    @property
    def issuer(self) -> str:
        return self._config.issuer

    @property
    def client_id(self) -> str:
        return self._config.client_id

    @property
    def client_secret(self) -> str:
        return self._config.client_secret

    def auth_url(self, state: str | None = None) -> str:
        # State is omitted unless the caller supplies one.
        return prepare_grant_uri(
            self._metadata["authorization_endpoint"],
            self._config.client_id,
            "code",
            redirect_uri=OOB_REDIRECT_URI,
            scope=list(DEFAULT_SCOPES),
            state=state or None,
        )

    async def validate_code(self, code: str, redirect_url: str = "") -> Claims:
        # Must equal the redirect_uri of the authorization request (RFC 6749 4.1.3)
        redirect_uri = redirect_url or OOB_REDIRECT_URI

        try:
            async with AsyncOAuth2Client(
                client_id=self._config.client_id,
                client_secret=self._config.client_secret,
                scope=" ".join(DEFAULT_SCOPES),
                redirect_uri=redirect_uri,
                timeout=settings.server.http_timeout,
            ) as oauth:
                token = await oauth.fetch_token(
                    self._metadata["token_endpoint"],
                    grant_type="authorization_code",
                    code=code,
                )
        except OAuthError as e:
            logger.warning(f"Authorization code rejected by provider: {e.error}")
            raise ExchangeError(f"authorization code exchange failed: {e}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Authorization code exchange failed: {e}")
            raise ExchangeError(f"authorization code exchange failed: {e}") from e

        raw_id_token = token.get("id_token")
        if not isinstance(raw_id_token, str) or not raw_id_token:
            raise TokenMissingError(
                "No id_token was returned. Maybe not requesting the right scopes?"
            )

        return await self.verify_id_token(raw_id_token)

    async def verify_id_token(self, raw_id_token: str) -> Claims:
        """Verify signature, issuer, audience and expiry of an ID token.

        Raises:
            VerificationError: Any check failed
        """
        claims_options = {
            "iss": {"essential": True, "value": self._metadata["issuer"]},
            "aud": {"essential": True, "value": self._config.client_id},
            "exp": {"essential": True},
        }

        payload = await self._decode(raw_id_token, claims_options)
        try:
            payload.validate(leeway=CLOCK_SKEW)
        except JoseError as e:
            logger.warning(f"ID token rejected: {e}")
            raise VerificationError(f"ID token failed verification: {e}") from e

        logger.debug(f"ID token verified for subject: {payload.get('sub')}")
        return as_claims(payload)

    async def _decode(self, raw_id_token: str, claims_options: dict[str, Any]):
        jwks, fresh = await self._get_jwks()
        try:
            return self._jwt.decode(
                raw_id_token,
                key=JsonWebKey.import_key_set(jwks),
                claims_options=claims_options,
            )
        except (JoseError, ValueError) as e:
            if fresh:
                raise VerificationError(f"ID token signature invalid: {e}") from e
            # Unknown key ID or bad signature may mean the provider rotated keys
            logger.info("ID token did not verify against cached JWKS, refreshing")

        jwks, _ = await self._get_jwks(force_refresh=True)
        try:
            return self._jwt.decode(
                raw_id_token,
                key=JsonWebKey.import_key_set(jwks),
                claims_options=claims_options,
            )
        except (JoseError, ValueError) as e:
            raise VerificationError(f"ID token signature invalid: {e}") from e

    async def _get_jwks(self, force_refresh: bool = False) -> tuple[dict[str, Any], bool]:
        """Fetch JWKS (JSON Web Key Set) from provider.

        Args:
            force_refresh: Force refresh even if cached

        Returns:
            JWKS dictionary and whether it was fetched by this call

        Raises:
            VerificationError: JWKS endpoint unavailable
        """
        async with self._jwks_lock:
            now = time.time()

            if (
                not force_refresh
                and self._jwks
                and (now - self._jwks_cache_time) < self.jwks_cache_ttl
            ):
                return self._jwks, False

            jwks_uri = self._metadata["jwks_uri"]
            try:
                response = await self._http.get(jwks_uri)
                response.raise_for_status()
                jwks = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise VerificationError(f"failed to fetch signing keys: {e}") from e

            self._jwks = jwks
            self._jwks_cache_time = now
            logger.info(f"Refreshed JWKS from {jwks_uri}")
            return jwks, True

    async def aclose(self) -> None:
        await self._http.aclose()


def _check_metadata(config: ProviderConfig, metadata: Any) -> None:
    if not isinstance(metadata, dict):
        raise DiscoveryError("provider metadata is not a JSON object")

    issuer = metadata.get("issuer")
    if not isinstance(issuer, str) or issuer.rstrip("/") != config.issuer.rstrip("/"):
        raise DiscoveryError(
            f"issuer did not match the issuer returned by provider, "
            f"expected {config.issuer!r} got {issuer!r}"
        )

    missing = [
        name
        for name in _REQUIRED_METADATA
        if not isinstance(metadata.get(name), str) or not metadata[name]
    ]
    if missing:
        raise DiscoveryError(f"provider metadata is missing {', '.join(missing)}")
