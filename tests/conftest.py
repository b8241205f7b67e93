"""Shared fixtures: stub identity providers and backends over memory storage."""

import pytest

from oauth_login.auth.backend import OAuthBackend
from oauth_login.auth.claims import Claims
from oauth_login.auth.config import ProviderConfig
from oauth_login.auth.providers import OOB_REDIRECT_URI, IdentityProvider
from oauth_login.auth.storage import InMemoryStorage
from oauth_login.errors import ExchangeError

ISSUER = "https://idp.example"
CLIENT_ID = "cid"
CLIENT_SECRET = "secret"


class StubProvider(IdentityProvider):
    """Provider that maps known codes to fixed claim sets."""

    def __init__(self, config: ProviderConfig, claims_by_code: dict[str, Claims] | None = None):
        self.config = config
        self.claims_by_code = claims_by_code or {}
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    @property
    def issuer(self) -> str:
        return self.config.issuer

    @property
    def client_id(self) -> str:
        return self.config.client_id

    @property
    def client_secret(self) -> str:
        return self.config.client_secret

    def auth_url(self, state=None):
        url = (
            f"{self.config.issuer}/authorize?response_type=code"
            f"&client_id={self.config.client_id}&redirect_uri={OOB_REDIRECT_URI}"
            f"&scope=openid+email"
        )
        return url + (f"&state={state}" if state else "")

    async def validate_code(self, code, redirect_url=""):
        self.calls.append((code, redirect_url))
        if code not in self.claims_by_code:
            raise ExchangeError("authorization code exchange failed: invalid_grant")
        return dict(self.claims_by_code[code])

    async def aclose(self):
        self.closed = True


class ExplodingProvider(StubProvider):
    """Provider that fails the test if a code is ever exchanged."""

    async def validate_code(self, code, redirect_url=""):
        raise AssertionError("identity provider must not be called")


class StubProviderFactory:
    """Records every configuration it builds a provider for."""

    def __init__(self, claims_by_code: dict[str, Claims] | None = None, provider_cls=StubProvider):
        self.claims_by_code = claims_by_code or {}
        self.provider_cls = provider_cls
        self.built: list[StubProvider] = []

    async def __call__(self, config: ProviderConfig) -> StubProvider:
        provider = self.provider_cls(config, self.claims_by_code)
        self.built.append(provider)
        return provider


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(issuer=ISSUER, client_id=CLIENT_ID, client_secret=CLIENT_SECRET)


@pytest.fixture
def make_provider(provider_config):
    """Factory for fresh stub providers."""
    return lambda: StubProvider(provider_config)


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def user_claims() -> Claims:
    return {"sub": "u1", "email": "u1@example.com", "given_name": "U One"}


@pytest.fixture
def provider_factory(user_claims) -> StubProviderFactory:
    return StubProviderFactory({"good-code": user_claims})


@pytest.fixture
def backend(storage, provider_factory) -> OAuthBackend:
    return OAuthBackend(storage, provider_factory=provider_factory, system_max_ttl=24 * 3600)


@pytest.fixture
def exploding_factory() -> StubProviderFactory:
    return StubProviderFactory(provider_cls=ExplodingProvider)
