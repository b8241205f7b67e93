"""OAuth authentication endpoints.

Mounted below ``<api_prefix><mount_path>`` (default ``/v1/auth/oauth``):

- GET    auth-request  : authorization URL for the configured provider
- GET    config        : read provider configuration
- POST   config        : write provider configuration (runs discovery)
- POST   login         : exchange an authorization code for a client token
- GET    role/         : list role names
- GET    role/{name}   : read a role
- POST   role/{name}   : create a role (updates if it exists)
- PUT    role/{name}   : update an existing role
- DELETE role/{name}   : delete a role

Failures are raised as OAuthLoginError and rendered by
``oauth_login.api.errors``.
"""

from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from oauth_login.api.dependencies import Backend, Issuer
from oauth_login.auth.claims import ClaimValue
from oauth_login.auth.config import ProviderConfig
from oauth_login.auth.role import Role
from oauth_login.errors import ConfigNotFoundError, RoleNotFoundError

router = APIRouter(tags=["OAuth"])


class ConfigRequest(BaseModel):
    """Provider configuration write."""

    issuer: str = Field(default="", description="OIDC issuer, e.g. https://accounts.google.com")
    client_id: str = Field(default="", description="OAuth client identifier")
    client_secret: str = Field(default="", description="OAuth client secret")


class LoginRequest(BaseModel):
    """Login with an authorization code.

    ``redirect_uri`` must be the redirect URI of the authorization request
    that produced the code. Leave it empty when the code was obtained
    through the out-of-band flow (the URL from ``auth-request`` opened
    as-is); the provider's default redirect is used then.
    """

    code: str = Field(default="", description="Authorization code from the provider")
    redirect_uri: str = Field(default="", description="Redirect URI used for the code")
    role: str = Field(default="", description="Role to log in with")


class RoleFields(BaseModel):
    """Role write. Omitted fields keep their current (or default) value."""

    policies: str | list[str] | None = Field(
        default=None, description="Comma-separated string or list of policies"
    )
    num_uses: int | None = Field(default=None, description="Token use limit, 0 for unlimited")
    ttl: int | str | None = Field(default=None, description="Token TTL (seconds or '5m')")
    max_ttl: int | str | None = Field(default=None, description="Token max TTL")
    user_claim: str | None = Field(default=None, description="Claim used as the user name")
    email_claim: str | None = Field(default=None, description="Claim copied as email")
    given_name_claim: str | None = Field(default=None, description="Claim copied as given_name")
    bound_claims: dict[str, ClaimValue] | str | None = Field(
        default=None, description="Claims that must match exactly (object or JSON string)"
    )

    def provided(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


def _role_data(role: Role) -> dict[str, Any]:
    return role.model_dump(mode="json")


def _write_response(role: Role, warnings: list[str]) -> dict[str, Any]:
    body: dict[str, Any] = {"data": _role_data(role)}
    if warnings:
        body["warnings"] = warnings
    return body


@router.get("/auth-request")
async def auth_request(backend: Backend) -> dict[str, Any]:
    """Authorization URL to open in a browser.

    The URL redirects out-of-band. Interactive clients replace
    ``redirect_uri`` and add their own ``state``.
    """
    url = await backend.auth_request_url()
    return {"data": {"url": url}}


@router.get("/config")
async def read_config(backend: Backend) -> dict[str, Any]:
    config = await backend.read_config()
    if config is None:
        raise ConfigNotFoundError("plugin not configured")
    return {"data": config.model_dump()}


@router.post("/config", status_code=status.HTTP_204_NO_CONTENT)
async def write_config(body: ConfigRequest, backend: Backend) -> Response:
    """Save provider configuration.

    Discovery runs before anything is persisted; an unreachable or
    mismatching issuer fails the write.
    """
    await backend.write_config(ProviderConfig(**body.model_dump()))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/login")
async def login(body: LoginRequest, backend: Backend, issuer: Issuer) -> dict[str, Any]:
    """Exchange an authorization code and issue a client token."""
    outcome = await backend.login(body.code, body.redirect_uri, body.role)
    credential = issuer.issue(outcome)
    return {"auth": credential.to_response()}


@router.get("/role/")
async def list_roles(backend: Backend) -> dict[str, Any]:
    return {"data": {"keys": await backend.list_roles()}}


@router.get("/role/{name}")
async def read_role(name: str, backend: Backend) -> dict[str, Any]:
    role = await backend.read_role(name)
    if role is None:
        raise RoleNotFoundError(f"role {name} does not exist")
    return {"data": _role_data(role)}


@router.post("/role/{name}")
async def create_role(name: str, body: RoleFields, backend: Backend) -> dict[str, Any]:
    role, warnings = await backend.create_role(name, body.provided())
    return _write_response(role, warnings)


@router.put("/role/{name}")
async def update_role(name: str, body: RoleFields, backend: Backend) -> dict[str, Any]:
    role, warnings = await backend.update_role(name, body.provided())
    return _write_response(role, warnings)


@router.delete("/role/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(name: str, backend: Backend) -> Response:
    await backend.delete_role(name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
