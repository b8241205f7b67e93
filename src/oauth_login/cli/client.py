"""HTTP client for the login server's OAuth endpoints."""

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from oauth_login.errors import ServerRequestError
from oauth_login.settings import settings


class AliasInfo(BaseModel):
    name: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)


class ClientAuth(BaseModel):
    """Credential returned by a successful login."""

    client_token: str = Field(min_length=1)
    policies: list[str] = Field(default_factory=list)
    num_uses: int = 0
    lease_duration: int = 0
    renewable: bool = False
    display_name: str = ""
    metadata: dict[str, str] = Field(default_factory=dict)
    alias: AliasInfo = Field(default_factory=AliasInfo)


class ServerClient:
    """Async client for one mount of the login server.

    Args:
        server_url: Server base URL including the API prefix
            (e.g. http://127.0.0.1:8200/v1)
        mount_path: Mount point of the OAuth endpoints (e.g. /auth/oauth)
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests)

    Example:
        >>> async with ServerClient("http://127.0.0.1:8200/v1", "/auth/oauth") as client:
        ...     url = await client.auth_request_url()
    """

    def __init__(
        self,
        server_url: str | None = None,
        mount_path: str = "/auth/oauth",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        base = (server_url or settings.login.server_url).rstrip("/")
        self.base_url = f"{base}/{mount_path.strip('/')}"
        self._http = httpx.AsyncClient(
            timeout=timeout or settings.login.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ServerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def auth_request_url(self) -> str:
        """Fetch the provider authorization URL.

        Raises:
            ServerRequestError: Server unreachable, returned an error or no URL
        """
        body = await self._request("GET", "auth-request")
        url = (body.get("data") or {}).get("url")
        if not isinstance(url, str) or not url:
            raise ServerRequestError("server did not return an authorization URL")
        return url

    async def login(self, code: str, redirect_uri: str, role: str) -> ClientAuth:
        """Submit an authorization code for the given role.

        Raises:
            ServerRequestError: Server unreachable, rejected the login, or
                answered without a client token
        """
        body = await self._request(
            "POST",
            "login",
            json={"code": code, "redirect_uri": redirect_uri, "role": role},
        )
        auth = body.get("auth")
        if not isinstance(auth, dict):
            raise ServerRequestError("server response did not include a token")

        try:
            return ClientAuth.model_validate(auth)
        except ValidationError as e:
            raise ServerRequestError(f"server response did not include a token: {e}") from e

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}/{path}"
        logger.debug(f"{method} {url}")

        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ServerRequestError(f"could not reach login server at {url}: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            raise _error_from_response(response, body)
        if not isinstance(body, dict):
            raise ServerRequestError(f"unexpected response from {url}")
        return body


def _error_from_response(response: httpx.Response, body: Any) -> ServerRequestError:
    if isinstance(body, dict) and body.get("errors"):
        message = "; ".join(str(e) for e in body["errors"])
        return ServerRequestError(message, code=body.get("code") or None)
    return ServerRequestError(f"server returned HTTP {response.status_code}")
