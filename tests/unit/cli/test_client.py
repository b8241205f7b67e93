"""Unit tests for the login server client."""

import json

import httpx
import pytest
import respx

from oauth_login.cli.client import ServerClient
from oauth_login.errors import ServerRequestError

SERVER = "http://login.test/v1"
MOUNT = f"{SERVER}/auth/oauth"

AUTH = {
    "client_token": "token-123",
    "policies": ["admin"],
    "num_uses": 42,
    "lease_duration": 300,
    "renewable": False,
    "display_name": "u1",
    "metadata": {"email": "u1@example.com"},
    "alias": {"name": "u1", "metadata": {"email": "u1@example.com"}},
}


@pytest.fixture
def server():
    with respx.mock(base_url=MOUNT, assert_all_called=False) as router:
        yield router


class TestServerClient:
    """Tests for the login server HTTP client."""

    @pytest.mark.asyncio
    async def test_auth_request_url(self, server):
        """Test the authorization URL is read from the server."""
        server.get("/auth-request").mock(
            return_value=httpx.Response(200, json={"data": {"url": "https://idp.example/authorize?x=1"}})
        )

        async with ServerClient(SERVER, "/auth/oauth") as client:
            assert await client.auth_request_url() == "https://idp.example/authorize?x=1"

    @pytest.mark.asyncio
    async def test_mount_path_slashes_normalized(self, server):
        """Test mount path slashes are normalized."""
        route = server.get("/auth-request").mock(
            return_value=httpx.Response(200, json={"data": {"url": "https://idp.example/a"}})
        )

        async with ServerClient(SERVER + "/", "auth/oauth/") as client:
            await client.auth_request_url()

        assert route.called

    @pytest.mark.asyncio
    async def test_login(self, server):
        """Test login posts the code and parses the credential."""
        route = server.post("/login").mock(return_value=httpx.Response(200, json={"auth": AUTH}))

        async with ServerClient(SERVER, "/auth/oauth") as client:
            auth = await client.login("code-1", "http://127.0.0.1:5000/auth/oauth/cb", "default")

        assert auth.client_token == "token-123"
        assert auth.policies == ["admin"]
        assert auth.alias.name == "u1"
        assert json.loads(route.calls.last.request.content) == {
            "code": "code-1",
            "redirect_uri": "http://127.0.0.1:5000/auth/oauth/cb",
            "role": "default",
        }

    @pytest.mark.asyncio
    async def test_server_error_message(self, server):
        """Test server error messages are surfaced."""
        server.post("/login").mock(
            return_value=httpx.Response(
                400,
                json={"errors": ["claims do not match bound_claims of role"], "code": "bound_claim_mismatch"},
            )
        )

        async with ServerClient(SERVER, "/auth/oauth") as client:
            with pytest.raises(ServerRequestError, match="claims do not match") as exc_info:
                await client.login("code-1", "", "default")

        assert exc_info.value.code == "bound_claim_mismatch"

    @pytest.mark.asyncio
    async def test_error_without_body(self, server):
        """Test an error without a body reports the status."""
        server.get("/auth-request").mock(return_value=httpx.Response(503, text="down"))

        async with ServerClient(SERVER, "/auth/oauth") as client:
            with pytest.raises(ServerRequestError, match="HTTP 503"):
                await client.auth_request_url()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [{}, {"auth": None}, {"auth": {**AUTH, "client_token": ""}}],
        ids=["no-auth", "null-auth", "empty-token"],
    )
    async def test_missing_token(self, server, body):
        """Test a response without a token is an error."""
        server.post("/login").mock(return_value=httpx.Response(200, json=body))

        async with ServerClient(SERVER, "/auth/oauth") as client:
            with pytest.raises(ServerRequestError, match="did not include a token"):
                await client.login("code-1", "", "default")

    @pytest.mark.asyncio
    async def test_unreachable(self, server):
        """Test an unreachable server raises a request error."""
        server.get("/auth-request").mock(side_effect=httpx.ConnectError("refused"))

        async with ServerClient(SERVER, "/auth/oauth") as client:
            with pytest.raises(ServerRequestError, match="could not reach login server"):
                await client.auth_request_url()
