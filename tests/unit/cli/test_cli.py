"""Tests for the oauth-login command line."""

import os
import stat
import sys
from unittest.mock import AsyncMock, patch

import pytest
from loguru import logger
from typer.testing import CliRunner

from oauth_login.cli import main as cli_main
from oauth_login.cli.client import ClientAuth
from oauth_login.errors import CSRFMismatchError, LoginTimeoutError, ServerRequestError

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def token_path(tmp_path, monkeypatch):
    path = tmp_path / "token"
    monkeypatch.setattr(cli_main.settings.login, "token_path", str(path))
    return path


def patch_login(**kwargs):
    return patch("oauth_login.cli.main._login", new=AsyncMock(**kwargs))


class TestLoginCommand:
    """Tests for the login command."""

    def test_success_stores_token(self, token_path):
        """Test a successful login stores a private token file."""
        auth = ClientAuth(client_token="token-123", display_name="u1", policies=["admin"], lease_duration=300)

        with patch_login(return_value=auth) as login:
            result = runner.invoke(cli_main.app, ["login", "--role", "dev", "--path", "/auth/google"])

        assert result.exit_code == 0
        assert "Success" in result.output
        assert token_path.read_text() == "token-123"
        assert stat.S_IMODE(os.stat(token_path).st_mode) == 0o600
        assert login.await_args.args[:2] == ("dev", "/auth/google")

    def test_defaults(self, token_path):
        """Test role and mount defaults."""
        auth = ClientAuth(client_token="token-123")

        with patch_login(return_value=auth) as login:
            runner.invoke(cli_main.app, ["login"])

        assert login.await_args.args[:2] == ("default", "/auth/oauth")

    def test_csrf_mismatch(self, token_path):
        """Test a state mismatch prints the warning and exits 2."""
        with patch_login(side_effect=CSRFMismatchError("callback state does not match")):
            result = runner.invoke(cli_main.app, ["login"])

        assert result.exit_code == 2
        assert "DANGER: POSSIBLE CSRF ATTACK DETECTED." in result.output
        assert not token_path.exists()

    @pytest.mark.parametrize(
        "error",
        [
            LoginTimeoutError("no login callback received within 300 seconds"),
            ServerRequestError("claims do not match bound_claims of role"),
            ServerRequestError("server response did not include a token"),
        ],
        ids=["timeout", "login-error", "missing-token"],
    )
    def test_failures_exit_one(self, token_path, error):
        """Test login failures exit 1 without storing a token."""
        with patch_login(side_effect=error):
            result = runner.invoke(cli_main.app, ["login"])

        assert result.exit_code == 1
        assert error.message in result.output
        assert not token_path.exists()


def test_version():
    """Test version command output."""
    result = runner.invoke(cli_main.app, ["version"])

    assert result.exit_code == 0
    assert "oauth-login v0.1.0" in result.output


def test_serve_uses_settings():
    """Test serve starts uvicorn with settings and overrides."""
    with patch("uvicorn.run") as run:
        result = runner.invoke(cli_main.app, ["serve", "--port", "9999"])

    assert result.exit_code == 0
    assert run.call_args.args == ("oauth_login.api.main:app",)
    assert run.call_args.kwargs["port"] == 9999
    assert run.call_args.kwargs["host"] == cli_main.settings.server.host
