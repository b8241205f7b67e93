"""Interactive browser login.

Runs the authorization code flow against the login server:

1. Bind a loopback listener on an OS-assigned port.
2. Fetch the authorization URL from the server and point its
   ``redirect_uri`` at the listener, with a fresh ``state`` nonce.
3. Open the URL in the user's browser.
4. Wait for the provider to redirect back, check the nonce, and relay the
   code to the server's login endpoint.

Exactly one callback is acted on per session. A state mismatch aborts the
session without contacting the server.
"""

import asyncio
import contextlib
import secrets
import socket
import webbrowser
from dataclasses import dataclass, field
from typing import Callable, Iterator
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from loguru import logger

from oauth_login.cli.client import ClientAuth, ServerClient
from oauth_login.errors import (
    CSRFMismatchError,
    ExchangeError,
    LoginTimeoutError,
    OAuthLoginError,
    ServerRequestError,
)

CALLBACK_SUFFIX = "/cb"
DEFAULT_TIMEOUT = 300.0

# Seconds the callback listener gets to stop once the session is over
SHUTDOWN_GRACE = 5.0

LOOPBACK_HOST = "127.0.0.1"

BrowserOpener = Callable[[str], bool]


def new_state_nonce() -> str:
    """32 random bytes, base64url-encoded without padding."""
    return secrets.token_urlsafe(32)


def callback_path(mount_path: str) -> str:
    """Callback route for a mount, e.g. /auth/oauth -> /auth/oauth/cb."""
    return "/" + mount_path.strip("/") + CALLBACK_SUFFIX


def with_redirect(auth_url: str, redirect_url: str, state: str) -> str:
    """Set ``redirect_uri`` and ``state`` on an authorization URL.

    Existing values of either parameter are replaced, everything else is
    kept in order.
    """
    parts = urlsplit(auth_url)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in ("redirect_uri", "state")
    ]
    query.append(("redirect_uri", redirect_url))
    query.append(("state", state))
    return urlunsplit(parts._replace(query=urlencode(query)))


@dataclass
class LoginSession:
    """State of one interactive login."""

    state_nonce: str
    callback_path: str
    redirect_url: str = ""
    claimed: bool = False
    result: asyncio.Future = field(default_factory=lambda: asyncio.get_running_loop().create_future())

    def settle(self, value: ClientAuth | None = None, error: BaseException | None = None) -> None:
        if self.result.done():
            return
        if error is not None:
            self.result.set_exception(error)
        else:
            self.result.set_result(value)


class _CallbackServer(uvicorn.Server):
    """uvicorn server that leaves the process signal handlers alone.

    The login command owns Ctrl-C; the listener is stopped explicitly.
    """

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class LoginFlow:
    """One interactive login against the server.

    Args:
        client: Client for the server mount
        role: Role to log in with
        mount_path: Mount point of the OAuth endpoints; determines the
            callback path so differently mounted providers never collide
        opener: Opens a URL in the browser, returning False on failure
        timeout: Absolute deadline in seconds from the start of ``run``
        on_auth_url: Called with the final authorization URL before the
            browser is opened, so it can be shown for manual copying
    """

    def __init__(
        self,
        client: ServerClient,
        role: str = "default",
        mount_path: str = "/auth/oauth",
        opener: BrowserOpener = webbrowser.open,
        timeout: float = DEFAULT_TIMEOUT,
        on_auth_url: Callable[[str], None] | None = None,
    ):
        self.client = client
        self.role = role
        self.mount_path = mount_path
        self.opener = opener
        self.timeout = timeout
        self.on_auth_url = on_auth_url
        self.session: LoginSession | None = None

    async def run(self) -> ClientAuth:
        """Run the flow to completion.

        Returns:
            Credential issued by the server

        Raises:
            LoginTimeoutError: No callback before the deadline
            CSRFMismatchError: Callback state did not match the session nonce
            OAuthLoginError: Server or provider rejected the login
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout

        session = LoginSession(
            state_nonce=new_state_nonce(),
            callback_path=callback_path(self.mount_path),
        )
        self.session = session

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server: _CallbackServer | None = None
        serve_task: asyncio.Task | None = None
        try:
            sock.bind((LOOPBACK_HOST, 0))
            sock.listen()
            port = sock.getsockname()[1]
            session.redirect_url = f"http://{LOOPBACK_HOST}:{port}{session.callback_path}"
            logger.debug(f"Listening for the login callback on port {port}")

            async with asyncio.timeout_at(deadline):
                auth_url = with_redirect(
                    await self.client.auth_request_url(),
                    session.redirect_url,
                    session.state_nonce,
                )

                server = _CallbackServer(
                    uvicorn.Config(
                        self._callback_app(session),
                        log_config=None,
                        log_level="warning",
                        access_log=False,
                        lifespan="off",
                        timeout_graceful_shutdown=int(SHUTDOWN_GRACE),
                    )
                )
                serve_task = asyncio.create_task(server.serve(sockets=[sock]))

                if self.on_auth_url is not None:
                    self.on_auth_url(auth_url)
                await self._open_browser(auth_url)

                return await asyncio.shield(session.result)
        except LoginTimeoutError:
            raise
        except TimeoutError as e:
            raise LoginTimeoutError(
                f"no login callback received within {int(self.timeout)} seconds"
            ) from e
        finally:
            await self._shutdown(server, serve_task)
            sock.close()

    async def _open_browser(self, url: str) -> None:
        try:
            opened = await asyncio.to_thread(self.opener, url)
        except Exception as e:
            logger.warning(f"Could not launch a browser: {e}")
            opened = False
        if not opened:
            logger.warning("Open the authorization URL in a browser to continue")

    async def _shutdown(self, server: _CallbackServer | None, serve_task: asyncio.Task | None) -> None:
        if server is None or serve_task is None:
            return
        server.should_exit = True
        try:
            await asyncio.wait_for(serve_task, timeout=SHUTDOWN_GRACE)
        except TimeoutError:
            logger.warning("Callback listener did not stop in time and was cancelled")

    def _callback_app(self, session: LoginSession) -> FastAPI:
        app = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)

        async def callback(request: Request) -> Response:
            if session.claimed:
                return PlainTextResponse("login already handled", status_code=409)

            params = request.query_params
            state = params.get("state", "")
            if not secrets.compare_digest(state.encode(), session.state_nonce.encode()):
                session.claimed = True
                logger.error("Callback state does not match this login session")
                session.settle(error=CSRFMismatchError("callback state does not match"))
                return Response(status_code=400)

            session.claimed = True

            if "error" in params:
                error = ExchangeError(f"provider returned {params['error']}")
                session.settle(error=error)
                return PlainTextResponse(f"authentication error: {error.message}", status_code=500)

            try:
                auth = await self.client.login(
                    params.get("code", ""), session.redirect_url, self.role
                )
            except OAuthLoginError as e:
                session.settle(error=e)
                return PlainTextResponse(f"authentication error: {e.message}", status_code=500)
            except Exception as e:
                logger.exception("Login request failed unexpectedly")
                error = ServerRequestError(f"login request failed: {e}")
                error.__cause__ = e
                session.settle(error=error)
                return PlainTextResponse(f"authentication error: {error.message}", status_code=500)

            session.settle(auth)
            return PlainTextResponse("authentication successful")

        app.add_api_route(session.callback_path, callback, methods=["GET"])
        return app
