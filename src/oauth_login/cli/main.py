"""CLI entry point."""

import asyncio
import sys

import typer
from loguru import logger
from rich.console import Console

from oauth_login.cli.client import ClientAuth, ServerClient
from oauth_login.cli.login import LoginFlow
from oauth_login.cli.token_helper import TokenHelper
from oauth_login.errors import CSRFMismatchError, OAuthLoginError
from oauth_login.settings import settings

app = typer.Typer(name="oauth-login", help="OIDC login server and client")
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging for every command."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else settings.log_level.upper())


@app.command()
def serve(
    host: str = typer.Option(None, help="API server host (default from settings)"),
    port: int = typer.Option(None, help="API server port (default from settings)"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
) -> None:
    """Start the OAuth login API server.

    Examples:
        oauth-login serve
        oauth-login serve --reload
        oauth-login serve --host 0.0.0.0 --port 8200
    """
    import uvicorn

    host = host or settings.server.host
    port = port or settings.server.port
    mount = settings.server.api_prefix + settings.server.mount_path

    console.print(f"[green]Starting OAuth login API server on {host}:{port}[/green]")
    console.print(f"[dim]OAuth endpoints:[/dim] http://{host}:{port}{mount}")
    console.print(f"[dim]Docs:[/dim] http://{host}:{port}/docs")

    uvicorn.run(
        "oauth_login.api.main:app",
        host=host,
        port=port,
        reload=reload or settings.server.reload,
    )


@app.command()
def login(
    role: str = typer.Option("default", help="Role to log in with"),
    path: str = typer.Option("/auth/oauth", help="Mount point of the OAuth endpoints"),
    server: str = typer.Option(None, help="Login server URL including API prefix"),
    timeout: float = typer.Option(None, help="Seconds to wait for the browser login"),
) -> None:
    """Log in through the browser and store the issued token.

    Examples:
        oauth-login login
        oauth-login login --role admin --path /auth/google
    """
    try:
        auth = asyncio.run(_login(role, path, server, timeout))
    except CSRFMismatchError:
        err_console.print("[bold red]DANGER: POSSIBLE CSRF ATTACK DETECTED.[/bold red]")
        raise typer.Exit(code=2)
    except OAuthLoginError as e:
        err_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=1)

    helper = TokenHelper()
    try:
        helper.store(auth.client_token)
    except OSError as e:
        err_console.print(f"[red]Error:[/red] could not store token at {helper.path}: {e}")
        raise typer.Exit(code=1)

    console.print("[green]✓[/green] Success! You are now authenticated.")
    console.print(f"[dim]Token stored at:[/dim] {helper.path}")
    console.print(f"[blue]Display name:[/blue] {auth.display_name}")
    console.print(f"[blue]Policies:[/blue] {', '.join(auth.policies) or '-'}")
    console.print(f"[blue]Lease:[/blue] {auth.lease_duration}s")


async def _login(role: str, path: str, server: str | None, timeout: float | None) -> ClientAuth:
    async with ServerClient(server, mount_path=path) as client:
        flow = LoginFlow(
            client,
            role=role,
            mount_path=path,
            timeout=timeout or settings.login.timeout_seconds,
            on_auth_url=_show_auth_url,
        )
        return await flow.run()


def _show_auth_url(url: str) -> None:
    err_console.print("Complete the login via your OIDC provider. Launching browser to:")
    err_console.print(f"\n    {url}\n", soft_wrap=True, highlight=False)


@app.command()
def version() -> None:
    """Show version information."""
    from oauth_login import __version__

    typer.echo(f"oauth-login v{__version__}")


if __name__ == "__main__":
    app()
