"""OAuth login API server - FastAPI application.

Running the Server
------------------

Development (with auto-reload):
    uv run oauth-login serve --reload

Production:
    uv run oauth-login serve --host 0.0.0.0 --port 8200

Setting Up a Provider
---------------------

Configure the identity provider (runs OIDC discovery):
    curl -X POST http://localhost:8200/v1/auth/oauth/config \
      -H "Content-Type: application/json" \
      -d '{"issuer": "https://accounts.google.com", "client_id": "...", "client_secret": "..."}'

Create a role:
    curl -X POST http://localhost:8200/v1/auth/oauth/role/default \
      -H "Content-Type: application/json" \
      -d '{"policies": "admin", "num_uses": 42, "ttl": 300, "max_ttl": 3600}'

Log in interactively:
    uv run oauth-login login --role default

Endpoints
---------
- /                               : API information
- /health                         : Health check with version
- /status                         : Mount status
- /v1/auth/oauth/auth-request     : Authorization URL
- /v1/auth/oauth/config           : Provider configuration
- /v1/auth/oauth/login            : Code exchange and token issuance
- /v1/auth/oauth/role/{name}      : Role management
- /docs                           : OpenAPI documentation
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from oauth_login.api.errors import register_error_handlers
from oauth_login.api.routers.health import router as health_router
from oauth_login.api.routers.oauth import router as oauth_router
from oauth_login.auth.backend import OAuthBackend
from oauth_login.auth.storage_factory import get_storage
from oauth_login.auth.token import TokenIssuer
from oauth_login.settings import settings
from oauth_login.version import __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(f"Starting OAuth login API at {settings.server.api_prefix}{settings.server.mount_path}")
    yield
    logger.info("Shutting down OAuth login API")
    await app.state.backend.close()


def create_app(
    backend: OAuthBackend | None = None,
    issuer: TokenIssuer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        backend: Authentication backend (defaults to one over configured storage)
        issuer: Client token issuer (defaults to settings' signing key)
    """
    app = FastAPI(
        title="OAuth Login API",
        description="OIDC login with role-based claim authorization",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.backend = backend or OAuthBackend(get_storage())
    app.state.issuer = issuer or TokenIssuer(
        private_key=settings.server.token_signing_key,
        algorithm=settings.server.token_algorithm,
    )

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "OAuth Login API",
            "version": __version__,
            "mount_path": settings.server.api_prefix + settings.server.mount_path,
            "docs": "/docs",
        }

    register_error_handlers(app)

    app.include_router(health_router)  # /health, /status
    app.include_router(
        oauth_router,
        prefix=settings.server.api_prefix + settings.server.mount_path,
    )

    return app


# Create application instance
app = create_app()


# Main entry point for uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "oauth_login.api.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload,
    )
