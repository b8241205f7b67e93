"""Health and status endpoints.

Public endpoints for health checks and mount information.
"""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from oauth_login.api.dependencies import Backend
from oauth_login.settings import settings
from oauth_login.version import __version__

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Health status (ok, degraded, down)")
    version: str = Field(description="Application version")


class StatusResponse(BaseModel):
    """Mount status response."""

    status: str = Field(description="System status")
    version: str = Field(description="Application version")
    mount_path: str = Field(description="Where the OAuth endpoints are mounted")
    configured: bool = Field(description="Whether an identity provider is configured")
    provider_loaded: bool = Field(description="Whether a provider client is cached in memory")
    storage_backend: str = Field(description="Storage backend in use")


@router.get("/health")
async def health() -> HealthResponse:
    """Health check endpoint.

    Returns:
        HealthResponse with status and version
    """
    return HealthResponse(
        status="ok",
        version=__version__,
    )


@router.get("/status")
async def status(backend: Backend) -> StatusResponse:
    """Mount status endpoint.

    Reports whether a provider has been configured without exposing the
    configuration itself.
    """
    config = await backend.read_config()
    return StatusResponse(
        status="ok",
        version=__version__,
        mount_path=settings.server.api_prefix + settings.server.mount_path,
        configured=config is not None,
        provider_loaded=backend.providers.cached is not None,
        storage_backend=settings.server.storage_backend,
    )
