"""Identity provider configuration persisted by the server."""

from pydantic import BaseModel, Field, ValidationError

from oauth_login.auth.storage import Storage
from oauth_login.errors import InvalidRequestError, StorageError

CONFIG_KEY = "config"

# Always requested; "openid" is what makes the provider return an ID token.
DEFAULT_SCOPES = ("openid", "email")


class ProviderConfig(BaseModel):
    """OIDC client registration for the configured identity provider."""

    issuer: str = Field(default="", description="OIDC issuer identifier")
    client_id: str = Field(default="", description="OAuth client identifier")
    client_secret: str = Field(
        default="", repr=False, description="OAuth client secret"
    )

    def validate_required(self) -> None:
        """Raise InvalidRequestError unless every field is set."""
        if not self.client_id or not self.client_secret or not self.issuer:
            raise InvalidRequestError("issuer, client_secret, and client_id are required")

    def save(self, storage: Storage) -> None:
        storage.put(CONFIG_KEY, self.model_dump_json().encode("utf-8"))


def load_config(storage: Storage) -> ProviderConfig | None:
    """Load the saved provider configuration, or None if never written."""
    raw = storage.get(CONFIG_KEY)
    if raw is None:
        return None

    try:
        return ProviderConfig.model_validate_json(raw)
    except ValidationError as e:
        raise StorageError(f"stored provider configuration is corrupt: {e}") from e
