"""Error taxonomy for OAuth login.

Every failure surfaced to a caller is an ``OAuthLoginError`` carrying a
human-readable message and a short machine code. Server routes translate
them to HTTP responses in ``oauth_login.api.errors``; the CLI prints the
message and exits non-zero.
"""


class OAuthLoginError(Exception):
    """Base class for all typed login failures."""

    code: str = "oauth_login_error"
    status_code: int = 500

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


# Server configuration


class NotConfiguredError(OAuthLoginError):
    """No provider configuration has been saved yet."""

    code = "not_configured"
    status_code = 500


class ConfigNotFoundError(NotConfiguredError):
    """Configuration was requested but none has been saved."""

    code = "config_not_found"
    status_code = 404


class DiscoveryError(OAuthLoginError):
    """Issuer metadata is unreachable or invalid."""

    code = "discovery_failed"
    status_code = 502


class StorageError(OAuthLoginError):
    """The storage collaborator failed."""

    code = "storage_error"
    status_code = 500


# Identity provider exchange


class ExchangeError(OAuthLoginError):
    """The provider rejected the authorization code exchange."""

    code = "exchange_failed"
    status_code = 502


class TokenMissingError(OAuthLoginError):
    """The token response carried no ID token."""

    code = "id_token_missing"
    status_code = 502


class VerificationError(OAuthLoginError):
    """ID token signature, issuer, audience or expiry check failed."""

    code = "id_token_invalid"
    status_code = 502


# Request and role authorization


class InvalidRequestError(OAuthLoginError):
    """A required field is missing or malformed."""

    code = "invalid_request"
    status_code = 400


class RoleNotFoundError(OAuthLoginError):
    """The named role does not exist."""

    code = "role_not_found"
    status_code = 404


class MissingUserClaimError(OAuthLoginError):
    """The role's user claim is absent or not a string."""

    code = "missing_user_claim"
    status_code = 400


class BoundClaimMismatchError(OAuthLoginError):
    """A bound claim was absent or had a different value."""

    code = "bound_claim_mismatch"
    status_code = 400


# Interactive client


class LoginTimeoutError(OAuthLoginError, TimeoutError):
    """No callback arrived before the login deadline."""

    code = "timeout"
    status_code = 408


class CSRFMismatchError(OAuthLoginError):
    """The callback state did not match the session nonce."""

    code = "csrf_mismatch"
    status_code = 400


class ServerRequestError(OAuthLoginError):
    """The login server returned an error or could not be reached."""

    code = "server_error"
    status_code = 502


__all__ = [
    "OAuthLoginError",
    "NotConfiguredError",
    "ConfigNotFoundError",
    "DiscoveryError",
    "StorageError",
    "ExchangeError",
    "TokenMissingError",
    "VerificationError",
    "InvalidRequestError",
    "RoleNotFoundError",
    "MissingUserClaimError",
    "BoundClaimMismatchError",
    "LoginTimeoutError",
    "CSRFMismatchError",
    "ServerRequestError",
]
