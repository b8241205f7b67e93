"""Identity provider interface.

The server talks to exactly one upstream identity provider at a time. The
provider turns an authorization code into a verified claim set; everything
after that (roles, tokens) is provider-independent.
"""

from abc import ABC, abstractmethod

from oauth_login.auth.claims import Claims

# Redirect target that makes the provider display the code for manual copying.
OOB_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"


class IdentityProvider(ABC):
    """Abstract identity provider.

    Implementations own whatever network resources discovery created and
    must release them in ``aclose``.
    """

    @property
    @abstractmethod
    def issuer(self) -> str:
        pass

    @property
    @abstractmethod
    def client_id(self) -> str:
        pass

    @property
    @abstractmethod
    def client_secret(self) -> str:
        pass

    @abstractmethod
    def auth_url(self, state: str | None = None) -> str:
        """Build the authorization request URL.

        Args:
            state: Optional state value to embed. When omitted the URL
                carries no state and redirects out-of-band.

        Returns:
            Authorization endpoint URL with client_id, scope, response_type
            and redirect_uri set
        """
        pass

    @abstractmethod
    async def validate_code(self, code: str, redirect_url: str = "") -> Claims:
        """Exchange an authorization code and return the verified ID token claims.

        Args:
            code: Authorization code from the provider redirect
            redirect_url: Redirect URI used in the authorization request;
                empty means the out-of-band default

        Returns:
            Claims from the verified ID token

        Raises:
            ExchangeError: Code rejected or exchange failed
            TokenMissingError: No ID token in the response
            VerificationError: ID token failed verification
        """
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None
