"""FastAPI dependencies for the OAuth routes.

The backend and token issuer are created once per application and kept on
``app.state``; routes receive them through these dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request

from oauth_login.auth.backend import OAuthBackend
from oauth_login.auth.token import TokenIssuer


def get_backend(request: Request) -> OAuthBackend:
    return request.app.state.backend


def get_issuer(request: Request) -> TokenIssuer:
    return request.app.state.issuer


# Type aliases for convenience
Backend = Annotated[OAuthBackend, Depends(get_backend)]
Issuer = Annotated[TokenIssuer, Depends(get_issuer)]
