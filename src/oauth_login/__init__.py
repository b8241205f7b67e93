"""OAuth/OIDC login: server-side claim authorization and interactive CLI login."""

from oauth_login.version import __version__

__all__ = ["__version__"]
