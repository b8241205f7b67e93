"""Local token persistence for the CLI."""

import os
from pathlib import Path

from loguru import logger

from oauth_login.settings import settings


class TokenHelper:
    """Stores the client token in a file readable only by the current user.

    Args:
        path: Token file (defaults to LOGIN__TOKEN_PATH)
    """

    def __init__(self, path: str | None = None):
        self.path = Path(os.path.expanduser(path or settings.login.token_path))

    def store(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(token)
        # O_CREAT mode does not apply to an existing file
        os.chmod(self.path, 0o600)
        logger.debug(f"Token stored at {self.path}")

