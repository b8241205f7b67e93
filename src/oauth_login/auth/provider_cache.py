"""Cached identity provider.

Building a provider involves network discovery, so the server keeps one
instance and shares it between concurrent logins. The instance lives in a
``ProviderCell`` guarded by a reader/writer lock: logins and configuration
reads hold the shared side for as long as they use the provider, and
configuration writes hold the exclusive side while they swap it.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from loguru import logger

from oauth_login.auth.providers import IdentityProvider

ProviderLoader = Callable[[], Awaitable[IdentityProvider | None]]


class ReadWriteLock:
    """Asyncio reader/writer lock.

    Any number of readers, or one writer. Waiting writers block new
    readers so a configuration write cannot starve behind a stream of logins.
    """

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and not self._writers_waiting)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and not self._readers)
            finally:
                self._writers_waiting -= 1
                self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


class ProviderCell:
    """Single shared provider, rebuilt atomically when configuration changes.

    Args:
        loader: Builds a provider from persisted configuration, returning
            None when nothing is configured. Called lazily, e.g. on the
            first login after a restart.
    """

    def __init__(self, loader: ProviderLoader):
        self._loader = loader
        self._lock = ReadWriteLock()
        self._provider: IdentityProvider | None = None

    @asynccontextmanager
    async def current(self) -> AsyncIterator[IdentityProvider | None]:
        """Use the cached provider under the shared lock.

        Yields None when no provider is configured.
        """
        async with self._lock.read():
            if self._provider is not None:
                yield self._provider
                return

        async with self._lock.write():
            if self._provider is None:
                self._provider = await self._loader()
                if self._provider is not None:
                    logger.info(f"Identity provider loaded for issuer {self._provider.issuer}")

        async with self._lock.read():
            yield self._provider

    @asynccontextmanager
    async def shared(self) -> AsyncIterator[None]:
        """Hold the shared lock without touching the provider."""
        async with self._lock.read():
            yield

    async def replace(self, build: Callable[[], Awaitable[IdentityProvider]]) -> IdentityProvider:
        """Swap in a new provider under the exclusive lock.

        The cached provider is dropped and closed before ``build`` runs, so
        if ``build`` fails the cell is left empty and the next use reloads
        from storage rather than serving a stale provider.
        """
        async with self._lock.write():
            previous, self._provider = self._provider, None
            if previous is not None:
                await previous.aclose()
            provider = await build()
            self._provider = provider
            return provider

    async def invalidate(self) -> None:
        """Drop and close the cached provider."""
        async with self._lock.write():
            previous, self._provider = self._provider, None
            if previous is not None:
                await previous.aclose()

    @property
    def cached(self) -> IdentityProvider | None:
        return self._provider

