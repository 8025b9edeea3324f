"""
Database connection

One MongoDB client per process, created on first use and reused by every
request after that. Serverless hosts bill and limit concurrent connections,
so the client keeps a pool of a single connection.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from pymongo import AsyncMongoClient

import config
from errors import ConfigurationError

logger = logging.getLogger(__name__)

CLIENT_OPTIONS = {
    "serverSelectionTimeoutMS": 5000,
    "connectTimeoutMS": 10000,
    "socketTimeoutMS": 45000,
    "maxPoolSize": 1,
    "minPoolSize": 0,
    "maxIdleTimeMS": 30000,
    "retryWrites": True,
    "retryReads": True,
}


class ConnectionManager:
    """
    Owns the cached client and the connection attempt in flight.

    Callers that arrive while a connection is being established wait on the
    same attempt, and all of them see the same client or the same error.
    """

    def __init__(
        self,
        uri: Optional[str],
        db_name: Optional[str],
        client_factory: Callable[..., Any] = AsyncMongoClient,
    ):
        self.uri = uri
        self.db_name = db_name
        self._client_factory = client_factory
        self._client = None
        self._pending: Optional[asyncio.Future] = None

    @classmethod
    def from_env(cls) -> "ConnectionManager":
        uri = config.mongodb_uri()
        db_name = config.database_name()
        if not uri:
            logger.warning("MONGODB_URI is not set. Database requests will fail until configured.")
        if not db_name:
            logger.warning("DB_NAME is not set. Database requests will fail until configured.")
        return cls(uri, db_name)

    @property
    def connected(self) -> bool:
        return self._client is not None

    def check_config(self):
        if not self.uri or not self.db_name:
            raise ConfigurationError("MONGODB_URI or DB_NAME is not configured")

    async def _connect(self):
        client = self._client_factory(self.uri, **CLIENT_OPTIONS)
        try:
            await client.admin.command("ping")
        except Exception:
            await client.close()
            raise
        logger.info("[MongoDB] Connected to database: %s", self.db_name)
        return client

    async def acquire(self):
        """Return the live client, connecting if there is none yet."""
        self.check_config()
        if self._client is not None:
            return self._client

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._connect())
        pending = self._pending

        try:
            client = await asyncio.shield(pending)
        except Exception:
            # Only the caller that still sees its own attempt clears it; the
            # others then join whatever attempt replaced it.
            if self._pending is pending:
                self._pending = None
            raise

        if self._pending is pending:
            self._pending = None
            self._client = client
        return client

    async def invalidate(self, stale=None):
        """
        Forget the cached client so the next acquire() reconnects.

        With `stale`, only that client is dropped: if another caller already
        replaced it, the newer client is left alone. An attempt still in
        flight is never cancelled.
        """
        client = self._client
        if client is None or (stale is not None and stale is not client):
            return
        self._client = None
        logger.info("[MongoDB] Dropping cached client")
        try:
            await client.close()
        except Exception as e:
            logger.warning(f"[MongoDB] Error closing client: {e}")

    async def get_client(self):
        """
        Return the live client.

        A failed connection attempt is retried once before it reaches the
        caller. Callers that failed on the same attempt share the retry.
        """
        self.check_config()
        try:
            return await self.acquire()
        except Exception as e:
            logger.warning(f"[MongoDB] Connection unusable, reconnecting: {e}")
        return await self.acquire()

    async def get_database(self):
        client = await self.get_client()
        return client[self.db_name]


_manager: Optional[ConnectionManager] = None


def get_manager() -> ConnectionManager:
    """Process-wide manager built from the environment on first use."""
    global _manager
    if _manager is None:
        _manager = ConnectionManager.from_env()
    return _manager
