"""
Retryable read/write of per-user AppFolder data against the shared cache.
"""

from typing import Optional, Protocol

from shared.config import APP_DATA_CACHE_TTL_SECONDS
from shared.errors import CacheTransientError
from shared.logging import get_logger
from shared.retry import IMMEDIATE_RETRY, RetryConfig, RetryError, retry_on_exception

APP_FOLDER_PREFIX = "appdata:"


class CacheBackend(Protocol):
    """Minimal get/set-with-TTL cache interface."""

    async def get(self, key: str) -> Optional[bytes]:
        ...

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        ...


def app_folder_cache_key(user_id: str) -> str:
    """Return the cache key for a user's AppFolder data."""
    return APP_FOLDER_PREFIX + user_id


class CacheGateway:
    """Reads and writes whole AppFolder documents; last writer wins."""

    def __init__(
        self,
        backend: CacheBackend,
        ttl: int = APP_DATA_CACHE_TTL_SECONDS,
        retry_config: RetryConfig = IMMEDIATE_RETRY,
    ):
        self.backend = backend
        self.ttl = ttl
        self.retry_config = retry_config
        self.logger = get_logger("appdata.cache.gateway")
        self._set_with_retry = retry_on_exception((Exception,), retry_config)(self._set)

    async def fetch(self, user_id: str) -> Optional[bytes]:
        """Return cached bytes for user_id, or None on a miss.

        Backend errors are reported as a miss so callers fall through to
        the remote store.
        """
        key = app_folder_cache_key(user_id)
        try:
            value = await self.backend.get(key)
        except Exception as e:
            self.logger.warning("Cache fetch error", user_id=user_id, error=str(e))
            return None

        if value is None:
            self.logger.debug("Cache miss", cache_key=key)
        return value

    async def store(self, user_id: str, value: bytes, ttl: Optional[int] = None) -> None:
        """Write value under user_id, retrying on backend errors.

        Raises CacheTransientError carrying the last backend error once the
        retry budget is spent.
        """
        key = app_folder_cache_key(user_id)
        try:
            await self._set_with_retry(key, value, ttl or self.ttl)
        except RetryError as e:
            self.logger.error(
                "Cache store giving up",
                user_id=user_id,
                attempts=e.attempts,
                error=str(e.last_exception),
            )
            raise CacheTransientError(
                f"cache store for {user_id} failed after {e.attempts} attempts",
                last_exception=e.last_exception,
                attempts=e.attempts,
            ) from e.last_exception

    async def _set(self, key: str, value: bytes, ttl: int) -> None:
        await self.backend.set(key, value, ttl)
