"""
AppData service assembly.

Builds the verifier, code exchange and AppFolder sync components from one
configuration, and owns the lifecycle of the shared HTTP client and cache
backend. Product routes are mounted by the embedding application using
``identity_dependency``.
"""

from typing import Dict, Optional

import httpx

from shared.base_service import BaseService
from shared.config import AppDataConfig
from .appfolder.sync import AppFolderSync, CredentialStore
from .auth.credential_exchange import CredentialExchange
from .auth.token_verifier import TokenVerifier
from .cache.gateway import CacheBackend, CacheGateway
from .cache.redis_cache import RedisCacheBackend
from .dependencies import register_exception_handlers, require_identity


class AppDataService(BaseService):
    """AppData service implementation."""

    def __init__(
        self,
        credentials: CredentialStore,
        config: Optional[AppDataConfig] = None,
        cache_backend: Optional[CacheBackend] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__("appdata", config)
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()
        self.cache_backend = cache_backend or RedisCacheBackend(self.config.redis_url)

        self.verifier = TokenVerifier(self.config, self.http_client)
        self.exchange = CredentialExchange(self.config, self.http_client, self.verifier)
        self.sync = AppFolderSync(
            self.config,
            CacheGateway(self.cache_backend),
            credentials,
            self.http_client,
        )
        self.identity_dependency = require_identity(self.verifier)

        register_exception_handlers(self.app)

    async def startup(self) -> None:
        if isinstance(self.cache_backend, RedisCacheBackend):
            await self.cache_backend.start()
        self.logger.info("AppData service started", env=self.config.env)

    async def shutdown(self) -> None:
        if isinstance(self.cache_backend, RedisCacheBackend):
            await self.cache_backend.stop()
        if self._owns_client:
            await self.http_client.aclose()
        self.logger.info("AppData service stopped")

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check the cache backend."""
        if isinstance(self.cache_backend, RedisCacheBackend):
            healthy = await self.cache_backend.health_check()
            return {"redis": "ok" if healthy else "error"}
        return {}
