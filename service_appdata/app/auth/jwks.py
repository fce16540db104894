"""
JSON Web Key Set (JWKS) verification of identity tokens.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from shared.errors import InvalidCredentialError
from shared.logging import get_logger


class JWKSVerifier:
    """Verifies signed identity tokens against the provider's published keys."""

    def __init__(
        self,
        certs_url: str,
        http_client: httpx.AsyncClient,
        *,
        refresh_interval: int = 3600,
    ) -> None:
        self.certs_url = certs_url
        self.refresh_interval = refresh_interval
        self.logger = get_logger("appdata.auth.jwks")

        self._client = http_client
        self._keys: Optional[List[Dict[str, Any]]] = None
        self._last_refresh: float = 0.0
        self._lock = asyncio.Lock()

    async def verify(self, token: str, *, audience: str, issuers: Sequence[str]) -> Dict[str, Any]:
        """Validate the token and return its claims.

        Signature, expiry, audience and issuer are all checked; any failure
        raises InvalidCredentialError.
        """
        try:
            header = jwt.get_unverified_header(token)
        except JOSEError as exc:
            raise InvalidCredentialError("Malformed identity token", details={"error": str(exc)}) from exc

        kid = header.get("kid")
        if not isinstance(kid, str):
            raise InvalidCredentialError("Identity token header missing key id (kid)")

        key_data = await self._get_key(kid)
        if not key_data:
            raise InvalidCredentialError("Signing key not found for token", details={"kid": kid})

        try:
            claims = jwt.decode(
                token,
                key_data,
                algorithms=[key_data.get("alg", "RS256")],
                audience=audience,
                issuer=tuple(issuers),
                options={"verify_at_hash": False},
            )
        except JOSEError as exc:
            raise InvalidCredentialError("Identity token validation failed", details={"error": str(exc)}) from exc

        return claims

    async def _get_key(self, kid: str) -> Optional[Dict[str, Any]]:
        """Return the key matching kid, refreshing once if it is unknown."""
        await self._refresh_keys(force=False)
        key = _find_key(self._keys or [], kid)
        if key is not None:
            return key

        # Keys may have been rotated since the last fetch.
        await self._refresh_keys(force=True)
        return _find_key(self._keys or [], kid)

    async def _refresh_keys(self, *, force: bool) -> None:
        """Refresh the JWKS if the cached copy is stale."""
        if not force and self._fresh():
            return

        async with self._lock:
            if not force and self._fresh():
                return

            try:
                response = await self._client.get(self.certs_url)
                response.raise_for_status()
                payload = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                self.logger.error("Failed to fetch JWKS", url=self.certs_url, error=str(exc))
                raise InvalidCredentialError("Signing keys unavailable", details={"error": str(exc)}) from exc

            keys = payload.get("keys") if isinstance(payload, dict) else None
            if not isinstance(keys, list):
                raise InvalidCredentialError("JWKS response missing 'keys' array")

            self._keys = keys
            self._last_refresh = time.time()
            self.logger.info("JWKS refreshed", keys_count=len(keys))

    def _fresh(self) -> bool:
        return self._keys is not None and (time.time() - self._last_refresh) < self.refresh_interval

    def clear_cache(self) -> None:
        self._keys = None
        self._last_refresh = 0.0


def _find_key(keys: Iterable[Dict[str, Any]], kid: str) -> Optional[Dict[str, Any]]:
    for key in keys:
        if key.get("kid") == kid:
            return key
    return None
