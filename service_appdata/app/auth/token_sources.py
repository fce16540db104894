"""
Access token sources.

Each source exposes a single ``token()`` coroutine producing the current
access token. Which source is used is decided by the caller: app-level
calls use the client-credential or service-account sources, calls made on
behalf of a user use ``UserTokenSource``.
"""

from __future__ import annotations

import base64
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol, Sequence

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from shared.config import AppDataConfig
from shared.errors import RemoteTransportError, TokenProviderError
from shared.logging import get_logger
from ..models import Token, UserCredentials

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"

# Lifetime of a signed service-account assertion.
ASSERTION_LIFETIME_SECONDS = 3600


class TokenSource(Protocol):
    """Anything that can produce a current access token."""

    async def token(self) -> Token:
        ...


def authorization_headers(token: Token) -> Dict[str, str]:
    return {"Authorization": f"{token.token_type} {token.access_token}"}


class ClientCredentialsTokenSource:
    """Application-only token via a Basic-authenticated client-credential grant."""

    def __init__(self, key: str, secret: str, token_url: str, http_client: httpx.AsyncClient) -> None:
        self.key = key
        self.secret = secret
        self.token_url = token_url
        self._client = http_client

    @classmethod
    def for_twitter(cls, config: AppDataConfig, http_client: httpx.AsyncClient) -> "ClientCredentialsTokenSource":
        return cls(config.twitter_key, config.twitter_secret, config.twitter_token_url, http_client)

    async def token(self) -> Token:
        if not self.key or not self.secret:
            raise TokenProviderError("client_credentials", "empty key or secret")

        basic = base64.b64encode(f"{self.key}:{self.secret}".encode("utf-8")).decode("ascii")
        try:
            response = await self._client.post(
                self.token_url,
                data={"grant_type": "client_credentials"},
                headers={"Authorization": f"Basic {basic}"},
            )
        except httpx.HTTPError as exc:
            raise TokenProviderError("client_credentials", str(exc)) from exc

        if response.status_code != 200:
            raise TokenProviderError("client_credentials", f"got {response.status_code} status")

        try:
            access_token = response.json().get("access_token")
        except (ValueError, AttributeError) as exc:
            raise TokenProviderError("client_credentials", "malformed token response") from exc

        if not access_token:
            raise TokenProviderError("client_credentials", "empty access token")
        return Token(access_token=access_token)


class ServiceAccountTokenSource:
    """Service-account token via a signed JWT assertion grant.

    Signing and the exchange itself happen on each ``token()`` call.
    """

    def __init__(
        self,
        email: str,
        private_key: str,
        scopes: Sequence[str],
        token_url: str,
        http_client: httpx.AsyncClient,
    ) -> None:
        if not private_key or not email:
            raise TokenProviderError("service_account", "key or email is empty")
        self.email = email
        self.private_key = private_key
        self.scopes = list(scopes)
        self.token_url = token_url
        self._client = http_client

    def assertion(self, now: Optional[float] = None) -> str:
        issued_at = int(now if now is not None else time.time())
        claims = {
            "iss": self.email,
            "scope": " ".join(self.scopes),
            "aud": self.token_url,
            "iat": issued_at,
            "exp": issued_at + ASSERTION_LIFETIME_SECONDS,
        }
        try:
            return jwt.encode(claims, self.private_key, algorithm="RS256")
        except JOSEError as exc:
            raise TokenProviderError("service_account", f"cannot sign assertion: {exc}") from exc

    async def token(self) -> Token:
        params = {"grant_type": JWT_BEARER_GRANT, "assertion": self.assertion()}
        try:
            response = await self._client.post(self.token_url, data=params)
        except httpx.HTTPError as exc:
            raise TokenProviderError("service_account", str(exc)) from exc

        if response.status_code != 200:
            raise TokenProviderError("service_account", f"got {response.status_code} status")
        return _parse_token_response(response, "service_account")


def service_credentials(config: AppDataConfig, http_client: httpx.AsyncClient, *scopes: str) -> ServiceAccountTokenSource:
    """Return a token source for the configured service account."""
    return ServiceAccountTokenSource(
        config.service_account_email,
        config.service_account_key,
        scopes,
        config.google_token_url,
        http_client,
    )


class UserTokenSource:
    """Access token for calls made on behalf of a user.

    An expired access token is refreshed with the user's refresh token.
    The refreshed token is not persisted here.
    """

    def __init__(
        self,
        credentials: UserCredentials,
        config: AppDataConfig,
        http_client: httpx.AsyncClient,
        *,
        expiry_skew: int = 10,
    ) -> None:
        self.credentials = credentials
        self.config = config
        self.expiry_skew = expiry_skew
        self.logger = get_logger("appdata.auth.user_token")
        self._client = http_client

    async def token(self) -> Token:
        cred = self.credentials
        if not cred.expired(self.expiry_skew):
            return Token(access_token=cred.access_token, expiry=cred.expiry)
        if not cred.refresh_token:
            raise TokenProviderError("user", "token expired and refresh token is not set")

        params = {
            "grant_type": "refresh_token",
            "refresh_token": cred.refresh_token,
            "client_id": self.config.google_client_id,
            "client_secret": self.config.google_client_secret,
        }
        try:
            response = await self._client.post(self.config.google_token_url, data=params)
        except httpx.HTTPError as exc:
            raise RemoteTransportError("token", str(exc)) from exc

        if response.status_code != 200:
            self.logger.warning(
                "Token refresh failed",
                user_id=cred.user_id,
                status_code=response.status_code,
            )
            raise RemoteTransportError(
                "token",
                f"refresh rejected: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return _parse_token_response(response, "user")


def _parse_token_response(response: httpx.Response, provider: str) -> Token:
    try:
        body = response.json()
        access_token = body.get("access_token")
        expires_in = int(body.get("expires_in") or 0)
    except (ValueError, TypeError, AttributeError) as exc:
        raise TokenProviderError(provider, "malformed token response") from exc

    if not access_token:
        raise TokenProviderError(provider, "empty access token")

    expiry = None
    if expires_in > 0:
        expiry = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    return Token(access_token=access_token, token_type=body.get("token_type") or "Bearer", expiry=expiry)
