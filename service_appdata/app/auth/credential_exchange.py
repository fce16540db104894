"""
One-time authorization code exchange.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx

from shared.config import AppDataConfig
from shared.errors import IdentityMismatchError, RemoteTransportError
from shared.logging import get_logger
from ..models import UserCredentials, VerifiedIdentity
from .token_verifier import TokenVerifier


class CredentialExchange:
    """Exchanges authorization codes for a user's access and refresh tokens."""

    def __init__(self, config: AppDataConfig, http_client: httpx.AsyncClient, verifier: TokenVerifier) -> None:
        self.config = config
        self.verifier = verifier
        self.logger = get_logger("appdata.auth.exchange")
        self._client = http_client

    async def fetch_credentials(self, identity: VerifiedIdentity, code: str) -> UserCredentials:
        """Redeem code and return credentials for the already-verified user.

        Codes are single use, so a failed exchange is never retried.
        """
        params = {
            "code": code,
            "client_id": self.config.google_client_id,
            "client_secret": self.config.google_client_secret,
            "redirect_uri": "postmessage",
            "grant_type": "authorization_code",
        }
        try:
            response = await self._client.post(self.config.google_token_url, data=params)
        except httpx.HTTPError as exc:
            raise RemoteTransportError("token", str(exc)) from exc

        if response.status_code != 200:
            self.logger.error(
                "Code exchange failed",
                user_id=identity.user_id,
                status_code=response.status_code,
                body=response.text,
            )
            raise RemoteTransportError(
                "token",
                f"remote says: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            body = response.json()
            access_token = body.get("access_token") or ""
            refresh_token = body.get("refresh_token") or ""
            id_token = body.get("id_token") or ""
            expires_in = int(body.get("expires_in") or 0)
        except (ValueError, TypeError, AttributeError) as exc:
            raise RemoteTransportError("token", "malformed token response") from exc

        # Identity tokens are checked offline, so prefer them when present.
        if id_token:
            user_id = await self.verifier.verify_id_token(id_token)
        else:
            user_id = await self.verifier.verify_access_token(access_token)

        if user_id != identity.user_id:
            self.logger.error(
                "Exchanged credentials belong to another user",
                user_id=identity.user_id,
                token_user_id=user_id,
            )
            raise IdentityMismatchError(expected=identity.user_id, actual=user_id)

        return UserCredentials(
            user_id=user_id,
            expiry=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            access_token=access_token,
            refresh_token=refresh_token,
        )
