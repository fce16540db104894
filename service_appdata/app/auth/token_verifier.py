"""
Bearer credential verification.

An inbound ``Authorization: Bearer <token>`` value carries either a signed
identity token (JWT) or an opaque OAuth 2.0 access token. Identity tokens
are tried first since they verify offline; opaque tokens fall back to the
provider's introspection endpoint.
"""

from __future__ import annotations

from typing import Awaitable, Callable, List, Optional, Tuple

import httpx

from shared.config import AppDataConfig
from shared.errors import InvalidCredentialError, MissingCredentialError
from shared.logging import get_logger
from ..models import VerificationMethod, VerificationOutcome, VerifiedIdentity
from .jwks import JWKSVerifier

BEARER_PREFIX = "bearer "


class TokenVerifier:
    """Turns an Authorization header into a VerifiedIdentity."""

    def __init__(
        self,
        config: AppDataConfig,
        http_client: httpx.AsyncClient,
        jwks: Optional[JWKSVerifier] = None,
    ) -> None:
        self.config = config
        self.logger = get_logger("appdata.auth.verifier")
        self._client = http_client
        self.jwks = jwks or JWKSVerifier(
            config.google_certs_url,
            http_client,
            refresh_interval=config.jwks_refresh_interval,
        )

    @property
    def attempts(self) -> List[Tuple[VerificationMethod, Callable[[str], Awaitable[str]]]]:
        """Verification methods, in the order they are tried."""
        return [
            (VerificationMethod.ID_TOKEN, self.verify_id_token),
            (VerificationMethod.ACCESS_TOKEN, self.verify_access_token),
        ]

    async def authenticate(self, authorization: Optional[str]) -> VerifiedIdentity:
        """Verify a raw Authorization header value."""
        token = extract_bearer_token(authorization)
        outcome = await self.verify(token)
        return VerifiedIdentity(user_id=outcome.user_id)

    async def verify(self, token: str) -> VerificationOutcome:
        """Try each verification method in turn and return the first success."""
        if not token:
            raise InvalidCredentialError("Empty bearer token")

        outcomes: List[VerificationOutcome] = []
        for method, attempt in self.attempts:
            try:
                user_id = await attempt(token)
            except InvalidCredentialError as exc:
                outcomes.append(VerificationOutcome(method=method, error=exc.message))
                continue
            return VerificationOutcome(method=method, user_id=user_id)

        self.logger.info(
            "Bearer token rejected",
            attempts=[{"method": o.method.value, "error": o.error} for o in outcomes],
        )
        raise InvalidCredentialError(
            details={"attempts": [o.method.value for o in outcomes]}
        )

    async def verify_id_token(self, token: str) -> str:
        """Verify a signed identity token and return its subject."""
        claims = await self.jwks.verify(
            token,
            audience=self.config.google_client_id,
            issuers=self.config.google_issuers,
        )
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidCredentialError("Identity token missing subject claim")
        return subject

    async def verify_access_token(self, token: str) -> str:
        """Verify an opaque access token via the provider's introspection endpoint.

        Returns the user ID of the principal who granted the authorization.
        """
        try:
            response = await self._client.post(self.config.google_verify_url, data={"access_token": token})
        except httpx.HTTPError as exc:
            raise InvalidCredentialError("Token introspection failed", details={"error": str(exc)}) from exc

        if response.status_code != 200:
            raise InvalidCredentialError(
                "Token introspection rejected",
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
            client_id = body.get("issued_to")
            user_id = body.get("user_id")
            expires_in = int(body.get("expires_in") or 0)
        except (ValueError, TypeError, AttributeError) as exc:
            raise InvalidCredentialError("Malformed introspection response") from exc

        if client_id != self.config.google_client_id:
            raise InvalidCredentialError(
                f"issued_to {client_id!r}; want {self.config.google_client_id!r}"
            )
        if expires_in <= 0:
            raise InvalidCredentialError("Expired token")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidCredentialError("Introspection response missing user_id")
        return user_id


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Strip the case-insensitive bearer scheme from a header value."""
    if not authorization:
        raise MissingCredentialError()
    if authorization[:len(BEARER_PREFIX)].lower() != BEARER_PREFIX:
        raise MissingCredentialError()
    return authorization[len(BEARER_PREFIX):].strip()
