"""
Identity verification and token acquisition.

- token_verifier: Authorization header -> VerifiedIdentity (identity token
  first, opaque-token introspection second).
- jwks: Fetching and caching the provider's signing keys.
- credential_exchange: Authorization code -> UserCredentials, bound to the
  already-verified identity.
- token_sources: Client-credential, service-account and user OAuth token
  sources sharing one ``token()`` operation.
"""

from .credential_exchange import CredentialExchange
from .jwks import JWKSVerifier
from .token_sources import (
    ClientCredentialsTokenSource,
    ServiceAccountTokenSource,
    TokenSource,
    UserTokenSource,
    authorization_headers,
    service_credentials,
)
from .token_verifier import TokenVerifier, extract_bearer_token

__all__ = [
    "ClientCredentialsTokenSource",
    "CredentialExchange",
    "JWKSVerifier",
    "ServiceAccountTokenSource",
    "TokenSource",
    "TokenVerifier",
    "UserTokenSource",
    "authorization_headers",
    "extract_bearer_token",
    "service_credentials",
]
