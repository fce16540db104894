"""
Unit tests for the access token sources.
"""

import base64

import pytest
import httpx
from jose import jwt

from shared.errors import RemoteTransportError, TokenProviderError
from shared.test_helpers import form_params
from service_appdata.app.auth.token_sources import (
    JWT_BEARER_GRANT,
    ClientCredentialsTokenSource,
    UserTokenSource,
    authorization_headers,
    service_credentials,
)


def recording_client(response, seen):
    def handler(request):
        seen.append(request)
        return response

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestClientCredentialsTokenSource:
    """Test cases for the client-credential grant."""

    @pytest.mark.asyncio
    async def test_token_success(self, config):
        """Test Basic-authenticated grant."""
        seen = []
        client = recording_client(httpx.Response(200, json={"token_type": "bearer", "access_token": "AAAA"}), seen)
        source = ClientCredentialsTokenSource("key", "secret", config.twitter_token_url, client)

        token = await source.token()

        assert token.access_token == "AAAA"
        request = seen[0]
        assert request.headers["Authorization"] == "Basic " + base64.b64encode(b"key:secret").decode()
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert form_params(request) == {"grant_type": "client_credentials"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key,secret", [("", "secret"), ("key", ""), ("", "")])
    async def test_empty_key_or_secret_fails_before_network(self, config, key, secret):
        """Misconfiguration is caught without any outbound call."""
        seen = []
        client = recording_client(httpx.Response(200, json={"access_token": "AAAA"}), seen)
        source = ClientCredentialsTokenSource(key, secret, config.twitter_token_url, client)

        with pytest.raises(TokenProviderError):
            await source.token()
        assert seen == []

    @pytest.mark.asyncio
    async def test_empty_access_token_fails(self, config):
        """Test an empty token is not accepted."""
        client = recording_client(httpx.Response(200, json={"access_token": ""}), [])
        source = ClientCredentialsTokenSource("key", "secret", config.twitter_token_url, client)

        with pytest.raises(TokenProviderError, match="empty access token"):
            await source.token()

    @pytest.mark.asyncio
    async def test_non_200_fails(self, config):
        client = recording_client(httpx.Response(403, json={"errors": []}), [])
        source = ClientCredentialsTokenSource("key", "secret", config.twitter_token_url, client)

        with pytest.raises(TokenProviderError, match="403"):
            await source.token()

    def test_for_twitter_uses_config(self, config):
        source = ClientCredentialsTokenSource.for_twitter(config, httpx.AsyncClient())

        assert source.token_url == config.twitter_token_url


class TestServiceAccountTokenSource:
    """Test cases for the signed-JWT service-account grant."""

    @pytest.mark.parametrize("email,key", [("", "pem"), ("svc@example.iam", ""), ("", "")])
    def test_missing_email_or_key(self, config, email, key):
        """Test construction fails closed."""
        config = config.model_copy(update={"service_account_email": email, "service_account_key": key})

        with pytest.raises(TokenProviderError):
            service_credentials(config, httpx.AsyncClient(), "https://www.googleapis.com/auth/drive")

    @pytest.mark.asyncio
    async def test_token_signs_assertion(self, config, rsa_key):
        """Test the assertion is signed and scoped at token-use time."""
        config = config.model_copy(update={
            "service_account_email": "svc@example.iam",
            "service_account_key": rsa_key.private_pem,
        })
        seen = []
        client = recording_client(httpx.Response(200, json={"access_token": "svc-token", "expires_in": 3600}), seen)
        source = service_credentials(config, client, "scope-a", "scope-b")

        assert seen == []
        token = await source.token()

        assert token.access_token == "svc-token"
        assert token.expiry is not None
        params = form_params(seen[0])
        assert params["grant_type"] == JWT_BEARER_GRANT
        claims = jwt.decode(
            params["assertion"],
            rsa_key.public_jwk(),
            algorithms=["RS256"],
            audience=config.google_token_url,
        )
        assert claims["iss"] == "svc@example.iam"
        assert claims["scope"] == "scope-a scope-b"

    @pytest.mark.asyncio
    async def test_unusable_key_fails_at_token_time(self, config):
        config = config.model_copy(update={
            "service_account_email": "svc@example.iam",
            "service_account_key": "not a pem",
        })
        seen = []
        source = service_credentials(config, recording_client(httpx.Response(200), seen), "scope")

        with pytest.raises(TokenProviderError):
            await source.token()
        assert seen == []


class TestUserTokenSource:
    """Test cases for the user OAuth token source."""

    @pytest.mark.asyncio
    async def test_valid_token_used_as_is(self, config, make_credentials):
        seen = []
        source = UserTokenSource(make_credentials("u1"), config, recording_client(httpx.Response(500), seen))

        token = await source.token()

        assert token.access_token == "access-u1"
        assert authorization_headers(token) == {"Authorization": "Bearer access-u1"}
        assert seen == []

    @pytest.mark.asyncio
    async def test_expired_token_refreshed(self, config, make_credentials):
        """Test refresh_token grant for an expired access token."""
        seen = []
        client = recording_client(httpx.Response(200, json={"access_token": "fresh", "expires_in": 3600}), seen)
        source = UserTokenSource(make_credentials("u1", expires_in=-1), config, client)

        token = await source.token()

        assert token.access_token == "fresh"
        assert form_params(seen[0]) == {
            "grant_type": "refresh_token",
            "refresh_token": "refresh-token",
            "client_id": config.google_client_id,
            "client_secret": "test-secret",
        }

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token(self, config, make_credentials):
        source = UserTokenSource(make_credentials("u1", expires_in=-1, refresh_token=""), config, httpx.AsyncClient())

        with pytest.raises(TokenProviderError):
            await source.token()

    @pytest.mark.asyncio
    async def test_refresh_rejected(self, config, make_credentials):
        client = recording_client(httpx.Response(400, json={"error": "invalid_grant"}), [])
        source = UserTokenSource(make_credentials("u1", expires_in=-1), config, client)

        with pytest.raises(RemoteTransportError):
            await source.token()
