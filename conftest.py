"""
Shared pytest fixtures for the AppData service core.
"""

from datetime import datetime, timedelta, timezone

import pytest

from shared.config import AppDataConfig
from shared.test_helpers import TEST_CLIENT_ID, IdTokenFactory, RSAKeyPair
from service_appdata.app.models import UserCredentials


@pytest.fixture(scope="session")
def rsa_key():
    """Signing key shared by the whole session; RSA generation is slow."""
    return RSAKeyPair.generate()


@pytest.fixture
def id_tokens(rsa_key):
    return IdTokenFactory(rsa_key)


@pytest.fixture
def config():
    return AppDataConfig(
        google_client_id=TEST_CLIENT_ID,
        google_client_secret="test-secret",
        google_token_url="https://oauth.test/token",
        google_verify_url="https://oauth.test/tokeninfo",
        google_certs_url="https://oauth.test/certs",
        drive_files_url="https://drive.test/files",
        drive_upload_url="https://drive.test/upload/files",
        twitter_token_url="https://twitter.test/oauth2/token",
    )


@pytest.fixture
def make_credentials():
    """Factory for UserCredentials expiring expires_in seconds from now."""

    def factory(user_id: str, expires_in: int = 3600, refresh_token: str = "refresh-token") -> UserCredentials:
        return UserCredentials(
            user_id=user_id,
            expiry=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            access_token=f"access-{user_id}",
            refresh_token=refresh_token,
        )

    return factory
