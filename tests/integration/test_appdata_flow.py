"""
Integration tests for the AppData flow: verify, exchange, store and read back.
"""

import json

import pytest
import httpx

from shared.errors import IdentityMismatchError, InvalidCredentialError
from shared.test_helpers import FakeDrive, FlakyCacheBackend, IdTokenFactory, form_params, routing_transport
from service_appdata.app.appfolder.sync import AppFolderSync
from service_appdata.app.auth.credential_exchange import CredentialExchange
from service_appdata.app.auth.token_verifier import TokenVerifier
from service_appdata.app.cache.gateway import CacheGateway
from service_appdata.app.models import AppFolderDocument


class ExchangedCredentialStore:
    """CredentialStore holding credentials obtained by code exchange."""

    def __init__(self):
        self.saved = {}

    def save(self, credentials):
        self.saved[credentials.user_id] = credentials

    async def get_credentials(self, user_id):
        return self.saved[user_id]


class TestAppDataFlow:
    """Integration tests for the complete AppData flow."""

    @pytest.fixture
    def drive(self):
        return FakeDrive()

    @pytest.fixture
    def backend(self):
        return FlakyCacheBackend()

    @pytest.fixture
    def provider(self, id_tokens):
        """Token endpoint issuing credentials for whichever user the code names."""
        exchanges = []

        def token(request):
            params = form_params(request)
            exchanges.append(params)
            user_id = params["code"].split(":", 1)[1]
            return httpx.Response(200, json={
                "access_token": f"ya29.{user_id}",
                "refresh_token": f"1/{user_id}",
                "id_token": id_tokens.mint(user_id),
                "expires_in": 3600,
            })

        token.exchanges = exchanges
        return token

    @pytest.fixture
    def client(self, config, rsa_key, drive, provider):
        transport = routing_transport(
            {
                config.google_certs_url: lambda request: httpx.Response(200, json=rsa_key.jwks()),
                config.google_token_url: provider,
                config.google_verify_url: lambda request: httpx.Response(400),
            },
            fallback=drive.handler,
        )
        return httpx.AsyncClient(transport=transport)

    @pytest.fixture
    def components(self, config, client, backend):
        verifier = TokenVerifier(config, client)
        store = ExchangedCredentialStore()
        return (
            verifier,
            CredentialExchange(config, client, verifier),
            store,
            AppFolderSync(config, CacheGateway(backend), store, client),
        )

    @pytest.mark.asyncio
    async def test_complete_flow(self, components, drive, backend, id_tokens):
        """Test verify, exchange, store, evict and read from the remote store."""
        verifier, exchange, store, sync = components

        # 1. Verify the inbound bearer credential
        identity = await verifier.authenticate(f"Bearer {id_tokens.mint('1234')}")
        assert identity.user_id == "1234"

        # 2. Exchange the one-time code
        credentials = await exchange.fetch_credentials(identity, "code:1234")
        assert credentials.access_token == "ya29.1234"
        store.save(credentials)

        # 3. Nothing stored yet
        empty = await sync.get(identity)
        assert empty == AppFolderDocument()
        backend.evict("appdata:1234")

        # 4. Create the document
        document = AppFolderDocument(bookmarked_items=["session-1"], push_key="gcm-1")
        await sync.store(identity, document)
        assert document.remote_file_id == "file-1"
        upload = drive.uploads("POST")[0]
        assert upload.headers["Authorization"] == "Bearer ya29.1234"

        # 5. Evict and read back from Drive
        backend.evict("appdata:1234")
        reloaded = await sync.get(identity)
        assert reloaded == document

        # 6. A second store updates the same file
        reloaded.viewed_items.append("video-1")
        await sync.store(identity, reloaded)
        assert list(drive.files) == ["file-1"]
        assert json.loads(drive.files["file-1"].content)["viewed_videos"] == ["video-1"]
        cached = AppFolderDocument.from_json(backend.data["appdata:1234"])
        assert cached.viewed_items == ["video-1"]

    @pytest.mark.asyncio
    async def test_code_for_another_user_rejected(self, components, provider, drive, id_tokens):
        verifier, exchange, store, sync = components
        identity = await verifier.authenticate(f"Bearer {id_tokens.mint('1234')}")

        with pytest.raises(IdentityMismatchError):
            await exchange.fetch_credentials(identity, "code:5678")

        assert len(provider.exchanges) == 1
        assert store.saved == {}
        assert drive.requests == []

    @pytest.mark.asyncio
    async def test_foreign_token_rejected_before_data_access(self, components, drive, rsa_key):
        """Test an identity token minted for another client is rejected."""
        verifier, _, _, _ = components
        foreign = IdTokenFactory(rsa_key, audience="someone-else.apps.googleusercontent.com")

        with pytest.raises(InvalidCredentialError):
            await verifier.authenticate(f"Bearer {foreign.mint('1234')}")
        assert drive.requests == []

    @pytest.mark.asyncio
    async def test_cache_outage_does_not_block_writes(self, config, client, drive, id_tokens, components):
        verifier, exchange, store, _ = components
        backend = FlakyCacheBackend(always_fail=True)
        sync = AppFolderSync(config, CacheGateway(backend), store, client)

        identity = await verifier.authenticate(f"Bearer {id_tokens.mint('1234')}")
        store.save(await exchange.fetch_credentials(identity, "code:1234"))

        document = await sync.store(identity, AppFolderDocument(feedback_items=["s9"]))

        assert document.remote_file_id == "file-1"
        assert backend.set_calls == 3
        assert "appdata:1234" not in backend.data
