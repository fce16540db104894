"""
AppFolder data synchronization between the shared cache and Google Drive.

Reads are cache-first; a miss falls through to Drive, where the most
recently modified downloadable copy of the data file wins. Writes go to
Drive first and then refresh the cache on a best-effort basis, so readers
may see data up to one cache TTL old after a failed refresh.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

import httpx
from pydantic import ValidationError

from shared.config import AppDataConfig
from shared.errors import CacheTransientError, IdentityMismatchError, RemoteTransportError
from shared.logging import get_logger
from ..auth.token_sources import UserTokenSource
from ..cache.gateway import CacheGateway
from ..models import AppFolderDocument, RemoteFileCandidate, UserCredentials, VerifiedIdentity
from .drive_client import DriveClient


class CredentialStore(Protocol):
    """Looks up a user's stored OAuth credentials, refreshing them as needed."""

    async def get_credentials(self, user_id: str) -> UserCredentials:
        ...


def parse_modified(value: str) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; None when it is malformed or lacks an offset."""
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


def select_latest(candidates: Iterable[RemoteFileCandidate]) -> Optional[RemoteFileCandidate]:
    """Pick the most recently modified candidate that can be downloaded.

    Candidates with unparseable timestamps are skipped. Ties keep the
    earlier candidate.
    """
    selected: Optional[RemoteFileCandidate] = None
    latest: Optional[datetime] = None
    for candidate in candidates:
        if not candidate.download_url:
            continue
        modified = parse_modified(candidate.modified)
        if modified is None:
            continue
        if latest is None or modified > latest:
            selected, latest = candidate, modified
    return selected


class AppFolderSync:
    """Get and Store operations for a user's AppFolder document."""

    def __init__(
        self,
        config: AppDataConfig,
        cache: CacheGateway,
        credentials: CredentialStore,
        http_client: httpx.AsyncClient,
        drive: Optional[DriveClient] = None,
    ):
        self.config = config
        self.cache = cache
        self.credentials = credentials
        self.drive = drive or DriveClient(config, http_client)
        self.logger = get_logger("appdata.appfolder.sync")
        self._client = http_client

    async def get(self, identity: VerifiedIdentity) -> AppFolderDocument:
        """Return the user's document from cache, or from Drive on a miss."""
        cached = await self._from_cache(identity.user_id)
        if cached is not None:
            return cached

        cred = await self._resolve_credentials(identity)
        document = await self.fetch_remote(cred)
        await self._refresh_cache(identity.user_id, document)
        return document

    async def fetch_remote(self, cred: UserCredentials) -> AppFolderDocument:
        """Fetch the document from Drive.

        Returns an empty, not-yet-created document when no usable file exists.
        """
        token = await self._token_source(cred).token()
        candidates = await self.drive.list_app_folder_files(token)
        selected = select_latest(candidates)
        if selected is None:
            self.logger.info("AppFolder file not found", user_id=cred.user_id, candidates=len(candidates))
            return AppFolderDocument()

        content = await self.drive.download(token, selected.download_url)
        try:
            document = AppFolderDocument.from_json(content)
        except ValidationError as exc:
            raise RemoteTransportError("drive", f"malformed AppFolder data in {selected.id}") from exc
        document.remote_file_id = selected.id
        return document

    async def store(
        self,
        identity: VerifiedIdentity,
        document: AppFolderDocument,
        cred: Optional[UserCredentials] = None,
    ) -> AppFolderDocument:
        """Save the document to Drive and refresh the cached copy.

        A document without a remote file ID is created and the assigned ID
        is written back into ``document``; otherwise the existing file is
        updated in place. Upload failures are never retried.
        """
        if cred is None:
            cred = await self._resolve_credentials(identity)
        elif cred.user_id != identity.user_id:
            raise IdentityMismatchError(expected=identity.user_id, actual=cred.user_id)

        token = await self._token_source(cred).token()
        resource = await self.drive.upload(token, document.to_json(), file_id=document.remote_file_id)

        if not document.remote_file_id:
            created_id = resource.get("id") or ""
            if created_id:
                document.remote_file_id = created_id
            else:
                self.logger.warning("Drive create returned no file id", user_id=identity.user_id)

        # Drive is already updated and cannot be rolled back; a failed
        # refresh leaves the cache stale for at most one TTL.
        await self._refresh_cache(identity.user_id, document)
        return document

    async def _resolve_credentials(self, identity: VerifiedIdentity) -> UserCredentials:
        cred = await self.credentials.get_credentials(identity.user_id)
        if cred.user_id != identity.user_id:
            raise IdentityMismatchError(expected=identity.user_id, actual=cred.user_id)
        return cred

    def _token_source(self, cred: UserCredentials) -> UserTokenSource:
        return UserTokenSource(cred, self.config, self._client)

    async def _from_cache(self, user_id: str) -> Optional[AppFolderDocument]:
        data = await self.cache.fetch(user_id)
        if data is None:
            return None
        try:
            return AppFolderDocument.from_json(data)
        except ValidationError as exc:
            self.logger.warning("Discarding undecodable cache entry", user_id=user_id, error=str(exc))
            return None

    async def _refresh_cache(self, user_id: str, document: AppFolderDocument) -> bool:
        try:
            await self.cache.store(user_id, document.to_json())
        except CacheTransientError as exc:
            self.logger.warning("AppFolder cache refresh failed", user_id=user_id, error=exc.message)
            return False
        return True
