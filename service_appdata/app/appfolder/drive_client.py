"""
Google Drive client for the user's private application folder.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict, List, Optional, Tuple

import httpx

from shared.config import AppDataConfig
from shared.errors import RemoteTransportError
from shared.logging import get_logger
from ..auth.token_sources import authorization_headers
from ..models import RemoteFileCandidate, Token

APP_FOLDER_ID = "appfolder"
SEARCH_APP_FOLDER_FILES = "'appfolder' in parents and title = '{title}' and trashed = false"
LIST_FIELDS = "nextPageToken,items(id,downloadUrl,modifiedDate)"
LIST_PAGE_SIZE = 100


class DriveClient:
    """Thin wrapper over the Drive list, download and multipart upload endpoints."""

    def __init__(self, config: AppDataConfig, http_client: httpx.AsyncClient):
        self.files_url = config.drive_files_url
        self.upload_url = config.drive_upload_url
        self.filename = config.drive_filename
        self.logger = get_logger("appdata.appfolder.drive")
        self._client = http_client

    def search_query(self) -> str:
        return SEARCH_APP_FOLDER_FILES.format(title=self.filename.replace("'", "\\'"))

    async def list_app_folder_files(self, token: Token) -> List[RemoteFileCandidate]:
        """List non-trashed files named like the AppFolder data file."""
        params = {
            "q": self.search_query(),
            "fields": LIST_FIELDS,
            "maxResults": str(LIST_PAGE_SIZE),
        }
        candidates: List[RemoteFileCandidate] = []
        while True:
            response = await self._request("GET", self.files_url, token, params=params)
            try:
                body = response.json()
                items = body.get("items") or []
                next_page = body.get("nextPageToken") or ""
            except (ValueError, AttributeError) as exc:
                raise RemoteTransportError("drive", f"malformed file list: {exc}") from exc

            for item in items:
                if not isinstance(item, dict):
                    continue
                candidates.append(RemoteFileCandidate(
                    id=item.get("id") or "",
                    modified=item.get("modifiedDate") or "",
                    download_url=item.get("downloadUrl") or "",
                ))

            if not next_page:
                return candidates
            params = dict(params, pageToken=next_page)

    async def download(self, token: Token, url: str) -> bytes:
        """Fetch raw file content from a download location."""
        response = await self._request("GET", url, token)
        return response.content

    async def upload(
        self,
        token: Token,
        content: bytes,
        file_id: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create (no file_id) or update (file_id) the AppFolder data file.

        Returns the file resource reported by Drive.
        """
        if metadata is None:
            metadata = {
                "title": self.filename,
                "mimeType": "application/json",
                "parents": [{"id": APP_FOLDER_ID}],
            }
        body, content_type = multipart_related(
            json.dumps(metadata).encode("utf-8"),
            content,
        )

        method, url = "POST", self.upload_url
        if file_id:
            method, url = "PUT", f"{self.upload_url}/{file_id}"

        response = await self._request(
            method,
            url,
            token,
            params={"uploadType": "multipart"},
            content=body,
            headers={"Content-Type": content_type},
            log_body=True,
        )
        try:
            resource = response.json()
        except ValueError:
            return {}
        return resource if isinstance(resource, dict) else {}

    async def _request(
        self,
        method: str,
        url: str,
        token: Token,
        *,
        params: Optional[Dict[str, str]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        log_body: bool = False,
    ) -> httpx.Response:
        request_headers = authorization_headers(token)
        if headers:
            request_headers.update(headers)
        try:
            response = await self._client.request(
                method, url, params=params, content=content, headers=request_headers
            )
        except httpx.HTTPError as exc:
            raise RemoteTransportError("drive", str(exc)) from exc

        if response.status_code > 299:
            if log_body:
                self.logger.error(
                    "Drive request failed",
                    method=method,
                    status_code=response.status_code,
                    body=response.text,
                )
            raise RemoteTransportError(
                "drive",
                f"{method} {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response


def multipart_related(metadata: bytes, media: bytes, media_type: str = "application/json") -> Tuple[bytes, str]:
    """Encode a two-part multipart/related payload: JSON metadata, then media."""
    boundary = uuid.uuid4().hex
    body = b"".join([
        f"--{boundary}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n".encode("utf-8"),
        metadata,
        f"\r\n--{boundary}\r\nContent-Type: {media_type}\r\n\r\n".encode("utf-8"),
        media,
        f"\r\n--{boundary}--\r\n".encode("utf-8"),
    ])
    return body, f"multipart/related; boundary={boundary}"
