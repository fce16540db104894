"""
Data types shared by the verification and AppFolder sync components.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True)
class VerifiedIdentity:
    """User identity established for a single request.

    Created once by TokenVerifier and handed explicitly to every downstream
    operation of the same request.
    """

    user_id: str


class VerificationMethod(str, Enum):
    """How an inbound bearer credential was checked."""

    ID_TOKEN = "id_token"
    ACCESS_TOKEN = "access_token"


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of one verification attempt."""

    method: VerificationMethod
    user_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.user_id is not None


@dataclass(frozen=True)
class UserCredentials:
    """A user's OAuth 2.0 credentials, scoped to the calling request."""

    user_id: str
    expiry: datetime
    access_token: str
    refresh_token: str = ""

    def expired(self, skew_seconds: int = 10, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expiry.timestamp() - skew_seconds <= now.timestamp()


@dataclass(frozen=True)
class Token:
    """An access token produced by a TokenSource."""

    access_token: str
    token_type: str = "Bearer"
    expiry: Optional[datetime] = None


class AppFolderDocument(BaseModel):
    """Per-user AppFolder data.

    An empty ``remote_file_id`` means the document has not been created in
    the remote store yet.
    """

    model_config = ConfigDict(populate_by_name=True)

    remote_file_id: str = Field(default="", alias="id")
    push_key: str = Field(default="", alias="gcm_key")
    bookmarked_items: List[str] = Field(default_factory=list, alias="starred_sessions")
    viewed_items: List[str] = Field(default_factory=list, alias="viewed_videos")
    feedback_items: List[str] = Field(default_factory=list, alias="feedback_submitted_sessions")

    @field_validator("bookmarked_items", "viewed_items", "feedback_items", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("remote_file_id", "push_key", mode="before")
    @classmethod
    def _null_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    def to_json(self) -> bytes:
        """Serialize using the wire field names."""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes) -> "AppFolderDocument":
        return cls.model_validate_json(data)


@dataclass(frozen=True)
class RemoteFileCandidate:
    """A remote file matching the AppFolder filename, considered during conflict resolution."""

    id: str
    modified: str
    download_url: str
