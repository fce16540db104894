"""
AppFolder data: per-user bookmarks, viewed items, feedback and push key,
kept in the user's private Drive application folder and mirrored in the
shared cache.
"""

from .drive_client import DriveClient, multipart_related
from .sync import AppFolderSync, CredentialStore, parse_modified, select_latest

__all__ = [
    "AppFolderSync",
    "CredentialStore",
    "DriveClient",
    "multipart_related",
    "parse_modified",
    "select_latest",
]
