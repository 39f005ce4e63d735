# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

from typing import Optional


class SyncError(Exception):
    """Base class for every failure raised by the sync."""


class ConfigError(SyncError):
    """A required setting is missing or malformed."""


class AuthError(SyncError):
    """Credentials are missing for an API call or were rejected by Cloudflare."""


class ParseError(SyncError):
    """The source blocklist could not be turned into domain entries."""


class RemoteError(SyncError):
    """An API or download call came back with a non-success response."""

    def __init__(self, action: str, status: Optional[int] = None,
                 reason: str = "", body: str = ""):
        self.action = action
        self.status = status
        self.reason = reason
        self.body = body
        message = f"Error {action}: {status} {reason}".rstrip()
        if body:
            message = f"{message} - {body}"
        super().__init__(message)


class RemoteFetchError(RemoteError):
    """A read (GET) returned non-success."""


class RemoteMutationError(RemoteError):
    """A write (POST/PUT/DELETE) returned non-success."""
