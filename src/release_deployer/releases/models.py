"""Data model for releases and the project folder on the target host."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

TOKEN_FORMAT = "%Y%m%d%H%M%S"
TOKEN_LENGTH = 14


def make_release_token(moment: Optional[datetime] = None) -> str:
    """Return the fixed-width ``YYYYMMDDHHMMSS`` token for ``moment`` (UTC)."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TOKEN_FORMAT)


def is_release_token(value: str) -> bool:
    return len(value) == TOKEN_LENGTH and value.isdigit()


def token_from_listing(entry: str) -> Optional[str]:
    """Extract the token from one ``ls -d releases/*/`` line.

    The token is the fixed-width slice right before the trailing slash.
    """
    entry = entry.strip()
    if not entry.endswith("/"):
        return None
    token = entry[-(TOKEN_LENGTH + 1):-1]
    return token if is_release_token(token) else None


@dataclass(frozen=True)
class SharedLink:
    """A symlink from a release into the shared folder."""

    target: str  # relative to shared/
    link: str  # relative to the release directory


SHARED_FILES = (
    SharedLink("secrets/.env.production", ".env.production"),
)
SHARED_DIRS = (
    SharedLink("cache", "cache"),
    SharedLink("logs", "logs"),
    SharedLink("media/uploads", "public/uploads"),
)
SHARED_RESOURCE_DIRS = ("cache", "logs", "secrets", "media/uploads")
SHARED_PUBLIC_DIR = "public"


@dataclass(frozen=True)
class ProjectLayout:
    """Paths of the project folder on the target host."""

    root: str

    @property
    def releases_dir(self) -> str:
        return posixpath.join(self.root, "releases")

    @property
    def shared_dir(self) -> str:
        return posixpath.join(self.root, "shared")

    @property
    def current_link(self) -> str:
        return posixpath.join(self.root, "current")

    @property
    def revision_log(self) -> str:
        return posixpath.join(self.root, "revisions.log")

    def release_dir(self, token: str) -> str:
        return posixpath.join(self.releases_dir, token)

    def shared_path(self, relative: str) -> str:
        return posixpath.join(self.shared_dir, relative)


@dataclass(frozen=True)
class Release:
    """One deployed release directory."""

    token: str
    path: str
    revision: str = ""

    @property
    def created_at(self) -> datetime:
        return datetime.strptime(self.token, TOKEN_FORMAT).replace(tzinfo=timezone.utc)
