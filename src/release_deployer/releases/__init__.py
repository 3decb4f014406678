"""Release history, shared resources and the current pointer."""

from .manager import ReleaseManager
from .models import (
    SHARED_DIRS,
    SHARED_FILES,
    SHARED_RESOURCE_DIRS,
    TOKEN_LENGTH,
    ProjectLayout,
    Release,
    SharedLink,
    is_release_token,
    make_release_token,
    token_from_listing,
)

__all__ = [
    "ReleaseManager",
    "ProjectLayout",
    "Release",
    "SharedLink",
    "SHARED_DIRS",
    "SHARED_FILES",
    "SHARED_RESOURCE_DIRS",
    "TOKEN_LENGTH",
    "is_release_token",
    "make_release_token",
    "token_from_listing",
]
