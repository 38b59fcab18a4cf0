"""Stores package for match state persistence."""

from .local_store import LocalStore
from .remote_store import (
    RemoteStore,
    UsageError,
    ConnectivityError,
    get_remote_store,
    close_remote_store,
)
from .share_store import ShareStore, ShareLookup, SharedMatch

__all__ = [
    # Local fallback
    "LocalStore",
    # Remote store
    "RemoteStore",
    "UsageError",
    "ConnectivityError",
    "get_remote_store",
    "close_remote_store",
    # Sharing
    "ShareStore",
    "ShareLookup",
    "SharedMatch",
]
