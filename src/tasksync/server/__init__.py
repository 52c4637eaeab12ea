"""Reference remote store server."""

from .api import create_app
from .hub import SnapshotHub
from .repository import FileCollectionRepository

__all__ = ["FileCollectionRepository", "SnapshotHub", "create_app"]
