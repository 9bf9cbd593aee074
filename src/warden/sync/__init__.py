"""Config synchronization: managed copy <-> live location, git history, schema."""

from warden.sync.config import ConfigSyncEngine, SyncResult, atomic_copy
from warden.sync.git import GitOperationResult, GitRepo
from warden.sync.schema import SchemaUpdater

__all__ = [
    "ConfigSyncEngine",
    "GitOperationResult",
    "GitRepo",
    "SchemaUpdater",
    "SyncResult",
    "atomic_copy",
]
