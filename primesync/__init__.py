# Public surface of PrimeSync.
from .target import (
    ConfigError,
    FeedNotExhaustedError,
    FetchResult,
    GhostCleanupError,
    PrimingParseError,
    PrimingSyncDownTarget,
    QueryParseError,
    RunState,
    SyncParseError,
    SyncStoppedError,
    SyncTargetError,
    TypeSpec,
    TypeSpecRegistry,
)
from .store import SoupStore
from .manager import SyncManager, SyncResult, SyncStatus

__version__ = "0.1.0"
__all__ = [
    "PrimingSyncDownTarget",
    "TypeSpec",
    "TypeSpecRegistry",
    "RunState",
    "FetchResult",
    "SoupStore",
    "SyncManager",
    "SyncResult",
    "SyncStatus",
    "SyncTargetError",
    "ConfigError",
    "SyncParseError",
    "PrimingParseError",
    "QueryParseError",
    "SyncStoppedError",
    "FeedNotExhaustedError",
    "GhostCleanupError",
]
