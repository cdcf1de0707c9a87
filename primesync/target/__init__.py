# Public surface of the target package.
from ._types import (
    ConfigError,
    FeedNotExhaustedError,
    FetchResult,
    GhostCleanupError,
    PrimingParseError,
    QueryParseError,
    RunState,
    SyncParseError,
    SyncStoppedError,
    SyncTargetError,
)
from ._chunking import DEFAULT_COUNT_IDS_PER_QUERY, MAX_COUNT_IDS_PER_QUERY
from ._registry import TypeSpec, TypeSpecRegistry
from .facade import TARGET_TYPE, PrimingSyncDownTarget

__all__ = [
    "PrimingSyncDownTarget",
    "TARGET_TYPE",
    "TypeSpec",
    "TypeSpecRegistry",
    "RunState",
    "FetchResult",
    "DEFAULT_COUNT_IDS_PER_QUERY",
    "MAX_COUNT_IDS_PER_QUERY",
    "SyncTargetError",
    "ConfigError",
    "SyncParseError",
    "PrimingParseError",
    "QueryParseError",
    "SyncStoppedError",
    "FeedNotExhaustedError",
    "GhostCleanupError",
]
