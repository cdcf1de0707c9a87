# primesync/target/_chunking.py
# id slicing for bounded queries.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Any, TypeVar

T = TypeVar("T")

DEFAULT_COUNT_IDS_PER_QUERY = 500
# The query limit is 100k characters, but callers expect one response per request.
MAX_COUNT_IDS_PER_QUERY = 2000


def effective_slice_size(value: Any, default: int = DEFAULT_COUNT_IDS_PER_QUERY) -> int:
    try:
        n = int(value) if value is not None else int(default)
    except (TypeError, ValueError):
        n = int(default)
    return max(1, min(n, MAX_COUNT_IDS_PER_QUERY))


def slices(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    size = max(1, int(size))
    for i in range(0, len(items), size):
        yield items[i:i + size]


def count_slices(total: int, size: int) -> int:
    size = max(1, int(size))
    return (max(0, int(total)) + size - 1) // size
