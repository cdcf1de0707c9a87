# /primesync/transport/soql.py
# PrimeSync - query string builder
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from collections.abc import Iterable, Sequence


def quote(value: str) -> str:
    s = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{s}'"


def in_clause(field: str, values: Iterable[str]) -> str:
    return f"{field} IN (" + ", ".join(quote(v) for v in values) + ")"


class SOQLBuilder:
    def __init__(self, fields: Sequence[str]):
        if not fields:
            raise ValueError("at least one field is required")
        self._fields = list(dict.fromkeys(str(f) for f in fields))
        self._from: str | None = None
        self._where: str | None = None

    @classmethod
    def with_fields(cls, fields: Sequence[str]) -> "SOQLBuilder":
        return cls(fields)

    def from_(self, source: str) -> "SOQLBuilder":
        self._from = str(source)
        return self

    def where(self, clause: str | None) -> "SOQLBuilder":
        self._where = clause or None
        return self

    def build(self) -> str:
        if not self._from:
            raise ValueError("from_() is required")
        parts = [f"SELECT {', '.join(self._fields)}", f"FROM {self._from}"]
        if self._where:
            parts.append(f"WHERE {self._where}")
        return " ".join(parts)
