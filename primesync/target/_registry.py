# primesync/target/_registry.py
# per-record-type configuration (TypeSpec) and its registry.
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from ._types import ConfigError, record_type_of

DEFAULT_ID_FIELD = "Id"
DEFAULT_MOD_TIME_FIELD = "LastModifiedDate"

# config key -> accepted aliases (first wins); camelCase keys are the legacy wire names
_ALIASES: dict[str, tuple[str, ...]] = {
    "record_type": ("record_type", "sobjectType", "type"),
    "destination": ("destination", "soupName", "soup"),
    "id_field": ("id_field", "idFieldName"),
    "mod_time_field": ("mod_time_field", "modificationDateFieldName"),
    "fields": ("fields", "fieldlist"),
}


def _pick(raw: Mapping[str, Any], key: str) -> Any:
    for k in _ALIASES[key]:
        v = raw.get(k)
        if v not in (None, ""):
            return v
    return None


@dataclass(frozen=True)
class TypeSpec:
    record_type: str
    destination: str
    fields: tuple[str, ...] = field(default_factory=tuple)
    id_field: str = DEFAULT_ID_FIELD
    mod_time_field: str = DEFAULT_MOD_TIME_FIELD

    @classmethod
    def from_config(cls, raw: Mapping[str, Any]) -> "TypeSpec":
        if not isinstance(raw, Mapping):
            raise ConfigError(f"type spec must be an object, got {type(raw).__name__}")
        record_type = str(_pick(raw, "record_type") or "").strip()
        destination = str(_pick(raw, "destination") or "").strip()
        if not record_type:
            raise ConfigError("type spec is missing record_type")
        if not destination:
            raise ConfigError(f"type spec {record_type} is missing destination")
        fields = _pick(raw, "fields") or []
        if isinstance(fields, str) or not isinstance(fields, Iterable):
            raise ConfigError(f"type spec {record_type}: fields must be a list")
        return cls(
            record_type=record_type,
            destination=destination,
            fields=tuple(str(f) for f in fields if str(f).strip()),
            id_field=str(_pick(raw, "id_field") or DEFAULT_ID_FIELD),
            mod_time_field=str(_pick(raw, "mod_time_field") or DEFAULT_MOD_TIME_FIELD),
        )

    def as_config(self) -> dict[str, Any]:
        return {
            "record_type": self.record_type,
            "destination": self.destination,
            "fields": list(self.fields),
            "id_field": self.id_field,
            "mod_time_field": self.mod_time_field,
        }

    def fetch_fields(self) -> list[str]:
        """Configured fields plus the id and modification fields when missing."""
        out = list(self.fields)
        for name in (self.id_field, self.mod_time_field):
            if name not in out:
                out.append(name)
        return out


class TypeSpecRegistry:
    """Record-type keyed lookup of TypeSpecs, iterated in configuration order."""

    def __init__(self, specs: Iterable[TypeSpec]):
        self._specs: dict[str, TypeSpec] = {}
        for spec in specs:
            if spec.record_type in self._specs:
                raise ConfigError(f"duplicate record type: {spec.record_type}")
            self._specs[spec.record_type] = spec

    @classmethod
    def from_config(cls, infos: Iterable[Mapping[str, Any]] | None) -> "TypeSpecRegistry":
        if infos is None or isinstance(infos, (str, Mapping)):
            raise ConfigError("infos must be a list of type specs")
        return cls(TypeSpec.from_config(raw) for raw in infos)

    def as_config(self) -> list[dict[str, Any]]:
        return [s.as_config() for s in self._specs.values()]

    def get(self, record_type: str | None) -> TypeSpec | None:
        if not record_type:
            return None
        return self._specs.get(record_type)

    def match(self, record: Mapping[str, Any]) -> TypeSpec | None:
        return self.get(record_type_of(record))

    def types(self) -> list[str]:
        return list(self._specs)

    def __contains__(self, record_type: object) -> bool:
        return record_type in self._specs

    def __iter__(self) -> Iterator[TypeSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)
