"""
Shared, read-only lookup tables for type resolution.

A ``ResolutionContext`` is built once after all batches are collected and
passed explicitly to every resolution call. Known-name sets come from parsed
records only, never from discovery, so every reference the resolver emits
points at a record the emission stage can generate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from extraction.models import (
    ClassDecl,
    IntegerEnumDecl,
    ProtocolDecl,
    StructAlias,
    StructDecl,
)
from resolution.conformance import build_conformer_map

if TYPE_CHECKING:
    from scheduling.collector import GlobalTables


def _empty_mapping() -> Mapping:
    return MappingProxyType({})


def build_struct_type_map(
    structs: Mapping[str, StructDecl],
    aliases: Mapping[str, str],
) -> Dict[str, str]:
    """Raw struct spelling -> host struct type name.

    Public names map to themselves, internal record names to their public
    name (unless the internal name is itself public), aliases to their target.
    """
    type_map: Dict[str, str] = {name: name for name in structs}
    for public_name, struct in structs.items():
        internal = struct.internal_name
        if internal and internal not in structs:
            type_map[internal] = public_name
    for alias_name, target in aliases.items():
        type_map[alias_name] = target
    return type_map


def _alias_mapping(aliases) -> Dict[str, str]:
    if isinstance(aliases, Mapping):
        return dict(aliases)
    return {a.name: a.target for a in aliases}


@dataclass(frozen=True)
class ResolutionContext:
    """Everything the type resolver consults; immutable once built."""

    known_classes: FrozenSet[str] = frozenset()
    known_protocols: FrozenSet[str] = frozenset()
    conformers: Mapping[str, FrozenSet[str]] = field(default_factory=_empty_mapping)
    integer_enums: FrozenSet[str] = frozenset()
    string_enums: FrozenSet[str] = frozenset()
    typedefs: Mapping[str, str] = field(default_factory=_empty_mapping)
    struct_types: Mapping[str, str] = field(default_factory=_empty_mapping)
    struct_field_names: Mapping[str, Tuple[str, ...]] = field(default_factory=_empty_mapping)

    @property
    def struct_host_types(self) -> FrozenSet[str]:
        """Host struct type names any resolved signature may reference."""
        return frozenset(self.struct_types.values())

    def conformers_of(self, protocol: str) -> FrozenSet[str]:
        return self.conformers.get(protocol, frozenset())

    @classmethod
    def from_tables(
        cls,
        classes: Mapping[str, ClassDecl],
        protocols: Mapping[str, ProtocolDecl],
        integer_enums: Iterable[str] = (),
        string_enums: Iterable[str] = (),
        structs: Optional[Mapping[str, StructDecl]] = None,
        struct_aliases: Iterable[StructAlias] = (),
        typedefs: Optional[Mapping[str, str]] = None,
        field_names: Optional[Mapping[str, List[str]]] = None,
    ) -> "ResolutionContext":
        """Build the context from parsed records.

        ``integer_enums`` and ``string_enums`` accept either name iterables or
        name-keyed mappings of records. ``struct_aliases`` accepts either
        ``StructAlias`` records or a name -> target mapping.
        """
        if isinstance(integer_enums, Mapping):
            # A forward declaration alone is not a generated record.
            integer_enums = [
                n for n, e in integer_enums.items()
                if not isinstance(e, IntegerEnumDecl) or e.is_complete
            ]

        conformer_sets = build_conformer_map(classes, protocols)
        struct_types = build_struct_type_map(structs or {}, _alias_mapping(struct_aliases))
        return cls(
            known_classes=frozenset(classes),
            known_protocols=frozenset(protocols),
            conformers=MappingProxyType({k: frozenset(v) for k, v in conformer_sets.items()}),
            integer_enums=frozenset(integer_enums),
            string_enums=frozenset(string_enums),
            typedefs=MappingProxyType(dict(typedefs or {})),
            struct_types=MappingProxyType(struct_types),
            struct_field_names=MappingProxyType({k: tuple(v) for k, v in (field_names or {}).items()}),
        )

    @classmethod
    def from_global_tables(
        cls,
        tables: "GlobalTables",
        field_names: Optional[Mapping[str, List[str]]] = None,
    ) -> "ResolutionContext":
        return cls.from_tables(
            classes=tables.classes,
            protocols=tables.protocols,
            integer_enums=tables.integer_enums,
            string_enums=tables.string_enums,
            structs=tables.structs,
            struct_aliases=tables.struct_aliases,
            typedefs=tables.typedefs,
            field_names=field_names,
        )
