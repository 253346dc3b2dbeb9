"""
Resolved declaration model handed to the emission stage.

Every member signature is mapped to host types and every cross-reference
(superclass, protocol, struct, enum) names a record present in the model.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from extraction.models import (
    ClassDecl,
    IntegerEnumDecl,
    MethodDecl,
    PropertyDecl,
    ProtocolDecl,
    StringEnumDecl,
    StructDecl,
)
from extraction.struct_fields import field_names_for
from resolution.config import NUMBER_TYPE
from resolution.context import ResolutionContext
from resolution.type_mapper import (
    host_class_name,
    resolve_param_type,
    resolve_return_type,
    resolve_type,
    selector_to_member_name,
)

logger = logging.getLogger(__name__)


@dataclass
class ResolvedParameter:
    name: str
    type: str


@dataclass
class ResolvedMethod:
    selector: str
    member_name: str
    return_type: str
    parameters: List[ResolvedParameter] = field(default_factory=list)
    is_class_method: bool = False
    is_deprecated: bool = False
    deprecation_message: Optional[str] = None
    description: Optional[str] = None


@dataclass
class ResolvedProperty:
    name: str
    type: str
    readonly: bool = False
    is_class_property: bool = False
    is_deprecated: bool = False
    deprecation_message: Optional[str] = None
    description: Optional[str] = None


@dataclass
class ResolvedClass:
    name: str
    host_name: str
    superclass: Optional[str] = None
    protocols: List[str] = field(default_factory=list)
    instance_methods: List[ResolvedMethod] = field(default_factory=list)
    class_methods: List[ResolvedMethod] = field(default_factory=list)
    properties: List[ResolvedProperty] = field(default_factory=list)


@dataclass
class ResolvedProtocol:
    name: str
    host_name: str
    extended_protocols: List[str] = field(default_factory=list)
    conformers: List[str] = field(default_factory=list)
    instance_methods: List[ResolvedMethod] = field(default_factory=list)
    class_methods: List[ResolvedMethod] = field(default_factory=list)
    properties: List[ResolvedProperty] = field(default_factory=list)


@dataclass
class ResolvedStructField:
    name: str
    type: str
    raw_type: str


@dataclass
class ResolvedStruct:
    name: str
    internal_name: Optional[str] = None
    fields: List[ResolvedStructField] = field(default_factory=list)
    named_fields: bool = False


@dataclass
class ResolvedEnumMember:
    name: str
    value: Any = None
    symbol_name: Optional[str] = None
    description: Optional[str] = None


@dataclass
class ResolvedEnum:
    name: str
    kind: str
    host_type: str
    is_options: bool = False
    members: List[ResolvedEnumMember] = field(default_factory=list)


def resolve_method(method: MethodDecl, containing: str, ctx: ResolutionContext) -> ResolvedMethod:
    return ResolvedMethod(
        selector=method.selector,
        member_name=selector_to_member_name(method.selector),
        return_type=resolve_return_type(method.return_type, containing, ctx),
        parameters=[
            ResolvedParameter(
                name=p.name,
                type=resolve_param_type(p.type, containing, ctx, p.block_param_names),
            )
            for p in method.parameters
        ],
        is_class_method=method.is_class_method,
        is_deprecated=method.is_deprecated,
        deprecation_message=method.deprecation_message,
        description=method.description,
    )


def resolve_property(prop: PropertyDecl, containing: str, ctx: ResolutionContext) -> ResolvedProperty:
    # Properties are read through their getter, so they resolve in return position.
    return ResolvedProperty(
        name=prop.name,
        type=resolve_return_type(prop.type, containing, ctx, prop.block_param_names),
        readonly=prop.readonly,
        is_class_property=prop.is_class_property,
        is_deprecated=prop.is_deprecated,
        deprecation_message=prop.deprecation_message,
        description=prop.description,
    )


def _resolve_members(record, containing: str, ctx: ResolutionContext) -> Tuple[list, list, list]:
    return (
        [resolve_method(m, containing, ctx) for m in record.instance_methods],
        [resolve_method(m, containing, ctx) for m in record.class_methods],
        [resolve_property(p, containing, ctx) for p in record.properties],
    )


def resolve_class(cls: ClassDecl, ctx: ResolutionContext) -> ResolvedClass:
    """Resolve one class; references to unparsed records are dropped."""
    instance_methods, class_methods, properties = _resolve_members(cls, cls.name, ctx)
    superclass = cls.superclass if cls.superclass in ctx.known_classes else None
    return ResolvedClass(
        name=cls.name,
        host_name=host_class_name(cls.name),
        superclass=superclass,
        protocols=[p for p in cls.protocols if p in ctx.known_protocols],
        instance_methods=instance_methods,
        class_methods=class_methods,
        properties=properties,
    )


def resolve_protocol(proto: ProtocolDecl, ctx: ResolutionContext) -> ResolvedProtocol:
    instance_methods, class_methods, properties = _resolve_members(proto, proto.name, ctx)
    return ResolvedProtocol(
        name=proto.name,
        host_name=host_class_name(proto.name),
        extended_protocols=[p for p in proto.extended_protocols if p in ctx.known_protocols],
        conformers=sorted(ctx.conformers_of(proto.name)),
        instance_methods=instance_methods,
        class_methods=class_methods,
        properties=properties,
    )


def struct_field_names(struct: StructDecl, ctx: ResolutionContext) -> Tuple[List[str], bool]:
    """Host-visible field names and whether they came from the field-name table.

    The table is keyed by public name (internal name as a second chance) and
    is used only when it lists exactly as many fields as the struct has.
    """
    count = len(struct.fields)
    for key in (struct.name, struct.internal_name):
        if key and key in ctx.struct_field_names:
            names = field_names_for(ctx.struct_field_names, key, count)
            if tuple(names) == ctx.struct_field_names[key]:
                return names, True
    return field_names_for({}, struct.name, count), False


def resolve_struct(struct: StructDecl, ctx: ResolutionContext) -> ResolvedStruct:
    names, named = struct_field_names(struct, ctx)
    return ResolvedStruct(
        name=struct.name,
        internal_name=struct.internal_name,
        fields=[
            ResolvedStructField(name=name, type=resolve_type(f.type, struct.name, ctx), raw_type=f.type)
            for name, f in zip(names, struct.fields)
        ],
        named_fields=named,
    )


def resolve_integer_enum(enum: IntegerEnumDecl) -> ResolvedEnum:
    return ResolvedEnum(
        name=enum.name,
        kind="integer",
        host_type=NUMBER_TYPE,
        is_options=enum.is_options,
        members=[ResolvedEnumMember(name=c.name, value=c.value, description=c.description) for c in enum.values],
    )


def resolve_string_enum(enum: StringEnumDecl) -> ResolvedEnum:
    """Unresolved constants become valueless, type-only members."""
    return ResolvedEnum(
        name=enum.name,
        kind="string",
        host_type=enum.name,
        members=[
            ResolvedEnumMember(name=v.short_name, value=v.value, symbol_name=v.symbol_name)
            for v in enum.values
        ],
    )


@dataclass
class ResolvedModel:
    """The whole resolved run, keyed by declaration name."""

    classes: Dict[str, ResolvedClass] = field(default_factory=dict)
    protocols: Dict[str, ResolvedProtocol] = field(default_factory=dict)
    structs: Dict[str, ResolvedStruct] = field(default_factory=dict)
    struct_aliases: Dict[str, str] = field(default_factory=dict)
    enums: Dict[str, ResolvedEnum] = field(default_factory=dict)

    def counts(self) -> Dict[str, int]:
        return {
            "classes": len(self.classes),
            "protocols": len(self.protocols),
            "structs": len(self.structs),
            "struct_aliases": len(self.struct_aliases),
            "enums": len(self.enums),
        }

    def records(self) -> Iterator[Dict[str, Any]]:
        """One JSON-ready row per record, in a stable order."""
        for kind, table in (
            ("class", self.classes),
            ("protocol", self.protocols),
            ("struct", self.structs),
            ("enum", self.enums),
        ):
            for name in sorted(table):
                row = asdict(table[name])
                row["record_type"] = kind
                yield row
        for name in sorted(self.struct_aliases):
            yield {"record_type": "struct_alias", "name": name, "target": self.struct_aliases[name]}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "classes": {n: asdict(r) for n, r in sorted(self.classes.items())},
            "protocols": {n: asdict(r) for n, r in sorted(self.protocols.items())},
            "structs": {n: asdict(r) for n, r in sorted(self.structs.items())},
            "struct_aliases": dict(sorted(self.struct_aliases.items())),
            "enums": {n: asdict(r) for n, r in sorted(self.enums.items())},
        }


def build_resolved_model(
    ctx: ResolutionContext,
    classes: Mapping[str, ClassDecl],
    protocols: Mapping[str, ProtocolDecl],
    structs: Mapping[str, StructDecl],
    integer_enums: Mapping[str, IntegerEnumDecl],
    string_enums: Mapping[str, StringEnumDecl],
    struct_aliases: Optional[Mapping[str, str]] = None,
) -> ResolvedModel:
    """Resolve every parsed record against one shared context.

    Protocols that share a class's name were already absorbed into that class
    and are not emitted separately.
    """
    model = ResolvedModel()
    for name in sorted(classes):
        model.classes[name] = resolve_class(classes[name], ctx)
    for name in sorted(protocols):
        if name in classes:
            continue
        model.protocols[name] = resolve_protocol(protocols[name], ctx)
    for name in sorted(structs):
        model.structs[name] = resolve_struct(structs[name], ctx)
    for alias, target in sorted((struct_aliases or {}).items()):
        if target in structs:
            model.struct_aliases[alias] = target
    for name in sorted(integer_enums):
        enum = integer_enums[name]
        if enum.is_complete:
            model.enums[name] = resolve_integer_enum(enum)
    for name in sorted(string_enums):
        model.enums.setdefault(name, resolve_string_enum(string_enums[name]))

    named = sum(1 for s in model.structs.values() if s.named_fields)
    logger.info(
        "Resolved %d class(es), %d protocol(s), %d struct(s) (%d with named fields), %d enum(s)",
        len(model.classes),
        len(model.protocols),
        len(model.structs),
        named,
        len(model.enums),
    )
    return model
