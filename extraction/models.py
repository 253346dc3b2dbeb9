"""
Data models for extracted Objective-C declarations.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ParameterDecl:
    """A method parameter.

    Attributes:
        name: Declared parameter name.
        type: Raw clang qualType string.
        block_param_names: Parameter names of a callback-typed parameter as
            spelled in the header, when the raw type is a block and the header
            declares them.
    """

    name: str
    type: str
    block_param_names: Optional[List[str]] = None


@dataclass
class MethodDecl:
    """An instance or class method of a class or protocol."""

    selector: str
    return_type: str
    parameters: List[ParameterDecl] = field(default_factory=list)
    is_class_method: bool = False
    is_deprecated: bool = False
    deprecation_message: Optional[str] = None
    description: Optional[str] = None


@dataclass
class PropertyDecl:
    """A declared property."""

    name: str
    type: str
    readonly: bool = False
    is_class_property: bool = False
    is_deprecated: bool = False
    deprecation_message: Optional[str] = None
    description: Optional[str] = None
    block_param_names: Optional[List[str]] = None


@dataclass
class _MemberContainer:
    """Shared member bookkeeping for classes and protocols.

    Members are unique by selector (per instance/class side) and by property
    name. Adding a member that is already present is a no-op, so merging
    declarations in any order yields the same member set.
    """

    instance_methods: List[MethodDecl] = field(default_factory=list)
    class_methods: List[MethodDecl] = field(default_factory=list)
    properties: List[PropertyDecl] = field(default_factory=list)

    def add_method(self, method: MethodDecl) -> bool:
        bucket = self.class_methods if method.is_class_method else self.instance_methods
        if any(m.selector == method.selector for m in bucket):
            return False
        bucket.append(method)
        return True

    def add_property(self, prop: PropertyDecl) -> bool:
        if any(p.name == prop.name for p in self.properties):
            return False
        self.properties.append(prop)
        return True

    def merge_members(self, other: "_MemberContainer") -> int:
        """Union another record's members into this one; returns how many were added."""
        added = 0
        for method in other.instance_methods:
            added += self.add_method(method)
        for method in other.class_methods:
            added += self.add_method(method)
        for prop in other.properties:
            added += self.add_property(prop)
        return added

    def member_signature(self) -> tuple:
        """Identity of the member surface, used to compare two parses of one record."""
        return (
            frozenset(m.selector for m in self.instance_methods),
            frozenset(m.selector for m in self.class_methods),
            frozenset(p.name for p in self.properties),
        )


@dataclass
class ClassDecl(_MemberContainer):
    """An Objective-C class with its categories and extensions merged in."""

    name: str = ""
    superclass: Optional[str] = None
    protocols: List[str] = field(default_factory=list)

    def add_protocol(self, protocol: str) -> None:
        if protocol not in self.protocols:
            self.protocols.append(protocol)

    def merge(self, other: "ClassDecl") -> int:
        """Merge another declaration of the same class (never replaces identity)."""
        if self.superclass is None and other.superclass:
            self.superclass = other.superclass
        for proto in other.protocols:
            self.add_protocol(proto)
        return self.merge_members(other)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProtocolDecl(_MemberContainer):
    """An Objective-C protocol."""

    name: str = ""
    extended_protocols: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EnumConstant:
    """One integer enum constant with its resolved value."""

    name: str
    value: int
    description: Optional[str] = None


@dataclass
class IntegerEnumDecl:
    """NS_ENUM / NS_OPTIONS style enumeration."""

    name: str
    underlying_type: str
    is_options: bool = False
    values: List[EnumConstant] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return len(self.values) > 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StringEnumValue:
    """One exported string constant belonging to a string enum."""

    symbol_name: str
    short_name: str
    value: Optional[str] = None


@dataclass
class StringEnumDecl:
    """Typed extensible string enumeration backed by exported constants."""

    name: str
    values: List[StringEnumValue] = field(default_factory=list)

    @property
    def has_resolved_values(self) -> bool:
        return any(v.value is not None for v in self.values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StructField:
    name: str
    type: str


@dataclass
class StructDecl:
    """A C struct, keyed by its public name."""

    name: str
    fields: List[StructField] = field(default_factory=list)
    internal_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class StructAlias:
    """Typedef renaming an existing struct without changing its layout."""

    name: str
    target: str


@dataclass(frozen=True)
class ExtractionTargets:
    """Declaration names requested from one tree (trusted from discovery)."""

    classes: frozenset = frozenset()
    protocols: frozenset = frozenset()
    integer_enums: frozenset = frozenset()
    string_enums: frozenset = frozenset()

    @classmethod
    def of(
        cls,
        classes=(),
        protocols=(),
        integer_enums=(),
        string_enums=(),
    ) -> "ExtractionTargets":
        return cls(
            classes=frozenset(classes),
            protocols=frozenset(protocols),
            integer_enums=frozenset(integer_enums),
            string_enums=frozenset(string_enums),
        )

    def is_empty(self) -> bool:
        return not (self.classes or self.protocols or self.integer_enums or self.string_enums)

    def intersection(self, other: "ExtractionTargets") -> "ExtractionTargets":
        return ExtractionTargets(
            classes=self.classes & other.classes,
            protocols=self.protocols & other.protocols,
            integer_enums=self.integer_enums & other.integer_enums,
            string_enums=self.string_enums & other.string_enums,
        )


@dataclass
class ExtractionResult:
    """Everything one extraction pass recovered from a declaration tree."""

    classes: Dict[str, ClassDecl] = field(default_factory=dict)
    protocols: Dict[str, ProtocolDecl] = field(default_factory=dict)
    integer_enums: Dict[str, IntegerEnumDecl] = field(default_factory=dict)
    string_enums: Dict[str, StringEnumDecl] = field(default_factory=dict)
    structs: Dict[str, StructDecl] = field(default_factory=dict)
    struct_aliases: List[StructAlias] = field(default_factory=list)
    typedefs: Dict[str, str] = field(default_factory=dict)

    def missing(self, targets: ExtractionTargets) -> ExtractionTargets:
        """Targets that this result did not produce.

        An integer enum recorded only from a forward declaration counts as
        missing.
        """
        complete_enums = {n for n, e in self.integer_enums.items() if e.is_complete}
        return ExtractionTargets(
            classes=targets.classes.difference(self.classes),
            protocols=targets.protocols.difference(self.protocols),
            integer_enums=targets.integer_enums.difference(complete_enums),
            string_enums=targets.string_enums.difference(self.string_enums),
        )

    def counts(self) -> Dict[str, int]:
        return {
            "classes": len(self.classes),
            "protocols": len(self.protocols),
            "integer_enums": len(self.integer_enums),
            "string_enums": len(self.string_enums),
            "structs": len(self.structs),
            "struct_aliases": len(self.struct_aliases),
            "typedefs": len(self.typedefs),
        }
