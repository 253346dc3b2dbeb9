"""
Declaration tree traversal and record extraction.

Each ``parse_*`` function makes one document-order pass over the top-level
declarations of a pruned tree and builds one family of records. Documentation
and deprecation are taken from structural nodes when clang provides them and
recovered from the header text otherwise.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Set, Tuple

from extraction.ast_nodes import ClangNode, iter_nodes
from extraction.config import (
    ANONYMOUS_NAME,
    CATEGORY_DECL,
    CONSTANT_EXPR,
    DEPRECATED_ATTR,
    ENUM_CONSTANT_DECL,
    ENUM_DECL,
    EXTERN_STORAGE,
    FIELD_DECL,
    FLAG_ENUM_ATTR,
    FULL_COMMENT,
    INTERFACE_DECL,
    METHOD_DECL,
    PARAM_DECL,
    PROPERTY_DECL,
    PROTOCOL_DECL,
    RECORD_DECL,
    RESERVED_TYPEDEF_PREFIXES,
    STRING_CLASS_NAMES,
    STRING_POINTER_TYPES,
    STRUCT_TAG,
    SWIFT_NEWTYPE_ATTR,
    TEXT_COMMENT,
    TYPEDEF_DECL,
    UNAVAILABLE_ATTR,
    VAR_DECL,
)
from extraction.models import (
    ClassDecl,
    EnumConstant,
    IntegerEnumDecl,
    MethodDecl,
    ParameterDecl,
    PropertyDecl,
    ProtocolDecl,
    StringEnumDecl,
    StringEnumValue,
    StructAlias,
    StructDecl,
    StructField,
    _MemberContainer,
)
from extraction.source_scan import (
    HeaderLineCache,
    find_deprecation,
    find_documentation,
    recover_block_parameter_names,
)

logger = logging.getLogger(__name__)

_SPACE_RE = re.compile(r"\s+")
_STRUCT_REF_RE = re.compile(r"^(?:struct\s+)?(\w+)$")
_TAG_PREFIX_RE = re.compile(r"^(?:struct|enum|union)\s+")
_POINTER_BASE_RE = re.compile(r"^(?:const\s+)?(\w+)\s*\*")
_NULLABILITY_RE = re.compile(r"\b(?:_Nonnull|_Nullable|_Null_unspecified|__kindof)\b")
_BLOCK_MARKER = "(^"


# ---------------------------------------------------------------------------
# Node predicates and metadata
# ---------------------------------------------------------------------------

def is_unavailable(node: ClangNode) -> bool:
    return node.has_child(UNAVAILABLE_ATTR)


def is_implicit(node: ClangNode) -> bool:
    return bool(node.get("isImplicit"))


def structural_description(node: ClangNode) -> Optional[str]:
    """Join the text leaves of a node's documentation comment, if clang kept one."""
    for child in node.inner:
        if child.kind != FULL_COMMENT:
            continue
        texts = [
            n.get("text", "").strip()
            for n in iter_nodes(child)
            if n.kind == TEXT_COMMENT and n.get("text")
        ]
        joined = _SPACE_RE.sub(" ", " ".join(t for t in texts if t)).strip()
        if joined:
            return joined
    return None


def _scan_line(node: ClangNode) -> Optional[int]:
    """First line of the declaration text (range begin when it precedes loc)."""
    if node.begin_line and node.line and node.begin_line <= node.line:
        return node.begin_line
    return node.line


def declaration_metadata(
    node: ClangNode,
    lines: HeaderLineCache,
) -> Tuple[bool, Optional[str], Optional[str]]:
    """Resolve ``(is_deprecated, deprecation_message, description)`` for a node.

    Structural and textual deprecation are OR-ed; in a synthetic unit that
    merges many headers the textual scan is the reliable signal.
    """
    header = lines.get(node.file)
    attr_deprecated = False
    attr_message = None
    for child in node.inner:
        if child.kind == DEPRECATED_ATTR:
            attr_deprecated = True
            attr_message = child.get("message") or attr_message
    text_deprecated, text_message = find_deprecation(header, node.line)

    description = structural_description(node)
    if description is None:
        description = find_documentation(header, node.line, node.begin_line)

    return (
        attr_deprecated or text_deprecated,
        text_message or attr_message,
        description,
    )


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

def build_method(node: ClangNode, lines: HeaderLineCache) -> Optional[MethodDecl]:
    """Build a MethodDecl; ``None`` for implicit or unavailable methods."""
    if node.kind != METHOD_DECL or is_implicit(node) or is_unavailable(node):
        return None

    deprecated, message, description = declaration_metadata(node, lines)
    header = None
    parameters: List[ParameterDecl] = []
    for index, child in enumerate(node.children(PARAM_DECL)):
        raw_type = child.qual_type() or "id"
        block_names = None
        if _BLOCK_MARKER in raw_type:
            if header is None:
                header = lines.get(node.file)
            block_names = recover_block_parameter_names(header, _scan_line(node), index)
        parameters.append(ParameterDecl(
            name=child.name or "arg",
            type=raw_type,
            block_param_names=block_names,
        ))

    return MethodDecl(
        selector=node.name or "",
        return_type=node.qual_type("returnType") or "void",
        parameters=parameters,
        is_class_method=node.get("instance") is False,
        is_deprecated=deprecated,
        deprecation_message=message,
        description=description,
    )


def build_property(node: ClangNode, lines: HeaderLineCache) -> Optional[PropertyDecl]:
    """Build a PropertyDecl; ``None`` for implicit or unavailable properties."""
    if node.kind != PROPERTY_DECL or is_implicit(node) or is_unavailable(node):
        return None

    deprecated, message, description = declaration_metadata(node, lines)
    raw_type = node.qual_type() or "id"
    block_names = None
    if _BLOCK_MARKER in raw_type:
        block_names = recover_block_parameter_names(lines.get(node.file), _scan_line(node))

    return PropertyDecl(
        name=node.name or "",
        type=raw_type,
        readonly=node.get("readonly") is True,
        is_class_property=node.get("class") is True,
        is_deprecated=deprecated,
        deprecation_message=message,
        description=description,
        block_param_names=block_names,
    )


def add_members(container: _MemberContainer, node: ClangNode, lines: HeaderLineCache) -> int:
    """Append a declaration's methods/properties, skipping names already present."""
    added = 0
    for child in node.inner:
        if child.kind == METHOD_DECL:
            method = build_method(child, lines)
            if method is not None:
                added += container.add_method(method)
        elif child.kind == PROPERTY_DECL:
            prop = build_property(child, lines)
            if prop is not None:
                added += container.add_property(prop)
    return added


def _is_forward_reference(node: ClangNode) -> bool:
    """``@class X;`` / ``@protocol X;`` carry no superclass, protocols or members."""
    return not node.inner and not node.get("super") and not node.get("protocols")


# ---------------------------------------------------------------------------
# Classes and protocols
# ---------------------------------------------------------------------------

def parse_classes(
    tree: ClangNode,
    targets: Iterable[str],
    lines: Optional[HeaderLineCache] = None,
) -> Dict[str, ClassDecl]:
    """Extract target classes with categories and extensions merged in.

    A protocol sharing a target class's name (the root object's own
    protocol) is merged into that class instead of being kept separate.
    """
    wanted: Set[str] = set(targets)
    cache = lines or HeaderLineCache()
    classes: Dict[str, ClassDecl] = {}

    for node in tree.inner:
        if node.kind == INTERFACE_DECL:
            name = node.name
        elif node.kind == CATEGORY_DECL:
            name = node.ref_name("interface")
        elif node.kind == PROTOCOL_DECL:
            name = node.name
        else:
            continue
        if not name or name not in wanted:
            continue
        if node.kind != CATEGORY_DECL and _is_forward_reference(node):
            continue

        cls = classes.get(name)
        if cls is None:
            cls = ClassDecl(name=name)
            classes[name] = cls

        if node.kind == INTERFACE_DECL and cls.superclass is None:
            cls.superclass = node.ref_name("super")
        for proto in node.ref_names("protocols"):
            cls.add_protocol(proto)
        add_members(cls, node, cache)

    logger.debug("Parsed %d/%d target classes", len(classes), len(wanted))
    return classes


def parse_protocols(
    tree: ClangNode,
    targets: Iterable[str],
    lines: Optional[HeaderLineCache] = None,
) -> Dict[str, ProtocolDecl]:
    """Extract target protocol definitions (forward references are ignored)."""
    wanted: Set[str] = set(targets)
    cache = lines or HeaderLineCache()
    protocols: Dict[str, ProtocolDecl] = {}

    for node in tree.inner:
        if node.kind != PROTOCOL_DECL or not node.name or node.name not in wanted:
            continue
        if _is_forward_reference(node):
            continue
        proto = protocols.get(node.name)
        if proto is None:
            proto = ProtocolDecl(name=node.name)
            protocols[node.name] = proto
        for parent in node.ref_names("protocols"):
            if parent not in proto.extended_protocols:
                proto.extended_protocols.append(parent)
        add_members(proto, node, cache)

    logger.debug("Parsed %d/%d target protocols", len(protocols), len(wanted))
    return protocols


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

def find_constant_value(node: ClangNode) -> Optional[int]:
    """Evaluated value of the first ConstantExpr below an enum constant."""
    for candidate in iter_nodes(node):
        if candidate is node or candidate.kind != CONSTANT_EXPR:
            continue
        raw = candidate.get("value")
        if raw is None:
            continue
        try:
            return int(str(raw), 0)
        except ValueError:
            logger.debug("Unparseable constant value %r for %s", raw, node.name)
            return None
    return None


def infer_enum_values(constants: Iterable[Tuple[str, Optional[int]]]) -> List[Tuple[str, int]]:
    """Apply C enumerator numbering to ``(name, explicit_value_or_None)`` pairs.

    An explicit value resets the running counter to value + 1; an omitted
    value takes the running counter.
    """
    resolved: List[Tuple[str, int]] = []
    counter = 0
    for name, explicit in constants:
        value = explicit if explicit is not None else counter
        resolved.append((name, value))
        counter = value + 1
    return resolved


def parse_integer_enums(
    tree: ClangNode,
    targets: Iterable[str],
    lines: Optional[HeaderLineCache] = None,
) -> Dict[str, IntegerEnumDecl]:
    """Extract fixed-underlying-type enums.

    A forward declaration (no constants) is recorded only until a complete
    definition for the same name shows up, and never replaces one.
    """
    wanted: Set[str] = set(targets)
    cache = lines or HeaderLineCache()
    enums: Dict[str, IntegerEnumDecl] = {}

    for node in tree.inner:
        if node.kind != ENUM_DECL or not node.name or node.name not in wanted:
            continue
        underlying = node.qual_type("fixedUnderlyingType")
        if underlying is None:
            continue

        constant_nodes = node.children(ENUM_CONSTANT_DECL)
        if not constant_nodes:
            if node.name not in enums:
                enums[node.name] = IntegerEnumDecl(name=node.name, underlying_type=underlying)
            continue

        named = [c for c in constant_nodes if c.name]
        numbered = infer_enum_values((c.name, find_constant_value(c)) for c in named)
        values: List[EnumConstant] = []
        for const_node, (const_name, value) in zip(named, numbered):
            _, _, description = declaration_metadata(const_node, cache)
            values.append(EnumConstant(name=const_name, value=value, description=description))

        enums[node.name] = IntegerEnumDecl(
            name=node.name,
            underlying_type=underlying,
            is_options=node.has_child(FLAG_ENUM_ATTR),
            values=values,
        )

    return enums


def _is_string_pointer(qual_type: Optional[str]) -> bool:
    if not qual_type:
        return False
    cleaned = _SPACE_RE.sub(" ", _NULLABILITY_RE.sub("", qual_type)).strip()
    if cleaned in STRING_POINTER_TYPES:
        return True
    match = _POINTER_BASE_RE.match(cleaned)
    return bool(match and match.group(1) in STRING_CLASS_NAMES)


def string_enum_short_name(symbol: str, enum_name: str) -> str:
    """Strip the enum name prefix; keep the full symbol if that leaves no identifier."""
    short = symbol[len(enum_name):] if symbol.startswith(enum_name) else symbol
    if not short or short[0].isdigit():
        return symbol
    return short


def parse_string_enums(tree: ClangNode, targets: Iterable[str]) -> Dict[str, StringEnumDecl]:
    """Extract string enums and link their exported constants by typedef identity."""
    wanted: Set[str] = set(targets)
    enums: Dict[str, StringEnumDecl] = {}
    typedef_ids: Dict[str, str] = {}

    for node in tree.inner:
        if node.kind != TYPEDEF_DECL or not node.name or node.name not in wanted:
            continue
        if not node.has_child(SWIFT_NEWTYPE_ATTR):
            continue
        type_info = node.get("type") or {}
        if not (_is_string_pointer(type_info.get("qualType"))
                or _is_string_pointer(type_info.get("desugaredQualType"))):
            continue
        typedef_ids[node.id] = node.name
        enums.setdefault(node.name, StringEnumDecl(name=node.name))

    seen_symbols: Set[str] = set()
    for node in tree.inner:
        if node.kind != VAR_DECL or not node.name:
            continue
        if node.get("storageClass") != EXTERN_STORAGE:
            continue
        alias_id = (node.get("type") or {}).get("typeAliasDeclId")
        enum_name = typedef_ids.get(str(alias_id)) if alias_id is not None else None
        if enum_name is None or node.name in seen_symbols:
            continue
        seen_symbols.add(node.name)
        enums[enum_name].values.append(StringEnumValue(
            symbol_name=node.name,
            short_name=string_enum_short_name(node.name, enum_name),
        ))

    return enums


# ---------------------------------------------------------------------------
# Structs and typedefs
# ---------------------------------------------------------------------------

def _is_anonymous(name: Optional[str]) -> bool:
    return not name or name == ANONYMOUS_NAME


def extract_fields(node: ClangNode) -> List[StructField]:
    return [
        StructField(name=child.name, type=child.qual_type() or "int")
        for child in node.children(FIELD_DECL)
        if child.name
    ]


def _owned_record_ids(node: ClangNode) -> List[str]:
    ids = []
    for child in iter_nodes(node):
        owned = child.get("ownedTagDecl")
        if isinstance(owned, dict) and owned.get("id") is not None:
            ids.append(str(owned["id"]))
    return ids


def parse_structs(tree: ClangNode) -> Tuple[Dict[str, StructDecl], List[StructAlias]]:
    """Extract struct layouts keyed by public name, plus struct-to-struct aliases.

    Records are collected first, then typedefs are classified: a typedef
    owning an anonymous record takes its fields; a typedef of a public struct
    is an alias; a typedef of an underscore-prefixed record exposes it under
    the public name.
    """
    structs: Dict[str, StructDecl] = {}
    aliases: List[StructAlias] = []
    record_by_id: Dict[str, Tuple[Optional[str], List[StructField]]] = {}
    record_by_name: Dict[str, List[StructField]] = {}
    known_names: Set[str] = set()

    for node in tree.inner:
        records = [node] if node.kind == RECORD_DECL else node.children(RECORD_DECL)
        for record in records:
            if record.get("tagUsed") != STRUCT_TAG:
                continue
            fields = extract_fields(record)
            if not fields:
                continue
            record_by_id[record.id] = (record.name, fields)
            if _is_anonymous(record.name):
                continue
            known_names.add(record.name)
            record_by_name[record.name] = fields
            if not record.name.startswith("_"):
                structs[record.name] = StructDecl(name=record.name, fields=list(fields))

    for node in tree.inner:
        if node.kind != TYPEDEF_DECL or not node.name:
            continue
        name = node.name

        wrapped = None
        for record_id in _owned_record_ids(node):
            entry = record_by_id.get(record_id)
            if entry is not None and _is_anonymous(entry[0]):
                wrapped = entry[1]
                break
        if wrapped is not None:
            structs[name] = StructDecl(name=name, fields=list(wrapped))
            known_names.add(name)
            continue

        match = _STRUCT_REF_RE.match(node.qual_type() or "")
        if not match:
            continue
        target = match.group(1)
        if target == name:
            continue

        if target in record_by_name:
            if not target.startswith("_") and target in structs:
                aliases.append(StructAlias(name=name, target=target))
            else:
                structs[name] = StructDecl(
                    name=name,
                    fields=list(record_by_name[target]),
                    internal_name=target,
                )
            known_names.add(name)
            continue

        if target in known_names:
            resolved = target
            for alias in aliases:
                if alias.name == target:
                    resolved = alias.target
                    break
            aliases.append(StructAlias(name=name, target=resolved))
            known_names.add(name)

    return structs, aliases


def parse_typedefs(tree: ClangNode) -> Dict[str, str]:
    """Map every typedef name to its underlying type spelling.

    Immediate self-references and reserved-prefix names are left out.
    """
    typedefs: Dict[str, str] = {}
    for node in tree.inner:
        if node.kind != TYPEDEF_DECL or not node.name:
            continue
        if node.name.startswith(RESERVED_TYPEDEF_PREFIXES):
            continue
        underlying = node.qual_type()
        if not underlying:
            continue
        if _TAG_PREFIX_RE.sub("", underlying).strip() == node.name:
            continue
        typedefs[node.name] = underlying
    return typedefs
