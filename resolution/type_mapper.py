"""
Raw clang type spelling -> host type expression.

Resolution is pure given a ``ResolutionContext``: the same raw type with the
same context always yields the same host type, and every input terminates.
Unmatched types degrade to the opaque object type.
"""

from __future__ import annotations

import logging
import re
from typing import FrozenSet, List, Optional, Sequence

from resolution.block_types import (
    name_parameters,
    parse_block_signature,
    render_function_type,
    split_parameter,
)
from resolution.config import (
    ANNOTATION_PATTERNS,
    BUFFER_TYPE,
    CF_OPAQUE_TYPES,
    CLASS_TYPE_PREFIX,
    DIRECT_MAPPINGS,
    GENERIC_TYPE_PARAMS,
    MAX_CONFORMERS_FOR_UNION,
    NULL_TYPE,
    NULLABLE_RE,
    NUMBER_TYPE,
    NUMERIC_TYPES,
    OPAQUE_TYPE,
    RAW_POINTER_TYPES,
    SELF_TYPE_MARKERS,
    VOID_TYPE,
)
from resolution.context import ResolutionContext

logger = logging.getLogger(__name__)

_STRUCT_KEYWORD_RE = re.compile(r"^struct\s+")
_OBJECT_POINTER_RE = re.compile(r"^(?:const\s+)?(\w+)\s*(?:<.*>)?\s*\*$")
_POINTER_TO_POINTER_RE = re.compile(r"\w+\s*\*\s*\*")
_PROTOCOL_EXISTENTIAL_RE = re.compile(r"^id\s*<(.+)>$")
_OUTER_BLOCK_NULLABLE_RE = re.compile(r"\(\s*\^\s*(?:_Nullable|__nullable)\b")


def host_class_name(name: str) -> str:
    return f"{CLASS_TYPE_PREFIX}{name}"


def selector_to_member_name(selector: str) -> str:
    """``initWithFrame:styleMask:`` -> ``initWithFrame$styleMask$``."""
    return selector.replace(":", "$")


def strip_annotations(qual_type: str) -> str:
    """Remove nullability, ownership and availability tokens and a leading ``struct``."""
    cleaned = qual_type
    for pattern in ANNOTATION_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = " ".join(cleaned.split())
    cleaned = _STRUCT_KEYWORD_RE.sub("", cleaned)
    # "NSString * " and "NSString *" must compare equal after token removal.
    cleaned = re.sub(r"\s+([,)>\]])", r"\1", cleaned)
    return cleaned.strip()


def _top_level_text(qual_type: str) -> str:
    """The spelling with every (), <> and [] group removed."""
    depth = 0
    out: List[str] = []
    for ch in qual_type:
        if ch in "(<[":
            depth += 1
            continue
        if ch in ")>]":
            depth -= 1
            continue
        if depth == 0:
            out.append(ch)
    return "".join(out)


def is_nullable(qual_type: str) -> bool:
    """Whether the outermost type is marked nullable.

    Nullability of generic arguments or callback parameters does not make
    the enclosing type optional.
    """
    if "(^" in qual_type.replace(" ", ""):
        return bool(_OUTER_BLOCK_NULLABLE_RE.search(qual_type))
    return bool(NULLABLE_RE.search(_top_level_text(qual_type).strip()))


def is_function_type(host_type: str) -> bool:
    """Whether ``host_type`` has a top-level ``=>`` (not one inside parentheses)."""
    depth = 0
    for index, ch in enumerate(host_type):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif depth == 0 and host_type.startswith("=>", index):
            return True
    return False


def make_optional(host_type: str) -> str:
    if host_type == VOID_TYPE:
        return host_type
    # Checked first: a function returning an optional is not itself optional.
    if is_function_type(host_type):
        return f"({host_type}) | {NULL_TYPE}"
    if host_type.endswith(f"| {NULL_TYPE}"):
        return host_type
    return f"{host_type} | {NULL_TYPE}"


def _resolve_block(
    cleaned: str,
    containing: str,
    ctx: ResolutionContext,
    visited: FrozenSet[str],
    header_names: Optional[Sequence[str]],
) -> Optional[str]:
    signature = parse_block_signature(cleaned)
    if signature is None:
        return None
    split = [split_parameter(p) for p in signature.parameters]
    names = name_parameters([name for name, _ in split], header_names)
    params = [
        (name, _resolve_full(type_text, containing, ctx, False, visited))
        for name, (_, type_text) in zip(names, split)
    ]
    return_type = _resolve_full(signature.return_type, containing, ctx, False, visited)
    return render_function_type(params, return_type)


def _resolve_protocols(
    protocol_list: str,
    ctx: ResolutionContext,
    is_return: bool,
) -> str:
    names = [n.strip() for n in protocol_list.split(",") if n.strip()]

    if is_return and len(names) == 1:
        conformers = ctx.conformers_of(names[0])
        if 0 < len(conformers) <= MAX_CONFORMERS_FOR_UNION:
            return " | ".join(host_class_name(c) for c in sorted(conformers))

    parts: List[str] = []
    for name in names:
        # A class sharing the protocol's name absorbed it during extraction.
        if name in ctx.known_protocols or name in ctx.known_classes:
            host = host_class_name(name)
            if host not in parts:
                parts.append(host)
    if parts:
        return " | ".join(parts)
    return OPAQUE_TYPE


def _resolve_cleaned(
    cleaned: str,
    containing: str,
    ctx: ResolutionContext,
    is_return: bool,
    visited: FrozenSet[str],
    header_names: Optional[Sequence[str]] = None,
) -> str:
    if cleaned in DIRECT_MAPPINGS:
        return DIRECT_MAPPINGS[cleaned]
    if cleaned in NUMERIC_TYPES:
        return NUMBER_TYPE
    if cleaned in GENERIC_TYPE_PARAMS:
        return OPAQUE_TYPE
    if cleaned in SELF_TYPE_MARKERS:
        return host_class_name(containing)
    if cleaned in ctx.struct_types:
        return ctx.struct_types[cleaned]

    if "(^" in cleaned.replace(" ", ""):
        block = _resolve_block(cleaned, containing, ctx, visited, header_names)
        return block if block is not None else OPAQUE_TYPE
    if "Block_" in cleaned:
        return OPAQUE_TYPE

    if "(*" in cleaned:
        return OPAQUE_TYPE
    if _POINTER_TO_POINTER_RE.search(cleaned):
        return OPAQUE_TYPE
    if cleaned in RAW_POINTER_TYPES:
        return OPAQUE_TYPE

    match = _OBJECT_POINTER_RE.match(cleaned)
    if match:
        class_name = match.group(1)
        if class_name in SELF_TYPE_MARKERS:
            return host_class_name(containing)
        if class_name in ctx.known_classes:
            return host_class_name(class_name)
        return OPAQUE_TYPE

    if cleaned in ctx.integer_enums or cleaned in ctx.string_enums:
        return cleaned

    if cleaned in ctx.typedefs and cleaned not in visited:
        underlying = ctx.typedefs[cleaned]
        return _resolve_full(underlying, containing, ctx, is_return, visited | {cleaned}, header_names, keep_outer=False)

    protocols = _PROTOCOL_EXISTENTIAL_RE.match(cleaned)
    if protocols:
        return _resolve_protocols(protocols.group(1), ctx, is_return)

    if "[" in cleaned:
        return OPAQUE_TYPE

    logger.debug("Unresolved type %r in %s", cleaned, containing)
    return OPAQUE_TYPE


def _resolve_full(
    raw_type: str,
    containing: str,
    ctx: ResolutionContext,
    is_return: bool,
    visited: FrozenSet[str],
    header_names: Optional[Sequence[str]] = None,
    keep_outer: bool = True,
) -> str:
    host = _resolve_cleaned(strip_annotations(raw_type), containing, ctx, is_return, visited, header_names)
    if keep_outer and is_nullable(raw_type):
        host = make_optional(host)
    return host


def resolve_type(
    raw_type: str,
    containing: str,
    ctx: ResolutionContext,
    is_return: bool = False,
    block_param_names: Optional[Sequence[str]] = None,
) -> str:
    """Map a raw clang type spelling to a host type.

    Args:
        raw_type: clang qualType string.
        containing: Declaration the type appears in (resolves ``instancetype``).
        ctx: Shared lookup tables.
        is_return: Return position; enables conformer unions for single
            protocol existentials.
        block_param_names: Callback parameter names recovered from the header
            when ``raw_type`` is a block.
    """
    return _resolve_full(raw_type, containing, ctx, is_return, frozenset(), block_param_names)


def resolve_return_type(
    raw_type: str,
    containing: str,
    ctx: ResolutionContext,
    block_param_names: Optional[Sequence[str]] = None,
) -> str:
    """Return position: opaque CoreFoundation references stay opaque objects."""
    if strip_annotations(raw_type) in CF_OPAQUE_TYPES:
        return OPAQUE_TYPE
    return resolve_type(raw_type, containing, ctx, True, block_param_names)


def resolve_param_type(
    raw_type: str,
    containing: str,
    ctx: ResolutionContext,
    block_param_names: Optional[Sequence[str]] = None,
) -> str:
    """Parameter position: raw and CoreFoundation pointers accept byte buffers."""
    cleaned = strip_annotations(raw_type)
    if cleaned in RAW_POINTER_TYPES or cleaned in CF_OPAQUE_TYPES:
        return make_optional(BUFFER_TYPE) if is_nullable(raw_type) else BUFFER_TYPE
    return resolve_type(raw_type, containing, ctx, False, block_param_names)
