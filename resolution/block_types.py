"""
Callback (block) type parsing.

A block type is spelled ``ReturnType (^)(ParamType, ...)``. Parameters may
carry their own names (``NSError *error``) when the spelling comes from
source text, and may themselves be block types. This module only splits and
names; the type resolver maps each piece to a host type.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from extraction.source_scan import declarator_name, split_top_level
from resolution.config import RESERVED_WORDS

_CARET_GROUP_RE = re.compile(r"^\(\s*\^\s*([A-Za-z_]\w*)?\s*\)$")
_VARIADIC = "..."
_POSITIONAL_PREFIX = "arg"


@dataclass
class BlockSignature:
    """Raw pieces of one block type."""

    return_type: str
    parameters: List[str] = field(default_factory=list)


def _matching_paren(text: str, open_pos: int) -> Optional[int]:
    depth = 0
    for pos in range(open_pos, len(text)):
        ch = text[pos]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return pos
    return None


def parse_block_signature(type_text: str) -> Optional[BlockSignature]:
    """Split a block type into its return type and raw parameter declarations.

    Returns ``None`` for anything that is not a plain block type, including
    blocks returning blocks and unbalanced spellings.
    """
    caret = type_text.find("(^")
    if caret == -1:
        return None
    caret_end = _matching_paren(type_text, caret)
    if caret_end is None:
        return None
    if not _CARET_GROUP_RE.match(type_text[caret:caret_end + 1]):
        return None

    rest = type_text[caret_end + 1:].lstrip()
    if not rest.startswith("("):
        return None
    params_end = _matching_paren(rest, 0)
    if params_end is None or rest[params_end + 1:].strip():
        return None

    params = [p.strip() for p in split_top_level(rest[1:params_end])]
    if params in ([], ["void"], [""]):
        params = []
    params = [p for p in params if p and p != _VARIADIC]
    return BlockSignature(return_type=type_text[:caret].strip() or "void", parameters=params)


def split_parameter(param_text: str) -> Tuple[str, str]:
    """Separate an embedded parameter name from its type: ``(name, type)``."""
    name = declarator_name(param_text)
    if not name:
        return "", param_text.strip()
    escaped = re.escape(name)
    block_named = re.sub(r"\(\s*\^\s*" + escaped + r"\s*\)", "(^)", param_text, count=1)
    if block_named != param_text:
        return name, block_named.strip()
    stripped = re.sub(r"\b" + escaped + r"(\s*(?:\[[^\]]*\])?)\s*$", r"\1", param_text, count=1)
    return name, stripped.strip()


def _safe_name(name: str) -> str:
    if name in RESERVED_WORDS:
        return name + "_"
    return name


def name_parameters(
    embedded: Sequence[str],
    header_names: Optional[Sequence[str]] = None,
) -> List[str]:
    """Pick one host-safe, unique name per callback parameter.

    Preference: the name declared in the header, then the name embedded in
    the type spelling, then a positional placeholder. Header names are used
    only when the header lists exactly as many parameters.
    """
    if header_names is not None and len(header_names) != len(embedded):
        header_names = None

    names: List[str] = []
    used = set()
    for index, embedded_name in enumerate(embedded):
        name = (header_names[index] if header_names else "") or embedded_name
        name = _safe_name(name) if name else f"{_POSITIONAL_PREFIX}{index}"
        if name in used:
            name = f"{name}{index}"
        used.add(name)
        names.append(name)
    return names


def render_function_type(parameters: Sequence[Tuple[str, str]], return_type: str) -> str:
    """Host function type ``(a: T, b: U) => R``."""
    params = ", ".join(f"{name}: {host}" for name, host in parameters)
    return f"({params}) => {return_type}"
