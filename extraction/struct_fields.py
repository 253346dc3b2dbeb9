"""
Struct field-name table read from the bridge runtime header.

The bridge exposes struct fields under the names listed in a C++ map
initializer::

    {"CGPoint", {"x", "y"}},
    {"NSRange", {"location", "length"}},

Structs missing from the table get positional names (``field0``...).
"""

import logging
from typing import Dict, List, Optional

from tree_sitter import Node

from extraction.parser import parse_bytes, string_literal_value, walk_nodes

logger = logging.getLogger(__name__)

_INITIALIZER_LIST = "initializer_list"


def _entry(node: Node, source: bytes) -> Optional[tuple]:
    """Decode ``{"Name", {"a", "b"}}``; ``None`` for any other initializer."""
    children = node.named_children
    if len(children) != 2:
        return None
    key_node, fields_node = children
    name = string_literal_value(key_node, source)
    if not name or fields_node.type != _INITIALIZER_LIST:
        return None
    fields: List[str] = []
    for child in fields_node.named_children:
        value = string_literal_value(child, source)
        if value is None:
            return None
        fields.append(value)
    if not fields:
        return None
    return name, fields


def parse_struct_field_table(source: bytes) -> Dict[str, List[str]]:
    """Extract struct name -> ordered field names from C++ source text."""
    if isinstance(source, str):
        source = source.encode("utf-8")
    tree = parse_bytes(source)
    table: Dict[str, List[str]] = {}
    for node in walk_nodes(tree.root_node, _INITIALIZER_LIST):
        entry = _entry(node, source)
        if entry is not None:
            table.setdefault(entry[0], entry[1])
    logger.debug("Struct field table: %d entries", len(table))
    return table


def load_struct_field_table(path: Optional[str]) -> Dict[str, List[str]]:
    """Read the table from a header file; an absent path yields an empty table."""
    if not path:
        return {}
    try:
        with open(path, "rb") as f:
            source = f.read()
    except OSError as e:
        logger.warning("Struct field table unavailable (%s); using positional names", e)
        return {}
    return parse_struct_field_table(source)


def field_names_for(table: Dict[str, List[str]], struct_name: str, field_count: int) -> List[str]:
    """Semantic names when the table matches the field count exactly, else positional."""
    names = table.get(struct_name)
    if names is not None and len(names) == field_count:
        return list(names)
    if names is not None:
        logger.debug(
            "Field count mismatch for %s (table %d, struct %d); using positional names",
            struct_name,
            len(names),
            field_count,
        )
    return [f"field{i}" for i in range(field_count)]
