"""
Tree-sitter C++ parsing for bridge runtime sources.

The native bridge that consumes the generated declarations is written in C++;
its headers carry tables (such as struct field names) the generator reads
without compiling them.
"""

import logging
from typing import Iterator, Optional

import tree_sitter_cpp as tscpp
from tree_sitter import Language, Node, Parser, Tree

logger = logging.getLogger(__name__)

CPP_LANGUAGE = Language(tscpp.language())


def create_parser() -> Parser:
    """Create a tree-sitter parser configured for C++."""
    return Parser(CPP_LANGUAGE)


def parse_bytes(source: bytes) -> Tree:
    """Parse C++ source bytes.

    Raises:
        TypeError: If source is not bytes.
    """
    if not isinstance(source, bytes):
        raise TypeError(f"Source must be bytes, got {type(source).__name__}")
    tree = create_parser().parse(source)
    if tree.root_node.has_error:
        logger.debug("Parsed C++ source contains %d error node(s)", count_error_nodes(tree))
    return tree


def walk_nodes(node: Node, node_type: Optional[str] = None) -> Iterator[Node]:
    """Pre-order walk over named descendants, optionally filtered by type."""
    stack = [node]
    while stack:
        current = stack.pop()
        if node_type is None or current.type == node_type:
            yield current
        stack.extend(reversed(current.named_children))


def count_error_nodes(tree: Tree) -> int:
    return sum(1 for n in walk_nodes(tree.root_node) if n.type == "ERROR" or n.is_missing)


def node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def string_literal_value(node: Node, source: bytes) -> Optional[str]:
    """Contents of a plain ``"..."`` literal node (escapes are not interpreted)."""
    if node.type != "string_literal":
        return None
    text = node_text(node, source)
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return None
