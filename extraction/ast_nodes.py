"""
Declaration tree model built from clang's JSON AST dump.

Clang delta-encodes source locations: a location object only carries ``file``
when the file differs from the previously printed location, and ``line`` only
when the line differs. Locations therefore can only be recovered by replaying
every location in document order, including the ones inside subtrees that are
about to be thrown away. ``build_tree`` does that replay while pruning the
translation unit down to the node kinds the extractor needs, and stamps each
retained node with its absolute file and line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from extraction.config import RELEVANT_KINDS, TRANSPARENT_KINDS

logger = logging.getLogger(__name__)

# Keys that are structural to the walk and not copied into ``attrs``.
_STRUCTURAL_KEYS = frozenset({"id", "kind", "name", "loc", "range", "inner"})


@dataclass
class ClangNode:
    """One node of a pruned declaration tree.

    Attributes:
        id: Clang's node identifier (used for cross references such as
            ``typeAliasDeclId`` and ``ownedTagDecl``).
        kind: Node kind tag, e.g. ``ObjCInterfaceDecl``.
        name: Declared name, when the node has one.
        file: Absolute header path the node's location resolves to.
        line: 1-indexed line of the node's location.
        begin_line: 1-indexed line where the node's source range begins.
        attrs: Every other key of the JSON object, unmodified.
        inner: Child nodes in document order.
    """

    id: str
    kind: str
    name: Optional[str] = None
    file: Optional[str] = None
    line: Optional[int] = None
    begin_line: Optional[int] = None
    attrs: Dict[str, Any] = field(default_factory=dict)
    inner: List["ClangNode"] = field(default_factory=list)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attrs.get(key, default)

    def qual_type(self, key: str = "type") -> Optional[str]:
        """Return ``attrs[key]['qualType']`` (``type``, ``returnType``, ...)."""
        value = self.attrs.get(key)
        if isinstance(value, dict):
            return value.get("qualType")
        return None

    def children(self, kind: Optional[str] = None) -> List["ClangNode"]:
        if kind is None:
            return list(self.inner)
        return [child for child in self.inner if child.kind == kind]

    def has_child(self, kind: str) -> bool:
        return any(child.kind == kind for child in self.inner)

    def ref_name(self, key: str) -> Optional[str]:
        """Name of a referenced declaration (``super``, ``interface``)."""
        value = self.attrs.get(key)
        if isinstance(value, dict):
            return value.get("name")
        return None

    def ref_names(self, key: str) -> List[str]:
        """Names of a list of referenced declarations (``protocols``)."""
        value = self.attrs.get(key) or []
        return [item["name"] for item in value if isinstance(item, dict) and item.get("name")]


class LocationTracker:
    """Replays clang's delta-encoded locations in document order."""

    def __init__(self) -> None:
        self.file: Optional[str] = None
        self.line: Optional[int] = None

    def _consume_bare(self, loc: Dict[str, Any]) -> Tuple[Optional[str], Optional[int]]:
        if "file" in loc:
            self.file = loc["file"]
        if "line" in loc:
            self.line = loc["line"]
        return self.file, self.line

    def consume(self, loc: Optional[Dict[str, Any]]) -> Optional[Tuple[Optional[str], Optional[int]]]:
        """Advance past one location object.

        Returns the (file, line) the location denotes, or ``None`` when the
        object is empty (invalid location, e.g. implicit declarations). For
        macro locations clang prints the spelling location before the
        expansion location; both advance the state and the expansion location
        is returned, since that is where the declaration appears in the header.
        """
        if not loc:
            return None
        if "spellingLoc" in loc or "expansionLoc" in loc:
            spelling = loc.get("spellingLoc")
            if spelling:
                self._consume_bare(spelling)
            expansion = loc.get("expansionLoc")
            if expansion:
                return self._consume_bare(expansion)
            return self.file, self.line
        return self._consume_bare(loc)

    def consume_range(self, rng: Optional[Dict[str, Any]]) -> Optional[Tuple[Optional[str], Optional[int]]]:
        """Advance past a ``range`` object; returns the resolved begin location."""
        if not rng:
            return None
        begin = self.consume(rng.get("begin"))
        self.consume(rng.get("end"))
        return begin


def _skip_subtree(raw: Dict[str, Any], tracker: LocationTracker) -> None:
    """Advance the tracker through a subtree that is not being retained."""
    stack: List[Dict[str, Any]] = [raw]
    while stack:
        node = stack.pop()
        tracker.consume(node.get("loc"))
        tracker.consume_range(node.get("range"))
        inner = node.get("inner")
        if inner:
            stack.extend(reversed(inner))


def _materialize(
    raw: Dict[str, Any],
    tracker: LocationTracker,
    parent_file: Optional[str],
    parent_line: Optional[int],
) -> ClangNode:
    """Build a ClangNode for ``raw`` and its whole subtree."""
    resolved = tracker.consume(raw.get("loc"))
    begin = tracker.consume_range(raw.get("range"))

    if resolved is not None:
        file, line = resolved
    else:
        file, line = parent_file, parent_line

    node = ClangNode(
        id=str(raw.get("id", "")),
        kind=str(raw.get("kind", "")),
        name=raw.get("name"),
        file=file if file is not None else parent_file,
        line=line if line is not None else parent_line,
        begin_line=begin[1] if begin is not None else None,
        attrs={k: v for k, v in raw.items() if k not in _STRUCTURAL_KEYS},
    )
    for child in raw.get("inner") or ():
        node.inner.append(_materialize(child, tracker, node.file, node.line))
    return node


def build_tree(
    raw_root: Dict[str, Any],
    relevant_kinds: Optional[Set[str]] = None,
) -> ClangNode:
    """Prune a raw JSON translation unit and resolve every retained location.

    Only top-level declarations whose kind is in ``relevant_kinds`` are
    materialized (the children of transparent wrappers count as top level).
    All other subtrees are still walked for their location deltas and then
    dropped, so the raw JSON can be released as soon as this returns.

    Args:
        raw_root: Parsed JSON object of the translation unit.
        relevant_kinds: Kinds to retain; defaults to ``RELEVANT_KINDS``.

    Returns:
        Root ClangNode holding the retained declarations in document order.
    """
    kinds = relevant_kinds if relevant_kinds is not None else RELEVANT_KINDS
    tracker = LocationTracker()
    tracker.consume(raw_root.get("loc"))
    tracker.consume_range(raw_root.get("range"))

    root = ClangNode(
        id=str(raw_root.get("id", "")),
        kind=str(raw_root.get("kind", "TranslationUnitDecl")),
        name=raw_root.get("name"),
    )

    kept = 0
    dropped = 0
    pending: List[Dict[str, Any]] = list(reversed(raw_root.get("inner") or []))
    while pending:
        raw = pending.pop()
        kind = raw.get("kind")
        if kind in kinds:
            root.inner.append(_materialize(raw, tracker, None, None))
            kept += 1
        elif kind in TRANSPARENT_KINDS:
            tracker.consume(raw.get("loc"))
            tracker.consume_range(raw.get("range"))
            pending.extend(reversed(raw.get("inner") or []))
        else:
            _skip_subtree(raw, tracker)
            dropped += 1

    logger.debug("Pruned declaration tree: kept %d, dropped %d top-level nodes", kept, dropped)
    return root


def iter_nodes(root: ClangNode) -> Iterator[ClangNode]:
    """Yield every node below ``root`` (inclusive) in document order."""
    stack: List[ClangNode] = [root]
    while stack:
        node = stack.pop()
        yield node
        if node.inner:
            stack.extend(reversed(node.inner))
