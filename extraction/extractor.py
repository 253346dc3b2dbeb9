"""
High-level extraction over one declaration tree.

``extract`` runs every record pass over a pruned tree; ``merge_missing``
folds a fallback-mode result into a primary one without disturbing anything
the primary pass already found.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from extraction.ast_nodes import ClangNode
from extraction.models import ExtractionResult, ExtractionTargets
from extraction.source_scan import HeaderLineCache
from extraction.traversal import (
    parse_classes,
    parse_integer_enums,
    parse_protocols,
    parse_string_enums,
    parse_structs,
    parse_typedefs,
)

logger = logging.getLogger(__name__)

TARGET_CATEGORIES = ("classes", "protocols", "integer_enums", "string_enums")
_CATEGORY_LABELS = {
    "classes": "class",
    "protocols": "protocol",
    "integer_enums": "integer enum",
    "string_enums": "string enum",
}


def extract(
    tree: ClangNode,
    targets: ExtractionTargets,
    lines: Optional[HeaderLineCache] = None,
) -> ExtractionResult:
    """Extract every record family from a pruned declaration tree.

    Args:
        tree: Root returned by ``build_tree``.
        targets: Names requested for classes, protocols and enums. Structs
            and typedefs are always collected in full.
        lines: Header text cache shared across passes; a fresh one is created
            when omitted.

    Returns:
        ExtractionResult with all records found in the tree.
    """
    cache = lines or HeaderLineCache()
    structs, aliases = parse_structs(tree)
    result = ExtractionResult(
        classes=parse_classes(tree, targets.classes, cache),
        protocols=parse_protocols(tree, targets.protocols, cache),
        integer_enums=parse_integer_enums(tree, targets.integer_enums, cache),
        string_enums=parse_string_enums(tree, targets.string_enums),
        structs=structs,
        struct_aliases=aliases,
        typedefs=parse_typedefs(tree),
    )
    logger.debug("Extraction counts: %s", result.counts())
    return result


@dataclass
class MergeReport:
    """What a fallback pass contributed to a primary result."""

    added: Dict[str, List[str]] = field(default_factory=dict)
    ambiguous: List[str] = field(default_factory=list)

    @property
    def added_count(self) -> int:
        return sum(len(names) for names in self.added.values())

    def absorb(self, other: "MergeReport") -> None:
        """Accumulate another pass's contribution into this report."""
        for category, names in other.added.items():
            self.added.setdefault(category, []).extend(names)
        self.ambiguous.extend(other.ambiguous)


def _shape(category: str, record) -> tuple:
    """Comparable identity of a record's declared surface."""
    if category == "classes":
        return (record.superclass, frozenset(record.protocols), record.member_signature())
    if category == "protocols":
        return (frozenset(record.extended_protocols), record.member_signature())
    if category == "integer_enums":
        return tuple((v.name, v.value) for v in record.values)
    return tuple(v.symbol_name for v in record.values)


def merge_missing(
    primary: ExtractionResult,
    fallback: ExtractionResult,
    targets: ExtractionTargets,
) -> MergeReport:
    """Fold fallback records into ``primary`` for targets it did not produce.

    Records the primary pass found are never replaced. When both passes
    produced the same target with a different shape, the primary record is
    kept and the name is reported as ambiguous. Structs, aliases and
    typedefs are filled in for names the primary pass lacks.
    """
    report = MergeReport()
    missing = primary.missing(targets)

    for category in TARGET_CATEGORIES:
        primary_records = getattr(primary, category)
        fallback_records = getattr(fallback, category)
        wanted = getattr(missing, category)
        added: List[str] = []
        for name in sorted(wanted):
            record = fallback_records.get(name)
            if record is None:
                continue
            if category == "integer_enums" and not record.is_complete:
                continue
            primary_records[name] = record
            added.append(name)
        if added:
            report.added[category] = added

        for name in sorted(set(primary_records).intersection(fallback_records)):
            if name in added or name not in getattr(targets, category):
                continue
            if category == "integer_enums" and not fallback_records[name].is_complete:
                continue
            if _shape(category, primary_records[name]) != _shape(category, fallback_records[name]):
                report.ambiguous.append(f"{category}:{name}")
                logger.warning(
                    "Compiler modes disagree on %s %s; keeping the primary-pass record",
                    _CATEGORY_LABELS[category],
                    name,
                )

    for name, struct in fallback.structs.items():
        primary.structs.setdefault(name, struct)
    known_aliases = {alias.name for alias in primary.struct_aliases}
    for alias in fallback.struct_aliases:
        if alias.name not in known_aliases and alias.name not in primary.structs:
            primary.struct_aliases.append(alias)
            known_aliases.add(alias.name)
    for name, underlying in fallback.typedefs.items():
        primary.typedefs.setdefault(name, underlying)

    return report
