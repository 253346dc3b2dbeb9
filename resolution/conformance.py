"""
Protocol conformer map with transitive closure over protocol extension.

Conformance is a whole-run property: the map is built once, after every
batch has been collected, so parent and child classes that mention the same
protocol see the same conformer set.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Set

from extraction.models import ClassDecl, ProtocolDecl

logger = logging.getLogger(__name__)


def direct_conformers(classes: Mapping[str, ClassDecl]) -> Dict[str, Set[str]]:
    """Protocol name -> classes that list it in their own declaration."""
    conformers: Dict[str, Set[str]] = {}
    for class_name, cls in classes.items():
        for proto in cls.protocols:
            conformers.setdefault(proto, set()).add(class_name)
    return conformers


def _ancestors(start: str, protocols: Mapping[str, ProtocolDecl]) -> List[str]:
    """Every protocol reachable from ``start`` along extension edges (excluding ``start``)."""
    seen: Set[str] = {start}
    order: List[str] = []
    stack = [start]
    while stack:
        current = stack.pop()
        proto = protocols.get(current)
        if proto is None:
            continue
        for parent in proto.extended_protocols:
            if parent in seen:
                continue
            seen.add(parent)
            order.append(parent)
            stack.append(parent)
    return order


def build_conformer_map(
    classes: Mapping[str, ClassDecl],
    protocols: Mapping[str, ProtocolDecl],
) -> Dict[str, Set[str]]:
    """Build protocol name -> set of directly or transitively conforming classes.

    A class conforming to P also conforms to every protocol P extends, so
    each direct conformer set is unioned into all of P's ancestors. The walk
    carries a visited set, so cyclic extension lists terminate.
    """
    direct = direct_conformers(classes)
    closed: Dict[str, Set[str]] = {name: set(members) for name, members in direct.items()}

    for proto_name, members in direct.items():
        for ancestor in _ancestors(proto_name, protocols):
            closed.setdefault(ancestor, set()).update(members)

    logger.info(
        "Conformer map: %d protocol(s) with conformers (%d direct)",
        len(closed),
        len(direct),
    )
    return closed
