"""
Header discovery by lightweight pattern matching.

Scans a framework's header directory for the names of classes, protocols and
enumerations so batches can request them from the compiler. Discovery only
names candidates; nothing found here is trusted as parsed.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

HEADER_SUFFIX = ".h"

_INTERFACE_RE = re.compile(r"@interface\s+(\w+)")
_CATEGORY_RE = re.compile(r"@interface\s+\w+(?:<[^>]*>)?\s*\(")
_PROTOCOL_RE = re.compile(r"@protocol\s+(\w+)")
_NS_ENUM_RE = re.compile(r"typedef\s+NS_(?:ENUM|OPTIONS|CLOSED_ENUM)\s*\(\s*\w+\s*,\s*(\w+)\s*\)")
_NS_ERROR_ENUM_RE = re.compile(r"typedef\s+NS_ERROR_ENUM\s*\(\s*\w+\s*,\s*(\w+)\s*\)")
_NS_INTEGER_TYPED_ENUM_RE = re.compile(
    r"typedef\s+NSU?Integer\s+(\w+)\s+NS_(?:TYPED_EXTENSIBLE_ENUM|TYPED_ENUM)"
)
_NS_STRING_ENUM_RE = re.compile(
    r"typedef\s+NSString\s*\*\s*(?:_Nonnull\s+|const\s+)*(\w+)\s+NS_(?:TYPED_EXTENSIBLE_ENUM|STRING_ENUM|TYPED_ENUM|EXTENSIBLE_STRING_ENUM)"
)


@dataclass
class DiscoveryResult:
    """Declaration names found in one framework, each mapped to its header stem."""

    classes: Dict[str, str] = field(default_factory=dict)
    protocols: Dict[str, str] = field(default_factory=dict)
    integer_enums: Dict[str, str] = field(default_factory=dict)
    string_enums: Dict[str, str] = field(default_factory=dict)
    # Integer typedefs marked as typed enums: no enum declaration to parse.
    unsupported_enums: Dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.classes or self.protocols or self.integer_enums or self.string_enums)

    def counts(self) -> Dict[str, int]:
        return {
            "classes": len(self.classes),
            "protocols": len(self.protocols),
            "integer_enums": len(self.integer_enums),
            "string_enums": len(self.string_enums),
        }


def list_headers(headers_path: str) -> List[str]:
    """Sorted header file names in a directory (non-recursive)."""
    try:
        entries = os.listdir(headers_path)
    except OSError as e:
        logger.warning("Cannot list headers in %s: %s", headers_path, e)
        return []
    return sorted(name for name in entries if name.endswith(HEADER_SUFFIX))


def scan_header_text(text: str, header_stem: str, result: DiscoveryResult) -> None:
    """Record every declaration name in ``text``; first occurrence wins."""
    for line in text.split("\n"):
        match = _INTERFACE_RE.search(line)
        if match and not _CATEGORY_RE.search(line):
            result.classes.setdefault(match.group(1), header_stem)

        match = _PROTOCOL_RE.search(line)
        if match and ";" not in line:
            result.protocols.setdefault(match.group(1), header_stem)

        for pattern in (_NS_ENUM_RE, _NS_ERROR_ENUM_RE):
            match = pattern.search(line)
            if match:
                result.integer_enums.setdefault(match.group(1), header_stem)

        match = _NS_INTEGER_TYPED_ENUM_RE.search(line)
        if match:
            result.unsupported_enums.setdefault(match.group(1), header_stem)

        match = _NS_STRING_ENUM_RE.search(line)
        if match:
            result.string_enums.setdefault(match.group(1), header_stem)


def discover_framework(
    headers_path: str,
    extra_classes: Optional[Iterable[str]] = None,
) -> DiscoveryResult:
    """Scan a framework's headers for declaration names.

    Protocols sharing a class's name are dropped (the class record absorbs
    them), and classes declared outside the header directory (extra headers)
    are added under their own name. Typed integer enums are kept aside in
    ``unsupported_enums`` and logged once, since batches never request them.

    Args:
        headers_path: Directory holding the framework's ``.h`` files.
        extra_classes: Class names parsed from extra headers.

    Returns:
        DiscoveryResult mapping names to header stems.
    """
    result = DiscoveryResult()
    for filename in list_headers(headers_path):
        stem = filename[: -len(HEADER_SUFFIX)]
        path = os.path.join(headers_path, filename)
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                text = f.read()
        except OSError as e:
            logger.warning("Skipping unreadable header %s: %s", path, e)
            continue
        scan_header_text(text, stem, result)

    for name in [p for p in result.protocols if p in result.classes]:
        del result.protocols[name]

    for name in extra_classes or ():
        result.classes.setdefault(name, name)

    for name in [n for n in result.unsupported_enums if n in result.integer_enums]:
        del result.unsupported_enums[name]
    if result.unsupported_enums:
        logger.info(
            "Not requesting %d typed integer enum(s) without an enum declaration: %s",
            len(result.unsupported_enums),
            ", ".join(sorted(result.unsupported_enums)),
        )

    logger.debug("Discovered in %s: %s", headers_path, result.counts())
    return result


def header_path_for(headers_path: str, header_stem: str) -> str:
    return os.path.join(headers_path, header_stem + HEADER_SUFFIX)
