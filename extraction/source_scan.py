"""
Raw header text scanning.

The JSON declaration tree drops information the generated API surface still
needs: deprecation macros that expanded to nothing, documentation written as
plain (non-doc) comments, and the parameter names spelled inside callback
type declarators. These helpers recover them from the header source using the
file/line stamped on every retained node.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Dict, List, Optional, Sequence, Tuple

from extraction.config import (
    ANNOTATION_LINE_RE,
    DEPRECATION_PATTERNS,
    DEPRECATION_SCAN_LINES_AFTER,
    DOC_SCAN_MAX_LINES,
)

logger = logging.getLogger(__name__)

# Max lines joined when reading one declaration's full text.
_DECL_MAX_LINES = 16

_TRAILING_LINE_COMMENT_RE = re.compile(r"(?:^|[\s;,{}])//+[!<]*\s*(.*?)\s*$")
_TRAILING_BLOCK_COMMENT_RE = re.compile(r"/\*[*!]?<?\s*(.*?)\s*\*/\s*$")
_DOC_MARKER_RE = re.compile(r"^[@\\](?:abstract|brief|discussion|summary)\b\s*")
_WHITESPACE_RE = re.compile(r"\s+")
_LINE_COMMENT_STRIP_RE = re.compile(r"(?:^|(?<=[\s;,{}]))//.*$")
_BLOCK_NAME_RE = re.compile(r"\(\s*\^\s*(?:_Nullable|_Nonnull|_Null_unspecified)?\s*([A-Za-z_]\w*)?\s*\)")
_TRAILING_IDENT_RE = re.compile(r"^(.*?[\w\*\)>\]])\s+\**\s*([A-Za-z_]\w*)\s*(?:\[[^\]]*\])?$")
_TRAILING_IDENT_AFTER_STAR_RE = re.compile(r"^(.*\*)\s*([A-Za-z_]\w*)\s*(?:\[[^\]]*\])?$")

# Trailing tokens that close a type rather than name a parameter.
_NON_NAME_TOKENS = frozenset({
    "_Nullable", "_Nonnull", "_Null_unspecified", "nullable", "nonnull",
    "__strong", "__weak", "__autoreleasing", "__unsafe_unretained", "const",
    "volatile", "restrict", "__kindof",
    "void", "char", "short", "int", "long", "float", "double", "signed", "unsigned",
    "BOOL", "bool", "_Bool", "id", "instancetype", "SEL", "Class",
})


class HeaderLineCache:
    """Lazily loaded header lines, keyed by absolute path.

    A cache is shared by the passes over one declaration tree. Unreadable
    headers are remembered as ``None`` so the read is attempted once.
    """

    def __init__(self) -> None:
        self._lines: Dict[str, Optional[List[str]]] = {}
        self._lock = threading.Lock()

    def get(self, path: Optional[str]) -> Optional[List[str]]:
        if not path:
            return None
        with self._lock:
            if path in self._lines:
                return self._lines[path]
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                lines: Optional[List[str]] = f.read().split("\n")
        except OSError as e:
            logger.debug("Cannot read header %s for source scanning: %s", path, e)
            lines = None
        with self._lock:
            self._lines[path] = lines
        return lines

    def put(self, path: str, text: str) -> None:
        """Register in-memory header text (tests and synthetic sources)."""
        with self._lock:
            self._lines[path] = text.split("\n")


def find_deprecation(lines: Optional[Sequence[str]], line: Optional[int]) -> Tuple[bool, Optional[str]]:
    """Look for a deprecation macro on a declaration's line or the few after it.

    Args:
        lines: Header lines (0-indexed list).
        line: 1-indexed declaration line.

    Returns:
        ``(is_deprecated, message)``; message is ``None`` when the macro form
        carries no quoted text.
    """
    if not lines or not line or line < 1 or line > len(lines):
        return False, None
    end = min(len(lines), line + DEPRECATION_SCAN_LINES_AFTER)
    window: List[str] = []
    for text in lines[line - 1:end]:
        window.append(text)
        # The window stops at the end of the declaration so a deprecated
        # neighbour on the following lines is not attributed to it.
        if ";" in text or "{" in text:
            break
    chunk = " ".join(window)
    for pattern, group in DEPRECATION_PATTERNS:
        match = pattern.search(chunk)
        if match:
            message = match.group(group).strip() if group >= 0 else None
            return True, message or None
    return False, None


def normalize_comment(raw_lines: Sequence[str]) -> Optional[str]:
    """Strip comment delimiters and markers, collapse to one line of text."""
    parts: List[str] = []
    for raw in raw_lines:
        text = raw.strip()
        if text.startswith("/*"):
            text = text[2:]
            text = text.lstrip("*!")
            text = text.lstrip("<")
        if text.endswith("*/"):
            text = text[:-2]
        text = text.strip()
        if text.startswith("//"):
            text = text.lstrip("/").lstrip("!<")
        elif text.startswith("*"):
            text = text.lstrip("*")
        text = _DOC_MARKER_RE.sub("", text.strip())
        if text:
            parts.append(text)
    if not parts:
        return None
    joined = _WHITESPACE_RE.sub(" ", " ".join(parts)).strip()
    return joined or None


def _scan_backward(lines: Sequence[str], decl_index: int) -> Optional[str]:
    idx = decl_index - 1
    floor = max(-1, decl_index - DOC_SCAN_MAX_LINES - 1)

    while idx > floor:
        stripped = lines[idx].strip()
        if not stripped or ANNOTATION_LINE_RE.match(stripped):
            idx -= 1
            continue
        break
    if idx <= floor:
        return None

    stripped = lines[idx].strip()
    if stripped.endswith("*/"):
        end = idx
        while idx > floor and "/*" not in lines[idx]:
            idx -= 1
        if idx <= floor:
            return None
        # Code before the opening "/*" makes it a trailing comment of that line.
        if lines[idx][:lines[idx].index("/*")].strip():
            return None
        block = list(lines[idx:end + 1])
        block[0] = block[0][block[0].index("/*"):]
        return normalize_comment(block)

    if stripped.startswith("//"):
        end = idx
        while idx - 1 > floor and lines[idx - 1].strip().startswith("//"):
            idx -= 1
        return normalize_comment(lines[idx:end + 1])

    return None


def _trailing_comment(text: str) -> Optional[str]:
    match = _TRAILING_BLOCK_COMMENT_RE.search(text)
    if match and match.start() > 0 and text[:match.start()].strip():
        return normalize_comment([match.group(1)])
    match = _TRAILING_LINE_COMMENT_RE.search(text)
    if match and text[:match.start()].strip():
        return normalize_comment([match.group(1)])
    return None


def find_documentation(
    lines: Optional[Sequence[str]],
    line: Optional[int],
    begin_line: Optional[int] = None,
) -> Optional[str]:
    """Recover the comment documenting a declaration.

    Scans upward from the first line of the declaration, skipping blank lines
    and lines holding only availability/interop macros, for either a block
    comment or a contiguous run of ``//`` comments. When nothing is found
    there, a trailing comment on the declaration's own line is used.
    """
    if not lines or not line or line < 1 or line > len(lines):
        return None
    first = line
    if begin_line and 1 <= begin_line < line:
        first = begin_line
    found = _scan_backward(lines, first - 1)
    if found:
        return found
    return _trailing_comment(lines[line - 1])


def _declaration_text(lines: Sequence[str], line: int) -> str:
    """Join a declaration's lines up to its terminating ``;`` or ``{``."""
    parts: List[str] = []
    for idx in range(line - 1, min(len(lines), line - 1 + _DECL_MAX_LINES)):
        text = _LINE_COMMENT_STRIP_RE.sub("", lines[idx])
        parts.append(text)
        if ";" in text or "{" in text:
            break
    text = " ".join(parts)
    cut = len(text)
    for terminator in (";", "{"):
        pos = text.find(terminator)
        if pos != -1:
            cut = min(cut, pos)
    return text[:cut]


def _balanced_group(text: str, open_pos: int) -> Optional[Tuple[str, int]]:
    """Return the contents of the parenthesized group opening at ``open_pos``."""
    depth = 0
    for pos in range(open_pos, len(text)):
        ch = text[pos]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[open_pos + 1:pos], pos
    return None


def split_top_level(text: str, sep: str = ",") -> List[str]:
    """Split on ``sep`` outside of (), <> and [] nesting."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in text:
        if ch in "(<[":
            depth += 1
        elif ch in ")>]":
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    tail = "".join(current)
    if tail.strip() or parts:
        parts.append(tail)
    return parts


def declarator_name(param_text: str) -> str:
    """Name declared by one C parameter declaration, or ``""`` when unnamed."""
    text = param_text.strip()
    if not text:
        return ""
    block = _BLOCK_NAME_RE.search(text)
    if block:
        return block.group(1) or ""
    for pattern in (_TRAILING_IDENT_AFTER_STAR_RE, _TRAILING_IDENT_RE):
        match = pattern.match(text)
        if match and match.group(1).strip():
            name = match.group(2)
            if name not in _NON_NAME_TOKENS:
                return name
    return ""


def _method_parameter_types(decl: str) -> List[str]:
    """Type texts of each ``label:(type)name`` segment of a method declaration."""
    types: List[str] = []
    pos = 0
    while True:
        colon = decl.find(":", pos)
        if colon == -1:
            break
        cursor = colon + 1
        while cursor < len(decl) and decl[cursor].isspace():
            cursor += 1
        if cursor < len(decl) and decl[cursor] == "(":
            group = _balanced_group(decl, cursor)
            if group is None:
                break
            types.append(group[0])
            pos = group[1] + 1
        else:
            pos = cursor
    return types


def _block_parameter_list(type_text: str) -> Optional[List[str]]:
    match = _BLOCK_NAME_RE.search(type_text)
    if not match:
        return None
    cursor = match.end()
    while cursor < len(type_text) and type_text[cursor].isspace():
        cursor += 1
    if cursor >= len(type_text) or type_text[cursor] != "(":
        return None
    group = _balanced_group(type_text, cursor)
    if group is None:
        return None
    params = split_top_level(group[0])
    if len(params) == 1 and params[0].strip() in ("", "void"):
        return []
    return [declarator_name(p) for p in params]


def recover_block_parameter_names(
    lines: Optional[Sequence[str]],
    line: Optional[int],
    param_index: Optional[int] = None,
) -> Optional[List[str]]:
    """Parameter names of a callback type as written in the header.

    Args:
        lines: Header lines.
        line: 1-indexed line where the declaration starts.
        param_index: For a method, which parameter (0-based) holds the
            callback; ``None`` for property and typedef declarations, where
            the first callback declarator is used.

    Returns:
        One entry per callback parameter (``""`` where the header gives no
        name), or ``None`` when the declaration text cannot be matched.
    """
    if not lines or not line or line < 1 or line > len(lines):
        return None
    decl = _declaration_text(lines, line)
    if param_index is None:
        return _block_parameter_list(decl)
    types = _method_parameter_types(decl)
    if param_index >= len(types):
        return None
    return _block_parameter_list(types[param_index])
