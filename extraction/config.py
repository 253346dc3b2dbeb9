"""
Configuration constants for declaration-tree extraction.

Defines the clang JSON node kinds, attribute markers and source patterns the
extractor relies on.
"""

import re
from typing import Pattern, Set, Tuple

# Top-level node kinds retained after pruning. Everything else in a
# translation unit (C stdlib functions, POSIX records, ...) is dropped.
RELEVANT_KINDS: Set[str] = {
    "ObjCInterfaceDecl",
    "ObjCCategoryDecl",
    "ObjCProtocolDecl",
    "EnumDecl",
    "RecordDecl",
    "TypedefDecl",
    "VarDecl",
}

# Wrapper kinds whose relevant children are lifted to the top level during
# pruning (extern "C" blocks in mixed-language headers).
TRANSPARENT_KINDS: Set[str] = {
    "LinkageSpecDecl",
}

# Declaration kinds
INTERFACE_DECL: str = "ObjCInterfaceDecl"
CATEGORY_DECL: str = "ObjCCategoryDecl"
PROTOCOL_DECL: str = "ObjCProtocolDecl"
METHOD_DECL: str = "ObjCMethodDecl"
PROPERTY_DECL: str = "ObjCPropertyDecl"
PARAM_DECL: str = "ParmVarDecl"
ENUM_DECL: str = "EnumDecl"
ENUM_CONSTANT_DECL: str = "EnumConstantDecl"
RECORD_DECL: str = "RecordDecl"
FIELD_DECL: str = "FieldDecl"
TYPEDEF_DECL: str = "TypedefDecl"
VAR_DECL: str = "VarDecl"
CONSTANT_EXPR: str = "ConstantExpr"

# Attribute / comment kinds
DEPRECATED_ATTR: str = "DeprecatedAttr"
UNAVAILABLE_ATTR: str = "UnavailableAttr"
FLAG_ENUM_ATTR: str = "FlagEnumAttr"
SWIFT_NEWTYPE_ATTR: str = "SwiftNewTypeAttr"
FULL_COMMENT: str = "FullComment"
TEXT_COMMENT: str = "TextComment"

ANONYMOUS_NAME: str = "(anonymous)"
STRUCT_TAG: str = "struct"
EXTERN_STORAGE: str = "extern"

# Spellings of the platform string pointer type a string enum must alias.
STRING_POINTER_TYPES: Tuple[str, ...] = (
    "NSString *",
    "NSMutableString *",
)
STRING_CLASS_NAMES: Tuple[str, ...] = ("NSString", "NSMutableString")

# Typedef names starting with these are compiler/runtime internals and are
# never entered into the typedef resolution table.
RESERVED_TYPEDEF_PREFIXES: Tuple[str, ...] = ("__",)

# Deprecation markers scanned in raw header text. Each entry is a pattern and
# the capture group holding the message (-1 when the form carries none).
DEPRECATION_PATTERNS: Tuple[Tuple[Pattern[str], int], ...] = (
    (re.compile(r'API_DEPRECATED_WITH_REPLACEMENT\s*\(\s*"([^"]*)"'), 1),
    (re.compile(r'API_DEPRECATED\s*\(\s*"([^"]*)"'), 1),
    (re.compile(r"API_DEPRECATED\s*\("), -1),
    (re.compile(r'__deprecated_msg\s*\(\s*"([^"]*)"'), 1),
    (re.compile(r"NS_DEPRECATED_MAC\s*\("), -1),
    (re.compile(r"NS_DEPRECATED\s*\("), -1),
    (re.compile(r"DEPRECATED_ATTRIBUTE"), -1),
)

# Lines after the declaration line searched for a deprecation macro.
DEPRECATION_SCAN_LINES_AFTER: int = 5

# Lines that sit between a doc comment and its declaration and are skipped
# by the backward comment scan (availability and interop annotations).
ANNOTATION_LINE_RE: Pattern[str] = re.compile(
    r"^\s*(?:(?:API|NS|CF|XPC|WK|UI|MP)_[A-Z0-9_]+(?:\s*\(.*\))?\s*|"
    r"__attribute__\s*\(\(.*\)\)\s*|"
    r"AVAILABLE_MAC_OS_X_VERSION_[A-Z0-9_]+\s*)+;?\s*$"
)

# Upper bound on how far above a declaration a doc comment may start.
DOC_SCAN_MAX_LINES: int = 60
