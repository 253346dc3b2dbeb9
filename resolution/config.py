"""
Configuration tables for host type resolution.

Raw types are clang qualType spellings; host types are the declaration-file
type expressions the emission stage writes verbatim.
"""

import re
from typing import Dict, FrozenSet, Pattern, Tuple

# Host type spellings
OPAQUE_TYPE: str = "NobjcObject"
BUFFER_TYPE: str = "Uint8Array"
NUMBER_TYPE: str = "number"
STRING_TYPE: str = "string"
BOOLEAN_TYPE: str = "boolean"
VOID_TYPE: str = "void"
NULL_TYPE: str = "null"
CLASS_TYPE_PREFIX: str = "_"

# Above this many known conformers a protocol return type stays existential.
MAX_CONFORMERS_FOR_UNION: int = 30

NUMERIC_TYPES: FrozenSet[str] = frozenset({
    "char", "signed char", "unsigned char",
    "short", "unsigned short",
    "int", "unsigned int",
    "long", "unsigned long",
    "long long", "unsigned long long",
    "float", "double", "long double",
    "NSInteger", "NSUInteger", "CGFloat", "NSTimeInterval", "unichar",
    "size_t", "ssize_t",
    "int8_t", "int16_t", "int32_t", "int64_t",
    "uint8_t", "uint16_t", "uint32_t", "uint64_t",
    "UInt8", "UInt16", "UInt32", "UInt64", "SInt8", "SInt16", "SInt32", "SInt64",
    "CFIndex", "CFTimeInterval", "CGWindowLevel", "NSWindowLevel",
    "NSModalResponse", "NSComparisonResult", "NSStringEncoding",
})

DIRECT_MAPPINGS: Dict[str, str] = {
    "void": VOID_TYPE,
    "BOOL": BOOLEAN_TYPE,
    "bool": BOOLEAN_TYPE,
    "_Bool": BOOLEAN_TYPE,
    "Boolean": BOOLEAN_TYPE,
    "id": OPAQUE_TYPE,
    "Class": OPAQUE_TYPE,
    "SEL": STRING_TYPE,
    "char *": STRING_TYPE,
    "const char *": STRING_TYPE,
    "unsigned char *": STRING_TYPE,
    "const unsigned char *": STRING_TYPE,
    # Pointer-to-struct typedefs are C pointers, not struct values.
    "NSRectArray": OPAQUE_TYPE,
    "NSRectPointer": OPAQUE_TYPE,
    "NSPointArray": OPAQUE_TYPE,
    "NSPointPointer": OPAQUE_TYPE,
    "NSSizeArray": OPAQUE_TYPE,
    "NSSizePointer": OPAQUE_TYPE,
    "NSRangePointer": OPAQUE_TYPE,
}

# CoreFoundation-style opaque struct pointers (``^{...}`` encodings).
CF_OPAQUE_TYPES: FrozenSet[str] = frozenset({
    "CGContextRef", "CGImageRef", "CGColorRef", "CGColorSpaceRef", "CGPathRef",
    "CGMutablePathRef", "CGEventRef", "CGLayerRef", "CFRunLoopRef", "CFStringRef",
    "CFTypeRef", "CFDataRef", "CFDictionaryRef", "CFArrayRef", "SecTrustRef",
    "SecIdentityRef", "SecCertificateRef", "SecKeyRef", "IOSurfaceRef",
})

RAW_POINTER_TYPES: FrozenSet[str] = frozenset({"void *", "const void *"})

# Lightweight-generic placeholders, erased at the native boundary.
GENERIC_TYPE_PARAMS: FrozenSet[str] = frozenset({
    "ObjectType", "KeyType", "ValueType", "ElementType", "ResultType",
    "ContentType", "SectionIdentifierType", "ItemIdentifierType",
})

SELF_TYPE_MARKERS: FrozenSet[str] = frozenset({"instancetype"})

# Tokens removed before matching; they affect optionality, not identity.
ANNOTATION_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\b_Nonnull\b"),
    re.compile(r"\b_Nullable(?:_result)?\b"),
    re.compile(r"\b_Null_unspecified\b"),
    re.compile(r"\b__kindof\b"),
    re.compile(r"\b__unsafe_unretained\b"),
    re.compile(r"\b__strong\b"),
    re.compile(r"\b__weak\b"),
    re.compile(r"\b__autoreleasing\b"),
    re.compile(r"\b__nonnull\b"),
    re.compile(r"\b__nullable\b"),
    re.compile(r"\b(?:NS|API|CF|XPC)_[A-Z_]+\b"),
    re.compile(r"\bAVAILABLE_MAC_OS_X_VERSION_[A-Z0-9_]+\b"),
)

NULLABLE_RE: Pattern[str] = re.compile(r"(?:\b_Nullable(?:_result)?\b|\b__nullable\b|^nullable\s)")

# Host-language reserved words; callback parameter names colliding with
# one of these get a trailing underscore.
RESERVED_WORDS: FrozenSet[str] = frozenset({
    "break", "case", "catch", "class", "const", "continue", "debugger", "default",
    "delete", "do", "else", "enum", "export", "extends", "false", "finally", "for",
    "function", "if", "import", "in", "instanceof", "new", "null", "return",
    "super", "switch", "this", "throw", "true", "try", "typeof", "var", "void",
    "while", "with", "as", "implements", "interface", "let", "package", "private",
    "protected", "public", "static", "yield", "any", "boolean", "constructor",
    "declare", "get", "module", "require", "number", "set", "string", "symbol",
    "type", "from", "of", "await", "async",
})
