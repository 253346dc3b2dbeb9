"""
Layer 1: Declaration Extraction

Compiler-driven extraction of Objective-C classes, protocols, enumerations,
structs and typedefs from framework headers.
"""

from extraction.models import (
    ClassDecl,
    ExtractionResult,
    ExtractionTargets,
    IntegerEnumDecl,
    ProtocolDecl,
    StringEnumDecl,
    StructAlias,
    StructDecl,
)
from extraction.ast_nodes import ClangNode, build_tree
from extraction.clang import ClangInvocationError, ClangInvoker, CompilerMode, clang_ast_dump
from extraction.extractor import MergeReport, extract, merge_missing
from extraction.discovery import DiscoveryResult, discover_framework
from extraction.struct_fields import load_struct_field_table, parse_struct_field_table

__all__ = [
    # Records
    "ClassDecl",
    "ProtocolDecl",
    "IntegerEnumDecl",
    "StringEnumDecl",
    "StructDecl",
    "StructAlias",
    "ExtractionResult",
    "ExtractionTargets",
    # Compiler boundary
    "ClangNode",
    "build_tree",
    "ClangInvoker",
    "ClangInvocationError",
    "CompilerMode",
    "clang_ast_dump",
    # Extraction
    "extract",
    "merge_missing",
    "MergeReport",
    # Discovery
    "DiscoveryResult",
    "discover_framework",
    "parse_struct_field_table",
    "load_struct_field_table",
]
