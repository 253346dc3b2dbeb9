"""
Exported string-constant value lookup.

String enum values are ``extern NSString *`` globals in the framework
binary. Their text is read in-process: load the binary, read each global's
object pointer, and ask the object runtime for its UTF-8 bytes. Every step
is best-effort; an unresolvable symbol is simply absent from the result and
the enum member is emitted without a value.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import logging
from typing import Dict, Iterable, Mapping, Optional

from extraction.models import StringEnumDecl

logger = logging.getLogger(__name__)

_RUNTIME_LIBRARY = "objc"
_UTF8_SELECTOR = b"UTF8String"


class _ObjcRuntime:
    """``sel_registerName`` / ``objc_msgSend`` bound for a single selector call."""

    def __init__(self, lib: ctypes.CDLL):
        lib.sel_registerName.argtypes = [ctypes.c_char_p]
        lib.sel_registerName.restype = ctypes.c_void_p
        self._msg_send = ctypes.cast(lib.objc_msgSend, ctypes.CFUNCTYPE(ctypes.c_char_p, ctypes.c_void_p, ctypes.c_void_p))
        self._utf8_sel = lib.sel_registerName(_UTF8_SELECTOR)

    def utf8_string(self, obj: int) -> Optional[str]:
        raw = self._msg_send(obj, self._utf8_sel)
        if raw is None:
            return None
        return raw.decode("utf-8", errors="replace")


def _load_runtime() -> Optional[_ObjcRuntime]:
    path = ctypes.util.find_library(_RUNTIME_LIBRARY)
    if not path:
        logger.info("Object runtime library not available; string enum values stay unresolved")
        return None
    try:
        return _ObjcRuntime(ctypes.CDLL(path))
    except (OSError, AttributeError) as e:
        logger.warning("Cannot bind object runtime %s: %s", path, e)
        return None


def resolve_string_constants(binary_path: str, symbols: Iterable[str]) -> Dict[str, str]:
    """Read the string values of exported constants from a framework binary.

    Args:
        binary_path: Framework binary to load.
        symbols: Exported symbol names of ``NSString *`` globals.

    Returns:
        Symbol name -> string value for every symbol that resolved. Missing
        binaries, runtimes or symbols yield absent entries, never errors.
    """
    wanted = [s for s in dict.fromkeys(symbols) if s]
    if not wanted:
        return {}

    runtime = _load_runtime()
    if runtime is None:
        return {}
    try:
        lib = ctypes.CDLL(binary_path)
    except OSError as e:
        logger.warning("Cannot load %s for string constants: %s", binary_path, e)
        return {}

    resolved: Dict[str, str] = {}
    for symbol in wanted:
        try:
            obj = ctypes.c_void_p.in_dll(lib, symbol).value
        except ValueError:
            logger.debug("Symbol not exported: %s", symbol)
            continue
        if not obj:
            continue
        value = runtime.utf8_string(obj)
        if value is not None:
            resolved[symbol] = value

    logger.info("Resolved %d/%d string constant(s) from %s", len(resolved), len(wanted), binary_path)
    return resolved


def apply_string_values(string_enums: Mapping[str, StringEnumDecl], values: Mapping[str, str]) -> int:
    """Fill resolved values into string enum members; returns how many were set."""
    applied = 0
    for enum in string_enums.values():
        for member in enum.values:
            value = values.get(member.symbol_name)
            if value is not None:
                member.value = value
                applied += 1
    return applied
