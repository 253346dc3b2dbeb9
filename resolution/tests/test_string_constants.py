"""
Unit tests for string_constants.py

The object runtime is never loaded; lookups are patched so only the
best-effort contract is exercised.
"""

import unittest
from unittest import mock

from extraction.models import StringEnumDecl, StringEnumValue
from resolution import string_constants
from resolution.string_constants import apply_string_values, resolve_string_constants


class TestResolveStringConstants(unittest.TestCase):
    def test_no_symbols(self):
        with mock.patch.object(string_constants, "_load_runtime") as load:
            self.assertEqual(resolve_string_constants("/lib/Kit", ["", ""]), {})
            load.assert_not_called()

    @mock.patch("resolution.string_constants.ctypes.util.find_library", return_value=None)
    def test_missing_runtime(self, _find):
        self.assertEqual(resolve_string_constants("/lib/Kit", ["KitKeyName"]), {})

    @mock.patch.object(string_constants, "_load_runtime", return_value=mock.Mock())
    def test_unloadable_binary(self, _load):
        self.assertEqual(resolve_string_constants("/nonexistent/Kit.framework/Kit", ["KitKeyName"]), {})


class TestApplyStringValues(unittest.TestCase):
    def test_apply(self):
        enums = {
            "KitKey": StringEnumDecl("KitKey", [
                StringEnumValue("KitKeyName", "Name"),
                StringEnumValue("KitKeyID", "ID"),
            ]),
        }
        applied = apply_string_values(enums, {"KitKeyName": "name", "Other": "x"})
        self.assertEqual(applied, 1)
        self.assertEqual([v.value for v in enums["KitKey"].values], ["name", None])
        self.assertTrue(enums["KitKey"].has_resolved_values)


if __name__ == "__main__":
    unittest.main()
