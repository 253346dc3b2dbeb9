"""
Unit tests for struct_fields.py
"""

import os
import tempfile
import unittest

from extraction.struct_fields import field_names_for, load_struct_field_table, parse_struct_field_table

BRIDGE_HEADER = b"""
#include <map>
#include <string>
#include <vector>

static const std::map<std::string, std::vector<std::string>> kStructFieldNames = {
    {"CGPoint", {"x", "y"}},
    {"CGSize", {"width", "height"}},
    {"NSRange", {"location", "length"}},
    {"CGPoint", {"h", "v"}},
};

static const int kNotATable[] = {1, 2};
"""


class TestParseStructFieldTable(unittest.TestCase):
    def test_entries_in_order(self):
        table = parse_struct_field_table(BRIDGE_HEADER)
        self.assertEqual(table, {
            "CGPoint": ["x", "y"],
            "CGSize": ["width", "height"],
            "NSRange": ["location", "length"],
        })

    def test_accepts_text(self):
        table = parse_struct_field_table('auto t = {{"CGVector", {"dx", "dy"}}};')
        self.assertEqual(table, {"CGVector": ["dx", "dy"]})

    def test_empty_source(self):
        self.assertEqual(parse_struct_field_table(b""), {})


class TestLoadStructFieldTable(unittest.TestCase):
    def test_load_from_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "struct-fields.h")
            with open(path, "wb") as f:
                f.write(BRIDGE_HEADER)
            self.assertIn("NSRange", load_struct_field_table(path))

    def test_missing_file_is_empty(self):
        self.assertEqual(load_struct_field_table("/nonexistent/struct-fields.h"), {})
        self.assertEqual(load_struct_field_table(None), {})


class TestFieldNamesFor(unittest.TestCase):
    def test_exact_count(self):
        self.assertEqual(field_names_for({"CGPoint": ["x", "y"]}, "CGPoint", 2), ["x", "y"])

    def test_count_mismatch_is_positional(self):
        self.assertEqual(field_names_for({"CGPoint": ["x", "y"]}, "CGPoint", 3), ["field0", "field1", "field2"])

    def test_unknown_struct_is_positional(self):
        self.assertEqual(field_names_for({}, "Opaque", 2), ["field0", "field1"])


if __name__ == "__main__":
    unittest.main()
