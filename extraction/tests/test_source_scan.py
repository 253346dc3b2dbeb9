"""
Unit tests for source_scan.py

Tests header-text recovery of documentation, deprecation and callback
parameter names.
"""

import os
import tempfile
import unittest

from extraction.source_scan import (
    HeaderLineCache,
    declarator_name,
    find_deprecation,
    find_documentation,
    normalize_comment,
    recover_block_parameter_names,
    split_top_level,
)

HEADER = """// Unrelated file comment.

/**
 * Returns the shared widget.
 */
+ (instancetype)sharedWidget API_AVAILABLE(macos(10.15));

/// Resets the widget.
/// Call before reuse.
API_AVAILABLE(macos(11.0))
- (void)reset;

- (void)oldMethod API_DEPRECATED("Use reset instead", macos(10.0, 10.15));
- (void)legacy DEPRECATED_ATTRIBUTE;
    WidgetStyleFlat = 2, // Flat appearance
- (void)fetchWithCompletion:(void (^)(NSData * _Nullable data, NSError *error))completion
                      queue:(dispatch_queue_t)queue;
- (void)enumerate:(NSUInteger)count usingBlock:(void (^)(id obj, NSUInteger idx, BOOL *stop))block;
@property (copy) void (^changeHandler)(NSString *key, id value);
- (void)plain:(void (^)(void))block;
- (void)unnamed:(void (^)(NSData *, NSError *))block;
- (void)replacement API_DEPRECATED_WITH_REPLACEMENT("renewed", macos(10.0, 11.0));
""".split("\n")


def _line_of(fragment):
    for index, text in enumerate(HEADER, start=1):
        if fragment in text:
            return index
    raise AssertionError(fragment)


class TestDocumentation(unittest.TestCase):
    """Test backward and trailing comment recovery."""

    def test_block_comment(self):
        self.assertEqual(
            find_documentation(HEADER, _line_of("sharedWidget")),
            "Returns the shared widget.",
        )

    def test_line_comment_run_skips_availability_line(self):
        self.assertEqual(
            find_documentation(HEADER, _line_of("- (void)reset;")),
            "Resets the widget. Call before reuse.",
        )

    def test_trailing_comment(self):
        self.assertEqual(find_documentation(HEADER, _line_of("WidgetStyleFlat")), "Flat appearance")

    def test_no_comment(self):
        self.assertIsNone(find_documentation(HEADER, _line_of("oldMethod")))

    def test_previous_line_trailing_block_comment_not_taken(self):
        lines = [
            "    WidgetModeA = 0, /* first mode */",
            "    WidgetModeB = 1,",
        ]
        self.assertIsNone(find_documentation(lines, 2))
        self.assertEqual(find_documentation(lines, 1), "first mode")

    def test_indented_block_comment_is_taken(self):
        lines = [
            "    /* second mode */",
            "    WidgetModeB = 1,",
        ]
        self.assertEqual(find_documentation(lines, 2), "second mode")

    def test_out_of_range_line(self):
        self.assertIsNone(find_documentation(HEADER, 0))
        self.assertIsNone(find_documentation(HEADER, len(HEADER) + 5))
        self.assertIsNone(find_documentation(None, 3))

    def test_normalize_comment_strips_markers(self):
        self.assertEqual(
            normalize_comment(["/*!", " * @abstract  Draws   the", " *   view.", " */"]),
            "Draws the view.",
        )


class TestDeprecation(unittest.TestCase):
    """Test textual deprecation detection."""

    def test_message_form(self):
        self.assertEqual(
            find_deprecation(HEADER, _line_of("oldMethod")),
            (True, "Use reset instead"),
        )

    def test_replacement_form(self):
        self.assertEqual(find_deprecation(HEADER, _line_of("replacement")), (True, "renewed"))

    def test_bare_form(self):
        self.assertEqual(find_deprecation(HEADER, _line_of("legacy")), (True, None))

    def test_window_stops_at_declaration_end(self):
        # The next declarations are deprecated; this one is not.
        self.assertEqual(find_deprecation(HEADER, _line_of("- (void)reset;")), (False, None))

    def test_missing_header(self):
        self.assertEqual(find_deprecation(None, 10), (False, None))


class TestBlockParameterNames(unittest.TestCase):
    """Test recovery of parameter names spelled in callback declarators."""

    def test_method_parameter_spanning_lines(self):
        self.assertEqual(
            recover_block_parameter_names(HEADER, _line_of("fetchWithCompletion"), 0),
            ["data", "error"],
        )

    def test_second_method_parameter(self):
        self.assertEqual(
            recover_block_parameter_names(HEADER, _line_of("enumerate:"), 1),
            ["obj", "idx", "stop"],
        )

    def test_property(self):
        self.assertEqual(
            recover_block_parameter_names(HEADER, _line_of("changeHandler")),
            ["key", "value"],
        )

    def test_void_parameter_list(self):
        self.assertEqual(recover_block_parameter_names(HEADER, _line_of("plain:"), 0), [])

    def test_unnamed_parameters(self):
        self.assertEqual(recover_block_parameter_names(HEADER, _line_of("unnamed:"), 0), ["", ""])

    def test_index_out_of_range(self):
        self.assertIsNone(recover_block_parameter_names(HEADER, _line_of("plain:"), 3))


class TestDeclaratorHelpers(unittest.TestCase):
    def test_declarator_name(self):
        self.assertEqual(declarator_name("NSError *error"), "error")
        self.assertEqual(declarator_name("NSData * _Nullable data"), "data")
        self.assertEqual(declarator_name("NSUInteger idx"), "idx")
        self.assertEqual(declarator_name("BOOL *stop"), "stop")
        self.assertEqual(declarator_name("void (^handler)(BOOL)"), "handler")
        self.assertEqual(declarator_name("NSError *"), "")
        self.assertEqual(declarator_name("unsigned int"), "")
        self.assertEqual(declarator_name("id"), "")

    def test_split_top_level(self):
        self.assertEqual(
            split_top_level("NSDictionary<NSString *, id> *d, void (^b)(int, int), int n"),
            ["NSDictionary<NSString *, id> *d", " void (^b)(int, int)", " int n"],
        )


class TestHeaderLineCache(unittest.TestCase):
    def test_reads_once_and_remembers_missing(self):
        cache = HeaderLineCache()
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "A.h")
            with open(path, "w", encoding="utf-8") as f:
                f.write("line1\nline2")
            self.assertEqual(cache.get(path), ["line1", "line2"])
            os.unlink(path)
            self.assertEqual(cache.get(path), ["line1", "line2"])
        self.assertIsNone(cache.get("/definitely/missing.h"))
        self.assertIsNone(cache.get(None))

    def test_put(self):
        cache = HeaderLineCache()
        cache.put("/virtual/B.h", "a\nb")
        self.assertEqual(cache.get("/virtual/B.h"), ["a", "b"])


if __name__ == "__main__":
    unittest.main()
