"""
Unit tests for discovery.py
"""

import os
import tempfile
import unittest

from extraction.discovery import DiscoveryResult, discover_framework, header_path_for, scan_header_text

WIDGET_H = """
@class NSColor;
@protocol WidgetDelegate;

typedef NS_ENUM(NSInteger, WidgetStyle) {
    WidgetStyleFlat,
};
typedef NS_OPTIONS(NSUInteger, WidgetMask) {
    WidgetMaskNone = 0,
};
typedef NS_ERROR_ENUM(WidgetErrorDomain, WidgetError) {
    WidgetErrorUnknown = 1,
};
typedef NSInteger WidgetLevel NS_TYPED_EXTENSIBLE_ENUM;
typedef NSString * WidgetKey NS_STRING_ENUM;
typedef NSString * const WidgetName NS_TYPED_EXTENSIBLE_ENUM;

@interface Widget : NSObject <NSCopying>
@end

@interface Widget (Drawing)
@end

@protocol WidgetDelegate <NSObject>
@end
"""

OBJECT_H = """
@protocol NSObject
@end

@interface NSObject <NSObject>
@end
"""


class TestScanHeaderText(unittest.TestCase):
    def setUp(self):
        self.result = DiscoveryResult()
        scan_header_text(WIDGET_H, "Widget", self.result)

    def test_classes_skip_categories(self):
        self.assertEqual(self.result.classes, {"Widget": "Widget"})

    def test_protocols_skip_forward_references(self):
        self.assertEqual(self.result.protocols, {"WidgetDelegate": "Widget"})

    def test_enums(self):
        self.assertEqual(sorted(self.result.integer_enums), ["WidgetError", "WidgetMask", "WidgetStyle"])
        self.assertEqual(sorted(self.result.string_enums), ["WidgetKey", "WidgetName"])

    def test_typed_integer_enums_are_kept_aside(self):
        self.assertEqual(self.result.unsupported_enums, {"WidgetLevel": "Widget"})
        self.assertNotIn("unsupported_enums", self.result.counts())

    def test_first_occurrence_wins(self):
        scan_header_text("@interface Widget : NSView\n@end", "Other", self.result)
        self.assertEqual(self.result.classes["Widget"], "Widget")


class TestDiscoverFramework(unittest.TestCase):
    def test_directory_scan(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            for name, text in (("Widget.h", WIDGET_H), ("NSObject.h", OBJECT_H), ("notes.txt", "@interface Fake")):
                with open(os.path.join(tmpdir, name), "w", encoding="utf-8") as f:
                    f.write(text)
            with self.assertLogs("extraction.discovery", level="INFO") as logs:
                result = discover_framework(tmpdir, extra_classes=["NSExtra"])

            self.assertEqual(result.classes, {"NSObject": "NSObject", "Widget": "Widget", "NSExtra": "NSExtra"})
            # A protocol named after a class is absorbed by the class.
            self.assertNotIn("NSObject", result.protocols)
            self.assertEqual(result.counts()["string_enums"], 2)
            self.assertEqual(list(result.unsupported_enums), ["WidgetLevel"])
            self.assertTrue(any("WidgetLevel" in line for line in logs.output))
            self.assertEqual(header_path_for(tmpdir, "Widget"), os.path.join(tmpdir, "Widget.h"))

    def test_missing_directory(self):
        result = discover_framework("/nonexistent/Headers")
        self.assertTrue(result.is_empty())


if __name__ == "__main__":
    unittest.main()
