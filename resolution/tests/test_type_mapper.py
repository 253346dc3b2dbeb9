"""
Unit tests for type_mapper.py

Tests the raw type -> host type rules against a small hand-built context.
"""

import unittest

from extraction.models import ClassDecl, ProtocolDecl, StructAlias, StructDecl, StructField
from resolution.context import ResolutionContext
from resolution.type_mapper import (
    is_function_type,
    is_nullable,
    make_optional,
    resolve_param_type,
    resolve_return_type,
    resolve_type,
    selector_to_member_name,
    strip_annotations,
)


def _classes(*specs):
    return {name: ClassDecl(name=name, protocols=list(protocols)) for name, protocols in specs}


def build_context():
    classes = _classes(
        ("NSObject", ()),
        ("NSString", ()),
        ("NSArray", ()),
        ("NSData", ()),
        ("NSView", ("NSCoding",)),
        ("Widget", ()),
        ("A", ("Credential",)),
        ("C", ("Credential",)),
    )
    for index in range(31):
        name = f"Many{index}"
        classes[name] = ClassDecl(name=name, protocols=["Popular"])
    protocols = {
        "Credential": ProtocolDecl(name="Credential", extended_protocols=["NSSecureCoding"]),
        "NSSecureCoding": ProtocolDecl(name="NSSecureCoding", extended_protocols=["NSCoding"]),
        "NSCoding": ProtocolDecl(name="NSCoding"),
        "Popular": ProtocolDecl(name="Popular"),
        "Lonely": ProtocolDecl(name="Lonely"),
    }
    structs = {
        "CGPoint": StructDecl("CGPoint", [StructField("x", "CGFloat"), StructField("y", "CGFloat")]),
        "Point": StructDecl("Point", [StructField("x", "float"), StructField("y", "float")], internal_name="_Point"),
    }
    typedefs = {
        "CycleA": "CycleB",
        "CycleB": "CycleA",
        "NSWindowPersistableFrameDescriptor": "NSString *",
        "NSComparator": "NSComparisonResult (^)(id _Nonnull, id _Nonnull)",
        "WidgetID": "NSUInteger",
    }
    return ResolutionContext.from_tables(
        classes=classes,
        protocols=protocols,
        integer_enums=["WidgetStyle"],
        string_enums=["NSPasteboardType"],
        structs=structs,
        struct_aliases=[StructAlias("NSPoint", "CGPoint")],
        typedefs=typedefs,
    )


class TestHelpers(unittest.TestCase):
    def test_selector_to_member_name(self):
        self.assertEqual(selector_to_member_name("initWithFrame:styleMask:"), "initWithFrame$styleMask$")
        self.assertEqual(selector_to_member_name("title"), "title")

    def test_strip_annotations(self):
        self.assertEqual(strip_annotations("NSString * _Nonnull"), "NSString *")
        self.assertEqual(strip_annotations("__kindof NSView * _Nullable"), "NSView *")
        self.assertEqual(strip_annotations("struct CGPoint"), "CGPoint")
        self.assertEqual(strip_annotations("NSArray<NSString * _Nonnull> *"), "NSArray<NSString *> *")

    def test_is_nullable_outer_only(self):
        self.assertTrue(is_nullable("NSString * _Nullable"))
        self.assertTrue(is_nullable("nullable NSString *"))
        self.assertFalse(is_nullable("NSArray<NSString * _Nullable> * _Nonnull"))
        self.assertFalse(is_nullable("void (^)(NSError * _Nullable)"))
        self.assertTrue(is_nullable("void (^ _Nullable)(NSError * _Nullable)"))

    def test_make_optional(self):
        self.assertEqual(make_optional("_Widget"), "_Widget | null")
        self.assertEqual(make_optional("_Widget | null"), "_Widget | null")
        self.assertEqual(make_optional("void"), "void")
        self.assertEqual(make_optional("() => void"), "(() => void) | null")
        self.assertEqual(
            make_optional("(arg0: number) => _Widget | null"),
            "((arg0: number) => _Widget | null) | null",
        )
        self.assertEqual(make_optional("((arg0: number) => void) | null"), "((arg0: number) => void) | null")

    def test_is_function_type(self):
        self.assertTrue(is_function_type("(arg0: (x: number) => void) => void"))
        self.assertFalse(is_function_type("((arg0: number) => void) | null"))
        self.assertFalse(is_function_type("_A | _C"))


class TestResolveType(unittest.TestCase):
    """Test each resolution rule."""

    @classmethod
    def setUpClass(cls):
        cls.ctx = build_context()

    def resolve(self, raw, is_return=False, names=None):
        return resolve_type(raw, "Widget", self.ctx, is_return, names)

    def test_direct_and_numeric(self):
        self.assertEqual(self.resolve("void"), "void")
        self.assertEqual(self.resolve("BOOL"), "boolean")
        self.assertEqual(self.resolve("SEL"), "string")
        self.assertEqual(self.resolve("const char * _Nonnull"), "string")
        self.assertEqual(self.resolve("id"), "NobjcObject")
        self.assertEqual(self.resolve("NSInteger"), "number")
        self.assertEqual(self.resolve("CGFloat"), "number")

    def test_generic_placeholder(self):
        self.assertEqual(self.resolve("ObjectType"), "NobjcObject")

    def test_instancetype(self):
        self.assertEqual(self.resolve("instancetype"), "_Widget")
        self.assertEqual(self.resolve("instancetype _Nullable", is_return=True), "_Widget | null")

    def test_structs(self):
        self.assertEqual(self.resolve("CGPoint"), "CGPoint")
        self.assertEqual(self.resolve("struct _Point"), "Point")
        self.assertEqual(self.resolve("NSPoint"), "CGPoint")
        self.assertEqual(self.resolve("CGPoint *"), "NobjcObject")

    def test_object_pointers(self):
        self.assertEqual(self.resolve("NSString * _Nonnull"), "_NSString")
        self.assertEqual(self.resolve("NSString * _Nullable"), "_NSString | null")
        self.assertEqual(self.resolve("NSArray<NSString * _Nullable> * _Nonnull"), "_NSArray")
        self.assertEqual(self.resolve("NSURL *"), "NobjcObject")
        self.assertEqual(self.resolve("__kindof NSView *"), "_NSView")

    def test_raw_and_indirect_pointers(self):
        self.assertEqual(self.resolve("void *"), "NobjcObject")
        self.assertEqual(self.resolve("NSError * _Nullable * _Nullable"), "NobjcObject | null")
        self.assertEqual(self.resolve("int (*)(void *, int)"), "NobjcObject")
        self.assertEqual(self.resolve("int [4]"), "NobjcObject")

    def test_enums(self):
        self.assertEqual(self.resolve("WidgetStyle"), "WidgetStyle")
        self.assertEqual(self.resolve("NSPasteboardType _Nonnull"), "NSPasteboardType")
        self.assertEqual(self.resolve("NSPasteboardType _Nullable"), "NSPasteboardType | null")

    def test_typedefs(self):
        self.assertEqual(self.resolve("WidgetID"), "number")
        self.assertEqual(self.resolve("NSWindowPersistableFrameDescriptor"), "_NSString")

    def test_typedef_cycle_terminates(self):
        self.assertEqual(self.resolve("CycleA"), "NobjcObject")
        self.assertEqual(self.resolve("CycleB"), "NobjcObject")

    def test_unknown_type(self):
        self.assertEqual(self.resolve("SomethingUnheardOf"), "NobjcObject")

    def test_idempotent(self):
        for raw in ("id<Credential>", "NSComparator", "CycleA", "NSString * _Nullable"):
            self.assertEqual(self.resolve(raw, is_return=True), self.resolve(raw, is_return=True))


class TestProtocolTypes(unittest.TestCase):
    """Test conformer unions and protocol existentials."""

    @classmethod
    def setUpClass(cls):
        cls.ctx = build_context()

    def test_return_is_conformer_union(self):
        self.assertEqual(resolve_return_type("id<Credential>", "Widget", self.ctx), "_A | _C")
        self.assertEqual(
            resolve_return_type("id<Credential> _Nullable", "Widget", self.ctx),
            "_A | _C | null",
        )

    def test_parameter_keeps_protocol_type(self):
        self.assertEqual(resolve_param_type("id<Credential>", "Widget", self.ctx), "_Credential")

    def test_transitive_conformers(self):
        self.assertEqual(resolve_return_type("id<NSSecureCoding>", "Widget", self.ctx), "_A | _C")
        self.assertEqual(resolve_return_type("id<NSCoding>", "Widget", self.ctx), "_A | _C | _NSView")

    def test_too_many_conformers_stay_existential(self):
        self.assertEqual(resolve_return_type("id<Popular>", "Widget", self.ctx), "_Popular")

    def test_no_conformers(self):
        self.assertEqual(resolve_return_type("id<Lonely>", "Widget", self.ctx), "_Lonely")

    def test_protocol_lists(self):
        self.assertEqual(resolve_param_type("id<NSCopying, Credential>", "Widget", self.ctx), "_Credential")
        self.assertEqual(resolve_return_type("id<Credential, Lonely>", "Widget", self.ctx), "_Credential | _Lonely")
        self.assertEqual(resolve_param_type("id<NSCopying>", "Widget", self.ctx), "NobjcObject")

    def test_protocol_absorbed_by_class(self):
        self.assertEqual(resolve_param_type("id<NSObject>", "Widget", self.ctx), "_NSObject")


class TestPositionalRules(unittest.TestCase):
    """Test the rules that depend on return vs. parameter position."""

    @classmethod
    def setUpClass(cls):
        cls.ctx = build_context()

    def test_raw_pointer_parameters_are_buffers(self):
        self.assertEqual(resolve_param_type("void *", "Widget", self.ctx), "Uint8Array")
        self.assertEqual(resolve_param_type("const void * _Nullable", "Widget", self.ctx), "Uint8Array | null")
        self.assertEqual(resolve_return_type("void *", "Widget", self.ctx), "NobjcObject")

    def test_cf_references(self):
        self.assertEqual(resolve_param_type("CGContextRef _Nonnull", "Widget", self.ctx), "Uint8Array")
        self.assertEqual(resolve_return_type("CGImageRef", "Widget", self.ctx), "NobjcObject")


class TestBlockTypes(unittest.TestCase):
    """Test callback types resolved to host function types."""

    @classmethod
    def setUpClass(cls):
        cls.ctx = build_context()

    def resolve(self, raw, names=None):
        return resolve_param_type(raw, "Widget", self.ctx, names)

    def test_header_names(self):
        self.assertEqual(
            self.resolve("void (^)(NSData * _Nullable, NSError * _Nullable)", ["data", "error"]),
            "(data: _NSData, error: NobjcObject) => void",
        )

    def test_positional_names(self):
        self.assertEqual(
            self.resolve("void (^)(NSData * _Nullable, NSError * _Nullable)"),
            "(arg0: _NSData, arg1: NobjcObject) => void",
        )

    def test_header_name_count_mismatch(self):
        self.assertEqual(self.resolve("void (^)(BOOL)", ["a", "b"]), "(arg0: boolean) => void")

    def test_embedded_names(self):
        self.assertEqual(self.resolve("void (^)(BOOL finished)"), "(finished: boolean) => void")

    def test_reserved_and_duplicate_names(self):
        self.assertEqual(
            self.resolve("void (^)(id, id, id)", ["class", "value", "value"]),
            "(class_: NobjcObject, value: NobjcObject, value2: NobjcObject) => void",
        )

    def test_void_parameters_and_return(self):
        self.assertEqual(self.resolve("void (^)(void)"), "() => void")
        self.assertEqual(self.resolve("BOOL (^)(NSString *)"), "(arg0: _NSString) => boolean")

    def test_nullable_block(self):
        self.assertEqual(self.resolve("void (^ _Nullable)(BOOL)"), "((arg0: boolean) => void) | null")
        self.assertEqual(
            self.resolve("NSString * _Nullable (^ _Nullable)(id)"),
            "((arg0: NobjcObject) => _NSString) | null",
        )

    def test_nested_block_parameter(self):
        self.assertEqual(
            self.resolve("void (^)(void (^)(BOOL), NSInteger)"),
            "(arg0: (arg0: boolean) => void, arg1: number) => void",
        )

    def test_typedef_block(self):
        self.assertEqual(
            self.resolve("NSComparator _Nonnull"),
            "(arg0: NobjcObject, arg1: NobjcObject) => number",
        )

    def test_unparseable_block_is_opaque(self):
        self.assertEqual(self.resolve("void (^(^)(int))(BOOL)"), "NobjcObject")


if __name__ == "__main__":
    unittest.main()
