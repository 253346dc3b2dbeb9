"""
Unit tests for clang.py

The compiler is never started: ``subprocess.run`` is patched and the tests
check the argument vector and how output and failures are interpreted.
"""

import json
import os
import subprocess
import unittest
from unittest import mock

from extraction.clang import (
    ClangInvocationError,
    ClangInvoker,
    CompilerMode,
    build_command,
)

TREE = {
    "id": "0x1",
    "kind": "TranslationUnitDecl",
    "inner": [
        {"id": "0x2", "kind": "ObjCInterfaceDecl", "name": "Widget", "inner": []},
        {"id": "0x3", "kind": "FunctionDecl", "name": "printf"},
    ],
}


def _completed(stdout=b"", returncode=0, stderr=b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestBuildCommand(unittest.TestCase):
    def test_module_mode(self):
        cmd = build_command("clang", "/sdk", "/h/Foo.h", CompilerMode.MODULES, pre_includes=["/h/Pre.h"])
        self.assertEqual(cmd[:8], ["clang", "-Xclang", "-ast-dump=json", "-fsyntax-only", "-x", "objective-c", "-isysroot", "/sdk"])
        self.assertIn("-fmodules", cmd)
        self.assertNotIn("-include", cmd)
        self.assertEqual(cmd[-1], "/h/Foo.h")

    def test_pre_include_mode(self):
        cmd = build_command("clang", "/sdk", "/h/Foo.h", CompilerMode.PRE_INCLUDE, pre_includes=["/a.h", "/b.h"])
        self.assertNotIn("-fmodules", cmd)
        index = cmd.index("-include")
        self.assertEqual(cmd[index:index + 4], ["-include", "/a.h", "-include", "/b.h"])


class TestClangInvoker(unittest.TestCase):
    """Test invocation, output parsing and failure reporting."""

    def setUp(self):
        self.invoker = ClangInvoker(clang_path="clang", sdk_path="/sdk")

    @mock.patch("extraction.clang.subprocess.run")
    def test_single_header_compiled_directly(self, run):
        run.return_value = _completed(json.dumps(TREE).encode())
        tree = self.invoker.dump(["/h/Widget.h"])
        self.assertEqual(run.call_args[0][0][-1], "/h/Widget.h")
        self.assertEqual([n.name for n in tree.inner], ["Widget"])

    @mock.patch("extraction.clang.subprocess.run")
    def test_batch_uses_synthetic_unit(self, run):
        seen = {}

        def fake_run(cmd, **kwargs):
            source = cmd[-1]
            with open(source, "r", encoding="utf-8") as f:
                seen["text"] = f.read()
            seen["path"] = source
            return _completed(json.dumps(TREE).encode())

        run.side_effect = fake_run
        self.invoker.dump_raw(["/h/A.h", "/h/B.h"], mode=CompilerMode.PRE_INCLUDE)
        self.assertEqual(seen["text"], '#include "/h/A.h"\n#include "/h/B.h"\n')
        self.assertTrue(seen["path"].endswith(".m"))
        self.assertFalse(os.path.exists(seen["path"]))

    @mock.patch("extraction.clang.subprocess.run")
    def test_merged_unit_never_uses_modules(self, run):
        run.return_value = _completed(json.dumps(TREE).encode())
        self.invoker.dump_raw(["/h/A.h", "/h/B.h"], pre_includes=["/pre/Kit.h"], mode=CompilerMode.MODULES)
        cmd = run.call_args[0][0]
        self.assertNotIn("-fmodules", cmd)
        index = cmd.index("-include")
        self.assertEqual(cmd[index:index + 2], ["-include", "/pre/Kit.h"])
        self.assertTrue(cmd[-1].endswith(".m"))

    @mock.patch("extraction.clang.subprocess.run")
    def test_single_header_keeps_module_mode(self, run):
        run.return_value = _completed(json.dumps(TREE).encode())
        self.invoker.dump_raw(["/h/A.h"], pre_includes=["/pre/Kit.h"], mode=CompilerMode.MODULES)
        cmd = run.call_args[0][0]
        self.assertIn("-fmodules", cmd)
        self.assertNotIn("-include", cmd)
        self.assertEqual(cmd[-1], "/h/A.h")

    @mock.patch("extraction.clang.subprocess.run")
    def test_nonzero_exit_with_tree_is_success(self, run):
        run.return_value = _completed(json.dumps(TREE).encode(), returncode=1, stderr=b"error: unknown type")
        raw = self.invoker.dump_raw(["/h/Widget.h"])
        self.assertEqual(raw["kind"], "TranslationUnitDecl")

    @mock.patch("extraction.clang.subprocess.run")
    def test_empty_output_is_error(self, run):
        run.return_value = _completed(b"", returncode=1)
        with self.assertRaises(ClangInvocationError) as ctx:
            self.invoker.dump_raw(["/h/Widget.h"])
        self.assertEqual(ctx.exception.returncode, 1)
        self.assertEqual(ctx.exception.headers, ["/h/Widget.h"])

    @mock.patch("extraction.clang.subprocess.run")
    def test_invalid_json_is_error(self, run):
        run.return_value = _completed(b"{not json")
        with self.assertRaises(ClangInvocationError):
            self.invoker.dump_raw(["/h/Widget.h"])

    @mock.patch("extraction.clang.subprocess.run")
    def test_missing_compiler_is_error(self, run):
        run.side_effect = FileNotFoundError("clang")
        with self.assertRaises(ClangInvocationError):
            self.invoker.dump_raw(["/h/Widget.h"])

    def test_no_headers(self):
        with self.assertRaises(ClangInvocationError):
            self.invoker.dump_raw([])


if __name__ == "__main__":
    unittest.main()
