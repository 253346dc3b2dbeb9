"""Tests for startup config validation helpers."""

import os
import tempfile
import unittest
from unittest import mock

from core.startup_config import (
    MAX_POOL_SIZE,
    ConfigValidationError,
    resolve_clang_path,
    resolve_pool_size,
    resolve_sdk_path,
    resolve_strict_config_validation,
    validate_startup_config,
)


class TestStartupConfig(unittest.TestCase):
    def test_pool_size_is_capped(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True), mock.patch("os.cpu_count", return_value=64):
            self.assertEqual(resolve_pool_size(), MAX_POOL_SIZE)

    def test_pool_size_follows_small_machines(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True), mock.patch("os.cpu_count", return_value=2):
            self.assertEqual(resolve_pool_size(), 2)

    def test_pool_size_env_override(self) -> None:
        with mock.patch.dict(os.environ, {"GENERATOR_POOL_SIZE": "12"}, clear=True):
            self.assertEqual(resolve_pool_size(), 12)

    def test_pool_size_explicit_wins_and_is_clamped(self) -> None:
        with mock.patch.dict(os.environ, {"GENERATOR_POOL_SIZE": "12"}, clear=True):
            self.assertEqual(resolve_pool_size(3), 3)
            self.assertEqual(resolve_pool_size(0), 1)

    def test_pool_size_ignores_garbage_env(self) -> None:
        with mock.patch.dict(os.environ, {"GENERATOR_POOL_SIZE": "many"}, clear=True), mock.patch(
            "os.cpu_count", return_value=4
        ):
            self.assertEqual(resolve_pool_size(), 4)

    def test_env_paths(self) -> None:
        with mock.patch.dict(os.environ, {"CLANG_PATH": "/opt/clang", "SDK_PATH": "/sdk"}, clear=True):
            self.assertEqual(resolve_clang_path(), "/opt/clang")
            self.assertEqual(resolve_sdk_path(), "/sdk")
            self.assertEqual(resolve_sdk_path("/other"), "/other")

    def test_strict_flag_from_env(self) -> None:
        with mock.patch.dict(os.environ, {"STRICT_CONFIG_VALIDATION": "yes"}, clear=True):
            self.assertTrue(resolve_strict_config_validation())
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertFalse(resolve_strict_config_validation())

    def test_strict_missing_compiler_raises(self) -> None:
        with tempfile.TemporaryDirectory() as sdk:
            with self.assertRaises(ConfigValidationError):
                validate_startup_config(clang_path="/definitely/missing/clang", sdk_path=sdk, strict=True)

    def test_strict_missing_sdk_raises(self) -> None:
        with tempfile.NamedTemporaryFile() as fake_clang:
            with self.assertRaises(ConfigValidationError):
                validate_startup_config(
                    clang_path=fake_clang.name,
                    sdk_path="/definitely/missing/sdk",
                    strict=True,
                )

    def test_non_strict_returns_resolved_values(self) -> None:
        config = validate_startup_config(
            clang_path="/definitely/missing/clang",
            sdk_path="/definitely/missing/sdk",
            pool_size=2,
            strict=False,
        )
        self.assertEqual(config.clang_path, "/definitely/missing/clang")
        self.assertEqual(config.sdk_path, "/definitely/missing/sdk")
        self.assertEqual(config.pool_size, 2)


if __name__ == "__main__":
    unittest.main()
