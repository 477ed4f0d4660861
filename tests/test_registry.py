"""Tests for riskreview.engine.registry."""

from __future__ import annotations

import pytest
import yaml

from riskreview.engine.registry import BUNDLED_REGISTRY, ToolRegistry
from riskreview.errors import RegistryError


@pytest.fixture()
def registry_file(tmp_path):
    path = tmp_path / "registry.yaml"
    path.write_text(yaml.safe_dump({
        "tools": {
            "eslint": {
                "languages": ["typescript", "javascript"],
                "default_command": "npx eslint ${files}",
                "fix_command": "npx eslint --fix ${files}",
                "categories": ["linting"],
                "install_hint": "npm install --save-dev eslint",
            },
            "typescript": {
                "languages": ["typescript"],
                "default_command": "npx tsc --noEmit",
                "categories": ["type_checking"],
            },
            "ruff": {
                "languages": ["python"],
                "default_command": "ruff check ${files}",
                "fix_command": "ruff check --fix ${files}",
                "categories": ["linting", "formatting"],
            },
        }
    }))
    return path


class TestLoad:
    def test_bundled_registry_loads(self):
        registry = ToolRegistry.load()
        assert BUNDLED_REGISTRY.is_file()
        for tool in ("typescript", "eslint", "prettier", "vitest", "jest"):
            assert registry.get(tool) is not None

    def test_bundled_auto_fixable_tools(self):
        registry = ToolRegistry.load()
        assert registry.is_auto_fixable("eslint")
        assert registry.is_auto_fixable("prettier")
        assert not registry.is_auto_fixable("typescript")
        assert not registry.is_auto_fixable("vitest")

    def test_custom_path(self, registry_file):
        registry = ToolRegistry.load(registry_file)
        assert set(registry.tools) == {"eslint", "typescript", "ruff"}
        eslint = registry.get("eslint")
        assert eslint.languages == ("typescript", "javascript")
        assert eslint.fix_command == "npx eslint --fix ${files}"

    def test_missing_file(self, tmp_path):
        with pytest.raises(RegistryError, match="Failed to load tool registry"):
            ToolRegistry.load(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("tools: [unclosed\n")
        with pytest.raises(RegistryError):
            ToolRegistry.load(path)

    def test_missing_tools_mapping(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("version: 1\n")
        with pytest.raises(RegistryError, match="missing a tools mapping"):
            ToolRegistry.load(path)

    def test_bad_languages_field(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("tools:\n  x:\n    languages: python\n")
        with pytest.raises(RegistryError, match="languages must be a list"):
            ToolRegistry.load(path)


class TestLookups:
    def test_unknown_tool(self, registry_file):
        registry = ToolRegistry.load(registry_file)
        assert registry.get("nope") is None
        assert not registry.is_auto_fixable("nope")
        assert registry.install_hint("nope") is None

    def test_install_hint(self, registry_file):
        registry = ToolRegistry.load(registry_file)
        assert registry.install_hint("eslint") == "npm install --save-dev eslint"
        assert registry.install_hint("typescript") is None

    def test_tools_for_language(self, registry_file):
        registry = ToolRegistry.load(registry_file)
        assert registry.tools_for_language("typescript") == ["eslint", "typescript"]
        assert registry.tools_for_language("python") == ["ruff"]
        assert registry.tools_for_language("go") == []

    def test_tools_for_category(self, registry_file):
        registry = ToolRegistry.load(registry_file)
        assert registry.tools_for_category("linting") == ["eslint", "ruff"]
        assert registry.tools_for_category("formatting") == ["ruff"]

    def test_empty_registry(self):
        registry = ToolRegistry()
        assert registry.tools_for_category("linting") == []
        assert not registry.is_auto_fixable("eslint")
