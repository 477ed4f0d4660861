"""Static registry of known quality-check tools (bundled data/tool_registry.yaml)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from riskreview.errors import RegistryError

logger = logging.getLogger(__name__)

BUNDLED_REGISTRY = Path(__file__).resolve().parent.parent / "data" / "tool_registry.yaml"


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    languages: tuple[str, ...]
    categories: tuple[str, ...]
    default_command: str | None = None
    fix_command: str | None = None
    version_command: str | None = None
    install_hint: str | None = None


def _as_tuple(value: object, field: str, tool: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise RegistryError(f"tool {tool!r}: {field} must be a list")
    return tuple(str(item) for item in value)


def _parse_tool(name: str, raw: object) -> ToolDefinition:
    if not isinstance(raw, dict):
        raise RegistryError(f"tool {name!r}: definition must be a mapping")
    return ToolDefinition(
        name=name,
        languages=_as_tuple(raw.get("languages"), "languages", name),
        categories=_as_tuple(raw.get("categories"), "categories", name),
        default_command=raw.get("default_command"),
        fix_command=raw.get("fix_command") or None,
        version_command=raw.get("version_command"),
        install_hint=raw.get("install_hint"),
    )


class ToolRegistry:
    """Lookup table of tool definitions, keyed by tool id."""

    def __init__(self, tools: dict[str, ToolDefinition] | None = None) -> None:
        self.tools = dict(tools or {})

    @classmethod
    def load(cls, path: str | Path | None = None) -> ToolRegistry:
        """Load a registry file; *path* None means the bundled registry.

        Raises RegistryError when the file is unreadable or malformed.
        """
        registry_path = Path(path) if path else BUNDLED_REGISTRY
        try:
            parsed = yaml.safe_load(registry_path.read_text())
        except (OSError, yaml.YAMLError) as exc:
            raise RegistryError(
                f"Failed to load tool registry from {registry_path}: {exc}"
            ) from exc

        if not isinstance(parsed, dict) or not isinstance(parsed.get("tools"), dict):
            raise RegistryError(f"Tool registry {registry_path} is missing a tools mapping")

        tools = {name: _parse_tool(name, raw) for name, raw in parsed["tools"].items()}
        logger.debug("tool registry: %d tools from %s", len(tools), registry_path)
        return cls(tools)

    def get(self, name: str) -> ToolDefinition | None:
        return self.tools.get(name)

    def is_auto_fixable(self, name: str) -> bool:
        tool = self.tools.get(name)
        return bool(tool and tool.fix_command)

    def install_hint(self, name: str) -> str | None:
        tool = self.tools.get(name)
        return tool.install_hint if tool else None

    def tools_for_language(self, language: str) -> list[str]:
        return [name for name, tool in self.tools.items() if language in tool.languages]

    def tools_for_category(self, category: str) -> list[str]:
        return [name for name, tool in self.tools.items() if category in tool.categories]
