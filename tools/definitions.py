"""
Tool definitions discovered from the MCP server.

The server describes its tools with JSON Schema (`inputSchema`). The chat
model expects the OpenAI-style function-calling shape. The conversion here
is deliberately lossy: for each parameter only `type` and `description`
are kept; enums, formats, defaults and nested object schemas are dropped.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple


@dataclass(frozen=True)
class ToolDefinition:
    """One tool as advertised by `tools/list`."""
    name: str
    description: str = ""
    parameters: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    required: Tuple[str, ...] = ()

    @classmethod
    def from_mcp(cls, tool: Mapping[str, Any]) -> "ToolDefinition":
        """Build from an MCP tool description.

        Args:
            tool: Mapping with `name`, optional `description` and `inputSchema`

        Returns:
            ToolDefinition with parameters in declaration order
        """
        schema = tool.get("inputSchema") or {}
        properties = schema.get("properties") or {}
        return cls(
            name=str(tool["name"]),
            description=str(tool.get("description") or ""),
            parameters={k: dict(v) if isinstance(v, Mapping) else {} for k, v in properties.items()},
            required=tuple(schema.get("required") or ()),
        )

    def to_function_schema(self) -> Dict[str, Any]:
        """Convert to the chat model's function schema (lossy, see module docstring)."""
        properties: Dict[str, Dict[str, Any]] = {}
        for key, prop in self.parameters.items():
            entry: Dict[str, Any] = {"type": prop.get("type")}
            if prop.get("description"):
                entry["description"] = prop["description"]
            properties[key] = entry

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": list(self.required),
                },
            },
        }


def load_tool_definitions(tools: Iterable[Mapping[str, Any]]) -> List[ToolDefinition]:
    """Parse the raw `tools/list` entries, skipping ones without a name."""
    return [ToolDefinition.from_mcp(t) for t in tools if isinstance(t, Mapping) and t.get("name")]


def to_function_schemas(tools: Iterable[ToolDefinition]) -> List[Dict[str, Any]]:
    return [tool.to_function_schema() for tool in tools]


def get_tool_names(tools: Iterable[ToolDefinition]) -> List[str]:
    return [tool.name for tool in tools]
