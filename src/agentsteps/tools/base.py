"""Base classes for tools."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

logger = logging.getLogger(__name__)

PARAMETER_TYPES = ("string", "number", "integer", "boolean")


class ToolInputError(ValueError):
    """Raised by a tool when its arguments cannot be used."""


def error_payload(message: str) -> str:
    return json.dumps({"error": message}, ensure_ascii=False)


@dataclass(frozen=True)
class ToolParameter:
    """Declared parameter of a tool."""

    name: str
    type: str = "string"
    description: str = ""
    required: bool = True

    def __post_init__(self) -> None:
        if self.type not in PARAMETER_TYPES:
            raise ValueError(f"Unsupported parameter type '{self.type}' for '{self.name}'")


@dataclass
class ToolContext:
    """Metadata passed to tool invocations."""

    agent_name: str = ""
    call_id: str = ""
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Result returned by a tool."""

    content: str
    metadata: Dict[str, str] = field(default_factory=dict)


class Tool:
    """Base tool class."""

    name: str
    description: str
    parameters: Sequence[ToolParameter] = ()

    def __init__(self, name: str | None = None, description: str | None = None, **kwargs: object) -> None:
        self.name = name or getattr(type(self), "name", "") or type(self).__name__.lower()
        self.description = description or getattr(type(self), "description", "") or inspect.getdoc(self) or ""
        self.config = kwargs

    def schema(self) -> Dict[str, Any]:
        """Return the OpenAI function-calling schema for this tool."""

        properties: Dict[str, Any] = {}
        required: List[str] = []
        for param in self.parameters:
            properties[param.name] = {"type": param.type, "description": param.description}
            if param.required:
                required.append(param.name)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {"type": "object", "properties": properties, "required": required},
            },
        }

    def invoke(self, arguments: str, context: ToolContext | None = None) -> str:
        """Run the tool on a JSON argument string; errors come back as JSON payloads."""

        try:
            parsed = json.loads(arguments) if arguments and arguments.strip() else {}
        except json.JSONDecodeError as exc:
            return error_payload(f"failed to parse arguments: {exc}")
        if not isinstance(parsed, dict):
            return error_payload("arguments must be a JSON object")
        missing = [param.name for param in self.parameters if param.required and param.name not in parsed]
        if missing:
            return error_payload(f"missing required parameter(s): {', '.join(missing)}")
        try:
            result = self.run(arguments=parsed, context=context or ToolContext())
        except ToolInputError as exc:
            return error_payload(str(exc))
        except Exception as exc:
            logger.warning("Tool %s raised %s: %s", self.name, type(exc).__name__, exc)
            return error_payload(f"{self.name} failed: {exc}")
        return result.content

    def run(self, *, arguments: Dict[str, Any], context: ToolContext) -> ToolResult:  # pragma: no cover - abstract
        raise NotImplementedError
