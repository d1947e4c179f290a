"""Tool abstractions and registries."""

from .base import Tool, ToolContext, ToolInputError, ToolParameter, ToolResult
from .registry import ToolRegistry

__all__ = ["Tool", "ToolContext", "ToolInputError", "ToolParameter", "ToolResult", "ToolRegistry"]
