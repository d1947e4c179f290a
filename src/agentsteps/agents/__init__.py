"""Agent package exports."""

from .base import AgentError, ReactAgent, ToolCallingChain, ToolNode

__all__ = ["AgentError", "ReactAgent", "ToolCallingChain", "ToolNode"]
