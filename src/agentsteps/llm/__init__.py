"""LLM provider interfaces."""

from .prompt import ChatTemplate, MessagesPlaceholder, TemplateError
from .provider import (
    ChatModel,
    Message,
    ModelError,
    OpenAIChatProvider,
    StaticResponseProvider,
    ToolCall,
)

__all__ = [
    "ChatModel",
    "ChatTemplate",
    "Message",
    "MessagesPlaceholder",
    "ModelError",
    "OpenAIChatProvider",
    "StaticResponseProvider",
    "TemplateError",
    "ToolCall",
]
