"""Conversation memory."""

from .simple import ConversationBufferMemory

__all__ = ["ConversationBufferMemory"]
