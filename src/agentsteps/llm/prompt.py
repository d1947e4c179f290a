"""Chat prompt templates with f-string variables and history placeholders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple, Union

from .provider import Message


class TemplateError(RuntimeError):
    """Raised when a template cannot be rendered."""


@dataclass(frozen=True)
class MessagesPlaceholder:
    """Slot filled with a list of messages at format time."""

    name: str
    optional: bool = False


TemplateEntry = Union[Tuple[str, str], MessagesPlaceholder]


class ChatTemplate:
    """Renders role-tagged f-string templates into chat messages."""

    def __init__(self, entries: Sequence[TemplateEntry]) -> None:
        for entry in entries:
            if isinstance(entry, tuple) and entry[0] not in ("system", "user", "assistant"):
                raise TemplateError(f"Unsupported template role '{entry[0]}'")
        self.entries = list(entries)

    @classmethod
    def from_messages(cls, *entries: TemplateEntry) -> "ChatTemplate":
        return cls(entries)

    def format(self, **variables: Any) -> List[Message]:
        messages: List[Message] = []
        for entry in self.entries:
            if isinstance(entry, MessagesPlaceholder):
                messages.extend(self._expand(entry, variables))
                continue
            role, text = entry
            try:
                content = text.format(**variables)
            except KeyError as exc:
                raise TemplateError(f"Missing template variable {exc.args[0]!r}") from exc
            except (IndexError, ValueError) as exc:
                raise TemplateError(f"Malformed template {text!r}: {exc}") from exc
            messages.append(Message(role=role, content=content))
        return messages

    @staticmethod
    def _expand(placeholder: MessagesPlaceholder, variables: dict) -> List[Message]:
        if placeholder.name not in variables:
            if placeholder.optional:
                return []
            raise TemplateError(f"Missing messages for placeholder {placeholder.name!r}")
        value = variables[placeholder.name]
        if not isinstance(value, (list, tuple)) or not all(isinstance(item, Message) for item in value):
            raise TemplateError(f"Placeholder {placeholder.name!r} expects a list of messages")
        return list(value)
