"""Provider abstractions used by the tutorial steps."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Sequence

import openai

from ..config import ClientSettings

logger = logging.getLogger(__name__)


class ModelError(RuntimeError):
    """Raised when the chat-completion endpoint cannot produce a reply."""


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: str = "{}"

    def to_openai(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class Message:
    """A role-tagged chat message."""

    role: str
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str = "", tool_calls: Iterable[ToolCall] = ()) -> "Message":
        return cls(role="assistant", content=content, tool_calls=list(tool_calls))

    @classmethod
    def tool(cls, content: str, *, tool_call_id: str, name: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)

    def to_openai(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            payload["tool_calls"] = [call.to_openai() for call in self.tool_calls]
        if self.tool_call_id:
            payload["tool_call_id"] = self.tool_call_id
        return payload


class ChatModel(Protocol):
    """Interface for chat-completion providers."""

    def generate(
        self, messages: Sequence[Message], tools: Sequence[Dict[str, Any]] | None = None
    ) -> Message:  # pragma: no cover - interface
        """Return the assistant reply for the conversation."""

    def stream(
        self, messages: Sequence[Message], tools: Sequence[Dict[str, Any]] | None = None
    ) -> Iterator[Message]:  # pragma: no cover - interface
        """Yield partial assistant chunks as they arrive."""


class StaticResponseProvider:
    """Provider that replays a finite list of responses (useful for tests)."""

    def __init__(self, responses: Iterable[Message | str]):
        self._responses = iter(responses)
        self.calls: List[Dict[str, Any]] = []

    def _next(self, messages: Sequence[Message], tools: Sequence[Dict[str, Any]] | None) -> Message:
        self.calls.append(
            {
                "messages": list(messages),
                "tools": [schema["function"]["name"] for schema in tools or []],
            }
        )
        try:
            response = next(self._responses)
        except StopIteration as exc:
            raise ModelError("StaticResponseProvider exhausted") from exc
        if isinstance(response, Message):
            return response
        return Message.assistant(str(response))

    def generate(self, messages: Sequence[Message], tools: Sequence[Dict[str, Any]] | None = None) -> Message:
        return self._next(messages, tools)

    def stream(
        self, messages: Sequence[Message], tools: Sequence[Dict[str, Any]] | None = None
    ) -> Iterator[Message]:
        message = self._next(messages, tools)
        if message.tool_calls:
            yield message
            return
        for word in message.content.split(" "):
            if word:
                yield Message.assistant(word + " ")


class OpenAIChatProvider:
    """Calls an OpenAI-compatible chat-completion endpoint."""

    def __init__(
        self,
        settings: ClientSettings,
        *,
        client: Any | None = None,
        temperature: float | None = None,
    ) -> None:
        if not settings.api_key and client is None:
            raise ModelError("OpenAIChatProvider requires an API key")
        self.settings = settings
        self.temperature = temperature
        if client is None:
            try:
                client = openai.OpenAI(
                    api_key=settings.api_key,
                    base_url=settings.base_url,
                    timeout=settings.timeout,
                )
            except openai.OpenAIError as exc:
                raise ModelError(f"Failed to create chat model: {exc}") from exc
        self.client = client

    def _request(
        self, messages: Sequence[Message], tools: Sequence[Dict[str, Any]] | None, *, stream: bool
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.settings.model,
            "messages": [message.to_openai() for message in messages],
        }
        if tools:
            kwargs["tools"] = list(tools)
            kwargs["tool_choice"] = "auto"
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        if stream:
            kwargs["stream"] = True
        return kwargs

    def generate(self, messages: Sequence[Message], tools: Sequence[Dict[str, Any]] | None = None) -> Message:
        kwargs = self._request(messages, tools, stream=False)
        logger.debug("POST %s/chat/completions model=%s", self.settings.base_url, self.settings.model)
        try:
            response = self.client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            raise ModelError(f"Chat completion failed: {exc}") from exc
        if not response.choices:
            raise ModelError(f"Chat completion returned no choices: {response}")
        choice = response.choices[0].message
        calls = [
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "{}")
            for call in choice.tool_calls or []
        ]
        return Message.assistant(choice.content or "", calls)

    def stream(
        self, messages: Sequence[Message], tools: Sequence[Dict[str, Any]] | None = None
    ) -> Iterator[Message]:
        kwargs = self._request(messages, tools, stream=True)
        try:
            chunks = self.client.chat.completions.create(**kwargs)
            pending: Dict[int, Dict[str, str]] = {}
            for chunk in chunks:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                for call in delta.tool_calls or []:
                    slot = pending.setdefault(call.index, {"id": "", "name": "", "arguments": ""})
                    if call.id:
                        slot["id"] = call.id
                    if call.function is not None:
                        slot["name"] += call.function.name or ""
                        slot["arguments"] += call.function.arguments or ""
                if delta.content:
                    yield Message.assistant(delta.content)
        except openai.OpenAIError as exc:
            raise ModelError(f"Chat completion stream failed: {exc}") from exc
        if pending:
            yield Message.assistant(
                "",
                [
                    ToolCall(id=slot["id"], name=slot["name"], arguments=slot["arguments"] or "{}")
                    for _, slot in sorted(pending.items())
                ],
            )


def describe(message: Message) -> str:
    """Render a message for console output."""

    if message.tool_calls:
        calls = ", ".join(f"{call.name}({call.arguments})" for call in message.tool_calls)
        return f"[{message.role}] tool calls: {calls}"
    if message.role == "tool":
        try:
            body = json.dumps(json.loads(message.content), ensure_ascii=False)
        except json.JSONDecodeError:
            body = message.content
        return f"[tool:{message.name}] {body}"
    return message.content
