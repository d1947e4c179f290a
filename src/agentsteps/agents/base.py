"""Tool routing, the model-to-tools chain and the ReAct agent loop."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, Sequence

from ..llm.provider import ChatModel, Message, ToolCall
from ..memory.simple import ConversationBufferMemory
from ..tools.base import Tool, ToolContext, error_payload

logger = logging.getLogger(__name__)

MessageModifier = Callable[[List[Message]], List[Message]]


class AgentError(RuntimeError):
    """Raised when an agent cannot reach a final answer."""


class ToolNode:
    """Executes the tool calls found in an assistant message."""

    def __init__(self, tools: Sequence[Tool], agent_name: str = "agent") -> None:
        self.tools: Dict[str, Tool] = {tool.name: tool for tool in tools}
        self.agent_name = agent_name

    def schemas(self) -> List[dict]:
        return [tool.schema() for tool in self.tools.values()]

    def invoke(self, message: Message) -> List[Message]:
        return [self._call(call) for call in message.tool_calls]

    def _call(self, call: ToolCall) -> Message:
        tool = self.tools.get(call.name)
        if tool is None:
            content = error_payload(f"unknown tool '{call.name}'")
        else:
            logger.debug("Invoking tool %s with %s", call.name, call.arguments)
            content = tool.invoke(
                call.arguments,
                ToolContext(agent_name=self.agent_name, call_id=call.id),
            )
        return Message.tool(content, tool_call_id=call.id, name=call.name)


class ToolCallingChain:
    """Chat model followed by a tool node.

    The model sees every tool schema; when it answers with tool calls the
    chain returns the tool results, otherwise the assistant reply itself.
    """

    def __init__(
        self,
        model: ChatModel,
        tool_node: ToolNode,
        memory: ConversationBufferMemory | None = None,
    ) -> None:
        self.model = model
        self.tool_node = tool_node
        self.memory = memory

    def invoke(self, messages: Sequence[Message]) -> List[Message]:
        reply = self.model.generate(list(messages), self.tool_node.schemas())
        outputs = self.tool_node.invoke(reply) if reply.tool_calls else [reply]
        if self.memory is not None:
            self.memory.add(reply)
            if reply.tool_calls:
                self.memory.extend(outputs)
        return outputs


class ReactAgent:
    """Reason/act loop: call the model, run requested tools, repeat until it answers."""

    def __init__(
        self,
        model: ChatModel,
        tools: Sequence[Tool],
        *,
        max_steps: int = 10,
        message_modifier: MessageModifier | None = None,
        name: str = "react_agent",
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.model = model
        self.tool_node = ToolNode(tools, agent_name=name)
        self.max_steps = max_steps
        self.message_modifier = message_modifier
        self.name = name
        self.trace: List[str] = []

    def _prepare(self, messages: Sequence[Message]) -> List[Message]:
        self.trace = []
        conversation = list(messages)
        if self.message_modifier is not None:
            conversation = list(self.message_modifier(conversation))
        return conversation

    def _act(self, conversation: List[Message], reply: Message, step: int) -> None:
        conversation.append(reply)
        for result in self.tool_node.invoke(reply):
            self.trace.append(f"tool@{step}: {result.name} => {result.content}")
            conversation.append(result)

    def generate(self, messages: Sequence[Message]) -> Message:
        conversation = self._prepare(messages)
        schemas = self.tool_node.schemas()
        for step in range(1, self.max_steps + 1):
            reply = self.model.generate(conversation, schemas)
            self.trace.append(f"model@{step}: {reply.content or '[tool calls]'}")
            if not reply.tool_calls:
                return reply
            self._act(conversation, reply, step)
        raise AgentError(f"{self.name} exceeded {self.max_steps} steps without a final answer")

    def stream(self, messages: Sequence[Message]) -> Iterator[Message]:
        conversation = self._prepare(messages)
        schemas = self.tool_node.schemas()
        for step in range(1, self.max_steps + 1):
            calls: List[ToolCall] = []
            parts: List[str] = []
            for chunk in self.model.stream(conversation, schemas):
                if chunk.tool_calls:
                    calls.extend(chunk.tool_calls)
                if chunk.content:
                    parts.append(chunk.content)
                    yield chunk
            self.trace.append(f"model@{step}: {''.join(parts) or '[tool calls]'}")
            if not calls:
                return
            self._act(conversation, Message.assistant("".join(parts), calls), step)
        raise AgentError(f"{self.name} exceeded {self.max_steps} steps without a final answer")
