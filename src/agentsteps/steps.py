"""The four tutorial programs, wired from configuration."""

from __future__ import annotations

from typing import Callable, Mapping

from rich.console import Console

from .agents.base import AgentError, ReactAgent, ToolCallingChain, ToolNode
from .config import StepsConfig
from .llm.prompt import ChatTemplate, MessagesPlaceholder
from .llm.provider import ChatModel, Message, ModelError, OpenAIChatProvider, describe
from .memory.simple import ConversationBufferMemory
from .tools.builtin import register_builtin_tools
from .tools.registry import ToolRegistry

ModelFactory = Callable[[StepsConfig], ChatModel]

CHAT_TEMPLATE = ChatTemplate.from_messages(
    ("system", "You are a {role}. Answer in a {style} tone."),
    ("user", "Question: {question}"),
)

MATH_TEMPLATE = ChatTemplate.from_messages(
    ("system", "You are a math assistant. When the user asks for a calculation, use the calculator tool and return the result."),
    MessagesPlaceholder("chat_history", optional=True),
    ("user", "Question: {question}"),
)

REACT_SYSTEM_PROMPT = (
    "You are a helpful assistant. When the user asks about the weather or the time, "
    "use the matching tool to get accurate information."
)

DIRECTOR_TEMPLATE = ChatTemplate.from_messages(
    (
        "system",
        """You are a project director coordinating several specialist agents working in parallel.

Workflow:
1. When you receive a development task, use the execute_parallel_tasks tool to delegate it to specialist agents in parallel.
2. Every agent reports its result when it finishes.
3. Finally, use the generate_report tool to produce the final report.

Specialist agents:
- "architect": system architecture design
- "backend_dev": backend development
- "frontend_dev": frontend development
- "test_dev": test cases
- "devops": deployment and operations

Report format:
- agent_name: agent name
- task: task name
- status: in_progress/completed/failed
- result: outcome
- duration_ms: elapsed time""",
    ),
    MessagesPlaceholder("chat_history", optional=True),
    ("user", "Question: {question}"),
)


def openai_model_factory(environ: Mapping[str, str]) -> ModelFactory:
    """Return a factory building the real client with the credential from ``environ``."""

    def factory(config: StepsConfig) -> ChatModel:
        return OpenAIChatProvider(config.client.with_api_key(environ))

    return factory


def build_registry(config: StepsConfig) -> ToolRegistry:
    registry = ToolRegistry()
    register_builtin_tools(registry, config.dispatch)
    for spec in config.tool_specs.values():
        registry.register_spec(spec)
    return registry


def _banner(console: Console, title: str) -> None:
    console.rule(f"[bold cyan]{title}")


def run_chat(config: StepsConfig, model: ChatModel, console: Console) -> int:
    """Step 1: render a prompt template and call the model once per query."""

    scenario = config.scenario("chat")
    failures = 0
    for query in scenario.queries:
        messages = CHAT_TEMPLATE.format(question=query, **scenario.variables)
        console.print(f"Calling {config.client.model} ...")
        try:
            result = model.generate(messages)
        except ModelError as exc:
            console.print(f"[red]Failed to generate:[/] {exc}")
            failures += 1
            continue
        _banner(console, "Response")
        console.print(result.content, markup=False)
    return failures


def run_tools(config: StepsConfig, model: ChatModel, console: Console, registry: ToolRegistry | None = None) -> int:
    """Step 2: call the model with the calculator bound, then run model -> tools."""

    registry = registry or build_registry(config)
    scenario = config.scenario("tools")
    node = ToolNode(registry.toolset(["calculator"], scenario.tools), agent_name="math_assistant")
    memory = ConversationBufferMemory()
    chain = ToolCallingChain(model, node, memory=memory)
    failures = 0
    for query in scenario.queries:
        messages = MATH_TEMPLATE.format(question=query, chat_history=memory.dump(), **scenario.variables)
        memory.add(Message.user(query))
        try:
            _banner(console, "Step 1: direct model call")
            direct = model.generate(messages, node.schemas())
            console.print(describe(direct), markup=False)

            _banner(console, "Step 2: model + tool node")
            outputs = chain.invoke(messages)
        except ModelError as exc:
            console.print(f"[red]Error:[/] {exc}")
            failures += 1
            continue
        for message in outputs:
            console.print(describe(message), markup=False)
    return failures


def run_react(config: StepsConfig, model: ChatModel, console: Console, registry: ToolRegistry | None = None) -> int:
    """Step 3: ReAct agent with weather and clock tools, then a streamed answer."""

    registry = registry or build_registry(config)
    scenario = config.scenario("react")
    agent = ReactAgent(
        model,
        registry.toolset(["weather", "get_current_time"], scenario.tools),
        max_steps=config.react_max_steps,
        message_modifier=lambda messages: [Message.system(REACT_SYSTEM_PROMPT), *messages],
    )
    failures = 0
    for index, query in enumerate(scenario.queries, start=1):
        _banner(console, f"Test {index}: {query}")
        try:
            reply = agent.generate([Message.user(query)])
        except (ModelError, AgentError) as exc:
            console.print(f"[red]Error:[/] {exc}")
            failures += 1
            continue
        console.print("[bold]Final response:[/]")
        console.print(reply.content, markup=False)

    stream_query = scenario.variables.get("stream_query")
    if stream_query:
        _banner(console, f"Streaming: {stream_query}")
        try:
            for chunk in agent.stream([Message.user(str(stream_query))]):
                console.print(chunk.content, end="", markup=False)
        except (ModelError, AgentError) as exc:
            console.print(f"\n[red]Stream error:[/] {exc}")
            failures += 1
        console.print()
    return failures


def run_parallel(
    config: StepsConfig, model: ChatModel, console: Console, registry: ToolRegistry | None = None
) -> int:
    """Step 4: project director delegating to parallel specialist agents."""

    registry = registry or build_registry(config)
    scenario = config.scenario("parallel")
    node = ToolNode(
        registry.toolset(["execute_parallel_tasks", "generate_report"], scenario.tools),
        agent_name="project_director",
    )
    memory = ConversationBufferMemory()
    chain = ToolCallingChain(model, node, memory=memory)
    failures = 0
    for index, query in enumerate(scenario.queries, start=1):
        _banner(console, f"Test {index}: {query}")
        messages = DIRECTOR_TEMPLATE.format(question=query, chat_history=memory.dump(), **scenario.variables)
        memory.add(Message.user(query))
        try:
            outputs = chain.invoke(messages)
        except ModelError as exc:
            console.print(f"[red]Error:[/] {exc}")
            failures += 1
            continue
        console.print("[bold]Agent response:[/]")
        for message in outputs:
            console.print(message.content, markup=False)
    return failures


STEPS = {
    "chat": run_chat,
    "tools": run_tools,
    "react": run_react,
    "parallel": run_parallel,
}
