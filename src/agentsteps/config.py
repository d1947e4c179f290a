"""Configuration helpers for the agentsteps tutorials."""

from __future__ import annotations

import importlib
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

import yaml

DEFAULT_MODEL = "MiniMax-M2.1"
DEFAULT_BASE_URL = "https://api.minimaxi.com/v1"
DEFAULT_API_KEY_ENV = "MINIMAX_API_KEY"

DEFAULT_AGENT_TYPES = ["architect", "backend_dev", "frontend_dev", "test_dev", "devops"]


class ConfigError(RuntimeError):
    """Raised when configuration files are invalid."""


@dataclass
class ClientSettings:
    """Connection settings for the chat-completion endpoint."""

    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_key_env: str = DEFAULT_API_KEY_ENV
    api_key: Optional[str] = None
    timeout: float = 60.0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ClientSettings":
        if not data:
            return cls()
        try:
            timeout = float(data.get("timeout", 60.0))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"client.timeout must be a number, got {data.get('timeout')!r}") from exc
        return cls(
            model=str(data.get("model", DEFAULT_MODEL)),
            base_url=str(data.get("base_url", DEFAULT_BASE_URL)),
            api_key_env=str(data.get("api_key_env", DEFAULT_API_KEY_ENV)),
            api_key=data.get("api_key"),
            timeout=timeout,
        )

    def resolve_api_key(self, environ: Mapping[str, str]) -> str:
        """Return the credential, preferring an explicit key over the environment."""

        if self.api_key:
            return self.api_key
        value = environ.get(self.api_key_env, "")
        if not value:
            raise ConfigError(f"{self.api_key_env} not set")
        return value

    def with_api_key(self, environ: Mapping[str, str]) -> "ClientSettings":
        return ClientSettings(
            model=self.model,
            base_url=self.base_url,
            api_key_env=self.api_key_env,
            api_key=self.resolve_api_key(environ),
            timeout=self.timeout,
        )


@dataclass
class DispatchSettings:
    """Runtime parameters for the parallel task dispatcher."""

    max_workers: int = 8
    min_delay_ms: int = 500
    max_delay_ms: int = 1500
    timeout: Optional[float] = None
    known_agents: List[str] = field(default_factory=lambda: list(DEFAULT_AGENT_TYPES))
    label: str = "parallel development task"

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigError("dispatch.max_workers must be at least 1")
        if self.min_delay_ms < 0 or self.max_delay_ms < self.min_delay_ms:
            raise ConfigError(
                "dispatch delays must satisfy 0 <= min_delay_ms <= max_delay_ms "
                f"(got {self.min_delay_ms}..{self.max_delay_ms})"
            )
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("dispatch.timeout must be positive when set")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "DispatchSettings":
        if not data:
            return cls()
        timeout = data.get("timeout")
        try:
            return cls(
                max_workers=int(data.get("max_workers", 8)),
                min_delay_ms=int(data.get("min_delay_ms", 500)),
                max_delay_ms=int(data.get("max_delay_ms", 1500)),
                timeout=float(timeout) if timeout is not None else None,
                known_agents=[str(item) for item in data.get("known_agents", DEFAULT_AGENT_TYPES)],
                label=str(data.get("label", "parallel development task")),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid dispatch settings: {exc}") from exc


@dataclass
class ScenarioSpec:
    """Queries (and template variables) exercised by one tutorial step.

    ``tools`` names extra registered tools bound next to the step's built-ins.
    """

    queries: List[str] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    tools: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]], default: "ScenarioSpec") -> "ScenarioSpec":
        if not data:
            return default
        queries = data.get("queries", default.queries)
        if isinstance(queries, str) or not isinstance(queries, list):
            raise ConfigError("scenario queries must be a list of strings")
        tools = data.get("tools", default.tools)
        if isinstance(tools, str) or not isinstance(tools, list):
            raise ConfigError("scenario tools must be a list of tool names")
        return cls(
            queries=[str(query) for query in queries],
            variables=dict(data.get("variables", default.variables)),
            tools=[str(name) for name in tools],
        )


DEFAULT_SCENARIOS: Dict[str, ScenarioSpec] = {
    "chat": ScenarioSpec(
        queries=["Hello, please introduce yourself."],
        variables={"role": "assistant", "style": "concise and professional"},
    ),
    "tools": ScenarioSpec(queries=["Calculate 100 + 200, then calculate 50 * 3."]),
    "react": ScenarioSpec(
        queries=[
            "What time is it now?",
            "What is the weather in Beijing on 2026-02-05?",
            "Tell me today's weather in Shanghai, then tell me the current time.",
        ],
        variables={"stream_query": "Weather in Shenzhen on 2026-02-06"},
    ),
    "parallel": ScenarioSpec(
        queries=[
            "Build a user login module with a frontend login page and a backend API.",
            "Implement a todo list feature with create, read, update, delete and a list view.",
        ]
    ),
}


@dataclass
class ToolSpec:
    """Configuration for an extra tool instance loaded by import path."""

    name: str
    type: str
    args: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any]) -> "ToolSpec":
        if "type" not in data:
            raise ConfigError(f"Tool '{name}' requires a type path")
        return cls(name=name, type=str(data["type"]), args=dict(data.get("args", {})))


@dataclass
class StepsConfig:
    """Representation of the YAML configuration."""

    name: str = "agentsteps"
    client: ClientSettings = field(default_factory=ClientSettings)
    dispatch: DispatchSettings = field(default_factory=DispatchSettings)
    react_max_steps: int = 10
    scenarios: Dict[str, ScenarioSpec] = field(default_factory=lambda: dict(DEFAULT_SCENARIOS))
    tool_specs: Dict[str, ToolSpec] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "StepsConfig":
        return cls()

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "StepsConfig":
        file_path = pathlib.Path(path)
        try:
            text = file_path.read_text()
        except OSError as exc:
            raise ConfigError(f"Cannot read configuration file {file_path}: {exc}") from exc
        return cls.from_yaml(text, default_name=file_path.stem)

    @classmethod
    def from_yaml(cls, text: str, *, default_name: str = "agentsteps") -> "StepsConfig":
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Configuration is not valid YAML: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, MutableMapping):
            raise ConfigError("Configuration root must be a mapping")
        return cls.from_mapping(data, default_name=default_name)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, default_name: str = "agentsteps") -> "StepsConfig":
        raw_scenarios = data.get("scenarios") or {}
        if not isinstance(raw_scenarios, Mapping):
            raise ConfigError("scenarios must be a mapping of step name to scenario")
        unknown = sorted(set(raw_scenarios) - set(DEFAULT_SCENARIOS))
        if unknown:
            raise ConfigError(f"Unknown scenario section(s): {', '.join(unknown)}")
        scenarios = {
            step: ScenarioSpec.from_mapping(raw_scenarios.get(step), default)
            for step, default in DEFAULT_SCENARIOS.items()
        }
        react = data.get("react") or {}
        if not isinstance(react, Mapping):
            raise ConfigError("react must be a mapping")
        try:
            max_steps = int(react.get("max_steps", 10))
        except (TypeError, ValueError) as exc:
            raise ConfigError("react.max_steps must be an integer") from exc
        if max_steps < 1:
            raise ConfigError("react.max_steps must be at least 1")
        raw_tools = data.get("tools") or {}
        if not isinstance(raw_tools, Mapping) or not all(isinstance(info, Mapping) for info in raw_tools.values()):
            raise ConfigError("tools must map each tool name to a mapping with a type path")
        tool_specs = {name: ToolSpec.from_mapping(name, info) for name, info in raw_tools.items()}
        return cls(
            name=str(data.get("name", default_name)),
            client=ClientSettings.from_mapping(data.get("client")),
            dispatch=DispatchSettings.from_mapping(data.get("dispatch")),
            react_max_steps=max_steps,
            scenarios=scenarios,
            tool_specs=tool_specs,
        )

    def scenario(self, step: str) -> ScenarioSpec:
        try:
            return self.scenarios[step]
        except KeyError as exc:
            raise ConfigError(f"Unknown scenario '{step}'") from exc


def import_string(path: str) -> Any:
    """Return attribute from module specified by path "module:qualname"."""

    if ":" not in path:
        raise ConfigError(f"Import path '{path}' must use module:qualname format")
    module_path, attr = path.split(":", 1)
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ConfigError(f"Cannot import module '{module_path}': {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"Module '{module_path}' has no attribute '{attr}'") from exc


def instantiate_from_path(path: str, *args: Any, **kwargs: Any) -> Any:
    """Import and instantiate a class given its dotted path."""

    cls = import_string(path)
    return cls(*args, **kwargs)
