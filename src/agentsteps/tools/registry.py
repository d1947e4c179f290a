"""Tool factories by name, resolved into the tool set each step binds."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List

from ..config import ConfigError, ToolSpec, instantiate_from_path
from .base import Tool

ToolFactory = Callable[[], Tool]


class ToolRegistry:
    """Builds each tool once, on first use, from its registered factory."""

    def __init__(self) -> None:
        self._factories: Dict[str, ToolFactory] = {}
        self._built: Dict[str, Tool] = {}

    def register_factory(self, name: str, factory: ToolFactory, *, overwrite: bool = False) -> None:
        if name in self._factories and not overwrite:
            raise ValueError(f"Tool factory {name} already registered")
        self._factories[name] = factory
        self._built.pop(name, None)

    def register_spec(self, spec: ToolSpec) -> None:
        """Register a YAML-declared tool; it is imported when a step first binds it."""

        def factory() -> Tool:
            try:
                tool = instantiate_from_path(spec.type, name=spec.name, **spec.args)
            except TypeError as exc:
                raise ConfigError(f"Tool '{spec.name}' could not be built from {spec.type}: {exc}") from exc
            if not isinstance(tool, Tool):
                raise ConfigError(f"Tool '{spec.name}' ({spec.type}) is not a Tool subclass")
            return tool

        self.register_factory(spec.name, factory, overwrite=True)

    def get(self, name: str) -> Tool:
        if name not in self._built:
            if name not in self._factories:
                raise KeyError(f"Tool {name} not registered")
            self._built[name] = self._factories[name]()
        return self._built[name]

    def select(self, names: Iterable[str]) -> List[Tool]:
        return [self.get(name) for name in names]

    def toolset(self, builtin: Iterable[str], extra: Iterable[str] = ()) -> List[Tool]:
        """Tools for one step: its built-in names followed by configured extras, without repeats."""

        names: List[str] = []
        for name in [*builtin, *extra]:
            if name not in names:
                names.append(name)
        unknown = [name for name in names if name not in self]
        if unknown:
            raise ConfigError(f"Unknown tool(s): {', '.join(unknown)}")
        return self.select(names)

    def __contains__(self, name: str) -> bool:
        return name in self._factories
