"""Built-in tools used by the tutorial steps."""

from __future__ import annotations

import json
import math
from datetime import datetime
from typing import Any, Callable, Dict, Mapping

from ..config import DispatchSettings
from ..tasks.base import TaskParseError
from ..tasks.runner import ParallelDispatcher
from .base import Tool, ToolContext, ToolInputError, ToolParameter, ToolResult
from .registry import ToolRegistry

Clock = Callable[[], datetime]

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _number(arguments: Mapping[str, Any], key: str) -> float:
    value = arguments.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        try:
            value = float(str(value))
        except ValueError as exc:
            raise ToolInputError(f"parameter '{key}' must be a number, got {value!r}") from exc
    if not math.isfinite(value):
        raise ToolInputError(f"parameter '{key}' must be finite")
    return float(value)


class CalculatorTool(Tool):
    """Performs basic arithmetic (add, subtract, multiply, divide), e.g. 10 + 5 or 100 * 0.5."""

    name = "calculator"
    parameters = (
        ToolParameter("a", "number", "first operand"),
        ToolParameter("b", "number", "second operand"),
        ToolParameter("operator", "string", "operator: add, sub, mul, div"),
    )

    def run(self, *, arguments: Dict[str, Any], context: ToolContext) -> ToolResult:
        a = _number(arguments, "a")
        b = _number(arguments, "b")
        operator = str(arguments.get("operator", "")).strip().lower()
        if operator in ("add", "+"):
            value = a + b
        elif operator in ("sub", "-"):
            value = a - b
        elif operator in ("mul", "*"):
            value = a * b
        elif operator in ("div", "/"):
            if b == 0:
                raise ToolInputError("division by zero")
            value = a / b
        else:
            raise ToolInputError(f"unsupported operator: {operator or '<empty>'}")
        if not math.isfinite(value):
            raise ToolInputError("result is out of range")
        return ToolResult(content=json.dumps({"result": round(value, 2)}))


WEATHER_DATA: Dict[str, Dict[str, str]] = {
    "Beijing": {
        "2026-02-05": "Sunny, -5°C~5°C",
        "2026-02-06": "Cloudy, -3°C~7°C",
    },
    "Shanghai": {
        "2026-02-05": "Light rain, 3°C~10°C",
        "2026-02-06": "Overcast, 2°C~8°C",
    },
    "Shenzhen": {
        "2026-02-05": "Sunny, 15°C~24°C",
        "2026-02-06": "Cloudy, 16°C~25°C",
    },
}

CITY_ALIASES = {"北京": "Beijing", "上海": "Shanghai", "深圳": "Shenzhen"}


class WeatherTool(Tool):
    """Looks up the weather for a city and date. Confirm the city name and date before calling."""

    name = "weather"
    parameters = (
        ToolParameter("city", "string", "city name (Chinese or English)"),
        ToolParameter("date", "string", "date, formatted YYYY-MM-DD"),
    )

    def __init__(self, name: str | None = None, **kwargs: Any) -> None:
        super().__init__(name, **kwargs)
        self._data: Dict[str, Dict[str, str]] = dict(kwargs.get("data") or WEATHER_DATA)

    def run(self, *, arguments: Dict[str, Any], context: ToolContext) -> ToolResult:
        city = str(arguments.get("city", "")).strip()
        date = str(arguments.get("date", "")).strip()
        key = CITY_ALIASES.get(city, city.title())
        by_date = self._data.get(key)
        if by_date is None:
            payload = {"city": city, "weather": "no data found"}
        else:
            payload = {"city": city, "date": date, "weather": by_date.get(date, "no data found")}
        return ToolResult(content=json.dumps(payload, ensure_ascii=False), metadata={"found": str(by_date is not None)})


class CurrentTimeTool(Tool):
    """Returns the current time. Use it to answer questions about what time it is."""

    name = "get_current_time"

    def __init__(self, name: str | None = None, *, clock: Clock = datetime.now, **kwargs: Any) -> None:
        super().__init__(name, **kwargs)
        self._clock = clock

    def run(self, *, arguments: Dict[str, Any], context: ToolContext) -> ToolResult:
        return ToolResult(content=json.dumps({"current_time": self._clock().strftime(TIME_FORMAT)}))


class ParallelTaskTool(Tool):
    """Runs several tasks in parallel, each handled by a different specialist agent.

    Use it to design, code and test at the same time. The input is a JSON
    array of tasks, each with name, agent_type and description.
    """

    name = "execute_parallel_tasks"
    parameters = (
        ToolParameter(
            "tasks",
            "string",
            "task list as a JSON array; every task has name, agent_type, description",
        ),
    )

    def __init__(
        self,
        name: str | None = None,
        *,
        dispatcher: ParallelDispatcher | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(name, **kwargs)
        self.dispatcher = dispatcher or ParallelDispatcher()

    def run(self, *, arguments: Dict[str, Any], context: ToolContext) -> ToolResult:
        try:
            result = self.dispatcher.run_payload(arguments.get("tasks"))
        except TaskParseError as exc:
            raise ToolInputError(f"invalid task list: {exc}") from exc
        return ToolResult(content=result.to_json(), metadata={"summary": result.summary})


class ReportTool(Tool):
    """Generates the final execution report summarising every agent's work."""

    name = "generate_report"
    parameters = (
        ToolParameter("task_name", "string", "task name"),
        ToolParameter("work_summary", "string", "summary of the work"),
    )

    def __init__(self, name: str | None = None, *, clock: Clock = datetime.now, **kwargs: Any) -> None:
        super().__init__(name, **kwargs)
        self._clock = clock

    def run(self, *, arguments: Dict[str, Any], context: ToolContext) -> ToolResult:
        task_name = str(arguments.get("task_name", ""))
        summary = str(arguments.get("work_summary", ""))
        report = (
            f"Task report: {task_name}\n\n"
            f"Work summary: {summary}\n\n"
            "Status: completed\n"
            f"Time: {self._clock().strftime(TIME_FORMAT)}\n\n"
            "Conclusion: all tasks finished.\n"
        )
        return ToolResult(content=report)


def register_builtin_tools(registry: ToolRegistry, dispatch: DispatchSettings | None = None) -> None:
    """Register built-in tool factories."""

    registry.register_factory("calculator", lambda: CalculatorTool(), overwrite=True)
    registry.register_factory("weather", lambda: WeatherTool(), overwrite=True)
    registry.register_factory("get_current_time", lambda: CurrentTimeTool(), overwrite=True)
    registry.register_factory(
        "execute_parallel_tasks",
        lambda: ParallelTaskTool(dispatcher=ParallelDispatcher(dispatch)),
        overwrite=True,
    )
    registry.register_factory("generate_report", lambda: ReportTool(), overwrite=True)
