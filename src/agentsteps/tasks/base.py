"""Task, report and batch types used by the parallel dispatcher."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Sequence


class TaskParseError(ValueError):
    """Raised when a task list payload is malformed."""


class TaskStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Task:
    """A single unit of work assigned to a worker type."""

    name: str
    agent_type: str
    description: str = ""

    @classmethod
    def from_mapping(cls, data: Any, index: int = 0) -> "Task":
        if not isinstance(data, Mapping):
            raise TaskParseError(f"task #{index} must be an object, got {type(data).__name__}")
        missing = [key for key in ("name", "agent_type") if not data.get(key)]
        if missing:
            raise TaskParseError(f"task #{index} is missing required keys: {', '.join(missing)}")
        for key in ("name", "agent_type", "description"):
            if key in data and not isinstance(data[key], str):
                raise TaskParseError(f"task #{index} field '{key}' must be a string")
        return cls(
            name=data["name"],
            agent_type=data["agent_type"],
            description=data.get("description", ""),
        )


@dataclass
class Report:
    """Outcome of one task, as reported by its worker."""

    agent_name: str
    task: str
    status: TaskStatus
    result: str
    duration_ms: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.status is TaskStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_name": self.agent_name,
            "task": self.task,
            "status": self.status.value,
            "result": self.result,
            "duration_ms": round(self.duration_ms, 3),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class BatchResult:
    """Aggregate of every report produced by one dispatch call."""

    task: str
    status: TaskStatus
    reports: List[Report]
    summary: str

    @classmethod
    def build(cls, label: str, total: int, reports: Sequence[Report]) -> "BatchResult":
        succeeded = sum(1 for report in reports if report.succeeded)
        return cls(
            task=label,
            status=TaskStatus.COMPLETED,
            reports=list(reports),
            summary=f"{total} tasks total, {succeeded} succeeded",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task": self.task,
            "status": self.status.value,
            "reports": [report.to_dict() for report in self.reports],
            "summary": self.summary,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


def parse_tasks(payload: Any) -> List[Task]:
    """Decode a task list from JSON text or an already-decoded object.

    Accepts a list of task objects, or an object whose ``tasks`` key holds
    that list (possibly itself JSON-encoded, as tool arguments arrive).
    """

    data = _decode(payload)
    if isinstance(data, Mapping) and "tasks" in data:
        data = _decode(data["tasks"])
    if not isinstance(data, list):
        raise TaskParseError(f"task list must be a JSON array, got {type(data).__name__}")
    return [Task.from_mapping(item, index) for index, item in enumerate(data)]


def _decode(payload: Any) -> Any:
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise TaskParseError(f"task list is not valid UTF-8: {exc}") from exc
    if isinstance(payload, str):
        try:
            return json.loads(payload)
        except json.JSONDecodeError as exc:
            raise TaskParseError(f"task list is not valid JSON: {exc}") from exc
    return payload
