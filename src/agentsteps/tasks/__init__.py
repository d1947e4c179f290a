"""Task primitives and the parallel dispatcher."""

from .base import BatchResult, Report, Task, TaskParseError, TaskStatus, parse_tasks
from .runner import ParallelDispatcher

__all__ = [
    "BatchResult",
    "ParallelDispatcher",
    "Report",
    "Task",
    "TaskParseError",
    "TaskStatus",
    "parse_tasks",
]
