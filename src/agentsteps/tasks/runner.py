"""Parallel task dispatcher."""

from __future__ import annotations

import logging
import random
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, Iterable, List

from ..config import DispatchSettings
from .base import BatchResult, Report, Task, TaskStatus, parse_tasks

logger = logging.getLogger(__name__)

DelayFn = Callable[[Task], float]
WorkFn = Callable[[Task], str]

POLL_INTERVAL = 0.05


def default_work(task: Task) -> str:
    return f"{task.name} completed"


class ParallelDispatcher:
    """Fans a batch of tasks out to a bounded worker pool and joins on all of them.

    Every submitted task yields exactly one :class:`Report`; reports are
    collected in completion order, so callers must not rely on their order.
    """

    def __init__(
        self,
        settings: DispatchSettings | None = None,
        *,
        delay_fn: DelayFn | None = None,
        work_fn: WorkFn | None = None,
    ) -> None:
        self.settings = settings or DispatchSettings()
        self._rng = random.Random()
        self._delay_fn = delay_fn or self._random_delay
        self._work_fn = work_fn or default_work

    def _random_delay(self, task: Task) -> float:
        low, high = self.settings.min_delay_ms, self.settings.max_delay_ms
        return self._rng.uniform(low, high) / 1000.0

    def run_payload(self, payload: Any, cancel_event: threading.Event | None = None) -> BatchResult:
        """Parse ``payload`` and dispatch it; raises TaskParseError when malformed."""

        return self.dispatch(parse_tasks(payload), cancel_event=cancel_event)

    def dispatch(self, tasks: Iterable[Task], cancel_event: threading.Event | None = None) -> BatchResult:
        batch = list(tasks)
        if not batch:
            return BatchResult.build(self.settings.label, 0, [])

        stop = threading.Event()
        cancels = [stop] if cancel_event is None else [stop, cancel_event]
        workers = min(self.settings.max_workers, len(batch))
        logger.debug("Dispatching %d task(s) on %d worker(s)", len(batch), workers)
        reports: List[Report] = []
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dispatch") as executor:
            futures: Dict[Future, Task] = {
                executor.submit(self._run_one, task, cancels): task for task in batch
            }
            pending = set(futures)
            try:
                for future in as_completed(futures, timeout=self.settings.timeout):
                    pending.discard(future)
                    reports.append(self._collect(future, futures[future]))
            except FuturesTimeoutError:
                logger.warning(
                    "Batch deadline of %.3fs reached with %d task(s) outstanding; cancelling",
                    self.settings.timeout,
                    len(pending),
                )
                stop.set()
                for future in as_completed(pending):
                    reports.append(self._collect(future, futures[future]))

        result = BatchResult.build(self.settings.label, len(batch), reports)
        logger.info("%s: %s", result.task, result.summary)
        return result

    def _run_one(self, task: Task, cancels: List[threading.Event]) -> Report:
        started = time.perf_counter()
        known = self.settings.known_agents
        if known and task.agent_type not in known:
            return self._report(task, TaskStatus.FAILED, f"unknown agent type '{task.agent_type}'", started)
        try:
            if _interrupted(self._delay_fn(task), cancels):
                return self._report(task, TaskStatus.FAILED, "cancelled", started)
            message = self._work_fn(task)
        except Exception as exc:
            logger.warning("Task %r raised %s: %s", task.name, type(exc).__name__, exc)
            return self._report(task, TaskStatus.FAILED, f"{type(exc).__name__}: {exc}", started)
        return self._report(task, TaskStatus.COMPLETED, message, started)

    def _report(self, task: Task, status: TaskStatus, message: str, started: float) -> Report:
        duration = (time.perf_counter() - started) * 1000.0
        if status is TaskStatus.FAILED:
            logger.warning("Task %r (%s) failed: %s", task.name, task.agent_type, message)
        else:
            logger.debug("Task %r (%s) finished in %.1f ms", task.name, task.agent_type, duration)
        return Report(
            agent_name=task.agent_type,
            task=task.name,
            status=status,
            result=message,
            duration_ms=duration,
        )

    @staticmethod
    def _collect(future: Future, task: Task) -> Report:
        try:
            return future.result()
        except Exception as exc:  # pragma: no cover - _run_one reports its own failures
            return Report(
                agent_name=task.agent_type,
                task=task.name,
                status=TaskStatus.FAILED,
                result=f"worker crashed: {exc}",
                duration_ms=0.0,
            )



def _interrupted(delay: float, events: List[threading.Event]) -> bool:
    """Wait up to ``delay`` seconds; True as soon as any of ``events`` is set.

    ``events[0]`` is the dispatcher's own stop event; a caller's event is polled.
    """

    if len(events) == 1:
        return events[0].wait(delay)
    deadline = time.monotonic() + delay
    while True:
        if any(event.is_set() for event in events):
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        events[0].wait(min(remaining, POLL_INTERVAL))
