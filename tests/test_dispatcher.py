import json
import threading
import time
from collections import Counter

import pytest

from agentsteps.config import DispatchSettings
from agentsteps.tasks import runner as runner_module
from agentsteps.tasks.base import BatchResult, Task, TaskParseError, TaskStatus, parse_tasks
from agentsteps.tasks.runner import ParallelDispatcher


def instant(task):
    return 0.0


def make_tasks(count, agent_type="backend_dev"):
    return [Task(name=f"task-{index}", agent_type=agent_type) for index in range(count)]


def test_two_task_example_completes():
    dispatcher = ParallelDispatcher(delay_fn=instant)
    result = dispatcher.run_payload(
        [
            {"name": "design", "agent_type": "architect"},
            {"name": "code", "agent_type": "backend_dev"},
        ]
    )

    assert isinstance(result, BatchResult)
    assert len(result.reports) == 2
    assert all(report.status is TaskStatus.COMPLETED for report in result.reports)
    assert result.summary == "2 tasks total, 2 succeeded"
    assert result.status is TaskStatus.COMPLETED
    assert {report.task for report in result.reports} == {"design", "code"}
    assert {report.agent_name for report in result.reports} == {"architect", "backend_dev"}


@pytest.mark.parametrize("count", [1, 3, 9, 20])
def test_every_task_yields_exactly_one_report(count):
    dispatcher = ParallelDispatcher(DispatchSettings(max_workers=4), delay_fn=instant)
    result = dispatcher.dispatch(make_tasks(count))

    assert len(result.reports) == count
    assert sorted(report.task for report in result.reports) == sorted(f"task-{i}" for i in range(count))
    assert result.summary == f"{count} tasks total, {count} succeeded"


def test_empty_batch_spawns_no_workers(monkeypatch):
    def forbidden(*args, **kwargs):
        raise AssertionError("executor must not be created for an empty batch")

    monkeypatch.setattr(runner_module, "ThreadPoolExecutor", forbidden)
    result = ParallelDispatcher().dispatch([])

    assert result.reports == []
    assert result.summary == "0 tasks total, 0 succeeded"


def test_repeated_dispatch_is_structurally_equivalent():
    dispatcher = ParallelDispatcher(delay_fn=lambda task: 0.01 * (hash(task.name) % 3))
    tasks = make_tasks(6)

    first = dispatcher.dispatch(tasks)
    second = dispatcher.dispatch(tasks)

    assert Counter(r.task for r in first.reports) == Counter(r.task for r in second.reports)
    assert first.summary == second.summary
    assert first.task == second.task


def test_runs_in_parallel_not_sequentially():
    delays = {"a": 0.2, "b": 0.3, "c": 0.4, "d": 0.5}
    dispatcher = ParallelDispatcher(delay_fn=lambda task: delays[task.name])
    tasks = [Task(name=name, agent_type="devops") for name in delays]

    started = time.perf_counter()
    result = dispatcher.dispatch(tasks)
    elapsed = time.perf_counter() - started

    assert len(result.reports) == 4
    assert elapsed < 1.0  # sequential execution would take 1.4s


def test_reports_arrive_in_completion_order():
    delays = {"slow": 0.3, "fast": 0.0}
    dispatcher = ParallelDispatcher(delay_fn=lambda task: delays[task.name])
    result = dispatcher.dispatch([Task("slow", "architect"), Task("fast", "architect")])

    assert [report.task for report in result.reports] == ["fast", "slow"]


def test_duration_is_per_task_wall_time():
    delays = {"slow": 0.3, "fast": 0.0}
    dispatcher = ParallelDispatcher(delay_fn=lambda task: delays[task.name])
    result = dispatcher.dispatch([Task("slow", "architect"), Task("fast", "architect")])
    durations = {report.task: report.duration_ms for report in result.reports}

    assert durations["slow"] >= 250
    assert durations["fast"] < 150


def test_worker_pool_is_bounded():
    lock = threading.Lock()
    state = {"running": 0, "peak": 0}

    def work(task):
        with lock:
            state["running"] += 1
            state["peak"] = max(state["peak"], state["running"])
        time.sleep(0.05)
        with lock:
            state["running"] -= 1
        return "ok"

    dispatcher = ParallelDispatcher(DispatchSettings(max_workers=2), delay_fn=instant, work_fn=work)
    result = dispatcher.dispatch(make_tasks(6))

    assert len(result.reports) == 6
    assert state["peak"] <= 2


def test_unknown_agent_type_fails_that_task_only():
    dispatcher = ParallelDispatcher(delay_fn=instant)
    result = dispatcher.dispatch([Task("design", "architect"), Task("paint", "painter")])
    by_name = {report.task: report for report in result.reports}

    assert by_name["design"].status is TaskStatus.COMPLETED
    assert by_name["paint"].status is TaskStatus.FAILED
    assert "unknown agent type 'painter'" in by_name["paint"].result
    assert result.summary == "2 tasks total, 1 succeeded"


def test_empty_known_agents_accepts_any_tag():
    dispatcher = ParallelDispatcher(DispatchSettings(known_agents=[]), delay_fn=instant)
    result = dispatcher.dispatch([Task("paint", "painter")])

    assert result.reports[0].status is TaskStatus.COMPLETED


def test_raising_worker_still_reports():
    def work(task):
        if task.name == "task-1":
            raise RuntimeError("disk full")
        return f"{task.name} ok"

    dispatcher = ParallelDispatcher(delay_fn=instant, work_fn=work)
    result = dispatcher.dispatch(make_tasks(3))
    failed = [report for report in result.reports if report.status is TaskStatus.FAILED]

    assert len(result.reports) == 3
    assert [report.task for report in failed] == ["task-1"]
    assert "disk full" in failed[0].result
    assert result.summary == "3 tasks total, 2 succeeded"


def test_cancel_event_stops_waiting_workers():
    cancel = threading.Event()
    cancel.set()
    dispatcher = ParallelDispatcher(delay_fn=lambda task: 5.0)

    started = time.perf_counter()
    result = dispatcher.dispatch(make_tasks(3), cancel_event=cancel)

    assert time.perf_counter() - started < 2.0
    assert len(result.reports) == 3
    assert all(report.result == "cancelled" for report in result.reports)
    assert result.summary == "3 tasks total, 0 succeeded"


def test_batch_deadline_cancels_outstanding_tasks():
    delays = {"quick": 0.0, "stuck": 5.0}
    settings = DispatchSettings(timeout=0.2)
    dispatcher = ParallelDispatcher(settings, delay_fn=lambda task: delays[task.name])

    started = time.perf_counter()
    result = dispatcher.dispatch([Task("quick", "devops"), Task("stuck", "devops")])

    assert time.perf_counter() - started < 2.0
    by_name = {report.task: report for report in result.reports}
    assert by_name["quick"].status is TaskStatus.COMPLETED
    assert by_name["stuck"].status is TaskStatus.FAILED
    assert by_name["stuck"].result == "cancelled"


def test_batch_deadline_leaves_caller_event_untouched():
    cancel = threading.Event()
    delays = {"quick": 0.0, "stuck": 5.0}
    dispatcher = ParallelDispatcher(DispatchSettings(timeout=0.2), delay_fn=lambda task: delays[task.name])

    result = dispatcher.dispatch([Task("quick", "devops"), Task("stuck", "devops")], cancel_event=cancel)

    assert result.summary == "2 tasks total, 1 succeeded"
    assert not cancel.is_set()
    again = ParallelDispatcher(delay_fn=instant).dispatch([Task("next", "devops")], cancel_event=cancel)
    assert again.reports[0].status is TaskStatus.COMPLETED


def test_cancelling_mid_batch_stops_waiting_workers():
    cancel = threading.Event()
    timer = threading.Timer(0.1, cancel.set)
    dispatcher = ParallelDispatcher(delay_fn=lambda task: 5.0)

    started = time.perf_counter()
    timer.start()
    result = dispatcher.dispatch(make_tasks(2), cancel_event=cancel)

    assert time.perf_counter() - started < 2.0
    assert [report.result for report in result.reports] == ["cancelled", "cancelled"]


def test_default_delay_stays_within_configured_range():
    dispatcher = ParallelDispatcher(DispatchSettings(min_delay_ms=500, max_delay_ms=1500))
    delays = [dispatcher._random_delay(Task("x", "architect")) for _ in range(200)]

    assert all(0.5 <= delay <= 1.5 for delay in delays)


def test_parse_tasks_accepts_wrapped_and_encoded_lists():
    encoded = json.dumps([{"name": "design", "agent_type": "architect", "description": "draw boxes"}])

    assert parse_tasks(encoded) == [Task("design", "architect", "draw boxes")]
    assert parse_tasks({"tasks": encoded}) == [Task("design", "architect", "draw boxes")]
    assert parse_tasks(encoded.encode("utf-8"))[0].description == "draw boxes"


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        '{"name": "design"}',
        "42",
        '["design"]',
        '[{"name": "design"}]',
        '[{"name": "", "agent_type": "architect"}]',
        '[{"name": 3, "agent_type": "architect"}]',
        None,
        b'[{"name": "\xff", "agent_type": "architect"}]',
    ],
)
def test_parse_tasks_rejects_malformed_payloads(payload):
    with pytest.raises(TaskParseError):
        parse_tasks(payload)


def test_batch_result_serialises_report_fields():
    result = ParallelDispatcher(delay_fn=instant).dispatch([Task("design", "architect")])
    data = json.loads(result.to_json())

    assert set(data) == {"task", "status", "reports", "summary"}
    assert data["task"] == "parallel development task"
    report = data["reports"][0]
    assert set(report) == {"agent_name", "task", "status", "result", "duration_ms", "timestamp"}
    assert report["status"] == "completed"
    assert report["result"] == "design completed"
