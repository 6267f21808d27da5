"""Tests for task records and the task registry."""

import pytest

from back_agent_mcp.executor import ExecutionResult
from back_agent_mcp.tasks import InvalidTransitionError, Task, TaskStatus, TaskStore


def _task(task_id: str = "t1") -> Task:
    return Task(task_id=task_id, description="do things", timeout=300)


class TestTaskStore:
    @pytest.fixture
    def store(self):
        return TaskStore()

    def test_add_and_get(self, store):
        task = _task()
        store.add(task)
        assert store.get("t1") is task
        assert "t1" in store
        assert len(store) == 1

    def test_duplicate_id_rejected(self, store):
        store.add(_task())
        with pytest.raises(ValueError):
            store.add(_task())

    def test_remove_returns_record_or_none(self, store):
        store.add(_task())
        assert store.remove("t1") is not None
        assert store.remove("t1") is None
        assert store.get("t1") is None

    def test_values_preserve_creation_order(self, store):
        for task_id in ("a", "c", "b"):
            store.add(_task(task_id))
        assert [t.task_id for t in store.values()] == ["a", "c", "b"]

    def test_running_count_derived_from_status(self, store):
        for task_id in ("a", "b", "c"):
            store.add(_task(task_id))
        store.transition(store.get("a"), TaskStatus.RUNNING)
        store.transition(store.get("b"), TaskStatus.RUNNING)
        assert store.running_count() == 2

        store.transition(store.get("a"), TaskStatus.COMPLETED)
        assert store.running_count() == 1

    def test_count_by_status_includes_every_status(self, store):
        store.add(_task())
        counts = store.count_by_status()
        assert set(counts) == set(TaskStatus)
        assert counts[TaskStatus.PENDING] == 1


class TestTransitions:
    @pytest.fixture
    def store(self):
        return TaskStore()

    def test_running_stamps_started_at(self, store):
        task = _task()
        store.add(task)
        store.transition(task, TaskStatus.RUNNING)
        assert task.started_at is not None
        assert task.completed_at is None
        assert task.started_at >= task.created_at

    def test_terminal_stamps_completed_at(self, store):
        task = _task()
        store.add(task)
        store.transition(task, TaskStatus.RUNNING)
        store.transition(task, TaskStatus.FAILED)
        assert task.completed_at >= task.started_at

    def test_pending_can_be_cancelled_without_starting(self, store):
        task = _task()
        store.add(task)
        store.transition(task, TaskStatus.CANCELLED)
        assert task.started_at is None
        assert task.completed_at is not None

    @pytest.mark.parametrize(
        "terminal", [TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED]
    )
    def test_no_transition_out_of_terminal_state(self, store, terminal):
        task = _task()
        store.add(task)
        store.transition(task, TaskStatus.RUNNING)
        store.transition(task, terminal)
        completed_at = task.completed_at

        for target in TaskStatus:
            with pytest.raises(InvalidTransitionError):
                store.transition(task, target)
        assert task.status == terminal
        assert task.completed_at == completed_at

    def test_pending_cannot_complete_directly(self, store):
        task = _task()
        store.add(task)
        with pytest.raises(InvalidTransitionError):
            store.transition(task, TaskStatus.COMPLETED)


class TestTaskInfo:
    def test_snapshot_without_result(self):
        info = _task().to_info()
        assert info.id == "t1"
        assert info.status == TaskStatus.PENDING
        assert info.success is None
        assert info.exit_code is None
        assert info.duration_seconds is None

    def test_snapshot_with_result(self):
        task = _task()
        store = TaskStore()
        store.add(task)
        store.transition(task, TaskStatus.RUNNING)
        task.result = ExecutionResult(success=True, stdout="ok", exit_code=0)
        store.transition(task, TaskStatus.COMPLETED)

        info = task.to_info()
        assert info.success is True
        assert info.exit_code == 0
        assert info.duration_seconds >= 0

    def test_snapshot_is_detached_from_record(self):
        task = _task()
        info = task.to_info()
        task.status = TaskStatus.RUNNING
        assert info.status == TaskStatus.PENDING

    def test_snapshot_serializes_to_json(self):
        payload = _task().to_info().model_dump(mode="json")
        assert payload["status"] == "pending"
        assert isinstance(payload["created_at"], str)
