import threading
from types import SimpleNamespace

import pytest

from vdocumentation.errors import TaskCancelled, TaskFailed, TaskTimeout
from vdocumentation.tasks import wait_for_task


class ScriptedTask:
    """Task whose info.state walks through a fixed list, repeating the last one."""

    def __init__(self, *states, result=None, error=None):
        self.states = list(states)
        self.result = result
        self.error = error
        self.polls = 0
        self.cancelled = False

    @property
    def info(self):
        state = self.states[min(self.polls, len(self.states) - 1)]
        self.polls += 1
        return SimpleNamespace(state=state, result=self.result, error=self.error, progress=10)

    def CancelTask(self):
        self.cancelled = True


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TickingEvent(threading.Event):
    """Advances the fake clock instead of sleeping."""

    def __init__(self, clock):
        super().__init__()
        self.clock = clock
        self.waits = []

    def wait(self, timeout=None):
        self.waits.append(timeout)
        self.clock.now += timeout or 0
        return self.is_set()


def test_returns_result_on_success():
    task = ScriptedTask("queued", "running", "success", result=["ok"])
    clock = FakeClock()

    assert wait_for_task(task, timeout=60, poll_interval=5, cancel_event=TickingEvent(clock), clock=clock) == ["ok"]
    assert task.cancelled is False


def test_error_state_raises_task_failed():
    task = ScriptedTask("running", "error", error=SimpleNamespace(msg="host is in an invalid state"))
    clock = FakeClock()

    with pytest.raises(TaskFailed, match="invalid state"):
        wait_for_task(task, timeout=60, poll_interval=5, cancel_event=TickingEvent(clock), clock=clock)


def test_deadline_cancels_and_raises():
    task = ScriptedTask("running")
    clock = FakeClock()
    event = TickingEvent(clock)

    with pytest.raises(TaskTimeout):
        wait_for_task(task, timeout=12, poll_interval=5, cancel_event=event, clock=clock)

    assert task.cancelled is True
    # never sleeps past the deadline
    assert event.waits == [5, 5, 2]


def test_cancel_event_stops_polling():
    task = ScriptedTask("running")
    clock = FakeClock()
    event = TickingEvent(clock)
    event.set()

    with pytest.raises(TaskCancelled):
        wait_for_task(task, timeout=600, poll_interval=5, cancel_event=event, clock=clock)

    assert task.cancelled is True
    assert task.polls == 2


def test_task_timeout_is_a_timeout_error():
    assert issubclass(TaskTimeout, TimeoutError)
