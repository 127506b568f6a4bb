import logging
import threading
import time
from typing import Any, Callable, Optional

from .errors import TaskCancelled, TaskFailed, TaskTimeout

logger = logging.getLogger("vdocumentation.tasks")

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_TIMEOUT = 600.0


def _task_error(info: Any) -> str:
    error = getattr(info, "error", None)
    if error is None:
        return "task failed"
    msg = getattr(error, "msg", None) or getattr(getattr(error, "localizedMessage", None), "message", None)
    return str(msg or error)


def wait_for_task(
    task: Any,
    timeout: float = DEFAULT_TIMEOUT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    cancel_event: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    """
    Poll a vCenter task until it finishes and return its result.

    Raises TaskFailed when the task ends in error, TaskTimeout once the
    deadline passes (after asking vCenter to cancel the task) and
    TaskCancelled when cancel_event is set.
    """
    cancel_event = cancel_event or threading.Event()
    deadline = clock() + timeout
    name = getattr(getattr(task, "info", None), "descriptionId", None) or "task"

    while True:
        info = task.info
        state = str(getattr(info, "state", ""))
        if state == "success":
            return getattr(info, "result", None)
        if state == "error":
            raise TaskFailed(f"{name}: {_task_error(info)}")

        if clock() >= deadline:
            _cancel(task)
            raise TaskTimeout(f"{name} did not finish within {timeout:g}s (progress {getattr(info, 'progress', None) or 0}%)")

        logger.debug("%s %s %s%%", name, state, getattr(info, "progress", None) or 0)
        wait = min(poll_interval, max(0.0, deadline - clock()))
        if cancel_event.wait(wait):
            _cancel(task)
            raise TaskCancelled(f"{name} cancelled")


def _cancel(task: Any) -> None:
    try:
        task.CancelTask()
    except Exception as exc:
        logger.debug("CancelTask not honoured: %s", exc)
