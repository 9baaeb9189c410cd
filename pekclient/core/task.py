"""
Ensemble clustering task.

A PekTask is the client-side handle of one server-side ensemble job:
- configuration builder, editable only while the task is pending
- lifecycle control (start, pause, resume, kill, kill_run), each a round
  trip acknowledged by the server before the local state changes
- partial result subscription fed by the owning client
"""

import inspect
import uuid
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import structlog
from pydantic import ValidationError

from pekclient.core.results import decode_partial_result
from pekclient.schemas.data_models import PartialResult, TaskArgs, TaskStatus
from pekclient.utils.advanced_logging import LogContext
from pekclient.utils.error_handling import TaskConfigurationError, TaskStateError

if TYPE_CHECKING:
    from pekclient.services.client import PekClient


logger = structlog.get_logger(__name__)

PartialResultCallback = Callable[[PartialResult], Any]


def _resolve_field(name: str) -> str:
    """Map a field name or its wire alias to the TaskArgs attribute name."""
    fields = TaskArgs.model_fields
    if name in fields:
        return name
    for field_name, field in fields.items():
        if field.alias == name:
            return field_name
    raise TaskConfigurationError(f"Unknown task argument '{name}'.", details={"argument": name})


def _copy_lists(args: TaskArgs) -> TaskArgs:
    """Copy of ``args`` whose list values are new lists holding the same elements."""
    lists = {name: list(value) for name, value in args if isinstance(value, list)}
    return args.model_copy(update=lists)


class TaskArgument:
    """
    Task argument exposed as an attribute.

    Reading returns the current value (lists are returned as copies);
    assigning goes through ``PekTask.configure`` and its pending-state check.
    """

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, task, owner=None):
        if task is None:
            return self
        value = getattr(task._args, self.name)
        if isinstance(value, list):
            return list(value)
        return value

    def __set__(self, task, value):
        task.configure(**{self.name: value})


class PekTask:
    """Handle of one ensemble clustering task."""

    data = TaskArgument()
    n_clusters = TaskArgument()
    n_runs = TaskArgument()
    init = TaskArgument()
    max_iter = TaskArgument()
    tol = TaskArgument()
    random_state = TaskArgument()
    freq = TaskArgument()
    ets = TaskArgument()
    labels_validation_metrics = TaskArgument()
    labels_comparison_metrics = TaskArgument()
    labels_progression_metrics = TaskArgument()
    partitions_validation_metrics = TaskArgument()
    partitions_comparison_metrics = TaskArgument()
    partitions_progression_metrics = TaskArgument()
    adjust_centroids = TaskArgument()
    adjust_labels = TaskArgument()
    return_partitions = TaskArgument()

    def __init__(self, client: "PekClient"):
        """
        Args:
            client: Client that owns the task and carries its requests
        """
        self._id = str(uuid.uuid4())
        self._client = client
        self._status = TaskStatus.PENDING
        self._args = TaskArgs(task_id=self._id)
        self._on_partial_result: Optional[PartialResultCallback] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self._id!r}, status={self._status.value!r})"

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            super().__setattr__(name, value)
            return
        raise TaskConfigurationError(
            f"Unknown task argument '{name}' for {self.__class__.__name__} {self._id}.",
            details={"task_id": self._id, "argument": name},
        )

    @property
    def id(self) -> str:
        return self._id

    @property
    def status(self) -> TaskStatus:
        return self._status

    @property
    def args(self) -> TaskArgs:
        """Snapshot of the current arguments."""
        return _copy_lists(self._args)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def configure(self, **fields: Any) -> "PekTask":
        """
        Set task arguments and return the task for chaining.

        Values may be zero-argument callables, called immediately to obtain
        the value. All values are validated together; on failure nothing is
        changed. ``ets=None`` leaves the early terminators unchanged.

        Example:
            task.configure(data="Wine", n_clusters=3, n_runs=10)

        Raises:
            TaskConfigurationError: If the task is not pending or a value is invalid
        """
        if self._status != TaskStatus.PENDING:
            raise TaskConfigurationError(
                f"Cannot set args of {self.__class__.__name__} {self._id} while it is {self._status.value}.",
                details={"task_id": self._id, "status": self._status.value},
            )

        updates: Dict[str, Any] = {}
        for name, value in fields.items():
            field_name = _resolve_field(name)
            if field_name == "task_id":
                raise TaskConfigurationError("The task id cannot be changed.", details={"task_id": self._id})
            if callable(value):
                value = value()
            if field_name == "ets" and value is None:
                continue
            updates[field_name] = value

        if not updates:
            return self

        merged = {name: getattr(self._args, name) for name in TaskArgs.model_fields}
        merged.update({name: list(v) if isinstance(v, list) else v for name, v in updates.items()})
        try:
            args = TaskArgs.model_validate(merged)
        except ValidationError as e:
            invalid = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise TaskConfigurationError(
                f"Invalid value for {', '.join(invalid)} of {self.__class__.__name__} {self._id}: "
                + "; ".join(err["msg"] for err in e.errors()),
                details={"task_id": self._id, "arguments": invalid},
            ) from e

        self._args = args
        return self

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _require_status(self, expected: TaskStatus, problem: str) -> None:
        if self._status != expected:
            raise TaskStateError(
                f"{self.__class__.__name__} {self._id} {problem}.",
                details={"task_id": self._id, "status": self._status.value},
            )

    def _control_payload(self) -> Dict[str, Any]:
        return {"clientId": self._client.id, "taskId": self._id}

    async def start(self) -> None:
        """
        Send the arguments to the server and start the task.

        Raises:
            TaskStateError: If the task has already been started
            RemoteError: If the server refuses the task
        """
        self._require_status(TaskStatus.PENDING, "has already been started")
        payload = {**self._control_payload(), "args": self._args.to_wire()}
        await self._client._send("start-task", payload)
        self._status = TaskStatus.RUNNING
        logger.info("task_started", task_id=self._id, dataset=self._args.data, n_runs=self._args.n_runs)

    async def pause(self) -> None:
        """Pause a running task."""
        self._require_status(TaskStatus.RUNNING, "is not running")
        await self._client._send("pause-task", self._control_payload())
        self._status = TaskStatus.PAUSED
        logger.info("task_paused", task_id=self._id)

    async def resume(self) -> None:
        """Resume a paused task."""
        self._require_status(TaskStatus.PAUSED, "is not paused")
        await self._client._send("resume-task", self._control_payload())
        self._status = TaskStatus.RUNNING
        logger.info("task_resumed", task_id=self._id)

    async def kill(self) -> None:
        """Kill a running task. A killed task cannot be controlled anymore."""
        self._require_status(TaskStatus.RUNNING, "is not running")
        await self._client._send("kill-task", self._control_payload())
        self._status = TaskStatus.KILLED
        logger.info("task_killed", task_id=self._id)

    async def kill_run(self, run_id: int) -> None:
        """
        Kill a single run of the ensemble.

        The task keeps running and streaming results for the other runs.
        """
        self._require_status(TaskStatus.RUNNING, "is not running")
        await self._client._send("kill-run", {**self._control_payload(), "runId": run_id})
        logger.info("run_killed", task_id=self._id, run_id=run_id)

    # -------------------------------------------------------------------------
    # Partial results
    # -------------------------------------------------------------------------

    def on_partial_result(self, callback: Optional[PartialResultCallback]) -> "PekTask":
        """
        Register the partial result callback (replaces any previous one).

        The callback is called synchronously on the event loop.

        Raises:
            TaskConfigurationError: If the callback is a coroutine function
        """
        if inspect.iscoroutinefunction(callback):
            raise TaskConfigurationError(
                "Partial result callbacks must be synchronous; schedule coroutines with asyncio.create_task.",
                details={"task_id": self._id},
            )
        self._on_partial_result = callback
        return self

    def notify_partial_result(self, raw: Any) -> PartialResult:
        """
        Decode a streamed message and hand it to the registered callback.

        A result flagged ``completed`` moves a running or paused task to
        ``completed`` once the callback has returned, also when the callback
        raises.

        Raises:
            PartialResultDecodeError: If the message cannot be decoded
        """
        with LogContext.task_context(self._id):
            result = decode_partial_result(raw)

            try:
                if self._on_partial_result is not None:
                    self._on_partial_result(result)
            finally:
                if result.info.completed and self._status in (TaskStatus.RUNNING, TaskStatus.PAUSED):
                    self._status = TaskStatus.COMPLETED
                    logger.info("task_completed", task_id=self._id, iteration=result.info.iteration)

        return result
