"""Priority task queue with bounded concurrency and exponential-backoff retry.

Units of work are zero-argument async producers. Tasks move through

    pending -> processing -> completed
    pending -> processing -> pending      (retryable failure, retries + 1)
    pending -> processing -> failed       (retries exhausted)

A task that failed waits out its backoff outside the pending line; it re-enters
the line only when its timer fires, so a retry never blocks other work and
never jumps ahead of tasks of the same priority that arrived earlier.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class TaskPriority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_RANK = {TaskPriority.HIGH: 0, TaskPriority.NORMAL: 1, TaskPriority.LOW: 2}

Producer = Callable[[], Awaitable[Any]]
TaskListener = Callable[["GenerationTask"], None]


class TaskFailedError(RuntimeError):
    """Raised from wait_for() when a task exhausted its retries."""

    def __init__(self, task: "GenerationTask"):
        self.task_id = task.id
        self.label = task.label
        self.attempts = task.retries + 1
        self.last_error = task.last_error
        super().__init__(
            f"Task {task.label or task.id} failed after {self.attempts} attempt(s): {task.last_error}"
        )


class QueueShutdownError(RuntimeError):
    """Raised for tasks that were still outstanding when the queue shut down."""


@dataclass
class GenerationTask:
    """One unit of work and its scheduling state."""
    id: str
    producer: Producer
    priority: TaskPriority = TaskPriority.NORMAL
    max_retries: int = 3
    timeout: Optional[float] = None
    label: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    retries: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_error: Optional[BaseException] = None
    retry_delays: List[float] = field(default_factory=list)


class TaskQueue:
    """Asyncio scheduler over async producers.

    Ordering: a new or requeued task is placed after every pending task of the
    same or higher priority and before every task of lower priority, giving
    strict priority classes with FIFO order inside each class.

    All state is touched only from the event loop that owns the queue.
    """

    def __init__(
        self,
        max_concurrent: int = 3,
        max_retries: int = 3,
        base_delay_ms: float = 1000,
        max_delay_ms: float = 30000,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

        self._tasks: Dict[str, GenerationTask] = {}
        self._pending: List[GenerationTask] = []
        self._running: Dict[str, asyncio.Task] = {}
        self._futures: Dict[str, asyncio.Future] = {}
        self._retry_handles: Dict[str, asyncio.TimerHandle] = {}
        self._listeners: List[TaskListener] = []
        self._completed = 0
        self._failed = 0
        self._scheduling = False
        self._reschedule = False
        self._closed = False

    # ------------------------------------------------------------------ API

    def add_task(
        self,
        producer: Producer,
        priority: TaskPriority = TaskPriority.NORMAL,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        label: Optional[str] = None,
    ) -> str:
        """Submit a producer and return the new task id.

        Must be called from the event loop that runs the queue.
        """
        if self._closed:
            raise QueueShutdownError("Queue has been shut down")

        loop = asyncio.get_running_loop()
        task = GenerationTask(
            id=uuid.uuid4().hex[:12],
            producer=producer,
            priority=TaskPriority(priority),
            max_retries=self.max_retries if max_retries is None else max_retries,
            timeout=timeout,
            label=label,
        )
        self._tasks[task.id] = task
        self._futures[task.id] = loop.create_future()
        self._insert(task)
        self._notify(task)
        self._schedule()
        return task.id

    async def wait_for(self, task_id: str) -> Any:
        """Wait for a task's result; raises TaskFailedError on terminal failure."""
        future = self._futures[task_id]
        try:
            return await asyncio.shield(future)
        finally:
            if future.done():
                self._futures.pop(task_id, None)

    async def run(
        self,
        producer: Producer,
        priority: TaskPriority = TaskPriority.NORMAL,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        label: Optional[str] = None,
    ) -> Any:
        """add_task() followed by wait_for()."""
        task_id = self.add_task(producer, priority, max_retries, timeout, label)
        return await self.wait_for(task_id)

    def get_status(self) -> Dict[str, int]:
        """Task counts by state."""
        pending = sum(1 for t in self._tasks.values() if t.status == TaskStatus.PENDING)
        return {
            "pending": pending,
            "processing": len(self._running),
            "completed": self._completed,
            "failed": self._failed,
        }

    def get_task(self, task_id: str) -> Optional[GenerationTask]:
        return self._tasks.get(task_id)

    def on_task_update(self, listener: TaskListener) -> Callable[[], None]:
        """Register a listener for every status transition; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def join(self) -> None:
        """Wait until every submitted task has completed or failed.

        Outcomes not yet collected with wait_for() are dropped afterwards.
        """
        while self._tasks:
            futures = [self._futures[tid] for tid in list(self._tasks) if tid in self._futures]
            if not futures:
                break
            await asyncio.gather(*(asyncio.shield(f) for f in futures), return_exceptions=True)
        for task_id, future in list(self._futures.items()):
            if future.done():
                del self._futures[task_id]

    async def shutdown(self) -> None:
        """Cancel pending retries and running tasks; outstanding waiters get QueueShutdownError."""
        if self._closed:
            return
        self._closed = True

        for handle in self._retry_handles.values():
            handle.cancel()
        self._retry_handles.clear()

        running = list(self._running.values())
        for aio_task in running:
            aio_task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)

        for task in list(self._tasks.values()):
            self._fail(task, QueueShutdownError("Queue shut down before the task finished"))
        self._pending.clear()
        logger.debug("Task queue shut down")

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------ internals

    def _insert(self, task: GenerationTask) -> None:
        rank = _RANK[task.priority]
        index = len(self._pending)
        for i, queued in enumerate(self._pending):
            if _RANK[queued.priority] > rank:
                index = i
                break
        self._pending.insert(index, task)

    def _schedule(self) -> None:
        # Listeners may call add_task() while we are already draining the line.
        if self._scheduling:
            self._reschedule = True
            return
        self._scheduling = True
        try:
            while True:
                self._reschedule = False
                while (
                    not self._closed
                    and self._pending
                    and len(self._running) < self.max_concurrent
                ):
                    self._start(self._pending.pop(0))
                if not self._reschedule:
                    break
        finally:
            self._scheduling = False

    def _start(self, task: GenerationTask) -> None:
        task.status = TaskStatus.PROCESSING
        task.started_at = datetime.now()
        self._running[task.id] = asyncio.ensure_future(self._execute(task))
        self._notify(task)

    async def _execute(self, task: GenerationTask) -> None:
        try:
            if task.timeout:
                result = await asyncio.wait_for(task.producer(), timeout=task.timeout)
            else:
                result = await task.producer()
        except asyncio.CancelledError:
            self._running.pop(task.id, None)
            raise
        except Exception as e:
            self._running.pop(task.id, None)
            if isinstance(e, asyncio.TimeoutError):
                e = asyncio.TimeoutError(f"Timed out after {task.timeout}s")
            self._handle_failure(task, e)
        else:
            self._running.pop(task.id, None)
            self._complete(task, result)
        self._schedule()

    def _complete(self, task: GenerationTask, result: Any) -> None:
        task.status = TaskStatus.COMPLETED
        task.completed_at = datetime.now()
        task.last_error = None
        self._completed += 1
        self._tasks.pop(task.id, None)
        future = self._futures.get(task.id)
        if future is not None and not future.done():
            future.set_result(result)
        self._notify(task)

    def _handle_failure(self, task: GenerationTask, error: Exception) -> None:
        task.last_error = error
        if self._closed or task.retries >= task.max_retries:
            logger.debug("Task %s failed permanently: %s", task.label or task.id, error)
            self._fail(task, TaskFailedError(task))
            return

        delay = min(self.base_delay_ms * (2 ** task.retries), self.max_delay_ms) / 1000
        task.retries += 1
        task.retry_delays.append(delay)
        task.status = TaskStatus.PENDING
        logger.debug(
            "Task %s failed (%s), retry %d/%d in %.2fs",
            task.label or task.id, error, task.retries, task.max_retries, delay,
        )
        loop = asyncio.get_running_loop()
        self._retry_handles[task.id] = loop.call_later(delay, self._requeue, task.id)
        self._notify(task)

    def _requeue(self, task_id: str) -> None:
        self._retry_handles.pop(task_id, None)
        task = self._tasks.get(task_id)
        if task is None or self._closed:
            return
        self._insert(task)
        self._schedule()

    def _fail(self, task: GenerationTask, error: Exception) -> None:
        if task.status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
            return
        if task.last_error is None:
            task.last_error = error
        task.status = TaskStatus.FAILED
        task.completed_at = datetime.now()
        self._failed += 1
        self._tasks.pop(task.id, None)
        future = self._futures.get(task.id)
        if future is not None and not future.done():
            future.set_exception(error)
            # Marks the error retrieved for tasks nobody waits on.
            future.exception()
        self._notify(task)

    def _notify(self, task: GenerationTask) -> None:
        for listener in list(self._listeners):
            try:
                listener(task)
            except Exception:
                logger.exception("Task listener raised on %s -> %s", task.id, task.status.value)
