r"""Execution strategies dispatching requests to the retry loop.

Two strategies are available:

- ``SynchronousStrategy`` runs the retry loop on the caller's thread and
  lets exceptions raised by callbacks propagate to the caller;
- ``AsyncPoolStrategy`` hands tasks to a fixed set of worker threads
  sharing one FIFO queue. Errors, including the rejection of tasks
  submitted after shutdown, are always delivered through the failure
  callback and callback exceptions are logged, never propagated.

Each submitted task receives exactly one callback invocation.
"""

from __future__ import annotations

__all__ = [
    "AsyncPoolStrategy",
    "ExecutionStrategy",
    "FunctionCallback",
    "ResponseCallback",
    "SynchronousStrategy",
    "TaskEnvelope",
]

import logging
import queue
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from davexec.core.validation import validate_workers
from davexec.exceptions import ExecutionError, RejectedError
from davexec.utils.structured_logging import correlation_scope

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from davexec.request import RequestSpec
    from davexec.response import Response
    from davexec.retry.executor import RetryingExecutor
    from davexec.translators import ResponseTranslator

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResponseCallback(ABC, Generic[T]):
    r"""Receiver of the outcome of one submitted request."""

    @abstractmethod
    def success(self, response: Response[T]) -> None:
        """Called with the final response."""

    @abstractmethod
    def failure(self, error: ExecutionError) -> None:
        """Called with the error that ended the execution."""


class FunctionCallback(ResponseCallback[T]):
    r"""Callback delegating to plain functions.

    Args:
        on_success: Function called with the final response.
        on_failure: Function called with the error. If ``None``, the
            error is logged at DEBUG level and otherwise ignored.

    Example:
        ```pycon
        >>> from davexec.response import Response
        >>> from davexec.strategy import FunctionCallback
        >>> results = []
        >>> callback = FunctionCallback(on_success=results.append)
        >>> callback.success(Response(200))
        >>> results[0].status_code
        200

        ```
    """

    def __init__(
        self,
        on_success: Callable[[Response[T]], Any] | None = None,
        on_failure: Callable[[ExecutionError], Any] | None = None,
    ) -> None:
        self.on_success = on_success
        self.on_failure = on_failure

    def success(self, response: Response[T]) -> None:
        if self.on_success is not None:
            self.on_success(response)

    def failure(self, error: ExecutionError) -> None:
        if self.on_failure is None:
            logger.debug(f"Ignoring execution failure: {error}")
            return
        self.on_failure(error)


@dataclass
class TaskEnvelope(Generic[T]):
    r"""A request queued for a worker, with its translator and callback.

    Attributes:
        request: The request to execute.
        translator: The translator decoding the response body.
        callback: The callback receiving the outcome.
        task_id: Identifier used as logging correlation id while the task
            runs.
    """

    request: RequestSpec
    translator: ResponseTranslator[T] | None
    callback: ResponseCallback[T]
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex)


class ExecutionStrategy(ABC):
    r"""Dispatch requests to a ``RetryingExecutor``.

    Strategies are context managers. Leaving the ``with`` block shuts the
    strategy down gracefully and waits for the pending work.

    Args:
        executor: The retry loop executing each request.
    """

    def __init__(self, executor: RetryingExecutor) -> None:
        self.executor = executor

    def __enter__(self) -> ExecutionStrategy:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.shutdown(wait=True)

    @abstractmethod
    def execute(
        self,
        request: RequestSpec,
        translator: ResponseTranslator[T] | None,
        callback: ResponseCallback[T],
    ) -> None:
        """Execute ``request`` and deliver its outcome to ``callback``.

        Args:
            request: The request to execute.
            translator: The translator decoding the response body.
            callback: The callback receiving the response or the error.
        """

    @abstractmethod
    def shutdown(
        self, immediate: bool = False, wait: bool = False, timeout: float | None = None
    ) -> None:
        """Stop accepting new requests.

        Args:
            immediate: If ``True``, abandon queued work and interrupt
                waits between attempts. Otherwise pending work completes.
            wait: Whether to block until the workers stopped.
            timeout: Maximum number of seconds to wait, ``None`` meaning
                no limit.
        """

    @property
    @abstractmethod
    def is_shutdown(self) -> bool:
        r"""Whether ``shutdown`` was called."""


class SynchronousStrategy(ExecutionStrategy):
    r"""Run each request inline on the caller's thread.

    ``ExecutionError`` is delivered to ``callback.failure``; exceptions
    raised by the callback propagate to the caller.

    Example:
        ```pycon
        >>> import httpx
        >>> from davexec.core import ClientConfig
        >>> from davexec.request import HttpMethod, RequestSpec
        >>> from davexec.retry import RetryingExecutor
        >>> from davexec.strategy import FunctionCallback, SynchronousStrategy
        >>> transport = httpx.MockTransport(lambda request: httpx.Response(200))
        >>> strategy = SynchronousStrategy(RetryingExecutor.from_config(ClientConfig(transport=transport)))
        >>> statuses = []
        >>> strategy.execute(
        ...     RequestSpec(HttpMethod.GET, "http://example.com"),
        ...     None,
        ...     FunctionCallback(on_success=lambda response: statuses.append(response.status_code)),
        ... )
        >>> statuses
        [200]

        ```
    """

    def __init__(self, executor: RetryingExecutor) -> None:
        super().__init__(executor)
        self._shutdown = False

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(executor={self.executor!r})"

    def execute(
        self,
        request: RequestSpec,
        translator: ResponseTranslator[T] | None,
        callback: ResponseCallback[T],
    ) -> None:
        try:
            response = self.executor.run(request, translator)
        except ExecutionError as exc:
            callback.failure(exc)
            return
        callback.success(response)

    def shutdown(
        self,
        immediate: bool = False,  # noqa: ARG002
        wait: bool = False,  # noqa: ARG002
        timeout: float | None = None,  # noqa: ARG002
    ) -> None:
        # Nothing runs in the background
        self._shutdown = True

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown


class AsyncPoolStrategy(ExecutionStrategy):
    r"""Run requests on a fixed pool of worker threads.

    The workers are daemon threads started at construction and sharing one
    unbounded FIFO queue. With more than one worker, completion order does
    not follow submission order.

    Args:
        executor: The retry loop executing each request.
        workers: The number of worker threads, at least 1.
        name_prefix: Prefix of the worker thread names.

    Raises:
        ValueError: If ``workers`` is lower than 1.

    Example:
        ```pycon
        >>> import httpx
        >>> from davexec.core import ClientConfig
        >>> from davexec.request import HttpMethod, RequestSpec
        >>> from davexec.retry import RetryingExecutor
        >>> from davexec.strategy import AsyncPoolStrategy, FunctionCallback
        >>> transport = httpx.MockTransport(lambda request: httpx.Response(200))
        >>> statuses = []
        >>> with AsyncPoolStrategy(
        ...     RetryingExecutor.from_config(ClientConfig(transport=transport)), workers=2
        ... ) as strategy:
        ...     strategy.execute(
        ...         RequestSpec(HttpMethod.GET, "http://example.com"),
        ...         None,
        ...         FunctionCallback(on_success=lambda response: statuses.append(response.status_code)),
        ...     )
        ...
        >>> statuses
        [200]

        ```
    """

    def __init__(
        self, executor: RetryingExecutor, workers: int = 1, name_prefix: str = "davexec-worker"
    ) -> None:
        super().__init__(executor)
        validate_workers(workers)
        # ``None`` entries are wake-up sentinels, one per worker
        self._queue: queue.Queue[TaskEnvelope[Any] | None] = queue.Queue()
        self._shutdown = threading.Event()
        self._lock = threading.Lock()
        self._interrupts = [threading.Event() for _ in range(workers)]
        self._threads = [
            threading.Thread(
                target=self._worker_loop,
                args=(interrupt,),
                name=f"{name_prefix}-{index}",
                daemon=True,
            )
            for index, interrupt in enumerate(self._interrupts, start=1)
        ]
        for thread in self._threads:
            thread.start()
        logger.debug(f"Started {workers} worker thread(s)")

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(workers={len(self._threads)}, "
            f"shutdown={self.is_shutdown})"
        )

    @property
    def workers(self) -> int:
        r"""The number of worker threads."""
        return len(self._threads)

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown.is_set()

    def execute(
        self,
        request: RequestSpec,
        translator: ResponseTranslator[T] | None,
        callback: ResponseCallback[T],
    ) -> None:
        task = TaskEnvelope(request, translator, callback)
        with self._lock:
            accepted = not self._shutdown.is_set()
            if accepted:
                self._queue.put(task)
        if accepted:
            logger.debug(f"Queued task {task.task_id}: {request.method} {request.uri}")
            return
        msg = f"{request.method} request to {request.uri} rejected: strategy is shut down"
        self._notify(task, callback.failure, RejectedError(msg))

    def shutdown(
        self, immediate: bool = False, wait: bool = False, timeout: float | None = None
    ) -> None:
        abandoned: list[TaskEnvelope[Any]] = []
        with self._lock:
            first_call = not self._shutdown.is_set()
            self._shutdown.set()
            if immediate:
                for interrupt in self._interrupts:
                    interrupt.set()
                abandoned = self._drain()
            if first_call or immediate:
                # No task is queued after the sentinels
                for _ in self._threads:
                    self._queue.put(None)
        logger.debug(
            f"Shutting down {len(self._threads)} worker thread(s) "
            f"(immediate={immediate}, abandoned={len(abandoned)})"
        )

        for task in abandoned:
            msg = f"{task.request.method} request to {task.request.uri} abandoned at shutdown"
            self._notify(task, task.callback.failure, RejectedError(msg))

        if wait:
            self._join(timeout)

    def _drain(self) -> list[TaskEnvelope[Any]]:
        tasks = []
        while True:
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                return tasks
            if task is not None:
                tasks.append(task)

    def _join(self, timeout: float | None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        current = threading.current_thread()
        for thread in self._threads:
            # A callback may shut the pool down from its own worker
            if thread is current:
                continue
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)

    def _worker_loop(self, interrupt: threading.Event) -> None:
        while True:
            task = self._queue.get()
            if task is None:
                logger.debug(f"{threading.current_thread().name} stopped")
                return
            self._run_task(task, interrupt)

    def _run_task(self, task: TaskEnvelope[Any], interrupt: threading.Event) -> None:
        with correlation_scope(task.task_id):
            try:
                response = self.executor.run(task.request, task.translator, interrupt)
            except ExecutionError as exc:
                self._notify(task, task.callback.failure, exc)
            except Exception as exc:
                logger.exception(f"Unexpected error while executing task {task.task_id}")
                error = ExecutionError(f"unexpected error: {exc}", cause=exc)
                self._notify(task, task.callback.failure, error)
            else:
                self._notify(task, task.callback.success, response)

    def _notify(self, task: TaskEnvelope[Any], method: Callable[[Any], Any], value: Any) -> None:
        try:
            method(value)
        except Exception:
            logger.exception(f"Callback of task {task.task_id} raised an exception")
