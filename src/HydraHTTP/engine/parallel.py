"""Parallel execution manager.

A :class:`ParallelManager` accumulates engine requests through
:meth:`ParallelManager.queue` and executes them together when
:meth:`ParallelManager.run` is called.  Requests are performed on a bounded
thread pool, while completion callbacks are invoked from the thread that
called :meth:`run`, one at a time and in the order requests finish.  Callback
code therefore never races with other callbacks of the same batch.

Callbacks may queue further requests; those are executed within the same
``run`` call.

One request never takes the rest of the batch down with it.  An exception the
engine cannot map to a return code becomes an ``INTERNAL_ERROR`` failure for
that request, and an exception raised by a completion callback is held back
until every other request has been performed and finished.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent import futures
from typing import Dict, List, Optional, Tuple

from HydraHTTP.concurrency import create_executor
from HydraHTTP.engine.request import EngineRequest
from HydraHTTP.engine.response import EngineResponse
from HydraHTTP.engine.return_codes import ReturnCode
from HydraHTTP.settings import ParallelSettings

logger = logging.getLogger(__name__)

__all__ = ["ParallelManager"]


class ParallelManager:
    """Batch of engine requests executed concurrently on demand.

    Attributes:
        max_concurrency: Upper bound on requests performed at the same time.
        thread_name_prefix: Prefix for worker thread names.
    """

    def __init__(self, max_concurrency: int = 200, *, thread_name_prefix: str = "hydra-http") -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self.thread_name_prefix = thread_name_prefix
        self._queue: List[EngineRequest] = []
        self._lock = threading.Lock()
        self._running = False

    @classmethod
    def from_settings(cls, settings: Optional[ParallelSettings] = None, **overrides: object) -> "ParallelManager":
        """Build a manager from :class:`ParallelSettings`, applying keyword overrides."""
        base = settings or ParallelSettings()
        merged = ParallelSettings.model_validate({**base.model_dump(), **overrides})
        return cls(merged.max_concurrency, thread_name_prefix=merged.thread_name_prefix)

    def __repr__(self) -> str:
        return f"<ParallelManager queued={len(self._queue)} max_concurrency={self.max_concurrency}>"

    @property
    def queued_requests(self) -> Tuple[EngineRequest, ...]:
        with self._lock:
            return tuple(self._queue)

    @property
    def running(self) -> bool:
        return self._running

    def queue(self, request: EngineRequest) -> None:
        """Append ``request`` to the batch without performing it."""
        with self._lock:
            self._queue.append(request)
        logger.debug("request queued", extra={"method": request.method, "url": request.url})

    def _take_queued(self) -> List[EngineRequest]:
        with self._lock:
            taken, self._queue = self._queue, []
        return taken

    def run(self) -> List[EngineRequest]:
        """Perform every queued request and fire their completion callbacks.

        Returns:
            The requests completed by this run, in completion order.

        Raises:
            RuntimeError: If the manager is already running.
            Exception: The first exception raised by a completion callback,
                re-raised after the whole batch has finished.
        """
        with self._lock:
            if self._running:
                raise RuntimeError("ParallelManager.run() is not re-entrant")
            self._running = True
        started = time.perf_counter()
        completed: List[EngineRequest] = []
        callback_errors: List[Exception] = []
        executor, needs_shutdown = create_executor(
            self.max_concurrency, thread_name_prefix=self.thread_name_prefix
        )
        try:
            if executor is None:
                self._run_inline(completed, callback_errors)
            else:
                self._run_pooled(executor, completed, callback_errors)
        finally:
            if needs_shutdown and executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)
            with self._lock:
                self._running = False
        logger.info(
            "parallel batch finished",
            extra={
                "requests": len(completed),
                "callback_errors": len(callback_errors),
                "elapsed_ms": round((time.perf_counter() - started) * 1000, 3),
                "max_concurrency": self.max_concurrency,
            },
        )
        if callback_errors:
            raise callback_errors[0]
        return completed

    @staticmethod
    def _perform(request: EngineRequest) -> EngineResponse:
        try:
            return request.perform()
        except Exception as exc:
            logger.error(
                "engine request raised an unmapped exception",
                exc_info=True,
                extra={"method": request.method, "url": request.url},
            )
            return EngineResponse.failure(ReturnCode.INTERNAL_ERROR, exc)

    @staticmethod
    def _finish(
        request: EngineRequest, response: EngineResponse, callback_errors: List[Exception]
    ) -> None:
        try:
            request.finish(response)
        except Exception as exc:
            logger.warning(
                "completion callback failed",
                extra={"method": request.method, "url": request.url, "error": repr(exc)},
            )
            callback_errors.append(exc)

    def _run_inline(self, completed: List[EngineRequest], callback_errors: List[Exception]) -> None:
        pending = self._take_queued()
        while pending:
            for request in pending:
                self._finish(request, self._perform(request), callback_errors)
                completed.append(request)
            pending = self._take_queued()

    def _run_pooled(
        self,
        executor: futures.Executor,
        completed: List[EngineRequest],
        callback_errors: List[Exception],
    ) -> None:
        in_flight: Dict[futures.Future, EngineRequest] = {}
        while True:
            for request in self._take_queued():
                in_flight[executor.submit(self._perform, request)] = request
            if not in_flight:
                return
            done, _ = futures.wait(list(in_flight), return_when=futures.FIRST_COMPLETED)
            for future in done:
                request = in_flight.pop(future)
                self._finish(request, future.result(), callback_errors)
                completed.append(request)
