"""Executor factory used by the parallel execution manager."""

from __future__ import annotations

from concurrent import futures
from typing import Optional, Tuple

Executor = futures.Executor


def create_executor(workers: int, *, thread_name_prefix: str = "hydra-http") -> Tuple[Optional[Executor], bool]:
    """
    Return a thread pool for running engine requests concurrently.

    Args:
        workers: Desired concurrency level.
        thread_name_prefix: Prefix for worker thread names.

    Returns:
        Tuple of (executor, needs_shutdown). ``(None, False)`` when ``workers``
        is one or less; the caller then performs requests inline. Caller is
        responsible for shutting down the returned executor when
        ``needs_shutdown`` is ``True``.
    """
    if workers <= 1:
        return None, False
    return futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix=thread_name_prefix), True
