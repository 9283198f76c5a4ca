"""Serial versus parallel dispatch of engine requests."""

from __future__ import annotations

import contextlib
import logging
from typing import Iterator

from HydraHTTP.engine.parallel import ParallelManager
from HydraHTTP.engine.request import EngineRequest
from HydraHTTP.env import RequestEnvironment

logger = logging.getLogger(__name__)

__all__ = ["in_parallel", "is_parallel", "perform_request"]


def is_parallel(env: RequestEnvironment) -> bool:
    return env.parallel_manager is not None


def perform_request(env: RequestEnvironment, request: EngineRequest) -> None:
    """Queue ``request`` on the environment's manager, or run it now.

    The mode is decided once per call: a manager on the environment means
    parallel, anything else serial.
    """
    if is_parallel(env):
        env.parallel_manager.queue(request)  # type: ignore[union-attr]
    else:
        request.run()


@contextlib.contextmanager
def in_parallel(manager: ParallelManager) -> Iterator[ParallelManager]:
    """Yield ``manager`` and run its batch when the block exits cleanly.

    Example::

        manager = HydraAdapter.setup_parallel_manager()
        with in_parallel(manager):
            for env in envs:
                env.parallel_manager = manager
                adapter.call(env)
        statuses = [env.response.status for env in envs]
    """
    yield manager
    logger.debug("running parallel batch", extra={"queued": len(manager.queued_requests)})
    manager.run()
