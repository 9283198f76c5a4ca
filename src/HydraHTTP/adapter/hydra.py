"""Pipeline adapter performing requests through the HTTPX engine.

Responsibilities
----------------
- Sit at the bottom of the middleware pipeline: every request environment
  passed to :meth:`HydraAdapter.call` is translated into an engine request,
  executed (or queued) and answered with a :class:`~HydraHTTP.env.Response`.
- Offer :meth:`HydraAdapter.setup_parallel_manager` so pipeline drivers can
  obtain a manager handle to place on environments they want batched.

Design Notes
------------
- The adapter holds no per-request state; one instance serves any number of
  concurrent environments.
- Engine defaults, an injected ``httpx`` transport and a stub registry are
  fixed at construction time and shared by every request.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx

from HydraHTTP.adapter.completion import CompletionHandler
from HydraHTTP.adapter.coordinator import perform_request
from HydraHTTP.adapter.translator import build_request
from HydraHTTP.engine.parallel import ParallelManager
from HydraHTTP.engine.request import EngineRequest
from HydraHTTP.engine.stubs import StubRegistry
from HydraHTTP.env import RequestEnvironment, Response
from HydraHTTP.settings import AdapterSettings, get_settings

logger = logging.getLogger(__name__)

__all__ = ["HydraAdapter"]

App = Callable[[RequestEnvironment], Any]


class HydraAdapter:
    """Terminal pipeline stage turning request environments into HTTP calls.

    Attributes:
        app: Next pipeline stage, called with the environment after the
            request was performed or queued.
        settings: Adapter configuration; ``settings.engine`` seeds every
            engine request.
        transport: Optional ``httpx`` transport replacing the network stack.
        stubs: Optional registry of stubbed responses.

    Examples:
        >>> adapter = HydraAdapter()
        >>> env = RequestEnvironment(method="get", url="https://example.org/")
        >>> adapter.call(env).status  # doctest: +SKIP
        200
    """

    supports_parallel = True

    def __init__(
        self,
        app: Optional[App] = None,
        *,
        settings: Optional[AdapterSettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
        stubs: Optional[StubRegistry] = None,
    ) -> None:
        self.app = app
        self.settings = settings or get_settings()
        self.transport = transport
        self.stubs = stubs

    @classmethod
    def setup_parallel_manager(cls, **options: Any) -> ParallelManager:
        """Return a new :class:`ParallelManager`.

        Keyword options override :class:`~HydraHTTP.settings.ParallelSettings`
        (for example ``max_concurrency=10``).
        """
        return ParallelManager.from_settings(get_settings().parallel, **options)

    def call(self, env: RequestEnvironment) -> Optional[Response]:
        """Perform ``env`` and hand it to the next stage.

        Returns:
            ``env.response``; in parallel mode it is not finished yet.

        Raises:
            HydraHTTP.errors.TimeoutError: Serial request timed out.
            HydraHTTP.errors.ConnectionFailedError: Serial request failed
                below the HTTP layer.
        """
        if env.needs_body:
            env.clear_body()
        env.response = Response()
        self.perform_request(env)
        if self.app is not None:
            self.app(env)
        return env.response

    def perform_request(self, env: RequestEnvironment) -> None:
        logger.debug(
            "performing request",
            extra={
                "method": env.method,
                "url": str(env.url),
                "mode": "parallel" if env.parallel else "serial",
            },
        )
        perform_request(env, self.request(env))

    def request(self, env: RequestEnvironment) -> EngineRequest:
        return build_request(
            env,
            CompletionHandler(env),
            defaults=self.settings.engine,
            transport=self.transport,
            stubs=self.stubs,
        )
