"""HydraHTTP: HTTP transport adapter with serial and parallel execution.

The package sits at the bottom of a request/response middleware pipeline.
It translates a :class:`~HydraHTTP.env.RequestEnvironment` into an
HTTPX-backed engine request, runs it immediately or queues it on a shared
:class:`~HydraHTTP.engine.parallel.ParallelManager`, and writes the outcome
back into the environment's :class:`~HydraHTTP.env.Response`.

Example:
    >>> from HydraHTTP import HydraAdapter, RequestEnvironment, in_parallel
    >>> adapter = HydraAdapter()
    >>> manager = HydraAdapter.setup_parallel_manager(max_concurrency=8)
    >>> envs = [
    ...     RequestEnvironment(method="get", url=f"https://example.org/{n}", parallel_manager=manager)
    ...     for n in range(3)
    ... ]
    >>> with in_parallel(manager):  # doctest: +SKIP
    ...     for env in envs:
    ...         adapter.call(env)
"""

from HydraHTTP.adapter import HydraAdapter, in_parallel
from HydraHTTP.engine import EngineOptions, EngineRequest, EngineResponse, ParallelManager, ReturnCode, StubRegistry
from HydraHTTP.env import (
    BindOptions,
    ProxyOptions,
    RequestEnvironment,
    RequestOptions,
    Response,
    TLSOptions,
    TransportOutcome,
)
from HydraHTTP.errors import (
    ConfigurationError,
    ConnectionFailedError,
    HydraHTTPError,
    TimeoutError,
    TransportError,
)
from HydraHTTP.headers import parse_header_blob, parse_status_line
from HydraHTTP.settings import AdapterSettings, get_settings, reset_settings

__version__ = "0.1.0"

__all__ = [
    "AdapterSettings",
    "BindOptions",
    "ConfigurationError",
    "ConnectionFailedError",
    "EngineOptions",
    "EngineRequest",
    "EngineResponse",
    "HydraAdapter",
    "HydraHTTPError",
    "ParallelManager",
    "ProxyOptions",
    "RequestEnvironment",
    "RequestOptions",
    "Response",
    "ReturnCode",
    "StubRegistry",
    "TLSOptions",
    "TimeoutError",
    "TransportError",
    "TransportOutcome",
    "get_settings",
    "in_parallel",
    "parse_header_blob",
    "parse_status_line",
    "reset_settings",
]
