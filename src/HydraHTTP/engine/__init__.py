"""Transport engine: HTTPX-backed requests, stubs, and the parallel manager.

Modules:
- request: :class:`EngineRequest`, one executable HTTP exchange
- response: :class:`EngineResponse`, what the engine observed
- options: :class:`EngineOptions`, the low-level option bag
- return_codes: libcurl-style outcome codes and exception classification
- tls: SSL context construction
- stubs: registered expectations served without network I/O
- parallel: :class:`ParallelManager`, batched concurrent execution
"""

from HydraHTTP.engine.options import VERIFYHOST_NONE, VERIFYHOST_STRICT, EngineOptions, ProxyAuth
from HydraHTTP.engine.parallel import ParallelManager
from HydraHTTP.engine.request import EngineRequest
from HydraHTTP.engine.response import EngineResponse
from HydraHTTP.engine.return_codes import ReturnCode, classify_exception, return_message
from HydraHTTP.engine.stubs import Expectation, StubRegistry

__all__ = [
    "EngineOptions",
    "EngineRequest",
    "EngineResponse",
    "Expectation",
    "ParallelManager",
    "ProxyAuth",
    "ReturnCode",
    "StubRegistry",
    "VERIFYHOST_NONE",
    "VERIFYHOST_STRICT",
    "classify_exception",
    "return_message",
]
