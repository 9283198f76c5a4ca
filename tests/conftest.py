# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {
#       "id": "mockrouter",
#       "name": "MockRouter",
#       "anchor": "class-mockrouter",
#       "kind": "class"
#     },
#     {
#       "id": "mock-router",
#       "name": "mock_router",
#       "anchor": "function-mock-router",
#       "kind": "function"
#     },
#     {
#       "id": "adapter",
#       "name": "adapter",
#       "anchor": "function-adapter",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Puts ``src`` on ``sys.path`` and provides hermetic HTTP fixtures built on
``httpx.MockTransport``: a :class:`MockRouter` mapping ``(method, url)`` to
response factories, and an adapter wired to it.
"""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Callable, Dict, Generator, List, Tuple, Union

import httpx
import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from HydraHTTP.adapter import HydraAdapter  # noqa: E402
from HydraHTTP.engine.stubs import StubRegistry  # noqa: E402
from HydraHTTP.settings import AdapterSettings, reset_settings  # noqa: E402

Handler = Callable[[httpx.Request], httpx.Response]


class MockRouter:
    """Routes ``(METHOD, url)`` to handlers; unknown routes answer 404."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.requests: List[httpx.Request] = []
        self._lock = threading.Lock()

    def register(
        self,
        method: str,
        url: str,
        status_code: int = 200,
        content: Union[bytes, str] = b"",
        headers: Union[Dict[str, str], List[Tuple[str, str]], None] = None,
    ) -> None:
        """Answer ``method url`` with a fresh response on every call."""

        def _respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, content=content, headers=headers)

        self.routes[(method.upper(), url)] = _respond

    def register_handler(self, method: str, url: str, handler: Handler) -> None:
        """Answer ``method url`` with ``handler`` (which may raise httpx errors)."""
        self.routes[(method.upper(), url)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        with self._lock:
            self.requests.append(request)
        handler = self.routes.get((request.method, str(request.url)))
        if handler is None:
            return httpx.Response(404, content=b"Not mocked")
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop cached settings and ``HYDRAHTTP_*`` variables around each test."""
    import os

    for key in list(os.environ):
        if key.startswith("HYDRAHTTP_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def mock_router() -> MockRouter:
    return MockRouter()


@pytest.fixture
def stubs() -> StubRegistry:
    return StubRegistry()


@pytest.fixture
def adapter(mock_router: MockRouter, stubs: StubRegistry) -> HydraAdapter:
    """Adapter whose engine requests go through ``mock_router``."""
    return HydraAdapter(settings=AdapterSettings(), transport=mock_router.transport, stubs=stubs)
