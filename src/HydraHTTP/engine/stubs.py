"""Registered expectations that short-circuit engine requests.

A :class:`StubRegistry` lets tests and offline tooling answer requests
without touching the network.  Responses served from a stub are flagged
``mock=True``, which the adapter honours when classifying failures: a stub
deliberately returning status ``0`` is not a connection failure.

Example:
    >>> registry = StubRegistry()
    >>> _ = registry.stub("https://example.org/ping").and_return(EngineResponse(code=204))
    >>> registry.match("GET", "https://example.org/ping").code
    204
"""

from __future__ import annotations

import re
import threading
from copy import copy
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Union

from HydraHTTP.engine.response import EngineResponse

__all__ = ["Expectation", "StubRegistry"]


@dataclass
class Expectation:
    """URL (or pattern) plus optional method, answered by queued responses.

    Responses are served in order; the last one repeats once the queue is
    exhausted.
    """

    url: Union[str, Pattern[str]]
    method: Optional[str] = None
    responses: List[EngineResponse] = field(default_factory=list)
    hits: int = 0

    def and_return(self, *responses: EngineResponse) -> "Expectation":
        self.responses.extend(responses)
        return self

    def matches(self, method: str, url: str) -> bool:
        if self.method is not None and self.method.lower() != method.lower():
            return False
        if isinstance(self.url, str):
            return self.url == url
        return self.url.search(url) is not None

    def next_response(self) -> Optional[EngineResponse]:
        if not self.responses:
            return None
        index = min(self.hits, len(self.responses) - 1)
        self.hits += 1
        response = copy(self.responses[index])
        response.mock = True
        return response


class StubRegistry:
    """Thread-safe collection of :class:`Expectation` objects, newest first."""

    def __init__(self) -> None:
        self._expectations: List[Expectation] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._expectations)

    def stub(self, url: Union[str, Pattern[str]], method: Optional[str] = None) -> Expectation:
        """Register and return a new expectation for ``url``."""
        if isinstance(url, str) and url.startswith("re:"):
            url = re.compile(url[3:])
        expectation = Expectation(url=url, method=method)
        with self._lock:
            self._expectations.insert(0, expectation)
        return expectation

    def match(self, method: str, url: str) -> Optional[EngineResponse]:
        """Return the stubbed response for ``method``/``url``, or ``None``."""
        with self._lock:
            for expectation in self._expectations:
                if expectation.matches(method, url):
                    response = expectation.next_response()
                    if response is not None:
                        return response
        return None

    def clear(self) -> None:
        with self._lock:
            self._expectations.clear()
