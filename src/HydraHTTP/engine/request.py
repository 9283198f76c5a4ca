"""HTTPX-backed engine request.

Responsibilities
----------------
- Hold everything needed to perform one HTTP exchange: method, URL, headers,
  body and an :class:`~HydraHTTP.engine.options.EngineOptions` bag that the
  adapter mutates before execution.
- Translate the option bag into an ``httpx.HTTPTransport`` (SSL context,
  client certificate, proxy, local interface, HTTP/2) and an
  ``httpx.Client`` timeout budget.
- Never raise for transport failures: exceptions are captured in an
  :class:`~HydraHTTP.engine.response.EngineResponse` with a non-``OK``
  return code, and completion callbacks fire exactly once.

Design Notes
------------
- A transport injected through ``transport=`` replaces the network stack
  entirely (tests pass ``httpx.MockTransport``); TLS, proxy and interface
  options are then ignored.
- HTTP/2 falls back to HTTP/1.1 when the optional ``h2`` dependency is not
  installed.
"""

from __future__ import annotations

import importlib.util
import logging
import ssl
import threading
import time
from typing import Callable, List, Mapping, Optional, Union

import httpx

from HydraHTTP.engine.options import EngineOptions
from HydraHTTP.engine.response import EngineResponse
from HydraHTTP.engine.return_codes import ReturnCode, classify_exception
from HydraHTTP.engine.stubs import StubRegistry
from HydraHTTP.engine.tls import build_ssl_context

logger = logging.getLogger(__name__)

__all__ = ["EngineRequest", "build_timeout", "h2_available", "read_body_within"]

CompletionCallback = Callable[[EngineResponse], None]


def h2_available() -> bool:
    """Return ``True`` when the optional ``h2`` package can be imported."""
    return importlib.util.find_spec("h2") is not None


def build_timeout(options: EngineOptions) -> httpx.Timeout:
    """Translate millisecond deadlines into an ``httpx.Timeout``.

    ``timeout_ms`` bounds each individual connect, read, write and pool wait;
    ``connecttimeout_ms`` overrides the connect phase.  Unset values mean no
    deadline.  httpx applies these per operation, so the deadline for the
    whole transfer is enforced separately by :func:`read_body_within`.
    """
    total = options.timeout_ms / 1000 if options.timeout_ms is not None else None
    connect = (
        options.connecttimeout_ms / 1000 if options.connecttimeout_ms is not None else total
    )
    return httpx.Timeout(total, connect=connect)


def read_body_within(response: httpx.Response, deadline: Optional[float]) -> bytes:
    """Read a streamed response body, failing once ``deadline`` has passed.

    ``deadline`` is a ``time.perf_counter()`` value; ``None`` reads without a
    limit.  The check runs between chunks, so a single stalled read is still
    bounded only by the per-operation read timeout.

    Raises:
        httpx.ReadTimeout: If the transfer outlives ``deadline``.
    """
    _check_deadline(response, deadline)
    chunks = []
    for chunk in response.iter_bytes():
        chunks.append(chunk)
        _check_deadline(response, deadline)
    return b"".join(chunks)


def _check_deadline(response: httpx.Response, deadline: Optional[float]) -> None:
    if deadline is not None and time.perf_counter() > deadline:
        raise httpx.ReadTimeout("transfer exceeded the total timeout", request=response.request)


def _build_proxy(options: EngineOptions) -> Optional[httpx.Proxy]:
    if not options.proxy:
        return None
    auth = None
    if options.proxyuserpwd:
        user, _, password = options.proxyuserpwd.partition(":")
        auth = (user, password)
    return httpx.Proxy(options.proxy, auth=auth)


class EngineRequest:
    """One HTTP exchange, executable immediately or through a parallel manager."""

    def __init__(
        self,
        url: str,
        *,
        method: str = "get",
        body: Optional[Union[bytes, str]] = None,
        headers: Optional[Union[httpx.Headers, Mapping[str, str]]] = None,
        options: Optional[EngineOptions] = None,
        transport: Optional[httpx.BaseTransport] = None,
        stubs: Optional[StubRegistry] = None,
    ) -> None:
        self.url = url
        self.method = method.upper()
        self.body = body
        self.headers = httpx.Headers(headers)
        self.options = options or EngineOptions()
        self.transport = transport
        self.stubs = stubs
        self.response: Optional[EngineResponse] = None
        self._on_complete: List[CompletionCallback] = []
        self._finish_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<EngineRequest {self.method} {self.url}>"

    def on_complete(self, callback: CompletionCallback) -> CompletionCallback:
        """Register ``callback``; usable as a decorator."""
        self._on_complete.append(callback)
        return callback

    def run(self) -> EngineResponse:
        """Perform the request and fire completion callbacks before returning."""
        response = self.perform()
        self.finish(response)
        return response

    def finish(self, response: EngineResponse) -> bool:
        """Record ``response`` and fire callbacks; later calls are ignored."""
        with self._finish_lock:
            if self.response is not None:
                return False
            self.response = response
        for callback in self._on_complete:
            callback(response)
        return True

    def perform(self) -> EngineResponse:
        """Execute the exchange without firing callbacks."""
        started = time.perf_counter()
        if self.stubs is not None:
            stubbed = self.stubs.match(self.method, self.url)
            if stubbed is not None:
                logger.debug(
                    "engine request served from stub",
                    extra={"method": self.method, "url": self.url, "status": stubbed.code},
                )
                return stubbed
        try:
            client = self._build_client()
        except (ssl.SSLError, OSError) as exc:
            # Raised while loading the client certificate or trust store, before any I/O.
            return EngineResponse.failure(
                ReturnCode.SSL_CERTPROBLEM, exc, total_time=time.perf_counter() - started
            )
        except ValueError as exc:
            return EngineResponse.failure(
                ReturnCode.BAD_FUNCTION_ARGUMENT, exc, total_time=time.perf_counter() - started
            )
        try:
            request = client.build_request(
                self.method,
                self.url,
                headers=self.headers,
                content=self.body,
            )
            http_response = client.send(request, stream=True)
            try:
                body = read_body_within(http_response, self._deadline(started))
            finally:
                http_response.close()
        except Exception as exc:
            code = classify_exception(exc)
            if code is None:
                raise
            return self._failure(code, exc, time.perf_counter() - started)
        finally:
            if self.transport is None:
                client.close()
        return EngineResponse.from_httpx(
            http_response, body=body, total_time=time.perf_counter() - started
        )

    def _deadline(self, started: float) -> Optional[float]:
        if self.options.timeout_ms is None:
            return None
        return started + self.options.timeout_ms / 1000

    def _failure(self, code: ReturnCode, exc: Exception, elapsed: float) -> EngineResponse:
        logger.debug(
            "engine request failed",
            extra={
                "method": self.method,
                "url": self.url,
                "return_code": code.value,
                "error": repr(exc),
            },
        )
        return EngineResponse.failure(code, exc, total_time=elapsed)

    def _build_client(self) -> httpx.Client:
        options = self.options
        transport = self.transport
        if transport is None:
            http2 = options.http2
            if http2 and not h2_available():
                logger.debug("h2 not installed; falling back to HTTP/1.1")
                http2 = False
            transport = httpx.HTTPTransport(
                verify=build_ssl_context(options),
                http2=http2,
                proxy=_build_proxy(options),
                local_address=options.interface,
            )
        return httpx.Client(
            transport=transport,
            timeout=build_timeout(options),
            follow_redirects=options.followlocation,
            max_redirects=options.maxredirs,
        )
