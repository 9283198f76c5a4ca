"""Translate a request environment into a configured engine request.

Each ``configure_*`` step owns a disjoint set of engine options and can run
in any order; only body materialisation must happen before the engine
request is constructed.

Precedence, lowest first:

1. adapter-level :class:`~HydraHTTP.settings.EngineDefaults`;
2. options derived from the environment's TLS, proxy, timeout and bind
   descriptors.

No step raises.  A malformed descriptor simply yields options the engine
refuses when the request is performed, which is reported through the
engine's return code.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx

from HydraHTTP.engine.options import VERIFYHOST_NONE, VERIFYHOST_STRICT, EngineOptions, ProxyAuth
from HydraHTTP.engine.request import EngineRequest
from HydraHTTP.engine.response import EngineResponse
from HydraHTTP.engine.stubs import StubRegistry
from HydraHTTP.env import RequestEnvironment
from HydraHTTP.settings import EngineDefaults

logger = logging.getLogger(__name__)

__all__ = [
    "build_request",
    "configure_proxy",
    "configure_socket",
    "configure_ssl",
    "configure_timeout",
    "engine_request_for",
    "read_body",
    "seconds_to_ms",
]


def seconds_to_ms(seconds: float) -> int:
    """Convert fractional seconds to whole milliseconds, truncating toward zero."""
    return int(seconds * 1000)


def read_body(env: RequestEnvironment) -> None:
    """Replace a stream body with its full contents.

    The engine needs a concrete buffer, and a queued request may run long
    after the stream's owner has moved on, so the stream is read exactly once
    here.
    """
    reader = getattr(env.body, "read", None)
    if callable(reader):
        env.body = reader()


def engine_request_for(
    env: RequestEnvironment,
    *,
    defaults: Optional[EngineDefaults] = None,
    transport: Optional[httpx.BaseTransport] = None,
    stubs: Optional[StubRegistry] = None,
) -> EngineRequest:
    """Build the base engine request from method, URL, headers and body."""
    return EngineRequest(
        str(env.url),
        method=env.method,
        body=env.body,
        headers=env.request_headers,
        options=EngineOptions.from_defaults(defaults),
        transport=transport,
        stubs=stubs,
    )


def configure_ssl(req: EngineRequest, env: RequestEnvironment) -> None:
    ssl = env.ssl
    if ssl is None:
        return
    options = req.options
    verify = ssl.verify_enabled
    options.ssl_verifypeer = verify
    options.ssl_verifyhost = VERIFYHOST_STRICT if verify else VERIFYHOST_NONE
    if ssl.version:
        options.sslversion = ssl.version
    if ssl.client_cert:
        options.sslcert = ssl.client_cert
    if ssl.client_key:
        options.sslkey = ssl.client_key
    if ssl.ca_file:
        options.cainfo = ssl.ca_file
    if ssl.ca_path:
        options.capath = ssl.ca_path
    password = ssl.key_password
    if password is not None:
        options.keypasswd = password


def configure_proxy(req: EngineRequest, env: RequestEnvironment) -> None:
    proxy = env.request.proxy
    if proxy is None:
        return
    req.options.proxy = proxy.location
    if proxy.user and proxy.password:
        req.options.proxyauth = ProxyAuth.ANY
        req.options.proxyuserpwd = f"{proxy.user}:{proxy.password}"


def configure_timeout(req: EngineRequest, env: RequestEnvironment) -> None:
    request = env.request
    if request.timeout is not None:
        req.options.timeout_ms = seconds_to_ms(request.timeout)
    if request.open_timeout is not None:
        req.options.connecttimeout_ms = seconds_to_ms(request.open_timeout)


def configure_socket(req: EngineRequest, env: RequestEnvironment) -> None:
    bind = env.request.bind
    if bind is not None and bind.host:
        req.options.interface = bind.host


def build_request(
    env: RequestEnvironment,
    on_complete: Callable[[EngineResponse], None],
    *,
    defaults: Optional[EngineDefaults] = None,
    transport: Optional[httpx.BaseTransport] = None,
    stubs: Optional[StubRegistry] = None,
) -> EngineRequest:
    """Produce a fully configured engine request for ``env``.

    Args:
        env: Request environment to translate.
        on_complete: Completion handler attached to the engine request.
        defaults: Adapter-level engine defaults.
        transport: Optional ``httpx`` transport replacing the network stack.
        stubs: Optional stub registry consulted before any I/O.

    Returns:
        An :class:`EngineRequest` ready to run or queue.
    """
    read_body(env)

    req = engine_request_for(env, defaults=defaults, transport=transport, stubs=stubs)

    configure_ssl(req, env)
    configure_proxy(req, env)
    configure_timeout(req, env)
    configure_socket(req, env)

    req.on_complete(on_complete)
    logger.debug(
        "engine request built",
        extra={"method": req.method, "url": req.url, "parallel": env.parallel},
    )
    return req
