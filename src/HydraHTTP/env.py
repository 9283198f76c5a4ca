"""Request environment, option descriptors, and the shared response object.

The :class:`RequestEnvironment` is the single mutable record threaded through
the middleware pipeline.  The adapter reads the request description from it,
and writes the transport outcome and the :class:`Response` back into it.  The
pipeline owns its lifetime; each environment belongs to exactly one request.

Descriptors (:class:`TLSOptions`, :class:`ProxyOptions`, :class:`BindOptions`,
:class:`RequestOptions`) are plain frozen dataclasses with optional fields;
``None`` means "use the engine default".
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, List, Mapping, Optional, Union

import httpx

from HydraHTTP.errors import TransportError

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from HydraHTTP.engine.parallel import ParallelManager

logger = logging.getLogger(__name__)

__all__ = [
    "METHODS_WITH_BODIES",
    "TransportOutcome",
    "TLSOptions",
    "ProxyOptions",
    "BindOptions",
    "RequestOptions",
    "Response",
    "RequestEnvironment",
]

METHODS_WITH_BODIES = frozenset({"post", "put", "patch"})

Body = Union[bytes, str, Any, None]


class TransportOutcome(str, enum.Enum):
    """Terminal classification of a single request."""

    PENDING = "pending"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CONNECTION_FAILED = "connection_failed"


@dataclass(frozen=True)
class TLSOptions:
    """TLS settings for one request.

    ``client_certificate_password`` is the legacy spelling of
    ``client_cert_passwd``; when both are set the primary name wins.
    """

    verify: Optional[bool] = None
    version: Optional[str] = None
    client_cert: Optional[str] = None
    client_key: Optional[str] = None
    client_cert_passwd: Optional[str] = None
    client_certificate_password: Optional[str] = None
    ca_file: Optional[str] = None
    ca_path: Optional[str] = None

    @property
    def verify_enabled(self) -> bool:
        return self.verify is None or bool(self.verify)

    @property
    def key_password(self) -> Optional[str]:
        for candidate in (self.client_cert_passwd, self.client_certificate_password):
            if candidate is not None:
                return candidate
        return None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TLSOptions":
        """Build options from a loose mapping, ignoring unknown keys."""
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)


@dataclass(frozen=True)
class ProxyOptions:
    """Forward proxy description."""

    uri: httpx.URL
    user: Optional[str] = None
    password: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.uri, httpx.URL):
            object.__setattr__(self, "uri", httpx.URL(str(self.uri)))

    @property
    def scheme(self) -> str:
        return self.uri.scheme

    @property
    def host(self) -> str:
        return self.uri.host

    @property
    def port(self) -> Optional[int]:
        if self.uri.port is not None:
            return self.uri.port
        return {"http": 80, "https": 443}.get(self.uri.scheme)

    @property
    def location(self) -> str:
        """Return ``scheme://host[:port]``; the port is omitted when the scheme has no default."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        port = self.port
        if port is None:
            return f"{self.scheme}://{host}"
        return f"{self.scheme}://{host}:{port}"

    @classmethod
    def from_uri(
        cls,
        uri: Union[str, httpx.URL],
        *,
        user: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "ProxyOptions":
        """Parse a proxy URL, lifting any ``user:password@`` credentials out of it."""
        url = httpx.URL(str(uri))
        embedded_user = url.username or None
        embedded_password = url.password or None
        if embedded_user or embedded_password:
            url = url.copy_with(username=None, password=None)
        return cls(
            uri=url,
            user=user if user is not None else embedded_user,
            password=password if password is not None else embedded_password,
        )


@dataclass(frozen=True)
class BindOptions:
    """Local interface the outgoing socket should bind to."""

    host: Optional[str] = None
    port: Optional[int] = None


@dataclass(frozen=True)
class RequestOptions:
    """Per-request options; timeouts are expressed in (fractional) seconds."""

    timeout: Optional[float] = None
    open_timeout: Optional[float] = None
    proxy: Optional[ProxyOptions] = None
    bind: Optional[BindOptions] = None


class Response:
    """Response slot shared between the adapter and the pipeline.

    The response is populated by :meth:`RequestEnvironment.save_response` and
    becomes *finished* exactly once through :meth:`finish`.  Callbacks
    registered with :meth:`on_complete` fire at that moment, or immediately
    when registered after the fact.
    """

    def __init__(self) -> None:
        self.status: Optional[int] = None
        self.reason_phrase: Optional[str] = None
        self.headers: httpx.Headers = httpx.Headers()
        self.body: Optional[bytes] = None
        self.outcome: TransportOutcome = TransportOutcome.PENDING
        self.error: Optional[TransportError] = None
        self.env: Optional["RequestEnvironment"] = None
        self._callbacks: List[Callable[["RequestEnvironment"], None]] = []
        self._lock = threading.Lock()
        self._finished = threading.Event()

    def __repr__(self) -> str:
        return (
            f"<Response status={self.status!r} outcome={self.outcome.value}"
            f" finished={self.finished}>"
        )

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def success(self) -> bool:
        return self.outcome is TransportOutcome.COMPLETED and self.status is not None and (
            200 <= self.status < 300
        )

    def on_complete(self, callback: Callable[["RequestEnvironment"], None]) -> "Response":
        """Run ``callback(env)`` once the response is finished."""
        with self._lock:
            if not self._finished.is_set():
                self._callbacks.append(callback)
                return self
        callback(self.env)  # type: ignore[arg-type]
        return self

    def finish(self, env: "RequestEnvironment") -> bool:
        """Mark the response complete and fire callbacks.

        Every registered callback runs even when an earlier one raises; the
        first callback error is re-raised once all of them have run.

        Returns:
            ``True`` on the first call, ``False`` for every later call, which
            leaves the response untouched.
        """
        with self._lock:
            if self._finished.is_set():
                logger.debug("response already finished", extra={"url": str(env.url)})
                return False
            self.env = env
            self.status = env.status
            self.reason_phrase = env.reason_phrase
            self.headers = env.response_headers if env.response_headers is not None else httpx.Headers()
            self.body = env.response_body
            self._finished.set()
            callbacks, self._callbacks = self._callbacks, []
        first_error: Optional[BaseException] = None
        for callback in callbacks:
            try:
                callback(env)
            except Exception as exc:
                logger.exception("response callback failed", extra={"url": str(env.url)})
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until :meth:`finish` has run; returns ``False`` on timeout."""
        return self._finished.wait(timeout)

    def raise_for_transport(self) -> "Response":
        """Raise the recorded transport error, if any, otherwise return ``self``."""
        if self.error is not None:
            raise self.error
        return self


@dataclass
class RequestEnvironment:
    """Mutable per-request record flowing through the pipeline."""

    method: str
    url: httpx.URL
    request_headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Body = None
    request: RequestOptions = field(default_factory=RequestOptions)
    ssl: Optional[TLSOptions] = None
    parallel_manager: Optional["ParallelManager"] = None
    response: Optional[Response] = None

    status: Optional[int] = None
    reason_phrase: Optional[str] = None
    response_headers: Optional[httpx.Headers] = None
    response_body: Optional[bytes] = None

    timed_out: bool = False
    connection_failed: bool = False
    return_message: Optional[str] = None

    def __post_init__(self) -> None:
        self.method = self.method.lower()
        if not isinstance(self.url, httpx.URL):
            self.url = httpx.URL(str(self.url))
        if not isinstance(self.request_headers, httpx.Headers):
            self.request_headers = httpx.Headers(self.request_headers)

    @property
    def parallel(self) -> bool:
        return self.parallel_manager is not None

    @property
    def needs_body(self) -> bool:
        return self.body is None and self.method in METHODS_WITH_BODIES

    def clear_body(self) -> None:
        self.request_headers["Content-Length"] = "0"
        self.body = b""

    def save_response(
        self,
        status: int,
        body: Optional[bytes],
        headers: Optional[httpx.Headers] = None,
        reason_phrase: Optional[str] = None,
        *,
        finished: bool = True,
    ) -> Response:
        """Write the transport result into the environment and its response.

        ``finished`` controls whether the response is finished here; parallel
        completion finishes it explicitly after classification.
        """
        self.status = status
        self.response_body = body
        self.reason_phrase = reason_phrase.strip() if reason_phrase else reason_phrase
        self.response_headers = headers if headers is not None else httpx.Headers()
        if self.response is None:
            self.response = Response()
        if finished:
            self.response.finish(self)
        return self.response
