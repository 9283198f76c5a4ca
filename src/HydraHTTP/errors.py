"""Exception hierarchy surfaced by the HydraHTTP transport adapter.

The adapter distinguishes transport failures (the request never produced a
usable HTTP exchange) from HTTP-level errors.  Only the former are modelled
here: a 404 or 503 is a perfectly valid :class:`~HydraHTTP.env.Response` at
this layer and is handed back to the pipeline untouched.

Transport failures are raised synchronously only in serial mode.  In parallel
mode the same exception objects are built but merely attached to the
response (see :attr:`HydraHTTP.env.Response.error`) so that whoever drives the
batch can decide what is fatal.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from HydraHTTP.env import Response

__all__ = [
    "HydraHTTPError",
    "ConfigurationError",
    "TransportError",
    "TimeoutError",
    "ConnectionFailedError",
]


class HydraHTTPError(RuntimeError):
    """Base exception for every failure raised by the adapter."""


class ConfigurationError(HydraHTTPError):
    """Raised when adapter or manager settings cannot be loaded."""


class TransportError(HydraHTTPError):
    """A request failed below the HTTP layer.

    Attributes:
        response: Response object written back for the failed request, if any.
        wrapped_exception: Low-level exception reported by the engine, if any.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        response: Optional["Response"] = None,
        wrapped_exception: Optional[BaseException] = None,
    ) -> None:
        if message is None and wrapped_exception is not None:
            message = str(wrapped_exception) or wrapped_exception.__class__.__name__
        super().__init__(message or self.__class__.__name__)
        self.response = response
        self.wrapped_exception = wrapped_exception


class TimeoutError(TransportError):  # noqa: A001 - mirrors the adapter taxonomy
    """The engine gave up waiting for the server within the configured deadline."""


class ConnectionFailedError(TransportError):
    """The engine could not complete the exchange (DNS, TCP, TLS, proxy ...)."""


# === NAVMAP v1 ===
# {
#   "module": "HydraHTTP.errors",
#   "purpose": "Exception hierarchy for transport failures surfaced by the adapter",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "transport", "name": "Transport Errors", "anchor": "TRN", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
