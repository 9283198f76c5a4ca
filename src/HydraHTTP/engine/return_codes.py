"""Low-level return codes reported by the transport engine.

The codes follow libcurl's vocabulary so that the adapter's failure
classification stays engine-agnostic: anything other than ``OK`` means the
engine did not complete a clean HTTP exchange.  :func:`classify_exception`
maps the exceptions raised by ``httpx`` (and the ``ssl``/``socket`` layers
beneath it) onto these codes.
"""

from __future__ import annotations

import enum
import socket
import ssl
from typing import Dict, Optional

import httpx

__all__ = ["ReturnCode", "classify_exception", "return_message"]


class ReturnCode(str, enum.Enum):
    """Outcome of one engine request below the HTTP layer."""

    OK = "ok"
    UNSUPPORTED_PROTOCOL = "unsupported_protocol"
    URL_MALFORMAT = "url_malformat"
    COULDNT_RESOLVE_PROXY = "couldnt_resolve_proxy"
    COULDNT_RESOLVE_HOST = "couldnt_resolve_host"
    COULDNT_CONNECT = "couldnt_connect"
    OPERATION_TIMEDOUT = "operation_timedout"
    SSL_CONNECT_ERROR = "ssl_connect_error"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    GOT_NOTHING = "got_nothing"
    SEND_ERROR = "send_error"
    RECV_ERROR = "recv_error"
    SSL_CERTPROBLEM = "ssl_certproblem"
    PEER_FAILED_VERIFICATION = "peer_failed_verification"
    BAD_FUNCTION_ARGUMENT = "bad_function_argument"
    INTERNAL_ERROR = "internal_error"


_MESSAGES: Dict[ReturnCode, str] = {
    ReturnCode.OK: "No error",
    ReturnCode.UNSUPPORTED_PROTOCOL: "Unsupported protocol",
    ReturnCode.URL_MALFORMAT: "URL using bad/illegal format or missing URL",
    ReturnCode.COULDNT_RESOLVE_PROXY: "Couldn't resolve proxy name",
    ReturnCode.COULDNT_RESOLVE_HOST: "Couldn't resolve host name",
    ReturnCode.COULDNT_CONNECT: "Couldn't connect to server",
    ReturnCode.OPERATION_TIMEDOUT: "Timeout was reached",
    ReturnCode.SSL_CONNECT_ERROR: "SSL connect error",
    ReturnCode.TOO_MANY_REDIRECTS: "Number of redirects hit maximum amount",
    ReturnCode.GOT_NOTHING: "Server returned nothing (no headers, no data)",
    ReturnCode.SEND_ERROR: "Failed sending data to the peer",
    ReturnCode.RECV_ERROR: "Failure when receiving data from the peer",
    ReturnCode.SSL_CERTPROBLEM: "Problem with the local SSL certificate",
    ReturnCode.PEER_FAILED_VERIFICATION: (
        "SSL peer certificate or SSH remote key was not OK"
    ),
    ReturnCode.BAD_FUNCTION_ARGUMENT: "A libcurl function was given a bad argument",
    ReturnCode.INTERNAL_ERROR: "Unexpected error inside the engine",
}


def return_message(code: ReturnCode) -> str:
    """Return the human readable message for ``code``."""
    return _MESSAGES[code]


def _looks_like_dns_failure(exc: BaseException) -> bool:
    cause = exc.__cause__ or exc.__context__
    while cause is not None:
        if isinstance(cause, socket.gaierror):
            return True
        cause = cause.__cause__ or cause.__context__
    text = str(exc).lower()
    return "name or service not known" in text or "nodename nor servname" in text or (
        "name resolution" in text
    )


def classify_exception(exc: BaseException) -> Optional[ReturnCode]:
    """Map an exception raised while performing a request to a return code.

    ``ValueError`` and ``TypeError`` stem from option values httpx refuses and
    map to ``BAD_FUNCTION_ARGUMENT``.  Anything else returns ``None`` and is
    left for the caller to re-raise.
    """
    if isinstance(exc, httpx.TimeoutException):
        return ReturnCode.OPERATION_TIMEDOUT
    if isinstance(exc, httpx.ProxyError):
        if _looks_like_dns_failure(exc):
            return ReturnCode.COULDNT_RESOLVE_PROXY
        return ReturnCode.COULDNT_CONNECT
    if isinstance(exc, httpx.ConnectError):
        cause = exc.__cause__ or exc.__context__
        if isinstance(cause, ssl.SSLCertVerificationError) or "certificate verify failed" in str(exc):
            return ReturnCode.PEER_FAILED_VERIFICATION
        if isinstance(cause, ssl.SSLError) or "ssl" in str(exc).lower():
            return ReturnCode.SSL_CONNECT_ERROR
        if _looks_like_dns_failure(exc):
            return ReturnCode.COULDNT_RESOLVE_HOST
        return ReturnCode.COULDNT_CONNECT
    if isinstance(exc, httpx.RemoteProtocolError):
        if "without sending" in str(exc).lower():
            return ReturnCode.GOT_NOTHING
        return ReturnCode.RECV_ERROR
    if isinstance(exc, httpx.WriteError):
        return ReturnCode.SEND_ERROR
    if isinstance(exc, (httpx.ReadError, httpx.DecodingError)):
        return ReturnCode.RECV_ERROR
    if isinstance(exc, httpx.TooManyRedirects):
        return ReturnCode.TOO_MANY_REDIRECTS
    if isinstance(exc, httpx.UnsupportedProtocol):
        return ReturnCode.UNSUPPORTED_PROTOCOL
    if isinstance(exc, httpx.InvalidURL):
        return ReturnCode.URL_MALFORMAT
    if isinstance(exc, httpx.TransportError):
        return ReturnCode.COULDNT_CONNECT
    if isinstance(exc, ssl.SSLError):
        return ReturnCode.SSL_CONNECT_ERROR
    if isinstance(exc, (ValueError, TypeError)):
        return ReturnCode.BAD_FUNCTION_ARGUMENT
    return None
