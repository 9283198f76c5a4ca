"""Result record reported by the transport engine for one request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from HydraHTTP.engine.return_codes import ReturnCode, return_message

__all__ = ["EngineResponse", "header_blob"]


@dataclass
class EngineResponse:
    """What the engine observed while performing a request.

    Attributes:
        code: HTTP status code, ``0`` when no response was received.
        body: Response body bytes (empty when nothing was received).
        response_headers: Raw header blob, one block per received response.
        return_code: Low-level outcome; anything but ``OK`` is a transport failure.
        return_message: Human readable description of ``return_code``.
        mock: ``True`` when the response came from a registered stub.
        exception: Exception that produced a non-``OK`` return code.
        total_time: Wall-clock seconds spent performing the request.
    """

    code: int = 0
    body: bytes = b""
    response_headers: str = ""
    return_code: ReturnCode = ReturnCode.OK
    return_message: Optional[str] = None
    mock: bool = False
    exception: Optional[BaseException] = None
    total_time: float = 0.0

    def __post_init__(self) -> None:
        if self.return_message is None:
            self.return_message = return_message(self.return_code)

    @property
    def timed_out(self) -> bool:
        return self.return_code is ReturnCode.OPERATION_TIMEDOUT

    @property
    def success(self) -> bool:
        return self.return_code is ReturnCode.OK and 200 <= self.code < 300

    @classmethod
    def from_httpx(
        cls,
        response: httpx.Response,
        *,
        body: Optional[bytes] = None,
        total_time: float = 0.0,
    ) -> "EngineResponse":
        """Capture an ``httpx`` response, including the header blocks of redirect hops.

        ``body`` supplies the content of a streamed response; otherwise the
        already-read ``response.content`` is used.
        """
        return cls(
            code=response.status_code,
            body=response.content if body is None else body,
            response_headers=header_blob([*response.history, response]),
            total_time=total_time,
        )

    @classmethod
    def failure(
        cls, code: ReturnCode, exc: Optional[BaseException] = None, *, total_time: float = 0.0
    ) -> "EngineResponse":
        message = return_message(code)
        if exc is not None and str(exc):
            message = f"{message}: {exc}"
        return cls(
            code=0,
            return_code=code,
            return_message=message,
            exception=exc,
            total_time=total_time,
        )


def header_blob(responses: Iterable[httpx.Response]) -> str:
    """Render responses as the raw header text the engine hands to the adapter."""
    blocks = []
    for response in responses:
        lines = [f"{response.http_version} {response.status_code} {response.reason_phrase}"]
        for raw_name, raw_value in response.headers.raw:
            name = raw_name.decode("latin-1")
            value = raw_value.decode("latin-1")
            lines.append(f"{name}: {value}")
        blocks.append("\r\n".join(lines) + "\r\n\r\n")
    return "".join(blocks)
