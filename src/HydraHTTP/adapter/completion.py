"""Completion handling for engine requests.

:class:`CompletionHandler` is attached to every engine request built by the
adapter.  When the engine finishes, it classifies the outcome, writes the
response back into the request environment, and either raises (serial mode)
or finishes the response so the waiting pipeline continuation resumes
(parallel mode).

Classification order:

1. timed out;
2. connection failed: status ``0`` or a non-``OK`` return code, unless the
   response came from a registered stub;
3. completed, whatever the HTTP status.
"""

from __future__ import annotations

import logging
from typing import Optional

from HydraHTTP import errors
from HydraHTTP.engine.response import EngineResponse
from HydraHTTP.engine.return_codes import ReturnCode
from HydraHTTP.env import RequestEnvironment, Response, TransportOutcome
from HydraHTTP.headers import parse_header_blob, parse_status_line

logger = logging.getLogger(__name__)

__all__ = ["CompletionHandler", "classify"]


def classify(resp: EngineResponse) -> TransportOutcome:
    """Return the terminal outcome for an engine response."""
    if resp.timed_out:
        return TransportOutcome.TIMED_OUT
    if not resp.mock and (resp.code == 0 or resp.return_code is not ReturnCode.OK):
        return TransportOutcome.CONNECTION_FAILED
    return TransportOutcome.COMPLETED


class CompletionHandler:
    """Engine completion callback bound to one request environment."""

    def __init__(self, env: RequestEnvironment) -> None:
        self.env = env

    def __call__(self, resp: EngineResponse) -> None:
        env = self.env
        parallel = env.parallel
        outcome = classify(resp)
        error = self._record_outcome(outcome, resp)

        if env.response is None:
            env.response = Response()
        response = env.response
        response.outcome = outcome
        response.error = error

        _, reason_phrase = parse_status_line(resp.response_headers)
        env.save_response(
            resp.code,
            resp.body,
            parse_header_blob(resp.response_headers),
            reason_phrase,
            finished=not parallel,
        )

        if error is not None:
            error.response = response
            if not parallel:
                raise error

        if parallel:
            response.finish(env)

    def _record_outcome(
        self, outcome: TransportOutcome, resp: EngineResponse
    ) -> Optional[errors.TransportError]:
        env = self.env
        if outcome is TransportOutcome.TIMED_OUT:
            env.timed_out = True
            logger.warning(
                "request timed out",
                extra={"url": str(env.url), "parallel": env.parallel},
            )
            return errors.TimeoutError(
                "request timed out", wrapped_exception=resp.exception
            )
        if outcome is TransportOutcome.CONNECTION_FAILED:
            env.connection_failed = True
            env.return_message = resp.return_message
            logger.warning(
                "connection failed",
                extra={
                    "url": str(env.url),
                    "parallel": env.parallel,
                    "return_code": resp.return_code.value,
                    "return_message": resp.return_message,
                },
            )
            return errors.ConnectionFailedError(
                resp.return_message, wrapped_exception=resp.exception
            )
        return None
