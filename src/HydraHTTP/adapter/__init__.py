"""Adapter layer: request translation, dispatch, and completion handling.

Modules:
- translator: environment → configured engine request
- coordinator: serial run versus parallel queueing
- completion: outcome classification and response write-back
- hydra: :class:`HydraAdapter`, the pipeline entry point
"""

from HydraHTTP.adapter.completion import CompletionHandler, classify
from HydraHTTP.adapter.coordinator import in_parallel, is_parallel, perform_request
from HydraHTTP.adapter.hydra import HydraAdapter
from HydraHTTP.adapter.translator import build_request

__all__ = [
    "CompletionHandler",
    "HydraAdapter",
    "build_request",
    "classify",
    "in_parallel",
    "is_parallel",
    "perform_request",
]
