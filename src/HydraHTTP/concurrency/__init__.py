# === NAVMAP v1 ===
# {
#   "module": "HydraHTTP.concurrency.__init__",
#   "purpose": "Worker pool helpers used by the parallel execution manager.",
#   "sections": []
# }
# === /NAVMAP ===

"""
Worker pool helpers used by the parallel execution manager.

Exposes :func:`create_executor`, which returns a thread pool sized for
IO-bound HTTP work, or no pool at all when a single worker is requested so
callers can run inline.
"""

from .executors import create_executor

__all__ = ["create_executor"]
