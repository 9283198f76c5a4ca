"""Engine option bag consumed by :class:`~HydraHTTP.engine.request.EngineRequest`.

Option names follow the engine's native vocabulary (``ssl_verifyhost``,
``timeout_ms``, ``proxyuserpwd`` ...).  They are explicit dataclass fields
rather than a free-form dictionary so that a misspelt option fails loudly.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from HydraHTTP.settings import EngineDefaults

__all__ = ["ProxyAuth", "EngineOptions", "VERIFYHOST_STRICT", "VERIFYHOST_NONE"]

#: Hostname must match the certificate.
VERIFYHOST_STRICT = 2
#: Hostname is not checked.
VERIFYHOST_NONE = 0


class ProxyAuth(str, enum.Enum):
    """Proxy authentication negotiation mode."""

    BASIC = "basic"
    ANY = "any"


@dataclass
class EngineOptions:
    """Low-level options for a single engine request; ``None`` means engine default."""

    ssl_verifypeer: Optional[bool] = None
    ssl_verifyhost: Optional[int] = None
    sslversion: Optional[str] = None
    sslcert: Optional[str] = None
    sslkey: Optional[str] = None
    keypasswd: Optional[str] = None
    cainfo: Optional[str] = None
    capath: Optional[str] = None
    proxy: Optional[str] = None
    proxyauth: Optional[ProxyAuth] = None
    proxyuserpwd: Optional[str] = None
    timeout_ms: Optional[int] = None
    connecttimeout_ms: Optional[int] = None
    interface: Optional[str] = None
    followlocation: bool = False
    maxredirs: int = 5
    http2: bool = False

    @classmethod
    def from_defaults(cls, defaults: Optional[EngineDefaults]) -> "EngineOptions":
        """Seed options from adapter-level defaults."""
        if defaults is None:
            return cls()
        verify = bool(defaults.verify)
        return cls(
            ssl_verifypeer=verify,
            ssl_verifyhost=VERIFYHOST_STRICT if verify else VERIFYHOST_NONE,
            timeout_ms=int(defaults.timeout_s * 1000) if defaults.timeout_s else None,
            connecttimeout_ms=(
                int(defaults.open_timeout_s * 1000) if defaults.open_timeout_s else None
            ),
            followlocation=defaults.follow_redirects,
            maxredirs=defaults.max_redirects,
            http2=defaults.http2,
        )

    def copy(self, **changes: Any) -> "EngineOptions":
        return replace(self, **changes)

    def as_dict(self) -> Dict[str, Any]:
        """Return the explicitly set options (for logging and tests)."""
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }
