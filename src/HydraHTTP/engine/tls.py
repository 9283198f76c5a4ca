"""SSL context construction from engine options."""

from __future__ import annotations

import logging
import ssl
from typing import Optional, Union

import certifi

from HydraHTTP.engine.options import VERIFYHOST_STRICT, EngineOptions

logger = logging.getLogger(__name__)

__all__ = ["build_ssl_context", "parse_tls_version"]

_VERSION_ALIASES = {
    "tlsv1": ssl.TLSVersion.TLSv1,
    "tlsv1_0": ssl.TLSVersion.TLSv1,
    "tlsv1_1": ssl.TLSVersion.TLSv1_1,
    "tlsv1_2": ssl.TLSVersion.TLSv1_2,
    "tlsv1_3": ssl.TLSVersion.TLSv1_3,
}


def parse_tls_version(value: Union[str, ssl.TLSVersion]) -> ssl.TLSVersion:
    """Resolve ``"TLSv1_2"``, ``"tlsv1.2"``, ``"1.2"`` or a ``TLSVersion`` member.

    Raises:
        ValueError: If the value names no known TLS version.
    """
    if isinstance(value, ssl.TLSVersion):
        return value
    key = str(value).strip().lower().replace(".", "_")
    if not key.startswith("tls"):
        key = f"tlsv{key}"
    try:
        return _VERSION_ALIASES[key]
    except KeyError:
        raise ValueError(f"Unsupported TLS version: {value!r}") from None


def build_ssl_context(options: EngineOptions) -> ssl.SSLContext:
    """Create the SSL context described by ``options``.

    Verification is on unless ``ssl_verifypeer`` is explicitly ``False``.  The
    Certifi bundle is the trust store unless ``cainfo`` or ``capath`` point
    elsewhere.  Client certificate loading errors propagate so the engine can
    report them as a local certificate problem.
    """
    verify_peer = options.ssl_verifypeer is not False
    if verify_peer:
        cafile: Optional[str] = options.cainfo
        capath: Optional[str] = options.capath
        if cafile is None and capath is None:
            cafile = certifi.where()
        ctx = ssl.create_default_context(cafile=cafile, capath=capath)
        verifyhost = VERIFYHOST_STRICT if options.ssl_verifyhost is None else options.ssl_verifyhost
        ctx.check_hostname = verifyhost >= VERIFYHOST_STRICT
        ctx.verify_mode = ssl.CERT_REQUIRED
    else:
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        logger.debug("TLS peer verification disabled for request")

    if options.sslversion:
        version = parse_tls_version(options.sslversion)
        ctx.minimum_version = version
        ctx.maximum_version = version

    if options.sslcert:
        ctx.load_cert_chain(
            certfile=options.sslcert,
            keyfile=options.sslkey,
            password=options.keypasswd,
        )
    return ctx
