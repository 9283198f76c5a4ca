"""Raw header-blob parsing into ``httpx.Headers``.

The engine reports response headers as the text it read off the wire: one
block per response (redirect hops and ``100 Continue`` interim responses
included), each block a status line followed by ``Name: value`` lines and
terminated by an empty line.  :func:`parse_header_blob` keeps only the final
block, which is the response the caller actually receives.

Parsing rules:

- every ``Name: value`` line becomes one entry, in wire order, with its
  original spelling available through ``headers.raw``;
- lookups are case-insensitive and a repeated header reads back as one value
  joined with ``", "`` (``headers.get_list`` returns the separate values);
- lines without a colon (including stray status lines) are ignored.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import httpx

__all__ = ["parse_header_blob", "parse_status_line"]


def _last_block(header_string: str) -> List[str]:
    lines = header_string.split("\r\n")
    start = 0
    for index, line in enumerate(lines):
        if line.startswith("HTTP/"):
            start = index
    block = lines[start:]
    if block and block[0].startswith("HTTP/"):
        block = block[1:]
    return block


def parse_header_blob(header_string: Optional[str]) -> httpx.Headers:
    """Parse engine-reported header text into ``httpx.Headers``.

    Args:
        header_string: Header text, possibly covering several responses.

    Returns:
        Headers of the last response in the blob (empty when there is none).
    """
    if not header_string:
        return httpx.Headers()
    pairs: List[Tuple[str, str]] = []
    for line in _last_block(header_string):
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip()
        if not key:
            continue
        pairs.append((key, value.strip()))
    return httpx.Headers(pairs)


def parse_status_line(header_string: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(http_version, reason_phrase)`` from the last status line in a blob."""
    if not header_string:
        return None, None
    status_line = None
    for line in header_string.split("\r\n"):
        if line.startswith("HTTP/"):
            status_line = line
    if status_line is None:
        return None, None
    parts = status_line.split(" ", 2)
    version = parts[0]
    reason = parts[2].strip() if len(parts) > 2 else ""
    return version, reason or None
