"""
Same-origin check for state-changing requests.

Used by the auth, learning and progress routers so the CSRF rule lives in one
place. Proxy headers are honored only with LUMEN_TRUST_PROXY=true.
"""
from __future__ import annotations

import os
from urllib.parse import urlparse

from fastapi import Request


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    return scheme, p.hostname.lower(), int(p.port or _default_port(scheme))


def _server_origin(request: Request) -> tuple[str, str, int]:
    trust_proxy = (os.getenv("LUMEN_TRUST_PROXY", "false") or "").lower() == "true"
    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port or _default_port(scheme))
    if trust_proxy:
        xf_proto = (request.headers.get("x-forwarded-proto") or "").split(",")[0].strip().lower()
        xf_host = (request.headers.get("x-forwarded-host") or "").split(",")[0].strip().lower()
        if xf_proto:
            scheme = xf_proto
        if xf_host:
            if ":" in xf_host:
                host, port_str = xf_host.rsplit(":", 1)
                port = int(port_str) if port_str.isdigit() else _default_port(scheme)
            else:
                host, port = xf_host, _default_port(scheme)
    return scheme, host, port


def is_same_origin(request: Request) -> bool:
    """Verify same-origin using the Origin header, falling back to Referer.

    Requests carrying neither header are allowed so non-browser clients work.
    """
    candidate = request.headers.get("origin") or request.headers.get("referer")
    if not candidate:
        return True
    try:
        return _parse_origin(candidate) == _server_origin(request)
    except ValueError:
        return False
