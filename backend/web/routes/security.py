"""
Shared web security helpers (FastAPI-agnostic utilities for routes).

Contains the same-origin check and the CSRF guard for state-changing
verification requests. A single implementation avoids security drift.
"""
from __future__ import annotations

import os
from urllib.parse import urlparse

from fastapi import Request
from fastapi.responses import JSONResponse


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    return scheme, p.hostname.lower(), int(p.port or _default_port(scheme))


def _server_origin(request: Request) -> tuple[str, str, int]:
    """Return (scheme, host, port) the browser used to reach us.

    X-Forwarded-* headers are honoured only when SCHOOLGATE_TRUST_PROXY=true.
    """
    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    port = int(request.url.port or _default_port(scheme))
    if (os.getenv("SCHOOLGATE_TRUST_PROXY", "false") or "").lower() != "true":
        return scheme, host, port
    xf_proto = (request.headers.get("x-forwarded-proto") or "").split(",")[0].strip().lower()
    xf_host = (request.headers.get("x-forwarded-host") or "").split(",")[0].strip().lower()
    scheme = xf_proto or scheme
    if xf_host:
        host_only, _, port_str = xf_host.partition(":")
        host = host_only
        port = int(port_str) if port_str.isdigit() else _default_port(scheme)
    return scheme, host, port


def _is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    Behavior:
    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow to not break non-browser clients.
    """
    claimed = request.headers.get("origin") or request.headers.get("referer")
    if not claimed:
        return True
    try:
        return _parse_origin(claimed) == _server_origin(request)
    except ValueError:
        return False


def csrf_guard(request: Request) -> JSONResponse | None:
    """Enforce same-origin for browser write requests.

    Behavior:
        - In production or when STRICT_CSRF_VERIFICATION=true, require that
          Origin or Referer is present AND same-origin.
        - Otherwise fall back to `_is_same_origin`, which permits requests
          without these headers (server-to-server calls).
        Violations yield 403 with detail=csrf_violation.
    """
    prod_env = (os.getenv("SCHOOLGATE_ENV", "dev") or "").lower() == "prod"
    strict = prod_env or (os.getenv("STRICT_CSRF_VERIFICATION", "false") or "").lower() == "true"
    present = request.headers.get("origin") or request.headers.get("referer")
    if (strict and not present) or not _is_same_origin(request):
        return JSONResponse(
            {"error": "forbidden", "detail": "csrf_violation"},
            status_code=403,
            headers={"Cache-Control": "private, no-store"},
        )
    return None
