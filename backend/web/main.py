"schoolgate verification service"
from __future__ import annotations

import os
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.identity_access.stores import SessionStore
from backend.web import config as _cfg
from backend.web.routes.verification import verification_router


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out/opt-in via SCHOOLGATE_ENABLE_DOTENV (default true
      outside pytest).
    """
    import sys
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("SCHOOLGATE_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------

logger = logging.getLogger("schoolgate.identity_access")
SESSION_COOKIE_NAME = "schoolgate_session"

app = FastAPI(title="schoolgate", description="Verifizierung und Zugriffsschutz für Kinderakten", version="0.1.0")
app.include_router(verification_router)

# Sessions are issued by the external auth layer; tests seed this store.
SESSION_STORE = SessionStore()

# --- Auth Helpers & Middleware --------------------------------------------------

def _primary_role(roles: list[str]) -> str | None:
    """Pick the strongest known role; unknown role strings yield None."""
    priority = ["admin", "teacher", "guardian", "student"]
    lowered = [r.lower() for r in roles if isinstance(r, str)]
    for r in priority:
        if r in lowered:
            return r
    return None


def _is_public_path(path: str) -> bool:
    return path in ("/health", "/favicon.ico")


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)

    sid = request.cookies.get(SESSION_COOKIE_NAME)
    rec = None
    if sid:
        try:
            rec = SESSION_STORE.get(sid)
        except Exception as exc:
            logger.warning("Session store get failed: %s", exc.__class__.__name__)

    if not rec:
        headers = {"Cache-Control": "private, no-store", "Vary": "Origin"}
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=headers)

    # Expose minimal, read-only user context for downstream handlers.
    request.state.user = {"sub": rec.sub, "role": _primary_role(rec.roles), "roles": rec.roles}
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


@app.get("/health")
async def health():
    return {"service": "schoolgate", "status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "backend.web.main:app",
        host=os.getenv("SCHOOLGATE_HOST", "127.0.0.1"),
        port=int(os.getenv("SCHOOLGATE_PORT", "8100")),
        reload=not _cfg._is_prod_like(os.getenv("SCHOOLGATE_ENV", "dev")),
    )
