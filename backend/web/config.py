"""
Configuration and startup security checks for the verification service.

Why: Verification codes guard access to children's records. This module
provides a single guard that enforces minimal production safety constraints
without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

from backend.verification.config import WINDOW_ENV_VARS, get_notifier_backend


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - The console notifier (logs codes, always succeeds) must not be selected.
    - SMTP host and sender must be configured; no plaintext-only transport.
    - Code lifetime and every throttle window must be set explicitly; there is
      no agreed default outside development.
    """
    env = os.getenv("SCHOOLGATE_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Real delivery only
    if get_notifier_backend() != "smtp":
        raise SystemExit(
            "Refusing to start: NOTIFIER_BACKEND must be 'smtp' in production/staging (console notifier leaks codes)."
        )

    # 2) SMTP essentials
    if not (os.getenv("SMTP_HOST") or "").strip():
        raise SystemExit("Refusing to start: SMTP_HOST is unset in production.")
    sender = (os.getenv("SMTP_FROM_EMAIL") or "").strip()
    if not sender or sender.endswith("@localhost"):
        raise SystemExit("Refusing to start: SMTP_FROM_EMAIL must be a real sender address in production.")
    use_tls = (os.getenv("SMTP_USE_TLS", "true") or "").strip().lower() in ("1", "true", "yes")
    if not use_tls:
        raise SystemExit("Refusing to start: SMTP_USE_TLS=false is not allowed in production/staging.")

    # 3) Explicit lifetimes and windows
    missing = [name for name in WINDOW_ENV_VARS if not (os.getenv(name) or "").strip()]
    if missing:
        raise SystemExit(
            "Refusing to start: set explicit verification windows in production: " + ", ".join(missing)
        )
