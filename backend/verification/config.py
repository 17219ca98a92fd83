"""
Configuration for code lifetime, throttle windows and the notifier backend.

Intent:
    One place reads the environment so the use cases receive plain values.
    There is no agreed code lifetime or throttle window for production, so the
    defaults below apply to development only; prod-like environments must set
    every variable in WINDOW_ENV_VARS explicitly (enforced by
    `backend.web.config.ensure_secure_config_on_startup`).

Env:
    VERIFY_CODE_TTL_SECONDS          : code lifetime (dev default 900 = 15 min)
    VERIFY_REQUEST_MIN_INTERVAL_MS   : gap between code requests per caller (dev 60000)
    VERIFY_CONFIRM_MIN_INTERVAL_MS   : gap between confirm attempts per caller (dev 1000)
    VERIFY_SCAN_MIN_INTERVAL_MS      : gap between token scans per caller (dev 1000)
    NOTIFIER_BACKEND                 : "console" (dev) or "smtp"
    SMTP_HOST / SMTP_PORT / SMTP_USER / SMTP_PASSWORD / SMTP_FROM_EMAIL /
    SMTP_FROM_NAME / SMTP_USE_TLS / SMTP_STARTTLS / SMTP_TIMEOUT_SECONDS

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import os

DEV_CODE_TTL_SECONDS = 15 * 60
DEV_REQUEST_MIN_INTERVAL_MS = 60_000
DEV_CONFIRM_MIN_INTERVAL_MS = 1_000
DEV_SCAN_MIN_INTERVAL_MS = 1_000

# Upper bound for the code lifetime; longer-lived codes defeat the point.
MAX_CODE_TTL_SECONDS = 24 * 60 * 60

WINDOW_ENV_VARS = (
    "VERIFY_CODE_TTL_SECONDS",
    "VERIFY_REQUEST_MIN_INTERVAL_MS",
    "VERIFY_CONFIRM_MIN_INTERVAL_MS",
    "VERIFY_SCAN_MIN_INTERVAL_MS",
)

NOTIFIER_BACKENDS = frozenset({"console", "smtp"})


def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes")


@dataclass(frozen=True)
class SmtpSettings:
    host: str = ""
    port: int = 587
    user: str = ""
    password: str = field(default="", repr=False)
    from_email: str = "no-reply@localhost"
    from_name: str = "Schulverwaltung"
    use_tls: bool = True
    starttls: bool = True
    timeout: float = 10.0


@dataclass(frozen=True)
class VerificationSettings:
    code_ttl_ms: int
    request_code_interval_ms: int
    confirm_code_interval_ms: int
    scan_interval_ms: int
    notifier_backend: str = "console"
    smtp: SmtpSettings = field(default_factory=SmtpSettings)


def get_notifier_backend() -> str:
    """Return NOTIFIER_BACKEND, normalized; unknown values fall back to console."""
    value = (os.getenv("NOTIFIER_BACKEND") or "console").strip().lower()
    return value if value in NOTIFIER_BACKENDS else "console"


def load_smtp_settings() -> SmtpSettings:
    return SmtpSettings(
        host=(os.getenv("SMTP_HOST") or "").strip(),
        port=_parse_int_env("SMTP_PORT", 587, contract_max=65535),
        user=(os.getenv("SMTP_USER") or "").strip(),
        password=os.getenv("SMTP_PASSWORD") or "",
        from_email=(os.getenv("SMTP_FROM_EMAIL") or "no-reply@localhost").strip(),
        from_name=(os.getenv("SMTP_FROM_NAME") or "Schulverwaltung").strip(),
        use_tls=_parse_bool_env("SMTP_USE_TLS", True),
        starttls=_parse_bool_env("SMTP_STARTTLS", True),
        timeout=float(_parse_int_env("SMTP_TIMEOUT_SECONDS", 10, contract_max=60)),
    )


def load_verification_settings() -> VerificationSettings:
    """Read all verification settings from the environment at call time."""
    ttl_seconds = _parse_int_env("VERIFY_CODE_TTL_SECONDS", DEV_CODE_TTL_SECONDS, contract_max=MAX_CODE_TTL_SECONDS)
    return VerificationSettings(
        code_ttl_ms=ttl_seconds * 1000,
        request_code_interval_ms=_parse_int_env("VERIFY_REQUEST_MIN_INTERVAL_MS", DEV_REQUEST_MIN_INTERVAL_MS),
        confirm_code_interval_ms=_parse_int_env("VERIFY_CONFIRM_MIN_INTERVAL_MS", DEV_CONFIRM_MIN_INTERVAL_MS),
        scan_interval_ms=_parse_int_env("VERIFY_SCAN_MIN_INTERVAL_MS", DEV_SCAN_MIN_INTERVAL_MS),
        notifier_backend=get_notifier_backend(),
        smtp=load_smtp_settings(),
    )


__all__ = [
    "MAX_CODE_TTL_SECONDS",
    "NOTIFIER_BACKENDS",
    "SmtpSettings",
    "VerificationSettings",
    "WINDOW_ENV_VARS",
    "get_notifier_backend",
    "load_smtp_settings",
    "load_verification_settings",
]
