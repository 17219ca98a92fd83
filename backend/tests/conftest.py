"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend and give every test a clean,
development-like environment with fresh in-memory stores.
"""
import sys
from pathlib import Path

import pytest

# Ensure `backend.*` is importable when running from any working directory
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _dev_env_and_clean_windows(monkeypatch: pytest.MonkeyPatch):
    """Pin a dev environment and clear verification toggles per test.

    Why:
        Importing `backend.web.main` runs the production guard, and route
        behaviour (developmentCode exposure, strict CSRF) depends on env.
    """
    monkeypatch.setenv("SCHOOLGATE_ENV", "dev")
    monkeypatch.setenv("NOTIFIER_BACKEND", "console")
    for name in (
        "VERIFY_CODE_TTL_SECONDS",
        "VERIFY_REQUEST_MIN_INTERVAL_MS",
        "VERIFY_CONFIRM_MIN_INTERVAL_MS",
        "VERIFY_SCAN_MIN_INTERVAL_MS",
        "STRICT_CSRF_VERIFICATION",
        "SCHOOLGATE_TRUST_PROXY",
        "SMTP_HOST",
        "SMTP_FROM_EMAIL",
        "SMTP_USE_TLS",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_verification_state():
    """Give each test a fresh service, pending-code store and session store."""
    from backend.verification.stores import PendingCodeStore
    from backend.web.routes import verification as routes

    routes.set_service(None)
    routes.set_pending_store(PendingCodeStore())
    main = sys.modules.get("backend.web.main")
    if main is not None:
        from backend.identity_access.stores import SessionStore

        main.SESSION_STORE = SessionStore()
    yield
    routes.set_service(None)
