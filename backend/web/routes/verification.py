"""
Verification API routes: email codes and scannable child tokens.

Why:
    Guardians confirm their email address with a short-lived code; staff scan
    child cards to look up verification status. The adapter stays thin: it
    resolves the caller, validates input shape and maps use-case outcomes to
    JSON responses. Decisions live in `backend.verification.service`.

Notes:
    - Every outcome is a value, so mapping is a flat isinstance ladder with no
      exception handling for expected failures.
    - The issued code is kept in `PENDING_CODES` even when delivery failed,
      so a delayed mail can still be confirmed.
    - Tests call `set_service` / `set_pending_store` to inject fakes.
"""

from __future__ import annotations

import logging
import math
import os
import re

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from backend.identity_access.domain import Identity, Role, parse_role, role_label
from backend.identity_access.gate import Denied
from backend.verification.codes import CodeGenerator, ExpiredCode, MismatchedCode
from backend.verification.config import load_verification_settings
from backend.verification.notifier import build_notifier, is_valid_email, mask_email
from backend.verification.outcomes import DeliveryFailed, Throttled
from backend.verification.service import VerificationService
from backend.verification.stores import PendingCodeStore
from backend.verification.throttle import MinIntervalThrottle
from backend.verification.tokens import ChildStatus, MalformedToken
from backend.web.config import _is_prod_like

from .security import csrf_guard

verification_router = APIRouter(tags=["Verification"])  # explicit paths below
logger = logging.getLogger("schoolgate.web.verification")

SCAN_ALLOWED_ROLES = frozenset({Role.TEACHER, Role.ADMIN})
TOKEN_ISSUE_ALLOWED_ROLES = frozenset({Role.ADMIN, Role.TEACHER})

_ID_PATTERN = re.compile(r"[1-9][0-9]{0,17}")

SERVICE: VerificationService | None = None
PENDING_CODES = PendingCodeStore()


def _build_default_service() -> VerificationService:
    settings = load_verification_settings()
    return VerificationService(
        generator=CodeGenerator(),
        notifier=build_notifier(settings),
        throttle=MinIntervalThrottle(),
        settings=settings,
    )


def get_service() -> VerificationService:
    global SERVICE
    if SERVICE is None:
        SERVICE = _build_default_service()
    return SERVICE


def set_service(service: VerificationService | None) -> None:
    """Swap the service (tests); None rebuilds from the environment on next use."""
    global SERVICE
    SERVICE = service


def set_pending_store(store: PendingCodeStore) -> None:
    global PENDING_CODES
    PENDING_CODES = store


# --- Request models -------------------------------------------------------------

# Accept raw strings (including empty) and validate in handlers to return 400.
class EmailCodeRequestPayload(BaseModel):
    email: str = Field(default="", max_length=254)


class EmailCodeConfirmPayload(BaseModel):
    code: str = Field(default="", max_length=32)


class TokenScanPayload(BaseModel):
    token: str = Field(default="", max_length=128)


# --- Helpers --------------------------------------------------------------------

def _json_private(payload: dict, *, status_code: int = 200, headers: dict | None = None) -> JSONResponse:
    merged = {"Cache-Control": "private, no-store"}
    if headers:
        merged.update(headers)
    return JSONResponse(payload, status_code=status_code, headers=merged)


def _current_identity(request: Request) -> Identity | None:
    user = getattr(request.state, "user", None)
    if not user or not user.get("sub"):
        return None
    return Identity(sub=str(user["sub"]), role=parse_role(user.get("role")))


def _rate_key(operation: str, request: Request, identity: Identity | None) -> str:
    if identity is not None:
        principal = identity.sub
    else:
        principal = request.client.host if request.client else "anonymous"
    return f"verification.{operation}:{principal}"


def _throttled_response(outcome: Throttled) -> JSONResponse:
    retry_seconds = max(1, math.ceil(outcome.retry_after_ms / 1000))
    return _json_private(
        {"error": outcome.error, "retryAfterMs": outcome.retry_after_ms},
        status_code=429,
        headers={"Retry-After": str(retry_seconds)},
    )


def _denied_response(outcome: Denied) -> JSONResponse:
    if outcome.reason == "unauthenticated":
        return _json_private({"error": "unauthenticated"}, status_code=401)
    role = outcome.current_role
    return _json_private(
        {
            "error": "forbidden",
            "currentRole": role.value if role else None,
            "roleLabel": role_label(role),
        },
        status_code=403,
    )


def _expose_development_code() -> bool:
    return not _is_prod_like(os.getenv("SCHOOLGATE_ENV", "dev"))


# --- Email code endpoints ------------------------------------------------------

@verification_router.post("/api/verification/email/request")
async def request_email_code(request: Request, payload: EmailCodeRequestPayload):
    """Send a fresh 6-digit code to the given address.

    Behavior:
        - 200 with masked address; `developmentCode` only outside prod-like envs
        - 400 when the address is not a plausible email
        - 429 when the caller asked again within the request window
        - 502 when the notifier reported a delivery failure

    Permissions:
        Any authenticated caller; the code is bound to the caller's subject.
    """
    identity = _current_identity(request)
    if identity is None:
        return _json_private({"error": "unauthenticated"}, status_code=401)
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    email = (payload.email or "").strip()
    if not is_valid_email(email):
        return _json_private({"error": "bad_request", "detail": "invalid_email"}, status_code=400)

    outcome = get_service().request_code(rate_key=_rate_key("request_code", request, identity), destination=email)
    if isinstance(outcome, Throttled):
        return _throttled_response(outcome)

    PENDING_CODES.put(identity.sub, destination=email, code=outcome.code)
    if isinstance(outcome, DeliveryFailed):
        return _json_private({"error": outcome.error, "detail": outcome.detail}, status_code=502)

    body = {"message": "Der Bestätigungscode wurde an Ihre E-Mail-Adresse gesendet.", "email": mask_email(email)}
    dev_code = outcome.receipt.development_code
    if dev_code and _expose_development_code():
        body["developmentCode"] = dev_code
        body["message"] = "Bestätigungscode erstellt (Entwicklungsmodus)."
    return _json_private(body, status_code=200)


@verification_router.post("/api/verification/email/confirm")
async def confirm_email_code(request: Request, payload: EmailCodeConfirmPayload):
    """Confirm the pending code for the caller.

    Behavior:
        - 200 `{verified: true}` when the code matches and is fresh
        - 400 `mismatched_code` (code kept; the caller may retry)
        - 400 `expired_code` (code dropped; the caller must request a new one)
        - 400 `no_pending_code` / `code_required`
        - 429 when attempts come faster than the confirm window
    """
    identity = _current_identity(request)
    if identity is None:
        return _json_private({"error": "unauthenticated"}, status_code=401)
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    pending = PENDING_CODES.get(identity.sub)
    if pending is None:
        return _json_private({"error": "no_pending_code"}, status_code=400)
    submitted = (payload.code or "").strip()
    if not submitted:
        return _json_private({"error": "bad_request", "detail": "code_required"}, status_code=400)

    outcome = get_service().confirm_code(
        rate_key=_rate_key("confirm_code", request, identity),
        submitted=submitted,
        issued=pending.code,
    )
    if isinstance(outcome, Throttled):
        return _throttled_response(outcome)
    if isinstance(outcome, MismatchedCode):
        return _json_private({"error": outcome.error}, status_code=400)
    if isinstance(outcome, ExpiredCode):
        PENDING_CODES.pop(identity.sub)
        return _json_private({"error": outcome.error}, status_code=400)
    PENDING_CODES.pop(identity.sub)
    logger.info("Email verified sub=%s", identity.sub)
    return _json_private({"verified": True, "email": mask_email(pending.destination)}, status_code=200)


# --- Token endpoints -----------------------------------------------------------

@verification_router.post("/api/verification/scan")
async def scan_token(request: Request, payload: TokenScanPayload):
    """Decode a scanned child token and return its status (staff only).

    Behavior:
        - 200 `{childId, schoolId, status}`
        - 400 `malformed_token` naming the failing `field`
        - 403 `forbidden` with the caller's current role and its label
        - 429 when scans come faster than the scan window

    Permissions:
        Caller must have role `teacher` or `admin`.
    """
    identity = _current_identity(request)
    csrf = csrf_guard(request)
    if csrf:
        return csrf
    outcome = get_service().scan_token(
        rate_key=_rate_key("scan", request, identity),
        token=payload.token,
        identity=identity,
        allowed_roles=SCAN_ALLOWED_ROLES,
    )
    if isinstance(outcome, Throttled):
        return _throttled_response(outcome)
    if isinstance(outcome, MalformedToken):
        return _json_private({"error": outcome.error, "field": outcome.field, "detail": outcome.detail}, status_code=400)
    if isinstance(outcome, Denied):
        return _denied_response(outcome)
    token = outcome.resource
    return _json_private(
        {"childId": token.child_id, "schoolId": token.school_id, "status": token.status.value},
        status_code=200,
    )


@verification_router.get("/api/verification/children/{child_id}/token")
async def child_token(request: Request, child_id: str, school_id: str = "", status: str = ChildStatus.PENDING.value):
    """Return the scannable token string for a child card.

    Behavior:
        - 200 `{token}`
        - 400 for ids that are not positive integers or an unknown status
        - 403 for callers outside the allowed roles

    Permissions:
        Caller must have role `admin` or `teacher`.
    """
    identity = _current_identity(request)
    if not _ID_PATTERN.fullmatch(child_id or ""):
        return _json_private({"error": "bad_request", "detail": "invalid_child_id"}, status_code=400)
    if not _ID_PATTERN.fullmatch(school_id or ""):
        return _json_private({"error": "bad_request", "detail": "invalid_school_id"}, status_code=400)
    try:
        child_status = ChildStatus(status)
    except ValueError:
        return _json_private({"error": "bad_request", "detail": "invalid_status"}, status_code=400)

    outcome = get_service().issue_token(
        identity=identity,
        allowed_roles=TOKEN_ISSUE_ALLOWED_ROLES,
        child_id=int(child_id),
        school_id=int(school_id),
        status=child_status,
    )
    if isinstance(outcome, Denied):
        return _denied_response(outcome)
    return _json_private({"token": outcome.resource}, status_code=200)
