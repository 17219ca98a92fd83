from __future__ import annotations

from typing import AbstractSet, Optional, Union
import logging

from backend.identity_access.domain import Identity, Role
from backend.identity_access.gate import Denied, Granted, authorize

from .codes import CodeGenerator, CodeCheck
from .config import VerificationSettings
from .notifier import Notifier
from .outcomes import CodeIssued, DeliveryFailed, Throttled
from .throttle import Throttle
from .tokens import AccessToken, ChildStatus, MalformedToken, decode, encode

logger = logging.getLogger("schoolgate.verification")

RequestCodeResult = Union[CodeIssued, Throttled, DeliveryFailed]
ConfirmCodeResult = Union[CodeCheck, Throttled]
ScanTokenResult = Union[Granted[AccessToken], Denied, MalformedToken, Throttled]
IssueTokenResult = Union[Granted[str], Denied]


class VerificationService:
    """Use cases for both verification channels.

    Collaborators are injected so tests can pin the clock, the throttle map
    and the notifier. Nothing here blocks on I/O except the notifier call,
    whose latency is the caller's concern.
    """

    def __init__(
        self,
        *,
        generator: CodeGenerator,
        notifier: Notifier,
        throttle: Throttle,
        settings: VerificationSettings,
    ) -> None:
        self._generator = generator
        self._notifier = notifier
        self._throttle = throttle
        self._settings = settings

    @property
    def settings(self) -> VerificationSettings:
        return self._settings

    def _throttled(self, rate_key: str, interval_ms: int) -> Optional[Throttled]:
        if self._throttle.should_allow(rate_key, interval_ms):
            return None
        return Throttled(retry_after_ms=self._throttle.retry_after_ms(rate_key, interval_ms))

    def request_code(self, *, rate_key: str, destination: str) -> RequestCodeResult:
        """Issue a fresh code and hand it to the notifier.

        Behavior:
            - Throttled when the same key asked within the request window; no
              code is generated in that case.
            - DeliveryFailed when the notifier reports failure; the outcome
              still carries the code so the caller may keep it.
        """
        blocked = self._throttled(rate_key, self._settings.request_code_interval_ms)
        if blocked:
            return blocked
        code = self._generator.generate()
        receipt = self._notifier.send(destination, code.value)
        if not receipt.success:
            logger.warning("Code delivery failed key=%s error=%s", rate_key, receipt.error)
            return DeliveryFailed(code=code, detail=receipt.error or "delivery_failed")
        return CodeIssued(code=code, receipt=receipt)

    def confirm_code(self, *, rate_key: str, submitted: str, issued, now_ms: int | None = None) -> ConfirmCodeResult:
        """Check a submitted code against the issued one (equality + freshness)."""
        blocked = self._throttled(rate_key, self._settings.confirm_code_interval_ms)
        if blocked:
            return blocked
        now = self._generator.now_ms() if now_ms is None else now_ms
        return self._generator.check(submitted, issued, self._settings.code_ttl_ms, now)

    def scan_token(
        self,
        *,
        rate_key: str,
        token: str,
        identity: Identity | None,
        allowed_roles: AbstractSet[Role],
    ) -> ScanTokenResult:
        """Decode a scanned token and pass the result through the role gate.

        Order: throttle, decode, gate. A throttled attempt never reaches the
        decoder.
        """
        blocked = self._throttled(rate_key, self._settings.scan_interval_ms)
        if blocked:
            return blocked
        decoded = decode(token)
        if isinstance(decoded, MalformedToken):
            return decoded
        return authorize(identity, allowed_roles, decoded)

    def issue_token(
        self,
        *,
        identity: Identity | None,
        allowed_roles: AbstractSet[Role],
        child_id: int,
        school_id: int,
        status: ChildStatus,
    ) -> IssueTokenResult:
        """Produce the scannable string for a child card (staff only).

        Raises:
            ValueError: for ids or status the codec cannot encode.
        """
        decision = authorize(identity, allowed_roles, None)
        if isinstance(decision, Denied):
            return decision
        return Granted(encode(child_id, school_id, status))


__all__ = [
    "ConfirmCodeResult",
    "IssueTokenResult",
    "RequestCodeResult",
    "ScanTokenResult",
    "VerificationService",
]
