"""
Verification use cases with injected clock, throttle and notifier.

Why:
    The service wires generator, codec, gate and throttle together. These
    tests pin the ordering guarantees: a throttled call never generates a code
    or decodes a token, and delivery failure still hands back the code.
"""
from __future__ import annotations

from backend.identity_access.domain import Identity, Role
from backend.identity_access.gate import Denied, Granted
from backend.verification.codes import CodeAccepted, CodeGenerator, ExpiredCode, MismatchedCode
from backend.verification.config import VerificationSettings
from backend.verification.notifier import DeliveryReceipt
from backend.verification.outcomes import CodeIssued, DeliveryFailed, Throttled
from backend.verification.service import VerificationService
from backend.verification.throttle import MinIntervalThrottle
from backend.verification.tokens import AccessToken, ChildStatus, MalformedToken

STAFF = frozenset({Role.TEACHER, Role.ADMIN})


class _Clock:
    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


class _RecordingNotifier:
    def __init__(self, receipt: DeliveryReceipt | None = None):
        self.receipt = receipt or DeliveryReceipt(success=True)
        self.sent: list[tuple[str, str]] = []

    def send(self, destination: str, code: str) -> DeliveryReceipt:
        self.sent.append((destination, code))
        return self.receipt


class _CountingGenerator(CodeGenerator):
    def __init__(self, clock):
        super().__init__(clock=clock)
        self.calls = 0

    def generate(self):
        self.calls += 1
        return super().generate()


def _service(clock: _Clock, notifier=None, *, ttl_ms: int = 1000):
    settings = VerificationSettings(
        code_ttl_ms=ttl_ms,
        request_code_interval_ms=60_000,
        confirm_code_interval_ms=100,
        scan_interval_ms=500,
    )
    generator = _CountingGenerator(clock)
    notifier = notifier or _RecordingNotifier()
    svc = VerificationService(
        generator=generator,
        notifier=notifier,
        throttle=MinIntervalThrottle(clock=clock),
        settings=settings,
    )
    return svc, generator, notifier


def test_request_code_delivers_generated_code():
    clock = _Clock()
    svc, _, notifier = _service(clock)
    result = svc.request_code(rate_key="request_code:g-1", destination="eltern@example.org")
    assert isinstance(result, CodeIssued)
    assert notifier.sent == [("eltern@example.org", result.code.value)]
    assert result.code.issued_at_ms == clock.now


def test_second_request_in_window_is_throttled_and_issues_nothing():
    clock = _Clock()
    svc, generator, notifier = _service(clock)
    svc.request_code(rate_key="request_code:g-1", destination="eltern@example.org")
    clock.now += 10_000
    result = svc.request_code(rate_key="request_code:g-1", destination="eltern@example.org")
    assert isinstance(result, Throttled)
    assert result.error == "throttled"
    assert result.retry_after_ms == 50_000
    assert generator.calls == 1
    assert len(notifier.sent) == 1


def test_delivery_failure_returns_code_to_caller():
    clock = _Clock()
    svc, _, _ = _service(clock, _RecordingNotifier(DeliveryReceipt(success=False, error="email_send_failed")))
    result = svc.request_code(rate_key="request_code:g-1", destination="eltern@example.org")
    assert isinstance(result, DeliveryFailed)
    assert result.error == "delivery_failed"
    assert result.detail == "email_send_failed"
    assert len(result.code.value) == 6


def test_confirm_code_freshness_and_mismatch():
    clock = _Clock()
    svc, _, _ = _service(clock, ttl_ms=1000)
    issued = svc.request_code(rate_key="r", destination="a@b.de").code
    t0 = issued.issued_at_ms

    assert isinstance(svc.confirm_code(rate_key="c1", submitted=issued.value, issued=issued, now_ms=t0 + 999), CodeAccepted)
    assert isinstance(svc.confirm_code(rate_key="c2", submitted=issued.value, issued=issued, now_ms=t0 + 1001), ExpiredCode)
    wrong = "000000" if issued.value != "000000" else "111111"
    assert isinstance(svc.confirm_code(rate_key="c3", submitted=wrong, issued=issued, now_ms=t0), MismatchedCode)


def test_confirm_code_reads_clock_when_now_omitted():
    clock = _Clock()
    svc, _, _ = _service(clock, ttl_ms=1000)
    issued = svc.request_code(rate_key="r", destination="a@b.de").code
    clock.now += 2000
    assert isinstance(svc.confirm_code(rate_key="c", submitted=issued.value, issued=issued), ExpiredCode)


def test_rapid_confirm_attempts_are_throttled():
    clock = _Clock()
    svc, _, _ = _service(clock)
    issued = svc.request_code(rate_key="r", destination="a@b.de").code
    svc.confirm_code(rate_key="confirm:g-1", submitted="000000", issued=issued)
    result = svc.confirm_code(rate_key="confirm:g-1", submitted=issued.value, issued=issued)
    assert isinstance(result, Throttled)


def test_scan_token_grants_staff():
    svc, _, _ = _service(_Clock())
    result = svc.scan_token(
        rate_key="scan:t-1",
        token="child-3-8-verified",
        identity=Identity("t-1", Role.TEACHER),
        allowed_roles=STAFF,
    )
    assert result == Granted(AccessToken(child_id=3, school_id=8, status=ChildStatus.VERIFIED))


def test_scan_token_denies_guardian_and_anonymous():
    svc, _, _ = _service(_Clock())
    forbidden = svc.scan_token(
        rate_key="scan:g-1", token="child-3-8-verified", identity=Identity("g-1", Role.GUARDIAN), allowed_roles=STAFF
    )
    assert forbidden == Denied("forbidden", current_role=Role.GUARDIAN)
    anonymous = svc.scan_token(rate_key="scan:anon", token="child-3-8-verified", identity=None, allowed_roles=STAFF)
    assert anonymous == Denied("unauthenticated")


def test_scan_token_reports_malformed_field():
    svc, _, _ = _service(_Clock())
    result = svc.scan_token(
        rate_key="scan:t-1", token="child-3-verified", identity=Identity("t-1", Role.TEACHER), allowed_roles=STAFF
    )
    assert isinstance(result, MalformedToken)
    assert result.field == "fields"


def test_second_scan_in_window_is_throttled_before_decoding():
    clock = _Clock()
    svc, _, _ = _service(clock)
    teacher = Identity("t-1", Role.TEACHER)
    svc.scan_token(rate_key="scan:t-1", token="child-3-8-verified", identity=teacher, allowed_roles=STAFF)
    clock.now += 100
    result = svc.scan_token(rate_key="scan:t-1", token="garbage", identity=teacher, allowed_roles=STAFF)
    assert isinstance(result, Throttled)
    clock.now += 400
    result = svc.scan_token(rate_key="scan:t-1", token="garbage", identity=teacher, allowed_roles=STAFF)
    assert isinstance(result, MalformedToken)


def test_issue_token_for_staff_only():
    svc, _, _ = _service(_Clock())
    granted = svc.issue_token(
        identity=Identity("a-1", Role.ADMIN), allowed_roles=STAFF, child_id=3, school_id=8, status=ChildStatus.PENDING
    )
    assert granted == Granted("child-3-8-pending")
    denied = svc.issue_token(
        identity=Identity("s-1", Role.STUDENT), allowed_roles=STAFF, child_id=3, school_id=8, status=ChildStatus.PENDING
    )
    assert isinstance(denied, Denied)
