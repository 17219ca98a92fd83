"""
Result values for the verification use cases.

Every failure kind is a recoverable, request-scoped outcome and is returned,
not raised. Each carries a stable `error` code the web adapter maps to a
response; `ok` distinguishes success without isinstance checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from .codes import VerificationCode
from .notifier import DeliveryReceipt


@dataclass(frozen=True)
class CodeIssued:
    code: VerificationCode
    receipt: DeliveryReceipt
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class DeliveryFailed:
    # The code is still handed back; retaining it is the caller's decision.
    code: VerificationCode
    detail: str
    ok: ClassVar[bool] = False
    error: ClassVar[str] = "delivery_failed"


@dataclass(frozen=True)
class Throttled:
    retry_after_ms: int
    ok: ClassVar[bool] = False
    error: ClassVar[str] = "throttled"


__all__ = ["CodeIssued", "DeliveryFailed", "Throttled"]
