"""
Six-digit verification codes delivered out-of-band (email).

Why:
    Guardians confirm their email address by echoing a short numeric code. The
    generator holds no state; it only consumes randomness and reads the clock,
    so concurrent requests need no coordination.

Validation rule:
    A submitted code is accepted only when it equals the issued value AND the
    code is still fresh (`now - issued_at <= ttl`). A wrong value is reported
    as a mismatch regardless of timing; a correct but stale value as expired.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, ClassVar, Union
import hmac
import secrets
import time

CODE_MIN = 100000
CODE_MAX = 999999
CODE_LENGTH = 6


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class VerificationCode:
    value: str
    issued_at_ms: int


@dataclass(frozen=True)
class CodeAccepted:
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class MismatchedCode:
    ok: ClassVar[bool] = False
    error: ClassVar[str] = "mismatched_code"


@dataclass(frozen=True)
class ExpiredCode:
    age_ms: int
    ok: ClassVar[bool] = False
    error: ClassVar[str] = "expired_code"


CodeCheck = Union[CodeAccepted, MismatchedCode, ExpiredCode]


class CodeGenerator:
    def __init__(self, clock: Callable[[], int] = _now_ms) -> None:
        self._clock = clock

    def generate(self) -> VerificationCode:
        value = CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1)
        return VerificationCode(value=str(value), issued_at_ms=int(self._clock()))

    def now_ms(self) -> int:
        return int(self._clock())

    @staticmethod
    def check(submitted: str, issued: VerificationCode, ttl_ms: int, now_ms: int) -> CodeCheck:
        """Apply the equality + freshness rule and say which part failed."""
        if not _same_value(submitted, issued.value):
            return MismatchedCode()
        age = now_ms - issued.issued_at_ms
        if age > ttl_ms:
            return ExpiredCode(age_ms=age)
        return CodeAccepted()

    @classmethod
    def is_valid(cls, submitted: str, issued: VerificationCode, ttl_ms: int, now_ms: int) -> bool:
        return cls.check(submitted, issued, ttl_ms, now_ms).ok


def _same_value(submitted: object, expected: str) -> bool:
    if not isinstance(submitted, str):
        return False
    # Constant-time compare; bytes so non-ASCII input cannot raise.
    return hmac.compare_digest(submitted.encode("utf-8"), expected.encode("utf-8"))


__all__ = [
    "CODE_LENGTH",
    "CodeAccepted",
    "CodeCheck",
    "CodeGenerator",
    "ExpiredCode",
    "MismatchedCode",
    "VerificationCode",
]
