"""
Scannable child token codec: `child-<childId>-<schoolId>-<status>`.

Why:
    The token printed on a child's card is read back by staff scanners. Keeping
    a single encode/decode pair prevents producer and consumer formats from
    drifting apart.

Grammar (ASCII, case-sensitive):
    token  = "child-" INT "-" INT "-" STATUS
    INT    = [1-9][0-9]*
    STATUS = "pending" | "verified" | "rejected"

Decoding is total: a partial parse is never accepted. Trailing or missing
fields are rejected and the failing field is reported in `MalformedToken`.
Tokens are not signed; anyone can mint one, so the scan result must still be
gated by role.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Literal, Union
import re

TOKEN_PREFIX = "child-"
_INT_PATTERN = re.compile(r"[1-9][0-9]*")


class ChildStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AccessToken:
    child_id: int
    school_id: int
    status: ChildStatus


MalformedField = Literal["token", "prefix", "fields", "child_id", "school_id", "status"]


@dataclass(frozen=True)
class MalformedToken:
    field: MalformedField
    detail: str
    ok: ClassVar[bool] = False
    error: ClassVar[str] = "malformed_token"


DecodeResult = Union[AccessToken, MalformedToken]


def _require_positive_id(name: str, value: object) -> int:
    # bool is an int subclass; True must not encode as "1".
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name} must be a positive integer")
    return value


def encode(child_id: int, school_id: int, status: ChildStatus | str) -> str:
    """Render the canonical token for a valid triple.

    Raises:
        ValueError: for non-positive ids or a status outside the closed set.
    """
    cid = _require_positive_id("child_id", child_id)
    sid = _require_positive_id("school_id", school_id)
    try:
        st = ChildStatus(status)
    except ValueError as exc:
        raise ValueError(f"unknown status: {status!r}") from exc
    return f"{TOKEN_PREFIX}{cid}-{sid}-{st.value}"


def _parse_id(raw: str) -> int | None:
    if not _INT_PATTERN.fullmatch(raw):
        return None
    return int(raw)


def decode(token: object) -> DecodeResult:
    """Parse a scanned token strictly; never raises on bad input."""
    if not isinstance(token, str) or not token.isascii():
        return MalformedToken("token", "not_ascii_text")
    if not token.startswith(TOKEN_PREFIX):
        return MalformedToken("prefix", "missing_child_prefix")
    parts = token[len(TOKEN_PREFIX):].split("-")
    if len(parts) != 3:
        return MalformedToken("fields", f"expected_3_fields_got_{len(parts)}")
    raw_child, raw_school, raw_status = parts
    child_id = _parse_id(raw_child)
    if child_id is None:
        return MalformedToken("child_id", "not_a_positive_integer")
    school_id = _parse_id(raw_school)
    if school_id is None:
        return MalformedToken("school_id", "not_a_positive_integer")
    try:
        status = ChildStatus(raw_status)
    except ValueError:
        return MalformedToken("status", "unknown_status")
    return AccessToken(child_id=child_id, school_id=school_id, status=status)


__all__ = [
    "AccessToken",
    "ChildStatus",
    "DecodeResult",
    "MalformedToken",
    "TOKEN_PREFIX",
    "decode",
    "encode",
]
