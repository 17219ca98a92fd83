"""
In-memory store for codes awaiting confirmation.

Why: The generator does not persist what it issues. The web adapter needs the
issued code between the request and the confirm call, so it keeps it here,
keyed by the caller's subject. For production, replace with a Redis/DB-backed
store that honours the same three methods.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from .codes import VerificationCode


@dataclass
class PendingCode:
    destination: str
    code: VerificationCode


class PendingCodeStore:
    def __init__(self):
        self._data: Dict[str, PendingCode] = {}

    def put(self, sub: str, *, destination: str, code: VerificationCode) -> PendingCode:
        # A new request replaces any older code for the same subject.
        rec = PendingCode(destination=destination, code=code)
        self._data[sub] = rec
        return rec

    def get(self, sub: str) -> Optional[PendingCode]:
        return self._data.get(sub)

    def pop(self, sub: str) -> Optional[PendingCode]:
        return self._data.pop(sub, None)
