"""
Identity domain: closed role set, display labels and the read-only identity.

Why:
- Centralize allowed roles to avoid drift between the gate and the web layer.
- Map every role to exactly one display label; an unknown role string never
  falls through to a generic label, it simply has no role.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    GUARDIAN = "guardian"
    STUDENT = "student"


ROLE_LABELS: dict[Role, str] = {
    Role.ADMIN: "Administration",
    Role.TEACHER: "Lehrkraft",
    Role.GUARDIAN: "Erziehungsberechtigte Person",
    Role.STUDENT: "Schüler:in",
}

# Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset(r.value for r in Role)

if set(ROLE_LABELS) != set(Role):  # pragma: no cover - import-time guard
    raise RuntimeError("ROLE_LABELS must cover every Role")


def parse_role(raw: object) -> Role | None:
    """Return the Role for an exact, lowercase role string, else None."""
    if isinstance(raw, Role):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return Role(raw)
    except ValueError:
        return None


def role_label(role: Role | None) -> str:
    if role is None:
        return "Unbekannt"
    return ROLE_LABELS[role]


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as seen by the gate (owned by the auth layer)."""

    sub: str
    role: Role | None


__all__ = ["ALLOWED_ROLES", "ROLE_LABELS", "Identity", "Role", "parse_role", "role_label"]
