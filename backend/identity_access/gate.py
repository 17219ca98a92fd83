"""
Role gate for verified resources.

Why:
    Hand-rolled role checks (`any(r in ("teacher", "admin") ...)`) drift apart.
    A single pure function keeps the decision identical across call sites while
    each site still supplies its own allowed role set.

Behavior:
    - No identity: Denied("unauthenticated").
    - Identity without a role in `allowed_roles`: Denied("forbidden") carrying
      the caller's current role for display.
    - Otherwise: Granted(resource).
    Membership is exact; no role implies another (admin is not a teacher
    unless listed).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, ClassVar, Generic, Literal, TypeVar, Union

from .domain import Identity, Role

T = TypeVar("T")


@dataclass(frozen=True)
class Granted(Generic[T]):
    resource: T
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Denied:
    reason: Literal["unauthenticated", "forbidden"]
    current_role: Role | None = None
    ok: ClassVar[bool] = False

    @property
    def error(self) -> str:
        return self.reason


GateDecision = Union[Granted[T], Denied]


def authorize(identity: Identity | None, allowed_roles: AbstractSet[Role], resource: T) -> GateDecision[T]:
    """Decide whether `identity` may view `resource`.

    Never mutates identity or resource.
    """
    if identity is None:
        return Denied("unauthenticated")
    if identity.role is None or identity.role not in allowed_roles:
        return Denied("forbidden", current_role=identity.role)
    return Granted(resource)


__all__ = ["Denied", "GateDecision", "Granted", "authorize"]
