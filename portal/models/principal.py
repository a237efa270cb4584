from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Role = Literal["student", "instructor", "admin"]

PORTAL_ROLES: tuple[Role, ...] = ("admin", "instructor", "student")

# Roles that pass every access gate unconditionally.
GATE_BYPASS_ROLES = frozenset({"instructor", "admin"})


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated identity for the current request.

    Produced by the identity dependency from a validated bearer token and
    passed explicitly into every engine call.  The engine never
    authenticates; it only reads user_id and role.
    """

    user_id: str
    role: Role
    display_name: str = ""

    def bypasses_gate(self) -> bool:
        return self.role in GATE_BYPASS_ROLES

    def is_student(self) -> bool:
        return self.role == "student"


def resolve_role(roles: list[str] | tuple[str, ...]) -> Role | None:
    """Pick the strongest portal role out of a token's role claims.

    Returns None when the claims hold no portal role at all.
    """
    granted = {r.strip().lower() for r in roles}
    for role in PORTAL_ROLES:
        if role in granted:
            return role
    return None
