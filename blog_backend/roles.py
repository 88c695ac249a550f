"""
Role enumeration and the single privilege ordering used by every policy.

ADMIN and SUPERADMIN share a rank: nothing in the article engine treats
them differently.
"""
from __future__ import annotations

import enum
from typing import Iterable


class Role(str, enum.Enum):
    USER = "USER"
    AUTHOR = "AUTHOR"
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def is_privileged(self) -> bool:
        return self.rank >= _RANKS[Role.ADMIN]

    @property
    def can_author(self) -> bool:
        return self.rank >= _RANKS[Role.AUTHOR]

    @classmethod
    def parse(cls, value: object) -> Role | None:
        """Return the matching role, or None for anything unrecognised."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return None
        return None


_RANKS: dict[Role, int] = {
    Role.USER: 0,
    Role.AUTHOR: 1,
    Role.ADMIN: 2,
    Role.SUPERADMIN: 2,
}

# Tie-break between equal ranks; only matters for what gets reported back.
_PRECEDENCE: tuple[Role, ...] = (Role.SUPERADMIN, Role.ADMIN, Role.AUTHOR, Role.USER)


def effective_role(roles: Iterable[object]) -> Role:
    """
    Collapse a set of held roles into the one the policy evaluates.

    Unrecognised names are ignored; holding nothing recognisable yields
    USER, the most restrictive role.
    """
    held = {r for r in (Role.parse(v) for v in roles) if r is not None}
    for role in _PRECEDENCE:
        if role in held:
            return role
    return Role.USER
