# Overview: Caller visibility scope computed once per request.

from __future__ import annotations

from dataclasses import dataclass

from ..errors import AuthorizationError
from ..models.auth import ROLE_ADMIN


@dataclass(frozen=True)
class Scope:
    """
    Who is calling and which salesperson-owned rows they may see.

    Built by @require_auth and stored on flask.g; services receive it instead
    of branching on the role themselves.
    """
    user_id: int
    role: str

    @classmethod
    def for_user(cls, user) -> "Scope":
        return cls(user_id=user.id, role=user.role)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def visible_salesperson_ids(self) -> set[int] | None:
        """None means every salesperson."""
        if self.is_admin:
            return None
        return {self.user_id}

    def can_see(self, owner_id: int | None) -> bool:
        return self.is_admin or owner_id == self.user_id

    def apply(self, query, column):
        """Restrict `query` to rows whose `column` holds a visible salesperson id."""
        ids = self.visible_salesperson_ids
        if ids is None:
            return query
        return query.filter(column.in_(sorted(ids)))

    def require_admin(self) -> None:
        if not self.is_admin:
            raise AuthorizationError("Admin access required")

    def require_self_or_admin(self, salesperson_id: int) -> None:
        if not self.can_see(salesperson_id):
            raise AuthorizationError("Access denied")
