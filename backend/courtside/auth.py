"""
Caller identity.

Authentication happens upstream; the identity provider forwards the caller
as ``X-User-Id`` / ``X-User-Role`` headers. The engine only authorizes.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Header

from courtside.errors import PermissionDenied
from courtside.models.competition import Competition

ADMIN_ROLES = ("admin", "owner", "manager")


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str = "member"

    @property
    def has_admin_role(self) -> bool:
        return self.role in ADMIN_ROLES


def get_caller(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Caller:
    if not x_user_id or not x_user_id.strip():
        raise PermissionDenied("Missing caller identity")
    return Caller(user_id=x_user_id.strip(), role=(x_user_role or "member").strip().lower())


def can_manage(caller: Caller, competition: Competition) -> bool:
    return caller.has_admin_role or (competition.created_by is not None and competition.created_by == caller.user_id)


def require_manager(caller: Caller, competition: Competition) -> None:
    if not can_manage(caller, competition):
        raise PermissionDenied(f"User {caller.user_id} cannot manage competition {competition.id}")


def require_player_or_manager(caller: Caller, competition: Competition, player_ids: Iterable[str]) -> None:
    """Result submission: either side's players, the organiser, or an admin."""
    if can_manage(caller, competition):
        return
    if caller.user_id in set(player_ids):
        return
    raise PermissionDenied(f"User {caller.user_id} is not allowed to report this result")
