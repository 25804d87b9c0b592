from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from app.quietmap.audit import record_event
from app.quietmap.errors import ConflictError, NotFoundError
from app.quietmap.models import ADMIN_ROLE_KEY, Role, User, UserRole

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


logger = logging.getLogger(__name__)


def count_active_admins(s: "Session") -> int:
    return s.execute(
        select(func.count(func.distinct(User.id)))
        .join(UserRole, UserRole.user_id == User.id)
        .join(Role, Role.id == UserRole.role_id)
        .where(Role.key == ADMIN_ROLE_KEY, User.is_active.is_(True))
    ).scalar_one()


def set_admin_role(s: "Session", user_id: int, *, make_admin: bool, actor: "User | None") -> User:
    """
    Grant or revoke the admin role. Demoting the last active admin raises
    ConflictError and changes nothing.
    """
    user = s.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.", context={"userId": user_id})

    # Row lock on the admin role serializes concurrent demotions (no-op on SQLite).
    admin_role = s.execute(select(Role).where(Role.key == ADMIN_ROLE_KEY).with_for_update()).scalar_one_or_none()
    if admin_role is None:
        raise NotFoundError("Admin role is not configured; run scripts/init_db.py.")

    before = sorted(r.key for r in user.roles)
    if make_admin:
        if admin_role not in user.roles:
            user.roles.append(admin_role)
    elif admin_role in user.roles:
        if user.is_active and count_active_admins(s) <= 1:
            raise ConflictError("You can't demote the last admin.")
        user.roles.remove(admin_role)
    after = sorted(r.key for r in user.roles)

    if before != after:
        record_event(
            s,
            actor=actor,
            action="user.role_change",
            entity_type="User",
            entity_id=str(user.id),
            metadata={"before": before, "after": after},
        )
        logger.info("User id=%s roles %s -> %s", user.id, before, after)
    return user
