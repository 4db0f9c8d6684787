"""
services/group_service.py — Group and membership business logic.

Authorization rules:
  - Reading a group:         members only
  - Updating / deleting:     the owner only
  - Adding a member:         admins (the owner is always an admin)
  - Removing a member:       admins may remove others; anyone may remove
                             themselves; the owner can never leave
  Callers outside these rules get GROUP_NOT_FOUND (404), the same answer as
  for a group that does not exist.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode, not_found
from backend.app.models.base import isoformat
from backend.app.models.group import Group
from backend.app.models.membership import MemberRole, Membership
from backend.app.services.social_service import require_group_member
from backend.app.services.user_service import build_user_summary, get_user_or_404
from backend.app.utils.pagination import paginate


# ── Private helpers ────────────────────────────────────────────────────────

def _get_group_or_404(group_id: int, session: Session) -> Group:
    group = session.get(Group, group_id)
    if group is None:
        raise not_found(ErrorCode.GROUP_NOT_FOUND, "Group", group_id)
    return group


def _get_owned_group_or_404(group_id: int, owner_id: int, session: Session) -> Group:
    group = _get_group_or_404(group_id, session)
    if group.owner_id != owner_id:
        raise not_found(ErrorCode.GROUP_NOT_FOUND, "Group", group_id)
    return group


def _find_membership(group_id: int, user_id: int, session: Session) -> Membership | None:
    return session.execute(
        select(Membership).where(
            Membership.group_id == group_id,
            Membership.user_id == user_id,
        )
    ).scalar_one_or_none()


def _build_member_dict(membership: Membership) -> dict:
    return {
        **build_user_summary(membership.user),
        "role": membership.role.value,
        "joined_at": isoformat(membership.joined_at),
    }


def _build_group_dict(group: Group, include_members: bool = True) -> dict:
    result = {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "avatar": group.avatar,
        "owner_id": group.owner_id,
        "is_private": group.is_private,
        "member_count": len(group.memberships),
        "created_at": isoformat(group.created_at),
        "updated_at": isoformat(group.updated_at),
    }
    if include_members:
        result["members"] = [_build_member_dict(m) for m in group.memberships]
    return result


# ── Public service functions ───────────────────────────────────────────────

def create_group(owner_id: int, data: dict, session: Session) -> dict:
    """
    Creates a new group. The creator becomes the owner and its first member,
    with the admin role.
    """
    owner = get_user_or_404(owner_id, session)

    group = Group(
        name=data["name"].strip(),
        description=data.get("description"),
        avatar=data.get("avatar"),
        is_private=data.get("is_private", False),
        owner_id=owner_id,
    )
    session.add(group)
    session.flush()  # populate group.id before creating membership

    membership = Membership(group_id=group.id, user_id=owner_id, role=MemberRole.ADMIN)
    membership.user = owner
    group.memberships.append(membership)
    session.flush()

    return {"group": _build_group_dict(group)}


def list_groups(user_id: int, page: int, limit: int, session: Session) -> dict:
    """
    One page of the groups the user belongs to, newest first.

    Lightweight dicts (no member list); the full list comes from get_group().
    """
    stmt = (
        select(Group)
        .join(Membership, Group.id == Membership.group_id)
        .where(Membership.user_id == user_id)
        .order_by(Group.created_at.desc(), Group.id.desc())
    )
    groups, pagination = paginate(stmt, page, limit, session)
    return {
        "groups": [_build_group_dict(g, include_members=False) for g in groups],
        "pagination": pagination,
    }


def get_group(group_id: int, caller_id: int, session: Session) -> dict:
    group = _get_group_or_404(group_id, session)
    require_group_member(group_id, caller_id, session)
    return {"group": _build_group_dict(group)}


def update_group(group_id: int, caller_id: int, changes: dict, session: Session) -> dict:
    group = _get_owned_group_or_404(group_id, caller_id, session)
    for key in ("name", "description", "avatar", "is_private"):
        if key in changes:
            value = changes[key]
            setattr(group, key, value.strip() if key == "name" else value)
    session.flush()
    return {"group": _build_group_dict(group)}


def delete_group(group_id: int, caller_id: int, session: Session) -> None:
    group = _get_owned_group_or_404(group_id, caller_id, session)
    session.delete(group)
    session.flush()


def add_member(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
        role: MemberRole = MemberRole.MEMBER,
) -> dict:
    """
    Adds a user to a group. Admins only.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)  — group missing, or caller not an admin
      AppError(USER_NOT_FOUND, 404)   — target user does not exist
      AppError(ALREADY_MEMBER, 409)   — user is already in the group
    """
    _get_group_or_404(group_id, session)

    caller = require_group_member(group_id, caller_id, session)
    if caller.role is not MemberRole.ADMIN:
        raise not_found(ErrorCode.GROUP_NOT_FOUND, "Group", group_id)

    target_user = get_user_or_404(target_user_id, session)

    if _find_membership(group_id, target_user_id, session) is not None:
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            f"User {target_user_id} is already a member of group {group_id}.",
            409,
            field="user_id",
        )

    membership = Membership(user_id=target_user_id, group_id=group_id, role=role)
    membership.user = target_user
    session.add(membership)
    session.flush()

    return {"member": _build_member_dict(membership), "group_id": group_id}


def remove_member(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
) -> None:
    """
    Removes a user from a group.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)     — group missing, caller not a member,
                                           or a non-admin removing someone else
      AppError(OWNER_CANNOT_LEAVE, 409)  — target is the owner
      AppError(USER_NOT_FOUND, 404)      — target is not a member
    """
    group = _get_group_or_404(group_id, session)
    caller = require_group_member(group_id, caller_id, session)

    is_self = caller_id == target_user_id
    if not is_self and caller.role is not MemberRole.ADMIN:
        raise not_found(ErrorCode.GROUP_NOT_FOUND, "Group", group_id)

    if target_user_id == group.owner_id:
        raise AppError(
            ErrorCode.OWNER_CANNOT_LEAVE,
            "The group owner cannot leave or be removed. Delete the group instead.",
            409,
        )

    membership = caller if is_self else _find_membership(group_id, target_user_id, session)
    if membership is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} is not a member of group {group_id}.",
            404,
        )

    group.memberships.remove(membership)
    session.flush()
