"""
services/user_service.py — Profile, preferences, stats and avatar.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; only flush here.
  - The storage client is passed in by the route, never looked up here.

Stats are aggregated from the user's trips on every read; nothing is cached
on the user row except `points`.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.errors import ErrorCode, not_found
from backend.app.models.base import isoformat
from backend.app.models.friendship import Friendship
from backend.app.models.trip import Trip
from backend.app.models.user import User, default_preferences

AVATAR_PREFIX = "avatars"


# ── Serialisers (shared with auth_service and social_service) ─────────────

def build_user_summary(user: User) -> dict:
    """The public face of a user: what friends and group members see."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "avatar": user.avatar,
    }


def build_user_dict(user: User) -> dict:
    """The full account record, for the user themself. Never includes secrets."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "avatar": user.avatar,
        "email_verified": user.email_verified,
        "preferences": user.preferences,
        "points": user.points,
        "last_login": isoformat(user.last_login),
        "created_at": isoformat(user.created_at),
        "updated_at": isoformat(user.updated_at),
    }


def get_user_or_404(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None or not user.is_active:
        raise not_found(ErrorCode.USER_NOT_FOUND, "User", user_id)
    return user


def list_friend_users(user_id: int, session: Session) -> list[User]:
    stmt = (
        select(User)
        .join(Friendship, Friendship.friend_id == User.id)
        .where(Friendship.user_id == user_id)
        .order_by(User.name.asc(), User.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


# ── Public service functions ───────────────────────────────────────────────

def get_profile(user_id: int, session: Session) -> dict:
    user = get_user_or_404(user_id, session)
    return {
        "user": {
            **build_user_dict(user),
            "friends": [build_user_summary(f) for f in list_friend_users(user_id, session)],
        }
    }


def update_profile(user_id: int, changes: dict, session: Session) -> dict:
    """
    Applies name / phone / avatar. Only keys present in `changes` are touched;
    an explicit None clears phone or avatar.
    """
    user = get_user_or_404(user_id, session)
    for key in ("name", "phone", "avatar"):
        if key in changes:
            value = changes[key]
            setattr(user, key, value.strip() if key == "name" else value)
    session.flush()
    return {"user": build_user_dict(user)}


def merge_preferences(current: dict | None, changes: dict) -> dict:
    """Overlays `changes` on the stored preferences; `notifications` merges one level down."""
    merged = default_preferences()
    for source in (current or {}, changes):
        for key, value in source.items():
            if key == "notifications" and isinstance(value, dict):
                merged["notifications"] = {**merged["notifications"], **value}
            else:
                merged[key] = value
    return merged


def update_preferences(user_id: int, changes: dict, session: Session) -> dict:
    user = get_user_or_404(user_id, session)
    # Reassign rather than mutate: plain JSON columns do not track in-place edits.
    user.preferences = merge_preferences(user.preferences, changes)
    session.flush()
    return {"preferences": user.preferences}


def get_stats(user_id: int, session: Session) -> dict:
    user = get_user_or_404(user_id, session)
    total_trips, total_distance, total_duration = session.execute(
        select(
            func.count(Trip.id),
            func.coalesce(func.sum(Trip.distance), 0.0),
            func.coalesce(func.sum(Trip.duration), 0.0),
        ).where(Trip.user_id == user_id)
    ).one()
    return {
        "stats": {
            "total_trips": total_trips,
            "total_distance": float(total_distance),
            "total_duration": float(total_duration),
            "points": user.points,
        }
    }


def upload_avatar(
        user_id: int,
        data: bytes,
        filename: str,
        content_type: str,
        storage,
        session: Session,
) -> dict:
    """
    Stores the image through `storage` and points the profile at it.

    The upload happens before the row changes; if the upload fails nothing is
    written. A failed commit afterwards leaves an orphan object, never a
    dangling avatar URL.
    """
    user = get_user_or_404(user_id, session)
    url = storage.upload_file(data, filename, content_type, prefix=f"{AVATAR_PREFIX}/{user_id}")
    user.avatar = url
    session.flush()
    return {"user": build_user_dict(user)}
