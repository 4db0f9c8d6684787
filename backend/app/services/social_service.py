"""
services/social_service.py — Friends, friend requests and messages.

Invariants enforced here:
  - A friendship is stored as two rows, (A, B) and (B, A). Accepting a
    request writes the status change and both rows; removing a friend
    deletes both rows. The route commits once, so either everything is
    visible or nothing is.
  - Only the recipient of a pending request can accept it; anyone else gets
    FRIEND_REQUEST_NOT_FOUND (404).
  - Group messages require membership of the group; non-members get
    GROUP_NOT_FOUND (404).

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.orm import Session

from backend.app.errors import AppError, ErrorCode, not_found
from backend.app.models.base import isoformat, point_dict, utcnow
from backend.app.models.friendship import FriendRequest, FriendRequestStatus, Friendship
from backend.app.models.membership import Membership
from backend.app.models.message import Message, MessageType
from backend.app.models.notification import NotificationType
from backend.app.services import notification_service
from backend.app.services.user_service import (
    build_user_summary,
    get_user_or_404,
    list_friend_users,
)
from backend.app.utils.pagination import paginate


# ── Serialisers ────────────────────────────────────────────────────────────

def build_friend_request_dict(request: FriendRequest) -> dict:
    return {
        "id": request.id,
        "from": build_user_summary(request.sender),
        "to": build_user_summary(request.recipient),
        "status": request.status.value,
        "created_at": isoformat(request.created_at),
        "responded_at": isoformat(request.responded_at),
    }


def build_message_dict(message: Message) -> dict:
    return {
        "id": message.id,
        "sender": build_user_summary(message.sender),
        "recipient_id": message.recipient_id,
        "group_id": message.group_id,
        "content": message.content,
        "type": message.type.value,
        "location": point_dict(message.location_lng, message.location_lat),
        "attachments": message.attachments,
        "route_id": message.route_id,
        "read": message.read,
        "read_at": isoformat(message.read_at),
        "created_at": isoformat(message.created_at),
    }


# ── Friendship helpers (shared with route_service / trip_service) ─────────

def are_friends(user_id: int, other_id: int, session: Session) -> bool:
    return session.get(Friendship, (user_id, other_id)) is not None


def require_friends(owner_id: int, user_ids: list[int], session: Session) -> None:
    """
    Raises NOT_FRIENDS (400) naming the first id in `user_ids` that is not a
    friend of `owner_id`.
    """
    if not user_ids:
        return
    friend_ids = set(session.execute(
        select(Friendship.friend_id).where(
            Friendship.user_id == owner_id,
            Friendship.friend_id.in_(user_ids),
        )
    ).scalars().all())
    for user_id in user_ids:
        if user_id not in friend_ids:
            raise AppError(
                ErrorCode.NOT_FRIENDS,
                f"User {user_id} is not one of your friends.",
                400,
                field="user_ids",
            )


def require_group_member(group_id: int, user_id: int, session: Session) -> Membership:
    """Non-members cannot tell a private group from a missing one: GROUP_NOT_FOUND (404)."""
    membership = session.execute(
        select(Membership).where(
            Membership.group_id == group_id,
            Membership.user_id == user_id,
        )
    ).scalar_one_or_none()
    if membership is None:
        raise not_found(ErrorCode.GROUP_NOT_FOUND, "Group", group_id)
    return membership


# ── Friends ────────────────────────────────────────────────────────────────

def list_friends(user_id: int, session: Session) -> dict:
    return {"friends": [build_user_summary(u) for u in list_friend_users(user_id, session)]}


def send_friend_request(from_user_id: int, to_user_id: int, session: Session) -> dict:
    """
    Raises:
      AppError(SELF_FRIEND_REQUEST, 400)
      AppError(USER_NOT_FOUND, 404)         — target does not exist
      AppError(ALREADY_FRIENDS, 409)
      AppError(FRIEND_REQUEST_EXISTS, 409)  — pending in either direction
    """
    if from_user_id == to_user_id:
        raise AppError(
            ErrorCode.SELF_FRIEND_REQUEST,
            "You cannot send a friend request to yourself.",
            400,
            field="to",
        )

    sender = get_user_or_404(from_user_id, session)
    recipient = get_user_or_404(to_user_id, session)

    if are_friends(from_user_id, to_user_id, session):
        raise AppError(
            ErrorCode.ALREADY_FRIENDS,
            f"You are already friends with user {to_user_id}.",
            409,
            field="to",
        )

    pending = session.execute(
        select(FriendRequest).where(
            FriendRequest.status == FriendRequestStatus.PENDING,
            or_(
                and_(FriendRequest.from_user_id == from_user_id, FriendRequest.to_user_id == to_user_id),
                and_(FriendRequest.from_user_id == to_user_id, FriendRequest.to_user_id == from_user_id),
            ),
        )
    ).scalars().first()
    if pending is not None:
        raise AppError(
            ErrorCode.FRIEND_REQUEST_EXISTS,
            "A pending friend request between you already exists.",
            409,
            field="to",
        )

    request = FriendRequest(
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        status=FriendRequestStatus.PENDING,
    )
    request.sender = sender
    request.recipient = recipient
    session.add(request)
    session.flush()

    notification_service.notify(
        user_id=to_user_id,
        type=NotificationType.FRIEND_REQUEST,
        title="New friend request",
        message=f"{sender.name} sent you a friend request.",
        data={"request_id": request.id, "from_user_id": from_user_id},
        session=session,
    )
    session.flush()

    return {"request": build_friend_request_dict(request)}


def list_friend_requests(user_id: int, session: Session) -> dict:
    """Incoming pending requests, newest first."""
    stmt = (
        select(FriendRequest)
        .where(
            FriendRequest.to_user_id == user_id,
            FriendRequest.status == FriendRequestStatus.PENDING,
        )
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
    )
    requests = session.execute(stmt).scalars().all()
    return {"requests": [build_friend_request_dict(r) for r in requests]}


def accept_friend_request(request_id: int, user_id: int, session: Session) -> dict:
    """
    Accepts a pending request addressed to `user_id` and records the
    friendship in both directions.

    Raises:
      AppError(FRIEND_REQUEST_NOT_FOUND, 404) — unknown, not addressed to the
      caller, or no longer pending.
    """
    request = session.execute(
        select(FriendRequest).where(
            FriendRequest.id == request_id,
            FriendRequest.to_user_id == user_id,
            FriendRequest.status == FriendRequestStatus.PENDING,
        )
    ).scalar_one_or_none()
    if request is None:
        raise not_found(ErrorCode.FRIEND_REQUEST_NOT_FOUND, "Friend request", request_id)

    request.status = FriendRequestStatus.ACCEPTED
    request.responded_at = utcnow()

    for a, b in ((request.from_user_id, request.to_user_id), (request.to_user_id, request.from_user_id)):
        if session.get(Friendship, (a, b)) is None:
            session.add(Friendship(user_id=a, friend_id=b))

    notification_service.notify(
        user_id=request.from_user_id,
        type=NotificationType.FRIEND_REQUEST,
        title="Friend request accepted",
        message=f"{request.recipient.name} accepted your friend request.",
        data={"request_id": request.id, "friend_id": request.to_user_id},
        session=session,
    )
    session.flush()

    return {
        "request": build_friend_request_dict(request),
        "friend": build_user_summary(request.sender),
    }


def remove_friend(user_id: int, friend_id: int, session: Session) -> None:
    """
    Deletes both directions of the friendship.

    Raises:
      AppError(FRIEND_NOT_FOUND, 404) — the two users are not friends.
    """
    if not are_friends(user_id, friend_id, session):
        raise not_found(ErrorCode.FRIEND_NOT_FOUND, "Friend", friend_id)

    session.execute(
        delete(Friendship).where(
            or_(
                and_(Friendship.user_id == user_id, Friendship.friend_id == friend_id),
                and_(Friendship.user_id == friend_id, Friendship.friend_id == user_id),
            )
        )
    )
    session.flush()


# ── Messages ───────────────────────────────────────────────────────────────

def list_messages(
        user_id: int,
        page: int,
        limit: int,
        session: Session,
        with_user: int | None = None,
        group_id: int | None = None,
) -> dict:
    """
    Without filters: every direct message the caller sent or received.
    `with_user`: the conversation with one user.
    `group_id`: the group's thread (members only).
    Newest first.
    """
    stmt = select(Message).where(Message.deleted.is_(False))

    if group_id is not None:
        require_group_member(group_id, user_id, session)
        stmt = stmt.where(Message.group_id == group_id)
    elif with_user is not None:
        stmt = stmt.where(
            or_(
                and_(Message.sender_id == user_id, Message.recipient_id == with_user),
                and_(Message.sender_id == with_user, Message.recipient_id == user_id),
            )
        )
    else:
        stmt = stmt.where(
            or_(Message.sender_id == user_id, Message.recipient_id == user_id),
            Message.group_id.is_(None),
        )

    stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc())
    items, pagination = paginate(stmt, page, limit, session)
    return {
        "messages": [build_message_dict(m) for m in items],
        "pagination": pagination,
    }


def create_message(
        sender_id: int,
        content: str,
        session: Session,
        recipient_id: int | None = None,
        group_id: int | None = None,
        type: MessageType = MessageType.TEXT,
        location: dict | None = None,
        attachments: list | None = None,
        route_id: int | None = None,
) -> Message:
    """Adds a message row and, for direct messages, the recipient's notification."""
    sender = get_user_or_404(sender_id, session)
    lng, lat = location["coordinates"] if location else (None, None)

    message = Message(
        sender_id=sender_id,
        recipient_id=recipient_id,
        group_id=group_id,
        content=content,
        type=type,
        location_lng=lng,
        location_lat=lat,
        attachments=attachments or [],
        route_id=route_id,
    )
    message.sender = sender
    session.add(message)
    session.flush()

    if recipient_id is not None:
        notification_service.notify(
            user_id=recipient_id,
            type=NotificationType.MESSAGE,
            title=f"New message from {sender.name}",
            message=content[:140],
            data={"message_id": message.id, "sender_id": sender_id, "route_id": route_id},
            session=session,
        )
    return message


def send_message(sender_id: int, data: dict, session: Session) -> dict:
    """
    Raises:
      AppError(INVALID_FIELD, 400)   — messaging yourself
      AppError(USER_NOT_FOUND, 404)  — unknown recipient
      AppError(GROUP_NOT_FOUND, 404) — unknown group or caller not a member
    """
    recipient_id = data.get("recipient")
    group_id = data.get("group")

    if recipient_id is not None:
        if recipient_id == sender_id:
            raise AppError(
                ErrorCode.INVALID_FIELD,
                "You cannot send a message to yourself.",
                400,
                field="recipient",
            )
        get_user_or_404(recipient_id, session)
    else:
        require_group_member(group_id, sender_id, session)

    message = create_message(
        sender_id=sender_id,
        content=data["content"],
        recipient_id=recipient_id,
        group_id=group_id,
        type=data.get("type", MessageType.TEXT),
        location=data.get("location"),
        attachments=data.get("attachments"),
        session=session,
    )
    session.flush()
    return {"message": build_message_dict(message)}


def mark_message_read(message_id: int, user_id: int, session: Session) -> dict:
    """Only the direct recipient can mark a message read; others get 404."""
    message = session.execute(
        select(Message).where(
            Message.id == message_id,
            Message.recipient_id == user_id,
            Message.deleted.is_(False),
        )
    ).scalar_one_or_none()
    if message is None:
        raise not_found(ErrorCode.MESSAGE_NOT_FOUND, "Message", message_id)

    if not message.read:
        message.read = True
        message.read_at = utcnow()
        session.flush()

    return {"message": build_message_dict(message)}
