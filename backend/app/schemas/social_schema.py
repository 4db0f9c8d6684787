"""
schemas/social_schema.py — Friends, messages and groups.

Validation responsibility:
  - This file: field types, lengths, recipient-XOR-group request shape.
  - services/social_service.py and services/group_service.py: existence,
    friendship and membership checks (require a DB lookup).
"""

from __future__ import annotations

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    validate,
    validates_schema,
)

from backend.app.models.membership import MemberRole
from backend.app.models.message import MessageType
from backend.app.schemas.common_schema import (
    LocationSchema,
    PaginationQuerySchema,
    validate_non_empty_after_trim,
)

MAX_MESSAGE_LENGTH = 2000


def _user_id(**kwargs) -> fields.Int:
    # strict: reject floats like 1.0 and numeric strings
    return fields.Int(
        strict=True,
        validate=validate.Range(min=1, error="user ids must be positive integers."),
        **kwargs,
    )


class FriendRequestSchema(Schema):
    """POST /social/friends/request"""

    to = _user_id(required=True)


class AttachmentSchema(Schema):
    url = fields.Url(required=True, validate=validate.Length(max=500))
    type = fields.Str(load_default=None, validate=validate.Length(max=50))
    filename = fields.Str(load_default=None, validate=validate.Length(max=255))


class SendMessageSchema(Schema):
    """
    POST /social/messages

    Exactly one of recipient / group. A `location` message must carry a
    location.
    """

    recipient = _user_id(load_default=None)
    group = fields.Int(strict=True, load_default=None, validate=validate.Range(min=1))
    content = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=MAX_MESSAGE_LENGTH,
                error=f"Message content must be between 1 and {MAX_MESSAGE_LENGTH} characters.",
            ),
            validate_non_empty_after_trim,
        ],
    )
    type = fields.Enum(MessageType, by_value=True, load_default=MessageType.TEXT)
    location = fields.Nested(LocationSchema, load_default=None)
    attachments = fields.List(
        fields.Nested(AttachmentSchema),
        load_default=list,
        validate=validate.Length(max=10),
    )

    @validates_schema
    def validate_target(self, data, **kwargs):
        has_recipient = data.get("recipient") is not None
        has_group = data.get("group") is not None
        if has_recipient == has_group:
            raise ValidationError(
                "Provide exactly one of 'recipient' or 'group'.",
                "recipient",
            )
        if data.get("type") is MessageType.LOCATION and data.get("location") is None:
            raise ValidationError("Location messages require a location.", "location")


class MessageListQuerySchema(PaginationQuerySchema):
    """GET /social/messages?with=<user_id>&group=<group_id>"""

    class Meta:
        unknown = EXCLUDE

    with_user = fields.Int(data_key="with", load_default=None, validate=validate.Range(min=1))
    group = fields.Int(load_default=None, validate=validate.Range(min=1))

    @validates_schema
    def validate_filters(self, data, **kwargs):
        if data.get("with_user") is not None and data.get("group") is not None:
            raise ValidationError("Filter by 'with' or 'group', not both.", "with")


class GroupSchema(Schema):
    """POST /social/groups, PUT /social/groups/:id (PUT loads via update_schema)"""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(min=1, max=100, error="Group name must be between 1 and 100 characters."),
            validate_non_empty_after_trim,
        ],
    )
    description = fields.Str(load_default=None, validate=validate.Length(max=500))
    avatar = fields.Url(load_default=None, validate=validate.Length(max=500))
    is_private = fields.Bool(load_default=False)


class AddMemberSchema(Schema):
    """
    POST /social/groups/:id/members

    Whether the user exists and whether the caller is an admin are checked in
    group_service.py.
    """

    user_id = _user_id(required=True)
    role = fields.Enum(MemberRole, by_value=True, load_default=MemberRole.MEMBER)
