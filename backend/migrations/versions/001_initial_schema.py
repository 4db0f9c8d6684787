"""Initial schema — all tables, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. users, refresh_tokens
  2. social graph: friendships, friend_requests
  3. navigation: routes, trips, trip_shares
  4. places: places, saved_places, reviews, review_votes
  5. groups, group_members, messages, notifications
  6. maps: offline_maps, safety_alerts
  7. Secondary indexes

Enum columns are VARCHAR(32) holding the enum value ('gas-station'); the
models map them with native_enum=False so SQLite test databases share the
same schema. Structured sub-documents are JSONB.

ON DELETE policies:
  Rows owned by a user (tokens, routes, trips, messages, memberships, ...)
    → CASCADE
  places.added_by, safety_alerts.reported_by, trips.route_id,
  messages.route_id
    → SET NULL   (the shared record outlives its author)
  reviews.place_id
    → RESTRICT   (a reviewed place cannot be deleted)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def _user_fk(column: str, table: str, ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(
        column,
        sa.Integer(),
        sa.ForeignKey("users.id", ondelete=ondelete, name=f"fk_{table}_{column}"),
        nullable=nullable,
    )


def upgrade() -> None:

    # ── Step 1: users ──────────────────────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("avatar", sa.String(500), nullable=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("preferences", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("reset_password_token_hash", sa.String(64), nullable=True),
        sa.Column("reset_password_expires_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("reset_password_token_hash", name="uq_users_reset_token"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_users_name_nonempty"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        _user_fk("user_id", "refresh_tokens"),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_refresh_tokens"),
        sa.UniqueConstraint("token_hash", name="uq_refresh_tokens_hash"),
    )

    # ── Step 2: social graph ───────────────────────────────────────────────
    # A friendship is stored once per direction; both rows are written and
    # removed in the same transaction.

    op.create_table(
        "friendships",
        _user_fk("user_id", "friendships"),
        _user_fk("friend_id", "friendships"),
        _created_at(),
        sa.PrimaryKeyConstraint("user_id", "friend_id", name="pk_friendships"),
        sa.CheckConstraint("user_id <> friend_id", name="ck_friendships_not_self"),
    )

    op.create_table(
        "friend_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        _user_fk("from_user_id", "friend_requests"),
        _user_fk("to_user_id", "friend_requests"),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        _created_at(),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_friend_requests"),
        sa.CheckConstraint("from_user_id <> to_user_id", name="ck_friend_requests_not_self"),
        sa.CheckConstraint("status IN ('pending', 'accepted')", name="ck_friend_requests_status"),
    )

    # ── Step 3: navigation ─────────────────────────────────────────────────

    op.create_table(
        "routes",
        sa.Column("id", sa.Integer(), nullable=False),
        _user_fk("user_id", "routes"),
        sa.Column("name", sa.String(150), nullable=True),
        sa.Column("origin", postgresql.JSONB(), nullable=False),
        sa.Column("destination", postgresql.JSONB(), nullable=False),
        sa.Column("waypoints", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("distance", sa.Float(), nullable=False),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("geometry", postgresql.JSONB(), nullable=True),
        sa.Column("route_type", sa.String(32), nullable=False, server_default="fastest"),
        sa.Column("transport_mode", sa.String(32), nullable=False, server_default="driving"),
        sa.Column("traffic_enabled", sa.Boolean(), nullable=False, server_default=sa.text("TRUE")),
        sa.Column("is_saved", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_routes"),
        sa.CheckConstraint("distance >= 0", name="ck_routes_distance_nonnegative"),
        sa.CheckConstraint("duration >= 0", name="ck_routes_duration_nonnegative"),
        sa.CheckConstraint(
            "route_type IN ('fastest', 'shortest', 'eco', 'avoid-highways')",
            name="ck_routes_route_type",
        ),
        sa.CheckConstraint(
            "transport_mode IN ('driving', 'walking', 'cycling', 'transit')",
            name="ck_routes_transport_mode",
        ),
    )

    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), nullable=False),
        _user_fk("user_id", "trips"),
        sa.Column(
            "route_id",
            sa.Integer(),
            sa.ForeignKey("routes.id", ondelete="SET NULL", name="fk_trips_route"),
            nullable=True,
        ),
        sa.Column("name", sa.String(150), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("distance", sa.Float(), nullable=True),
        sa.Column("average_speed", sa.Float(), nullable=True),
        sa.Column("max_speed", sa.Float(), nullable=True),
        sa.Column("fuel_used", sa.Float(), nullable=True),
        sa.Column("carbon_footprint", sa.Float(), nullable=True),
        sa.Column("path", postgresql.JSONB(), nullable=True),
        sa.Column("stats", postgresql.JSONB(), nullable=True),
        sa.Column("incidents", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("photos", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_trips"),
    )

    op.create_table(
        "trip_shares",
        sa.Column(
            "trip_id",
            sa.Integer(),
            sa.ForeignKey("trips.id", ondelete="CASCADE", name="fk_trip_shares_trip"),
            nullable=False,
        ),
        _user_fk("user_id", "trip_shares"),
        sa.PrimaryKeyConstraint("trip_id", "user_id", name="pk_trip_shares"),
    )

    # ── Step 4: places and reviews ─────────────────────────────────────────

    op.create_table(
        "places",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("address", postgresql.JSONB(), nullable=True),
        sa.Column("category", sa.String(32), nullable=False, server_default="other"),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("hours", postgresql.JSONB(), nullable=True),
        sa.Column("rating_average", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("rating_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("photos", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("amenities", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("price_level", sa.Integer(), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        _user_fk("added_by", "places", ondelete="SET NULL", nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_places"),
        sa.CheckConstraint("lng BETWEEN -180 AND 180", name="ck_places_lng_range"),
        sa.CheckConstraint("lat BETWEEN -90 AND 90", name="ck_places_lat_range"),
        sa.CheckConstraint(
            "rating_average >= 0 AND rating_average <= 5",
            name="ck_places_rating_range",
        ),
        sa.CheckConstraint(
            "price_level IS NULL OR (price_level >= 1 AND price_level <= 4)",
            name="ck_places_price_level_range",
        ),
    )

    op.create_table(
        "saved_places",
        _user_fk("user_id", "saved_places"),
        sa.Column(
            "place_id",
            sa.Integer(),
            sa.ForeignKey("places.id", ondelete="CASCADE", name="fk_saved_places_place"),
            nullable=False,
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("user_id", "place_id", name="pk_saved_places"),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "place_id",
            sa.Integer(),
            sa.ForeignKey("places.id", ondelete="RESTRICT", name="fk_reviews_place"),
            nullable=False,
        ),
        _user_fk("user_id", "reviews"),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(150), nullable=True),
        sa.Column("comment", sa.String(1000), nullable=False),
        sa.Column("photos", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("reported", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_reviews"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        sa.CheckConstraint("LENGTH(TRIM(comment)) > 0", name="ck_reviews_comment_nonempty"),
    )

    op.create_table(
        "review_votes",
        sa.Column(
            "review_id",
            sa.Integer(),
            sa.ForeignKey("reviews.id", ondelete="CASCADE", name="fk_review_votes_review"),
            nullable=False,
        ),
        _user_fk("user_id", "review_votes"),
        sa.PrimaryKeyConstraint("review_id", "user_id", name="pk_review_votes"),
    )

    # ── Step 5: groups, messages, notifications ────────────────────────────

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("avatar", sa.String(500), nullable=True),
        _user_fk("owner_id", "groups"),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
    )

    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), nullable=False),
        _user_fk("user_id", "group_members"),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_group_members_group"),
            nullable=False,
        ),
        sa.Column("role", sa.String(32), nullable=False, server_default="member"),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_group_members"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_group_members_user_group"),
        sa.CheckConstraint("role IN ('admin', 'member')", name="ck_group_members_role"),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Integer(), nullable=False),
        _user_fk("sender_id", "messages"),
        _user_fk("recipient_id", "messages", nullable=True),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_messages_group"),
            nullable=True,
        ),
        sa.Column("content", sa.String(2000), nullable=False),
        sa.Column("type", sa.String(32), nullable=False, server_default="text"),
        sa.Column("location_lng", sa.Float(), nullable=True),
        sa.Column("location_lat", sa.Float(), nullable=True),
        sa.Column("attachments", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column(
            "route_id",
            sa.Integer(),
            sa.ForeignKey("routes.id", ondelete="SET NULL", name="fk_messages_route"),
            nullable=True,
        ),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_messages"),
        sa.CheckConstraint(
            "(recipient_id IS NULL) <> (group_id IS NULL)",
            name="ck_messages_recipient_xor_group",
        ),
        sa.CheckConstraint("LENGTH(TRIM(content)) > 0", name="ck_messages_content_nonempty"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        _user_fk("user_id", "notifications"),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(150), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("data", postgresql.JSONB(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("action_url", sa.String(500), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
    )

    # ── Step 6: maps ───────────────────────────────────────────────────────

    op.create_table(
        "offline_maps",
        sa.Column("id", sa.Integer(), nullable=False),
        _user_fk("user_id", "offline_maps"),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("region", sa.String(150), nullable=False),
        sa.Column("ne_lat", sa.Float(), nullable=False),
        sa.Column("ne_lng", sa.Float(), nullable=False),
        sa.Column("sw_lat", sa.Float(), nullable=False),
        sa.Column("sw_lng", sa.Float(), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column(
            "downloaded_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.String(50), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="completed"),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_offline_maps"),
        sa.CheckConstraint("size >= 0", name="ck_offline_maps_size_nonnegative"),
        sa.CheckConstraint("ne_lat >= sw_lat", name="ck_offline_maps_bounds_order"),
        sa.CheckConstraint(
            "status IN ('downloading', 'completed', 'failed', 'outdated')",
            name="ck_offline_maps_status",
        ),
    )

    op.create_table(
        "safety_alerts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("severity", sa.String(32), nullable=False, server_default="medium"),
        _user_fk("reported_by", "safety_alerts", ondelete="SET NULL", nullable=True),
        sa.Column("confirmed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("expired", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_safety_alerts"),
        sa.CheckConstraint("lng BETWEEN -180 AND 180", name="ck_safety_alerts_lng_range"),
        sa.CheckConstraint("lat BETWEEN -90 AND 90", name="ck_safety_alerts_lat_range"),
        sa.CheckConstraint("confirmed >= 0", name="ck_safety_alerts_confirmed_nonnegative"),
        sa.CheckConstraint("severity IN ('low', 'medium', 'high')", name="ck_safety_alerts_severity"),
    )

    # ── Step 7: indexes ────────────────────────────────────────────────────

    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])
    op.create_index("ix_friendships_friend_id", "friendships", ["friend_id"])
    op.create_index("ix_friend_requests_from_user_id", "friend_requests", ["from_user_id"])
    op.create_index("idx_friend_requests_to_status", "friend_requests", ["to_user_id", "status"])

    # List endpoints: owner's rows newest first.
    op.create_index("idx_routes_user_created", "routes", ["user_id", "created_at"])
    op.create_index("idx_trips_user_start", "trips", ["user_id", "start_time"])
    op.create_index("ix_trips_route_id", "trips", ["route_id"])
    op.create_index("ix_trip_shares_user_id", "trip_shares", ["user_id"])

    # Proximity queries prefilter on a bounding box over (lng, lat).
    op.create_index("idx_places_location", "places", ["lng", "lat"])
    op.create_index("ix_places_category", "places", ["category"])
    op.create_index("ix_places_added_by", "places", ["added_by"])
    op.create_index("ix_saved_places_place_id", "saved_places", ["place_id"])
    op.create_index("idx_reviews_place_created", "reviews", ["place_id", "created_at"])
    op.create_index("ix_reviews_user_id", "reviews", ["user_id"])

    op.create_index("ix_groups_owner_id", "groups", ["owner_id"])
    op.create_index("ix_group_members_user_id", "group_members", ["user_id"])
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index(
        "idx_messages_sender_recipient",
        "messages",
        ["sender_id", "recipient_id", "created_at"],
    )
    op.create_index("ix_messages_recipient_id", "messages", ["recipient_id"])
    op.create_index("idx_messages_group_created", "messages", ["group_id", "created_at"])
    op.create_index(
        "idx_notifications_user_read_created",
        "notifications",
        ["user_id", "read", "created_at"],
    )

    op.create_index("ix_offline_maps_user_id", "offline_maps", ["user_id"])
    op.create_index("idx_safety_alerts_location", "safety_alerts", ["lng", "lat"])
    op.create_index("idx_safety_alerts_type_expired", "safety_alerts", ["type", "expired"])
    op.create_index("ix_safety_alerts_reported_by", "safety_alerts", ["reported_by"])


def downgrade() -> None:
    """Drops every table in reverse dependency order (indexes go with them)."""
    for table in (
        "safety_alerts",
        "offline_maps",
        "notifications",
        "messages",
        "group_members",
        "groups",
        "review_votes",
        "reviews",
        "saved_places",
        "places",
        "trip_shares",
        "trips",
        "routes",
        "friend_requests",
        "friendships",
        "refresh_tokens",
        "users",
    ):
        op.drop_table(table)
