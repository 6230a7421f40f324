"""initial samaj schema

Revision ID: a0c1d2e3f4b5
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision: str = "a0c1d2e3f4b5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _person_columns() -> list[sa.Column]:
    return [
        sa.Column("sub_family_number", sa.String(30), nullable=False),
        sa.Column("relationship_to_user", sa.String(32), nullable=False),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("middle_name", sa.String(50), nullable=True),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("blood_group", sa.String(8), nullable=False, server_default="Unknown"),
        sa.Column("gender", sa.String(16), nullable=True),
        sa.Column("mobile_number", sa.String(16), nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("address", sa.JSON(), nullable=True),
        sa.Column("marital_status", sa.String(16), nullable=True),
        sa.Column("occupation_type", sa.String(32), nullable=True),
        sa.Column("occupation_title", sa.String(128), nullable=True),
        sa.Column("company_or_business_name", sa.String(255), nullable=True),
        sa.Column("qualification", sa.String(100), nullable=True),
        sa.Column("profile_image", sa.String(512), nullable=True),
        *_timestamps(),
    ]


def _user_fk(name: str, *, nullable: bool = True, ondelete: str = "SET NULL") -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    existing_tables = set(inspect(bind).get_table_names())

    def create(name: str, *cols, indexes: Sequence[tuple[str, list[str]]] = ()) -> None:
        if name in existing_tables:
            return
        op.create_table(name, *cols)
        for ix_name, ix_cols in indexes:
            op.create_index(ix_name, name, ix_cols)

    # ---------- Access control ----------
    create(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(128), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    create(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("is_system_role", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        *_timestamps(),
        indexes=[("idx_roles_active", ["is_active"])],
    )
    create(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
    )

    # ---------- Users ----------
    create(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("middle_name", sa.String(50), nullable=True),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("mobile_number", sa.String(16), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("address_line1", sa.String(255), nullable=True),
        sa.Column("address_line2", sa.String(255), nullable=True),
        sa.Column("city", sa.String(128), nullable=True),
        sa.Column("state", sa.String(128), nullable=True),
        sa.Column("country", sa.String(128), nullable=False, server_default="India"),
        sa.Column("pincode", sa.String(6), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("blood_group", sa.String(8), nullable=False, server_default="Unknown"),
        sa.Column("gender", sa.String(16), nullable=True),
        sa.Column("emergency_contact", sa.JSON(), nullable=True),
        sa.Column("occupation_type", sa.String(32), nullable=True),
        sa.Column("occupation_title", sa.String(128), nullable=True),
        sa.Column("company_or_business_name", sa.String(255), nullable=True),
        sa.Column("position", sa.String(128), nullable=True),
        sa.Column("qualification", sa.String(100), nullable=True),
        sa.Column("marital_status", sa.String(16), nullable=True),
        sa.Column("profile_image", sa.String(512), nullable=True),
        sa.Column("samaj", sa.String(128), nullable=True),
        sa.Column("profile_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sub_family_number", sa.String(30), nullable=True),
        sa.Column("is_primary_account", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("family_members_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("linked_family_member_id", sa.Integer(), nullable=True),
        sa.Column("transferred_from_id", sa.Integer(), nullable=True),
        sa.Column("transferred_at", sa.DateTime(), nullable=True),
        sa.Column("transferred_by_id", sa.Integer(), nullable=True),
        sa.Column("transfer_reason", sa.String(500), nullable=True),
        sa.Column("last_transfer_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("role", sa.String(16), nullable=False, server_default="user"),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("committee_position", sa.String(64), nullable=True),
        sa.Column("committee_display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("committee_bio", sa.String(500), nullable=True),
        sa.Column("password_reset_token", sa.String(64), nullable=True),
        sa.Column("password_reset_expires", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_by_id", sa.Integer(), nullable=True),
        sa.Column("delete_type", sa.String(8), nullable=True),
        sa.Column("deletion_reason", sa.String(500), nullable=True),
        *_timestamps(),
        indexes=[
            ("idx_users_email", ["email"]),
            ("idx_users_mobile", ["mobile_number"]),
            ("idx_users_status", ["status"]),
            ("idx_users_sub_family", ["sub_family_number"]),
        ],
    )
    create(
        "primary_account_transfers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "previous_transfer_id",
            sa.Integer(),
            sa.ForeignKey("primary_account_transfers.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("sub_family_number", sa.String(30), nullable=True),
        _user_fk("from_user_id"),
        sa.Column("from_user_name", sa.String(128), nullable=False),
        _user_fk("to_user_id"),
        sa.Column("to_user_name", sa.String(128), nullable=False),
        _user_fk("transferred_by_id"),
        sa.Column("transferred_at", sa.DateTime(), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column("family_members_migrated", sa.Integer(), nullable=False, server_default="0"),
        indexes=[("idx_transfers_sub_family", ["sub_family_number"])],
    )
    create(
        "activity_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("request_id", sa.String(64), nullable=True),
        _user_fk("performed_by_id"),
        sa.Column("action_type", sa.String(64), nullable=False),
        _user_fk("target_user_id"),
        sa.Column("target_family_member_id", sa.Integer(), nullable=True),
        sa.Column("details_json", sa.Text(), nullable=True),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        indexes=[
            ("idx_activity_logs_created", ["created_at"]),
            ("idx_activity_logs_action", ["action_type"]),
        ],
    )
    create(
        "enum_lists",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("enum_type", sa.String(64), nullable=False, unique=True),
        sa.Column("values", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("description", sa.String(500), nullable=True),
        *_timestamps(),
    )

    # ---------- Families ----------
    create(
        "family_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk("user_id", nullable=False, ondelete="CASCADE"),
        sa.Column("samaj", sa.String(128), nullable=True),
        sa.Column("needs_approval", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("approval_status", sa.String(16), nullable=False, server_default="approved"),
        _user_fk("approved_by_id"),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("has_user_account", sa.Boolean(), nullable=False, server_default=sa.false()),
        _user_fk("linked_user_id"),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_by_id", sa.Integer(), nullable=True),
        sa.Column("delete_type", sa.String(8), nullable=True),
        sa.Column("deletion_reason", sa.String(500), nullable=True),
        *_person_columns(),
        indexes=[
            ("idx_family_members_owner_status", ["user_id", "approval_status"]),
            ("idx_family_members_sub_family", ["sub_family_number"]),
        ],
    )
    create(
        "family_member_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk("requested_by_id", nullable=False, ondelete="CASCADE"),
        sa.Column("create_login_account", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("use_mobile_as_password", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("request_reason", sa.String(500), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        _user_fk("reviewed_by_id"),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.String(500), nullable=True),
        sa.Column(
            "family_member_id",
            sa.Integer(),
            sa.ForeignKey("family_members.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_person_columns(),
        indexes=[("idx_fm_requests_status", ["status"])],
    )

    # ---------- Events ----------
    create(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_name", sa.String(200), nullable=False),
        sa.Column("event_type", sa.String(32), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("location", sa.JSON(), nullable=True),
        sa.Column("youtube_links", sa.JSON(), nullable=True),
        sa.Column("visibility", sa.String(16), nullable=False, server_default="public"),
        sa.Column("visible_to_samaj", sa.JSON(), nullable=True),
        sa.Column("visible_to_roles", sa.JSON(), nullable=True),
        sa.Column("visible_to_families", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="upcoming"),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_important", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("allow_rsvp", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("allow_comments", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("funeral_details", sa.JSON(), nullable=True),
        _user_fk("related_person_id"),
        sa.Column("related_person_name", sa.String(128), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recurrence_pattern", sa.String(32), nullable=True),
        _user_fk("created_by_id"),
        _user_fk("approved_by_id"),
        sa.Column("approval_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("rsvp_attending", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rsvp_not_attending", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rsvp_maybe", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comment_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("poll_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        indexes=[
            ("idx_events_start", ["start_date"]),
            ("idx_events_type_status", ["event_type", "status"]),
        ],
    )
    create(
        "event_media",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("media_type", sa.String(8), nullable=False),
        sa.Column("storage_key", sa.String(512), nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("content_type", sa.String(128), nullable=True),
        sa.Column("size_bytes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sha256", sa.String(64), nullable=True),
        sa.Column("caption", sa.String(255), nullable=True),
        _user_fk("uploaded_by_id"),
        sa.Column("uploaded_at", sa.DateTime(), nullable=False),
    )
    create(
        "event_rsvps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", nullable=False, ondelete="CASCADE"),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("responded_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_rsvps_event_user"),
    )

    # ---------- Polls ----------
    create(
        "polls",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("question", sa.String(200), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="SET NULL"), nullable=True),
        sa.Column("poll_type", sa.String(32), nullable=False, server_default="single_choice"),
        sa.Column("allow_anonymous", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("show_live_results", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("allow_vote_changes", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("max_votes_per_user", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("restrict_to", sa.String(16), nullable=False, server_default="all"),
        sa.Column("restricted_to_samaj", sa.JSON(), nullable=True),
        sa.Column("restricted_to_roles", sa.JSON(), nullable=True),
        sa.Column("restricted_to_families", sa.JSON(), nullable=True),
        _user_fk("created_by_id"),
        sa.Column("total_votes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        indexes=[("idx_polls_event_status", ["event_id", "status"])],
    )
    create(
        "poll_options",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("poll_id", sa.Integer(), sa.ForeignKey("polls.id", ondelete="CASCADE"), nullable=False),
        sa.Column("option_text", sa.String(200), nullable=False),
        sa.Column("vote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
    )
    create(
        "poll_votes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("poll_id", sa.Integer(), sa.ForeignKey("polls.id", ondelete="CASCADE"), nullable=False),
        sa.Column("option_id", sa.Integer(), sa.ForeignKey("poll_options.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id"),
        sa.Column("voted_at", sa.DateTime(), nullable=False),
        indexes=[("idx_poll_votes_poll_user", ["poll_id", "user_id"])],
    )

    # ---------- Comments ----------
    create(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("comment_text", sa.String(1000), nullable=False),
        sa.Column("comment_type", sa.String(32), nullable=False, server_default="general"),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id"),
        sa.Column("author_label", sa.String(64), nullable=True),
        sa.Column("parent_comment_id", sa.Integer(), sa.ForeignKey("comments.id", ondelete="CASCADE"), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="published"),
        sa.Column("flagged", sa.Boolean(), nullable=False, server_default=sa.false()),
        _user_fk("approved_by_id"),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reply_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("attached_image", sa.String(512), nullable=True),
        sa.Column("edited_at", sa.DateTime(), nullable=True),
        sa.Column("edit_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        indexes=[
            ("idx_comments_event_parent", ["event_id", "parent_comment_id", "status"]),
            ("idx_comments_user", ["user_id"]),
        ],
    )
    create(
        "comment_likes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("comment_id", sa.Integer(), sa.ForeignKey("comments.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", nullable=False, ondelete="CASCADE"),
        sa.Column("liked_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("comment_id", "user_id", name="uq_comment_likes_comment_user"),
    )
    create(
        "comment_flags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("comment_id", sa.Integer(), sa.ForeignKey("comments.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id", nullable=False, ondelete="CASCADE"),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column("flagged_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("comment_id", "user_id", name="uq_comment_flags_comment_user"),
    )

    # ---------- Relationships ----------
    create(
        "user_relationships",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk("user1_id", nullable=False, ondelete="CASCADE"),
        _user_fk("user2_id", nullable=False, ondelete="CASCADE"),
        sa.Column("relationship_type", sa.String(32), nullable=False),
        sa.Column("relationship_from", sa.String(32), nullable=False, server_default="user1_to_user2"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        _user_fk("requested_by_id"),
        _user_fk("approved_by_id"),
        sa.Column("note", sa.String(500), nullable=True),
        *_timestamps(),
        indexes=[
            ("idx_user_relationships_pair", ["user1_id", "user2_id"]),
            ("idx_user_relationships_status", ["status"]),
        ],
    )


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        "user_relationships",
        "comment_flags",
        "comment_likes",
        "comments",
        "poll_votes",
        "poll_options",
        "polls",
        "event_rsvps",
        "event_media",
        "events",
        "family_member_requests",
        "family_members",
        "enum_lists",
        "activity_logs",
        "primary_account_transfers",
        "users",
        "role_permissions",
        "roles",
        "permissions",
    ):
        op.drop_table(table)
