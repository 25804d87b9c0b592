"""Initial schema: accounts, audit, venues, submissions, reviews.

Revision ID: a7c3e91f2b10
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a7c3e91f2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if not insp.has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("display_name", sa.String(120), nullable=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.UniqueConstraint("email"),
        )

    if not insp.has_table("roles"):
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(64), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.UniqueConstraint("key"),
        )

    if not insp.has_table("permissions"):
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(128), nullable=False),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.UniqueConstraint("key"),
        )

    if not insp.has_table("user_roles"):
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("user_id", "role_id"),
        )

    if not insp.has_table("role_permissions"):
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), nullable=False),
            sa.Column("permission_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("role_id", "permission_id"),
        )

    if not insp.has_table("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_audit_events_action", "audit_events", ["action"])

    if not insp.has_table("venues"):
        op.create_table(
            "venues",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(120), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("website", sa.String(512), nullable=True),
            sa.Column("phone", sa.String(30), nullable=True),
            sa.Column("address1", sa.String(255), nullable=True),
            sa.Column("address2", sa.String(255), nullable=True),
            sa.Column("city", sa.String(128), nullable=True),
            sa.Column("postcode", sa.String(16), nullable=True),
            sa.Column("county", sa.String(128), nullable=True),
            sa.Column("tags", sa.JSON(), nullable=False),
            sa.Column("cover_image_url", sa.String(1024), nullable=True),
            sa.Column("image_urls", sa.JSON(), nullable=False),
            sa.Column("lat", sa.Float(), nullable=True),
            sa.Column("lng", sa.Float(), nullable=True),
            sa.Column("geohash", sa.String(12), nullable=True),
            sa.Column("verified_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("archived_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("visible_review_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("hidden_review_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("avg_rating", sa.Float(), nullable=True),
            sa.Column("last_reviewed_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("idx_venues_postcode", "venues", ["postcode"])
        op.create_index("idx_venues_archived_at", "venues", ["archived_at"])
        op.create_index("idx_venues_geohash", "venues", ["geohash"])

    if not insp.has_table("venue_sensory"):
        op.create_table(
            "venue_sensory",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("venue_id", sa.Integer(), nullable=False),
            sa.Column("noise_level", sa.String(16), nullable=True),
            sa.Column("lighting", sa.String(16), nullable=True),
            sa.Column("crowding", sa.String(16), nullable=True),
            sa.Column("quiet_space", sa.Boolean(), nullable=True),
            sa.Column("sensory_hours", sa.Boolean(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["venue_id"], ["venues.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("venue_id"),
        )

    if not insp.has_table("venue_facilities"):
        op.create_table(
            "venue_facilities",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("venue_id", sa.Integer(), nullable=False),
            sa.Column("parking", sa.Boolean(), nullable=True),
            sa.Column("accessible_toilet", sa.Boolean(), nullable=True),
            sa.Column("baby_change", sa.Boolean(), nullable=True),
            sa.Column("wheelchair_access", sa.Boolean(), nullable=True),
            sa.Column("staff_trained", sa.Boolean(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["venue_id"], ["venues.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("venue_id"),
        )

    if not insp.has_table("venue_submissions"):
        op.create_table(
            "venue_submissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("type", sa.String(16), nullable=False, server_default="NEW_VENUE"),
            sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
            sa.Column("proposed_name", sa.String(120), nullable=True),
            sa.Column("payload", sa.JSON(), nullable=False),
            sa.Column("venue_id", sa.Integer(), nullable=True),
            sa.Column("submitted_by", sa.String(320), nullable=True),
            sa.Column("submitted_by_user_id", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("reviewed_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("reviewed_by_user_id", sa.Integer(), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["venue_id"], ["venues.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["submitted_by_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["reviewed_by_user_id"], ["users.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_venue_submissions_status", "venue_submissions", ["status"])
        op.create_index("idx_venue_submissions_venue_id", "venue_submissions", ["venue_id"])

    if not insp.has_table("reviews"):
        op.create_table(
            "reviews",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("venue_id", sa.Integer(), nullable=False),
            sa.Column("author_id", sa.Integer(), nullable=False),
            sa.Column("author_name", sa.String(120), nullable=True),
            sa.Column("rating", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(80), nullable=True),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("visit_time_hint", sa.String(10), nullable=True),
            sa.Column("noise_level", sa.String(16), nullable=True),
            sa.Column("lighting", sa.String(16), nullable=True),
            sa.Column("crowding", sa.String(16), nullable=True),
            sa.Column("quiet_space", sa.Boolean(), nullable=True),
            sa.Column("sensory_hours", sa.Boolean(), nullable=True),
            sa.Column("hidden_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
            sa.ForeignKeyConstraint(["venue_id"], ["venues.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("venue_id", "author_id", name="uq_reviews_venue_author"),
        )
        op.create_index("idx_reviews_venue_id", "reviews", ["venue_id"])
        op.create_index("idx_reviews_hidden_at", "reviews", ["hidden_at"])

    if not insp.has_table("review_reports"):
        op.create_table(
            "review_reports",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("review_id", sa.Integer(), nullable=True),
            sa.Column("venue_id", sa.Integer(), nullable=False),
            sa.Column("reporter_id", sa.Integer(), nullable=True),
            sa.Column("reporter_ip", sa.String(64), nullable=True),
            sa.Column("reason", sa.String(32), nullable=False),
            sa.Column("message", sa.String(500), nullable=True),
            sa.Column("status", sa.String(16), nullable=False, server_default="OPEN"),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("resolved_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("resolved_by_user_id", sa.Integer(), nullable=True),
            sa.Column("resolution_note", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["review_id"], ["reviews.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["venue_id"], ["venues.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["reporter_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["resolved_by_user_id"], ["users.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_review_reports_status", "review_reports", ["status"])
        op.create_index("idx_review_reports_review_id", "review_reports", ["review_id"])


def downgrade() -> None:
    op.drop_index("idx_review_reports_review_id", table_name="review_reports")
    op.drop_index("idx_review_reports_status", table_name="review_reports")
    op.drop_table("review_reports")
    op.drop_index("idx_reviews_hidden_at", table_name="reviews")
    op.drop_index("idx_reviews_venue_id", table_name="reviews")
    op.drop_table("reviews")
    op.drop_index("idx_venue_submissions_venue_id", table_name="venue_submissions")
    op.drop_index("idx_venue_submissions_status", table_name="venue_submissions")
    op.drop_table("venue_submissions")
    op.drop_table("venue_facilities")
    op.drop_table("venue_sensory")
    op.drop_index("idx_venues_geohash", table_name="venues")
    op.drop_index("idx_venues_archived_at", table_name="venues")
    op.drop_index("idx_venues_postcode", table_name="venues")
    op.drop_table("venues")
    op.drop_index("idx_audit_events_action", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("role_permissions")
    op.drop_table("user_roles")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users")
