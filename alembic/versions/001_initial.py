"""initial: territories, dealerships, profiles, groups, scheduled posts, audit, reminder runs

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "territories",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_territories_name"),
    )
    op.create_table(
        "dealerships",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(32), server_default="salesperson", nullable=False),
        sa.Column("dealership_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["dealership_id"], ["dealerships.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_profiles_email"),
    )
    op.create_index("ix_profiles_dealership_id", "profiles", ["dealership_id"])
    op.create_table(
        "profile_territories",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("profile_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("territory_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("is_primary", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["territory_id"], ["territories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("profile_id", "territory_id", name="uq_profile_territories_profile_territory"),
    )
    op.create_index(
        "ux_profile_territories_one_primary",
        "profile_territories",
        ["profile_id"],
        unique=True,
        postgresql_where=sa.text("is_primary"),
    )
    op.create_table(
        "facebook_groups",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("group_url", sa.String(1024), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("territory_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["owner_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["territory_id"], ["territories.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_facebook_groups_territory_id", "facebook_groups", ["territory_id"])
    op.create_table(
        "scheduled_posts",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("author_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("territory_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("generated_content", sa.Text(), nullable=True),
        sa.Column("post_type", sa.String(32), server_default="brand_awareness", nullable=False),
        sa.Column("special_offer", sa.Text(), nullable=True),
        sa.Column("vehicle_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("testimonial_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("special_context", sa.Text(), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("reminder_sent", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_delivery_id", sa.String(255), nullable=True),
        sa.Column("reminder_attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("reminder_last_error", sa.Text(), nullable=True),
        sa.Column("reminder_claim_token", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reminder_claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("territory_violation", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("violation_status", sa.String(32), nullable=True),
        sa.Column("violation_justification", sa.Text(), nullable=True),
        sa.Column("authorization_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("authorization_granted_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("authorization_granted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'ready', 'posted', 'failed')",
            name="ck_scheduled_posts_status",
        ),
        sa.CheckConstraint(
            "(status = 'posted') = (posted_at IS NOT NULL)",
            name="ck_scheduled_posts_posted_at",
        ),
        sa.CheckConstraint(
            "territory_violation OR (violation_status IS NULL AND violation_justification IS NULL "
            "AND authorization_requested_at IS NULL AND authorization_granted_by IS NULL "
            "AND authorization_granted_at IS NULL)",
            name="ck_scheduled_posts_violation_fields",
        ),
        sa.ForeignKeyConstraint(["author_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["group_id"], ["facebook_groups.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["territory_id"], ["territories.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["authorization_granted_by"], ["profiles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scheduled_posts_author_id", "scheduled_posts", ["author_id"])
    op.create_index("ix_scheduled_posts_scheduled_for", "scheduled_posts", ["scheduled_for"])
    op.create_index("ix_scheduled_posts_status", "scheduled_posts", ["status"])
    op.create_index("ix_scheduled_posts_reminder_sent", "scheduled_posts", ["reminder_sent"])
    op.create_index("ix_scheduled_posts_violation_status", "scheduled_posts", ["violation_status"])
    op.create_index(
        "ix_scheduled_posts_reminder_due",
        "scheduled_posts",
        ["status", "reminder_sent", "scheduled_for"],
    )
    op.create_table(
        "post_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("post_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["post_id"], ["scheduled_posts.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["actor_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_post_events_post_id", "post_events", ["post_id"])
    op.create_table(
        "reminder_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("trigger", sa.String(16), server_default="http", nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("found", sa.Integer(), server_default="0", nullable=False),
        sa.Column("sent", sa.Integer(), server_default="0", nullable=False),
        sa.Column("failed", sa.Integer(), server_default="0", nullable=False),
        sa.Column("skipped", sa.Integer(), server_default="0", nullable=False),
        sa.Column("deferred", sa.Integer(), server_default="0", nullable=False),
        sa.Column("stale", sa.Integer(), server_default="0", nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reminder_runs_started_at", "reminder_runs", ["started_at"])


def downgrade() -> None:
    op.drop_index("ix_reminder_runs_started_at", table_name="reminder_runs")
    op.drop_table("reminder_runs")
    op.drop_index("ix_post_events_post_id", table_name="post_events")
    op.drop_table("post_events")
    for name in (
        "ix_scheduled_posts_reminder_due",
        "ix_scheduled_posts_violation_status",
        "ix_scheduled_posts_reminder_sent",
        "ix_scheduled_posts_status",
        "ix_scheduled_posts_scheduled_for",
        "ix_scheduled_posts_author_id",
    ):
        op.drop_index(name, table_name="scheduled_posts")
    op.drop_table("scheduled_posts")
    op.drop_index("ix_facebook_groups_territory_id", table_name="facebook_groups")
    op.drop_table("facebook_groups")
    op.drop_index("ux_profile_territories_one_primary", table_name="profile_territories")
    op.drop_table("profile_territories")
    op.drop_index("ix_profiles_dealership_id", table_name="profiles")
    op.drop_table("profiles")
    op.drop_table("dealerships")
    op.drop_table("territories")
