"""Scheduled post model."""
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text, false, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from post_scheduler.db import Base
from post_scheduler.db_types import JSONType, UTCDateTime, utcnow


class ScheduledPost(Base):
    """
    A post a salesperson scheduled for a Facebook group.
    status: pending | ready | posted | failed (deleted = row removed).
    violation_status: unresolved | authorization_requested | authorized | denied | justified,
    only when territory_violation is true.
    reminder_claim_*: in-flight reminder claim; reminder_sent itself only ever goes false -> true.
    reminder_dispatched_at: the email may be out; set posts stay unsent until handled by hand.
    """

    __tablename__ = "scheduled_posts"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'ready', 'posted', 'failed')",
            name="ck_scheduled_posts_status",
        ),
        CheckConstraint(
            "(status = 'posted') = (posted_at IS NOT NULL)",
            name="ck_scheduled_posts_posted_at",
        ),
        CheckConstraint(
            "territory_violation OR (violation_status IS NULL AND violation_justification IS NULL "
            "AND authorization_requested_at IS NULL AND authorization_granted_by IS NULL "
            "AND authorization_granted_at IS NULL)",
            name="ck_scheduled_posts_violation_fields",
        ),
        Index("ix_scheduled_posts_reminder_due", "status", "reminder_sent", "scheduled_for"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    group_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("facebook_groups.id", ondelete="RESTRICT"),
        nullable=False,
    )
    # Group territory captured at schedule/edit time.
    territory_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("territories.id", ondelete="SET NULL"),
        nullable=True,
    )

    generated_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # brand_awareness | vehicle_spotlight | special_offer | community | testimonial_style
    post_type: Mapped[str] = mapped_column(String(32), nullable=False, default="brand_awareness")
    special_offer: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    vehicle_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    testimonial_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    special_context: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    scheduled_for: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)
    posted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )

    reminder_sent: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
        index=True,
    )
    reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    reminder_delivery_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reminder_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    reminder_last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reminder_claim_token: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)
    reminder_claimed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    # Set right before the email is handed to the transport; such a post is never claimed again.
    reminder_dispatched_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    territory_violation: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    violation_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, index=True)
    violation_justification: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    authorization_requested_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    authorization_granted_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    authorization_granted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    author = relationship("Profile", back_populates="scheduled_posts", foreign_keys=[author_id])
    granted_by = relationship("Profile", foreign_keys=[authorization_granted_by])
    group = relationship("FacebookGroup", back_populates="scheduled_posts")
    territory = relationship("Territory")
    events = relationship("PostEvent", back_populates="post", passive_deletes=True)
