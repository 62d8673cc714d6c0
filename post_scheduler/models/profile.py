"""Profile (author / manager / admin) and territory assignments."""
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from post_scheduler.db import Base
from post_scheduler.db_types import UTCDateTime, utcnow

# salesperson | manager | admin (admin = organization owner)
ROLE_SALESPERSON = "salesperson"
ROLE_MANAGER = "manager"
ROLE_ADMIN = "admin"
ROLES = (ROLE_SALESPERSON, ROLE_MANAGER, ROLE_ADMIN)


class Profile(Base):
    """A user of the scheduler. Authentication happens upstream; this is the identity record."""

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=ROLE_SALESPERSON)
    dealership_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("dealerships.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
    )

    dealership = relationship("Dealership", back_populates="profiles")
    territory_assignments: Mapped[List["ProfileTerritory"]] = relationship(
        "ProfileTerritory",
        back_populates="profile",
        cascade="all, delete-orphan",
    )
    scheduled_posts = relationship(
        "ScheduledPost",
        back_populates="author",
        foreign_keys="ScheduledPost.author_id",
    )


class ProfileTerritory(Base):
    """Assignment of a territory to a profile. At most one primary per profile."""

    __tablename__ = "profile_territories"
    __table_args__ = (
        UniqueConstraint("profile_id", "territory_id", name="uq_profile_territories_profile_territory"),
        Index(
            "ux_profile_territories_one_primary",
            "profile_id",
            unique=True,
            postgresql_where=text("is_primary"),
            sqlite_where=text("is_primary = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    profile_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    territory_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("territories.id", ondelete="CASCADE"),
        nullable=False,
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    profile = relationship("Profile", back_populates="territory_assignments")
    territory = relationship("Territory", back_populates="assignments")
