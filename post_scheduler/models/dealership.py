"""Dealership model."""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from post_scheduler.db import Base
from post_scheduler.db_types import UTCDateTime, utcnow


class Dealership(Base):
    """Dealership: managers see the posts of every profile in their dealership."""

    __tablename__ = "dealerships"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
    )

    profiles = relationship("Profile", back_populates="dealership")
