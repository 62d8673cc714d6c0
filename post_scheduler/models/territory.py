"""Territory model: a named sales region."""
import uuid
from datetime import datetime

from sqlalchemy import String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from post_scheduler.db import Base
from post_scheduler.db_types import UTCDateTime, utcnow


class Territory(Base):
    """Identity + display name only; assignment lives on profiles and groups."""

    __tablename__ = "territories"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
    )

    groups = relationship("FacebookGroup", back_populates="territory")
    assignments = relationship("ProfileTerritory", back_populates="territory")
