"""
Request identity.
Authentication happens upstream; the API receives the acting profile in X-Profile-ID
and the cron trigger a shared bearer secret.
"""
import secrets
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from post_scheduler.config import get_settings
from post_scheduler.db import get_db
from post_scheduler.logging_config import get_logger
from post_scheduler.models import Profile
from post_scheduler.models.profile import ROLE_ADMIN, ROLE_MANAGER

logger = get_logger(__name__)

cron_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Acting profile, passed explicitly into every service call."""

    profile_id: uuid.UUID
    role: str
    dealership_id: Optional[uuid.UUID] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER

    def manages(self, dealership_id: Optional[uuid.UUID]) -> bool:
        """Admin manages everything; a manager only their own dealership."""
        if self.is_admin:
            return True
        return self.is_manager and dealership_id is not None and dealership_id == self.dealership_id


async def get_principal(
    x_profile_id: Optional[str] = Header(None, alias="X-Profile-ID"),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Resolve X-Profile-ID to a Principal. Missing, malformed or unknown -> 401."""
    if not x_profile_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Profile-ID header")
    try:
        profile_id = uuid.UUID(x_profile_id.strip())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-Profile-ID header")
    r = await db.execute(select(Profile).where(Profile.id == profile_id))
    profile = r.scalar_one_or_none()
    if profile is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown profile")
    return Principal(profile_id=profile.id, role=profile.role, dealership_id=profile.dealership_id)


async def verify_cron_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(cron_scheme),
) -> None:
    """
    Bearer check of the reminder trigger. Runs before any query.
    CRON_SECRET unset -> 500 (configuration error); wrong or missing token -> 401.
    """
    secret = get_settings().cron_secret
    if not secret:
        logger.error("cron.secret_not_configured")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="CRON_SECRET not configured")
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not secrets.compare_digest(credentials.credentials.encode(), secret.encode()):
        logger.warning("cron.unauthorized")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
