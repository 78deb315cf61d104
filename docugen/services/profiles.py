"""
Profile store: the denormalized ``profiles`` row kept in lock-step with the
identity provider so a display name can be edited independently of the
provider's own user metadata.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from docugen.exceptions import StoreError
from docugen.models.database_models import ProfileRow
from docugen.models.schemas import User

logger = logging.getLogger(__name__)


class ProfileStore:
    """Upsert and read ``profiles`` rows keyed by identity-provider user id."""

    def __init__(self, session_factory: Optional[async_sessionmaker]) -> None:
        self._session_factory = session_factory

    def _require_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            raise StoreError("Profile store is not configured")
        return self._session_factory

    async def upsert_profile(self, user: User) -> None:
        """Insert or overwrite the profile for *user*. Idempotent per user id."""
        factory = self._require_factory()
        try:
            async with factory() as session:
                await session.merge(
                    ProfileRow(
                        id=user.id,
                        email=user.email,
                        full_name=user.name,
                        updated_at=datetime.now(timezone.utc),
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to upsert profile %s: %s", user.id, exc)
            raise StoreError(f"Failed to upsert profile: {exc}") from exc

    async def get_profile(self, user_id: str) -> Optional[ProfileRow]:
        """Return the profile row or None when the user has none yet."""
        factory = self._require_factory()
        try:
            async with factory() as session:
                result = await session.execute(
                    select(ProfileRow).where(ProfileRow.id == user_id)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("Failed to load profile %s: %s", user_id, exc)
            raise StoreError(f"Failed to load profile: {exc}") from exc
