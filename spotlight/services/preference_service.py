"""User preference service layer."""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spotlight.models.preference import PreferenceType, UserPreference


class PreferenceService:
    """Service for viewer preference operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_preferences(self, user_id: str) -> List[UserPreference]:
        result = await self.db.execute(
            select(UserPreference)
            .where(UserPreference.user_id == user_id)
            .order_by(UserPreference.type, UserPreference.value)
        )
        return result.scalars().all()

    async def set_preference(
        self,
        user_id: str,
        pref_type: str,
        value: str,
        weight: float = 1.0,
    ) -> UserPreference:
        """
        Create or update a preference.

        Args:
            user_id: Viewer identifier
            pref_type: SPORT, TEAM, PLAYER or PLAY_TYPE (case-insensitive)
            value: Preferred value (matched case-insensitively when ranking)
            weight: Non-negative weight

        Returns:
            The stored preference
        """
        if not user_id or not user_id.strip():
            raise ValueError("User ID is required")
        if not value or not value.strip():
            raise ValueError("Preference value is required")
        if weight < 0:
            raise ValueError("Preference weight must be non-negative")
        try:
            preference_type = PreferenceType(pref_type.upper())
        except ValueError:
            valid = ", ".join(t.value for t in PreferenceType)
            raise ValueError(f"Invalid preference type: {pref_type} (expected one of {valid})")

        value = value.strip()
        result = await self.db.execute(
            select(UserPreference).where(
                UserPreference.user_id == user_id,
                UserPreference.type == preference_type,
                UserPreference.value == value,
            )
        )
        preference = result.scalar_one_or_none()

        if preference:
            preference.weight = weight
        else:
            preference = UserPreference(
                user_id=user_id,
                type=preference_type,
                value=value,
                weight=weight,
            )
            self.db.add(preference)

        await self.db.commit()
        await self.db.refresh(preference)
        return preference

    async def get_preference(self, preference_id: int) -> Optional[UserPreference]:
        return await self.db.get(UserPreference, preference_id)

    async def delete_preference(self, preference_id: int) -> bool:
        preference = await self.db.get(UserPreference, preference_id)
        if not preference:
            return False
        await self.db.delete(preference)
        await self.db.commit()
        return True
