from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.profiles import Profile


class ProfilesRepo:
    @staticmethod
    async def get_by_fid(session: AsyncSession, fid: int) -> Profile | None:
        return await session.get(Profile, fid)
