from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.discount_code_usage import DiscountCodeUsage
from app.db.models.discount_codes import DiscountCode
from app.db.models.discount_eligibility_checks import DiscountEligibilityCheck


class DiscountsRepo:
    @staticmethod
    async def get_code_by_code(session: AsyncSession, code: str) -> DiscountCode | None:
        stmt = select(DiscountCode).where(DiscountCode.code == code)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_code_by_code_for_update(session: AsyncSession, code: str) -> DiscountCode | None:
        stmt = (
            select(DiscountCode)
            .where(DiscountCode.code == code)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def code_exists(session: AsyncSession, code: str) -> bool:
        stmt = select(DiscountCode.id).where(DiscountCode.code == code).limit(1)
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_welcome_code_for_owner(session: AsyncSession, *, fid: int) -> DiscountCode | None:
        stmt = (
            select(DiscountCode)
            .where(
                DiscountCode.owner_fid == fid,
                DiscountCode.code_type == "welcome",
            )
            .order_by(DiscountCode.created_at.asc(), DiscountCode.id.asc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_owned_codes(
        session: AsyncSession,
        *,
        fid: int,
        now_utc: datetime,
    ) -> list[DiscountCode]:
        stmt = (
            select(DiscountCode)
            .where(
                DiscountCode.owner_fid == fid,
                DiscountCode.is_active.is_(True),
                or_(DiscountCode.expires_at.is_(None), DiscountCode.expires_at > now_utc),
            )
            .order_by(DiscountCode.created_at.desc(), DiscountCode.id.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_auto_apply_codes(
        session: AsyncSession,
        *,
        now_utc: datetime,
    ) -> list[DiscountCode]:
        stmt = (
            select(DiscountCode)
            .where(
                DiscountCode.auto_apply.is_(True),
                DiscountCode.is_active.is_(True),
                or_(DiscountCode.expires_at.is_(None), DiscountCode.expires_at > now_utc),
                or_(
                    DiscountCode.max_uses_total.is_(None),
                    DiscountCode.current_total_uses < DiscountCode.max_uses_total,
                ),
            )
            .order_by(DiscountCode.priority_level.desc(), DiscountCode.discount_value.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def create_code(session: AsyncSession, *, discount_code: DiscountCode) -> DiscountCode:
        session.add(discount_code)
        await session.flush()
        return discount_code

    @staticmethod
    async def count_usage_for_user(
        session: AsyncSession,
        *,
        discount_code_id: int,
        fid: int,
    ) -> int:
        stmt = select(func.count(DiscountCodeUsage.id)).where(
            DiscountCodeUsage.discount_code_id == discount_code_id,
            DiscountCodeUsage.fid == fid,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def get_usage_by_order(
        session: AsyncSession,
        *,
        discount_code_id: int,
        order_id: str,
    ) -> DiscountCodeUsage | None:
        stmt = select(DiscountCodeUsage).where(
            DiscountCodeUsage.discount_code_id == discount_code_id,
            DiscountCodeUsage.order_id == order_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_usage(
        session: AsyncSession, *, usage: DiscountCodeUsage
    ) -> DiscountCodeUsage:
        session.add(usage)
        await session.flush()
        return usage

    @staticmethod
    async def create_eligibility_check(
        session: AsyncSession, *, check: DiscountEligibilityCheck
    ) -> DiscountEligibilityCheck:
        session.add(check)
        await session.flush()
        return check
